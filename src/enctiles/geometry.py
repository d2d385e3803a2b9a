"""Bounding boxes and geometry set operations.

Thin wrappers around shapely that turn GEOS failures into
:class:`~enctiles.errors.ProcessingError` so a broken geometry aborts only
the tile export that hit it.
"""
from dataclasses import dataclass

import shapely
from shapely.errors import GEOSException
from shapely.geometry import box
from shapely.geometry.base import BaseGeometry

from .errors import ProcessingError


@dataclass(frozen=True)
class BBox:
    """Axis aligned rectangle, inclusive on all edges."""

    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @classmethod
    def from_bounds(cls, bounds):
        """Create from a shapely style ``(minx, miny, maxx, maxy)`` tuple."""
        min_x, min_y, max_x, max_y = bounds
        return cls(min_x, max_x, min_y, max_y)

    @property
    def width(self):
        return self.max_x - self.min_x

    @property
    def height(self):
        return self.max_y - self.min_y

    @property
    def center(self):
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    def intersects(self, other):
        return (self.min_x <= other.max_x and other.min_x <= self.max_x and
                self.min_y <= other.max_y and other.min_y <= self.max_y)

    def merge(self, other):
        """Return the smallest box covering both boxes."""
        if other is None:
            return self
        return BBox(min(self.min_x, other.min_x), max(self.max_x, other.max_x),
                    min(self.min_y, other.min_y), max(self.max_y, other.max_y))

    def oversample(self, fraction):
        """Grow the box by ``fraction`` of its size, half on each side.

        Parameters
        ----------
        fraction : float
            Total growth relative to width/height, e.g. 0.1 for 10%.

        Returns
        -------
        BBox
        """
        dx = fraction * self.width / 2
        dy = fraction * self.height / 2
        return BBox(self.min_x - dx, self.max_x + dx,
                    self.min_y - dy, self.max_y + dy)

    def to_polygon(self):
        return box(self.min_x, self.min_y, self.max_x, self.max_y)


def _checked(operation, *geoms):
    try:
        return operation(*geoms)
    except (GEOSException, ValueError, TypeError) as err:
        raise ProcessingError(f"Geometry {operation.__name__} failed: {err}") from err


def clip(geom: BaseGeometry, mask: BaseGeometry):
    """Return the part of ``geom`` inside ``mask``, or None when empty."""
    result = _checked(shapely.intersection, geom, mask)
    return None if result.is_empty else result


def erase(geom: BaseGeometry, mask: BaseGeometry):
    """Return ``geom`` with ``mask`` removed (may be empty)."""
    return _checked(shapely.difference, geom, mask)


def union(first: BaseGeometry, second: BaseGeometry):
    return _checked(shapely.union, first, second)


def union_all(geoms):
    """Union a sequence of geometries, returning None for no input."""
    geoms = [g for g in geoms if g is not None and not g.is_empty]
    if not geoms:
        return None
    return _checked(shapely.union_all, geoms)
