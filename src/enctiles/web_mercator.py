"""Coordinate mapping for a single Web Mercator tile.

Converts between WGS84 degrees, spherical Web Mercator meters (EPSG:3857)
and pixel coordinates inside one tile. Pixel coordinates are measured from
the top left corner of the tile while meters grow northwards.
"""
import enum
import math

import mercantile
import numpy as np

from .errors import ConfigurationError
from .geometry import BBox

WEBMERCATOR_RADIUS = 6378137.0
TILE_SIZE = 256

# Half the projected world width, meters from the origin to the map edge
ORIGIN_SHIFT = math.pi * WEBMERCATOR_RADIUS


class TileConvention(enum.Enum):
    """Row numbering of tile coordinates.

    XYZ numbers rows from the top of the map (slippy map / WMTS),
    TMS numbers rows from the bottom.
    """

    XYZ = "xyz"
    TMS = "tms"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(f"Unknown tile convention '{value}'") from None


def zoom_to_resolution_m(zoom: int, tile_size: int = TILE_SIZE) -> float:
    """Convert Web Mercator zoom level to resolution in meters per pixel.

    Parameters
    ----------
    zoom : int
        Web Mercator zoom level (slippy-map convention).
    tile_size : int, optional
        Tile side length in pixels, by default 256.

    Returns
    -------
    float
        Resolution in meters per pixel at the equator.
    """
    return (2 * math.pi * WEBMERCATOR_RADIUS) / (tile_size * 2**zoom)


def deg_to_meters(lon, lat):
    """Project longitude/latitude degrees to Web Mercator meters.

    Parameters
    ----------
    lon, lat : float or numpy.ndarray
        Coordinates in degrees.

    Returns
    -------
    tuple
        (x, y) in meters, same shape as the input.
    """
    x = np.asarray(lon, dtype=float) * ORIGIN_SHIFT / 180.0
    y = np.log(np.tan((90.0 + np.asarray(lat, dtype=float)) * math.pi / 360.0))
    y = y / (math.pi / 180.0) * ORIGIN_SHIFT / 180.0
    return _unwrap(x), _unwrap(y)


def meters_to_deg(x, y):
    """Inverse of :func:`deg_to_meters`."""
    lon = np.asarray(x, dtype=float) / ORIGIN_SHIFT * 180.0
    lat = np.asarray(y, dtype=float) / ORIGIN_SHIFT * 180.0
    lat = 180.0 / math.pi * (2 * np.arctan(np.exp(lat * math.pi / 180.0)) - math.pi / 2)
    return _unwrap(lon), _unwrap(lat)


def _unwrap(value):
    return float(value) if np.ndim(value) == 0 else value


class WebMercator:
    """Point mapper for one tile address.

    Parameters
    ----------
    x, y, z : int
        Tile column, row and zoom level.
    convention : TileConvention or str, optional
        Row numbering of ``y``, by default XYZ (top-down).
    tile_size : int, optional
        Output tile side length in pixels, by default 256.

    Attributes
    ----------
    bbox_m : BBox
        Tile bounds in meters.
    ppm : float
        Pixels per meter.
    """

    def __init__(self, x, y, z, convention=TileConvention.XYZ, tile_size=TILE_SIZE):
        convention = TileConvention.parse(convention)
        ntiles = 2 ** z
        if not (0 <= x < ntiles and 0 <= y < ntiles):
            raise ValueError(f"Tile {z}/{x}/{y} is outside the zoom {z} grid")
        if convention is TileConvention.TMS:
            y = ntiles - y - 1

        self.x, self.y, self.z = x, y, z
        self.tile_size = tile_size
        bounds = mercantile.xy_bounds(x, y, z)
        self.bbox_m = BBox(bounds.left, bounds.right, bounds.bottom, bounds.top)
        self.ppm = tile_size / self.bbox_m.width

    def bbox_deg(self):
        """Tile bounds in degrees."""
        min_lon, min_lat = meters_to_deg(self.bbox_m.min_x, self.bbox_m.min_y)
        max_lon, max_lat = meters_to_deg(self.bbox_m.max_x, self.bbox_m.max_y)
        return BBox(min_lon, max_lon, min_lat, max_lat)

    def meters_to_pixels(self, x, y):
        px = (np.asarray(x, dtype=float) - self.bbox_m.min_x) * self.ppm
        py = (self.bbox_m.max_y - np.asarray(y, dtype=float)) * self.ppm
        return _unwrap(px), _unwrap(py)

    def pixels_to_meters(self, px, py):
        x = self.bbox_m.min_x + np.asarray(px, dtype=float) / self.ppm
        y = self.bbox_m.max_y - np.asarray(py, dtype=float) / self.ppm
        return _unwrap(x), _unwrap(y)

    def deg_to_pixels(self, lon, lat):
        return self.meters_to_pixels(*deg_to_meters(lon, lat))

    def coords_to_pixels(self, coords):
        """Map an (N, 2+) array of lon/lat vertices to an (N, 2) pixel array."""
        coords = np.asarray(coords, dtype=float)
        if coords.size == 0:
            return np.empty((0, 2))
        px, py = self.deg_to_pixels(coords[:, 0], coords[:, 1])
        return np.column_stack([px, py])

    def meters_radius_to_pixels(self, lon, lat, radius_m):
        """Pixel length of a ground distance at a given position.

        The radius is scaled by the Mercator scale factor at ``lat`` before
        being offset through the mapper, so it stays true on the ground.
        """
        x, y = deg_to_meters(lon, lat)
        scaled = radius_m / math.cos(math.radians(lat))
        px0, py0 = self.meters_to_pixels(x, y)
        px1, py1 = self.meters_to_pixels(x + scaled, y)
        return math.hypot(px1 - px0, py1 - py0)
