"""In-memory feature datasets.

A :class:`Dataset` holds named :class:`Layer` objects of :class:`Feature`
records. The compositor writes one per tile request and the symbology
pipeline reads it. A dataset also satisfies the chart source protocol
(``layer_names``, ``features``, ``close``) so it can stand in for a chart.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, List, Optional

from shapely.geometry.base import BaseGeometry

from .errors import DataIntegrityError


@dataclass(frozen=True)
class Feature:
    """A single chart feature.

    Attributes
    ----------
    fid : str
        Feature id as reported by the data source.
    fields : dict
        Attribute values keyed by S-57 acronym.
    geometry : shapely geometry or None
        Geometry in WGS84 degrees.
    """

    fid: str
    fields: Dict[str, Any] = field(default_factory=dict)
    geometry: Optional[BaseGeometry] = None

    @property
    def key(self):
        """Stable identifier shared by the same object in adjacent charts."""
        return self.fields.get("LNAM") or self.fid

    def with_geometry(self, geometry):
        return replace(self, geometry=geometry)


def field_int(feat, name, default=None):
    """Read an integer field, tolerating S-57 integers stored as text."""
    value = feat.fields.get(name)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def field_real(feat, name, default=None):
    value = feat.fields.get(name)
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def field_str(feat, name, default=""):
    value = feat.fields.get(name)
    if value is None:
        return default
    return str(value)


def field_str_list(feat, name):
    """Read a string list field.

    S-57 list attributes (e.g. COLOUR) arrive either as a list or as a
    comma separated string depending on driver options.
    """
    value = feat.fields.get(name)
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [v.strip() for v in str(value).split(",") if v.strip()]


def require_int(feat, name):
    """Read an integer field, raising if it is missing or not an integer.

    Raises
    ------
    DataIntegrityError
        If the field is absent, unset, or of another type.
    """
    if name not in feat.fields:
        raise DataIntegrityError(f'Feature does not have field "{name}"')
    value = feat.fields[name]
    if isinstance(value, bool) or not isinstance(value, int):
        raise DataIntegrityError(f'Feature field "{name}" is not an integer')
    return value


class Layer:
    """Ordered collection of features with lookup by stable key."""

    def __init__(self, name):
        self.name = name
        self._features: List[Feature] = []
        self._index: Dict[str, int] = {}

    def __iter__(self) -> Iterator[Feature]:
        return iter(self._features)

    def __len__(self):
        return len(self._features)

    def __repr__(self):
        return f"Layer({self.name!r}, {len(self)} features)"

    def add(self, feat: Feature):
        self._index.setdefault(feat.key, len(self._features))
        self._features.append(feat)

    def get(self, key) -> Optional[Feature]:
        pos = self._index.get(key)
        return None if pos is None else self._features[pos]

    def replace(self, key, feat: Feature):
        """Replace the feature stored under ``key`` in place."""
        self._features[self._index[key]] = feat

    def clear(self):
        self._features.clear()
        self._index.clear()


class Dataset:
    """Named layers held in creation order."""

    def __init__(self, layers=None):
        self._layers: Dict[str, Layer] = {}
        for name, features in (layers or {}).items():
            layer = self.create_layer(name)
            for feat in features:
                layer.add(feat)

    def __contains__(self, name):
        return name in self._layers

    def __len__(self):
        return len(self._layers)

    def create_layer(self, name):
        if name not in self._layers:
            self._layers[name] = Layer(name)
        return self._layers[name]

    def get_layer(self, name) -> Optional[Layer]:
        return self._layers.get(name)

    def layer_names(self):
        return list(self._layers)

    def features(self, name):
        layer = self._layers.get(name)
        return iter(()) if layer is None else iter(layer)

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
