"""Rendering styles.

A style file describes, per S-57 layer, how features are drawn. Layers are
listed in drawing order: later layers paint over earlier ones.

Example::

    <style>
      <background>fff</background>
      <layer>
        <layer_name>LNDARE</layer_name>
        <fill_color>f0e0b0</fill_color>
        <line_color>806040</line_color>
        <line_width>1</line_width>
        <line_dash>0</line_dash>
        <marker_size>0</marker_size>
      </layer>
    </style>

Styles are loaded once at startup and never modified afterwards.
"""
import enum
import logging
import pathlib
import re
import types
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from . import xml_config as xc
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

_HEX = re.compile(r"[0-9a-fA-F]+")

# Depth and dredged areas keep adjacent bands distinct by default
NO_UNION_LAYERS = frozenset({"DEPARE", "DRGARE"})


@dataclass(frozen=True)
class Color:
    """8 bit RGBA color."""

    red: int = 0
    green: int = 0
    blue: int = 0
    alpha: int = 255

    @classmethod
    def parse(cls, code):
        """Parse a hex color code.

        Color code pattern can be one of:

        - 4 bit RGB  : ``"f0f"``
        - 4 bit ARGB : ``"ff0f"``
        - 8 bit RGB  : ``"ff00ff"``
        - 8 bit ARGB : ``"ffff00ff"``

        Parameters
        ----------
        code : str
            Hex digits without prefix.

        Returns
        -------
        Color

        Raises
        ------
        ConfigurationError
            If the code is not 3, 4, 6 or 8 hex digits.
        """
        code = (code or "").strip()
        if not _HEX.fullmatch(code) or len(code) not in (3, 4, 6, 8):
            raise ConfigurationError(f"Invalid color code '{code}'")
        if len(code) in (3, 4):
            channels = [int(c, 16) * 0x11 for c in code]
        else:
            channels = [int(code[i:i + 2], 16) for i in range(0, len(code), 2)]
        if len(channels) == 3:
            channels.insert(0, 255)
        alpha, red, green, blue = channels
        return cls(red, green, blue, alpha)

    def rgba(self):
        """Channels scaled to 0..1 for matplotlib."""
        return (self.red / 255, self.green / 255, self.blue / 255, self.alpha / 255)

    def css(self):
        return f"rgba({self.red},{self.green},{self.blue},{self.alpha / 255:.3g})"

    def __str__(self):
        return f"#{self.red:02x}{self.green:02x}{self.blue:02x}{self.alpha:02x}"


BLACK = Color(0, 0, 0, 255)
TRANSPARENT = Color(0, 0, 0, 0)


class MarkerShape(enum.Enum):
    CIRCLE = "circle"
    SQUARE = "square"


class LineDash(enum.IntEnum):
    """Line pattern codes used in style files."""

    SOLID = 0
    FINE = 1
    MEDIUM = 2
    COARSE = 3
    WAVY = 4
    T_DASH = 5
    TRIANGLES = 6


@dataclass(frozen=True)
class DepthBandColors:
    foreshore: Color = Color(0x7c, 0xb0, 0x72)
    very_shallow: Color = Color(0x61, 0xb7, 0xff)
    medium_shallow: Color = Color(0x82, 0xca, 0xff)
    medium_deep: Color = Color(0xa7, 0xd9, 0xfb)
    deep: Color = Color(0xc9, 0xed, 0xfd)


@dataclass(frozen=True)
class LayerStyle:
    """Style for a single layer.

    ``union_polygons`` merges a layer's polygons before drawing. It defaults
    to true except for depth and dredged areas, which are always drawn one
    feature at a time in their depth band color and cannot be unioned.
    """

    layer_name: str
    fill_color: Color = TRANSPARENT
    line_color: Color = BLACK
    line_width: float = 1
    line_dash: LineDash = LineDash.SOLID
    marker_size: float = 0
    marker_shape: MarkerShape = MarkerShape.CIRCLE
    icon_color: Color = BLACK
    icon_size: float = 24
    icons: Mapping[str, pathlib.Path] = field(default_factory=lambda: types.MappingProxyType({}))
    depth_colors: DepthBandColors = DepthBandColors()
    attr_name: Optional[str] = None
    union_polygons: Optional[bool] = None

    def __post_init__(self):
        if self.union_polygons and self.layer_name in NO_UNION_LAYERS:
            raise ConfigurationError(f"Layer {self.layer_name} cannot union polygons")

    @property
    def unions_polygons(self):
        """Whether polygons are merged before drawing."""
        if self.union_polygons is None:
            return self.layer_name not in NO_UNION_LAYERS
        return self.union_polygons


@dataclass(frozen=True)
class RenderStyle:
    """Full rendering style."""

    name: str
    layers: Tuple[LayerStyle, ...]
    background: Optional[Color] = None

    @property
    def layer_names(self):
        return [layer.layer_name for layer in self.layers]


def parse_icon(node, svg_path):
    """Parse an ``<icon name="tag">path</icon>`` binding.

    Relative paths are resolved against ``svg_path``; the file must exist.
    """
    name = node.get("name", "").strip()
    if not name:
        raise ConfigurationError("Icon binding requires a name attribute")
    path = pathlib.Path(xc.text(node))
    if not path.is_absolute():
        path = pathlib.Path(svg_path) / path
    if not path.is_file():
        raise ConfigurationError(f"Icon resource {path} does not exist")
    return name, path


def parse_depth_colors(node):
    return DepthBandColors(**{
        band: Color.parse(xc.text(xc.query(node, band)))
        for band in ("foreshore", "very_shallow", "medium_shallow", "medium_deep", "deep")
    })


def parse_layer(node, svg_path):
    """Parse a ``<layer>`` element."""
    kwargs = {}

    shape = xc.optional(node, "marker_shape")
    if shape is not None:
        try:
            kwargs["marker_shape"] = MarkerShape(xc.text(shape).lower())
        except ValueError:
            raise ConfigurationError(f"Unknown marker shape '{xc.text(shape)}'") from None
    icon_color = xc.optional(node, "icon_color")
    if icon_color is not None:
        kwargs["icon_color"] = Color.parse(xc.text(icon_color))
    icon_size = xc.optional(node, "icon_size")
    if icon_size is not None:
        kwargs["icon_size"] = xc.as_float(icon_size)
    depth = xc.optional(node, "depth_colors")
    if depth is not None:
        kwargs["depth_colors"] = parse_depth_colors(depth)
    attr = xc.optional(node, "attr_name")
    if attr is not None:
        kwargs["attr_name"] = xc.text(attr)
    merge = xc.optional(node, "union_polygons")
    if merge is not None:
        kwargs["union_polygons"] = xc.as_bool(merge)

    try:
        line_dash = LineDash(xc.as_int(xc.query(node, "line_dash")))
    except ValueError:
        raise ConfigurationError("Tag line_dash must be one of 0-6") from None

    icons = dict(parse_icon(child, svg_path) for child in xc.query_all(node, "icon"))
    return LayerStyle(
        layer_name=xc.text(xc.query(node, "layer_name")),
        fill_color=Color.parse(xc.text(xc.query(node, "fill_color"))),
        line_color=Color.parse(xc.text(xc.query(node, "line_color"))),
        line_width=xc.as_float(xc.query(node, "line_width")),
        line_dash=line_dash,
        marker_size=xc.as_float(xc.query(node, "marker_size")),
        icons=types.MappingProxyType(icons),
        **kwargs,
    )


def load_style(filename, svg_path):
    """Load one style file.

    Parameters
    ----------
    filename : str or pathlib.Path
        Path to the XML style file. The file stem becomes the style name.
    svg_path : str or pathlib.Path
        Root directory for relative icon paths.

    Returns
    -------
    RenderStyle
    """
    filename = pathlib.Path(filename)
    root = xc.load_document(filename)
    background = xc.optional(root, "background")
    return RenderStyle(
        name=filename.stem,
        layers=tuple(parse_layer(child, svg_path) for child in xc.query_all(root, "layer")),
        background=Color.parse(xc.text(background)) if background is not None else None,
    )


def load_styles(style_path, svg_path):
    """Load every ``*.xml`` style in a directory.

    Returns
    -------
    mapping
        Read-only mapping of style name to :class:`RenderStyle`.
    """
    style_path = pathlib.Path(style_path)
    if not style_path.is_dir():
        raise ConfigurationError(f"Style directory {style_path} does not exist")
    styles = {}
    for path in sorted(style_path.glob("*.xml")):
        styles[path.stem] = load_style(path, svg_path)
        logger.info("Loaded style '%s' (%d layers)", path.stem, len(styles[path.stem].layers))
    return types.MappingProxyType(styles)
