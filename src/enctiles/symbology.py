"""Feature symbology.

Walks the layers of a composited dataset in style order and draws every
feature. Most layers are drawn purely by geometry type; recognised S-57
object classes (depth areas, soundings, aids to navigation, hazards, ...)
get their own drawing rules.

Polygons of ordinary layers are collected per layer and drawn once as a
single union, which hides the seams between adjacent polygons.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional

from shapely.geometry import LineString, Point, Polygon
from shapely.geometry.polygon import orient

from . import linestyles
from .dataset import field_int, field_real, field_str, field_str_list
from .errors import ProcessingError
from .geometry import erase, union_all
from .icons import tint_stylesheet
from .style import LineDash, MarkerShape

logger = logging.getLogger(__name__)

LABEL_SIZE = 10
SUBSCRIPT_SIZE = 7


class FeatureClass(enum.Enum):
    """Object classes with dedicated drawing rules."""

    GENERIC = "generic"
    DEPTH_AREA = "depth_area"
    DREDGED_AREA = "dredged_area"
    SOUNDING = "sounding"
    BUOY = "buoy"
    BEACON = "beacon"
    LIGHT = "light"
    FOG_SIGNAL = "fog_signal"
    LANDMARK = "landmark"
    SILO_TANK = "silo_tank"
    ROCK = "rock"
    OBSTRUCTION = "obstruction"
    WRECK = "wreck"
    ANCHOR_BERTH = "anchor_berth"
    TRAFFIC_LANE = "traffic_lane"
    NAMED_AREA = "named_area"

    @classmethod
    def from_layer(cls, layer_name):
        return LAYER_CLASSES.get(layer_name, cls.GENERIC)


LAYER_CLASSES = {
    "DEPARE": FeatureClass.DEPTH_AREA,
    "DRGARE": FeatureClass.DREDGED_AREA,
    "SOUNDG": FeatureClass.SOUNDING,
    "BOYLAT": FeatureClass.BUOY,
    "BOYCAR": FeatureClass.BUOY,
    "BOYISD": FeatureClass.BUOY,
    "BOYSAW": FeatureClass.BUOY,
    "BOYSPP": FeatureClass.BUOY,
    "BOYINB": FeatureClass.BUOY,
    "BCNLAT": FeatureClass.BEACON,
    "BCNCAR": FeatureClass.BEACON,
    "BCNISD": FeatureClass.BEACON,
    "BCNSAW": FeatureClass.BEACON,
    "BCNSPP": FeatureClass.BEACON,
    "LIGHTS": FeatureClass.LIGHT,
    "FOGSIG": FeatureClass.FOG_SIGNAL,
    "LNDMRK": FeatureClass.LANDMARK,
    "SILTNK": FeatureClass.SILO_TANK,
    "UWTROC": FeatureClass.ROCK,
    "OBSTRN": FeatureClass.OBSTRUCTION,
    "WRECKS": FeatureClass.WRECK,
    "ACHBRT": FeatureClass.ANCHOR_BERTH,
    "TSSLPT": FeatureClass.TRAFFIC_LANE,
    "LNDRGN": FeatureClass.NAMED_AREA,
    "SEAARE": FeatureClass.NAMED_AREA,
}

# S-57 COLOUR attribute codes
COLOUR_NAMES = {
    1: "white",
    2: "black",
    3: "red",
    4: "green",
    5: "blue",
    6: "yellow",
    7: "grey",
    8: "brown",
    9: "#ffbf00",   # amber
    10: "violet",
    11: "orange",
    12: "magenta",
    13: "pink",
}


@dataclass(frozen=True)
class IconRule:
    """How an object class picks its icon binding.

    ``attribute`` names the shape/category field whose code is looked up in
    ``tags``; classes without such a field always use ``tag``.
    """

    attribute: Optional[str] = None
    tags: Mapping[int, str] = field(default_factory=dict)
    tag: str = "default"


ICON_RULES = {
    FeatureClass.BUOY: IconRule("BOYSHP", {
        1: "conical", 2: "can", 3: "spherical", 4: "pillar",
        5: "spar", 6: "barrel", 7: "super_buoy", 8: "ice_buoy"}),
    FeatureClass.BEACON: IconRule("BCNSHP", {
        1: "stake", 2: "withy", 3: "tower", 4: "lattice",
        5: "pile", 6: "cairn", 7: "buoyant"}),
    FeatureClass.LIGHT: IconRule(tag="light"),
    FeatureClass.FOG_SIGNAL: IconRule(tag="fog"),
    FeatureClass.LANDMARK: IconRule("CATLMK", {
        1: "cairn", 2: "cemetery", 3: "chimney", 4: "dish_aerial", 5: "flagstaff",
        6: "flare_stack", 7: "mast", 8: "windsock", 9: "monument", 10: "column",
        11: "memorial_plaque", 12: "obelisk", 13: "statue", 14: "cross", 15: "dome",
        16: "radar_scanner", 17: "tower", 18: "windmill", 19: "windmotor", 20: "spire",
        21: "boulder"}),
    FeatureClass.SILO_TANK: IconRule("CATSIL", {
        1: "silo", 2: "tank", 3: "grain_elevator", 4: "water_tower"}),
    FeatureClass.ROCK: IconRule("WATLEV", {
        1: "partly_submerged", 2: "always_dry", 3: "always_submerged",
        4: "covers_uncovers", 5: "awash", 6: "subject_to_flooding", 7: "floating"}),
    FeatureClass.OBSTRUCTION: IconRule("CATOBS", {
        1: "snag", 2: "wellhead", 3: "diffuser", 4: "crib", 5: "fish_haven",
        6: "foul_area", 7: "foul_ground", 8: "ice_boom", 9: "ground_tackle",
        10: "boom"}),
    FeatureClass.WRECK: IconRule("CATWRK", {
        1: "non_dangerous", 2: "dangerous", 3: "distributed_remains",
        4: "mast_showing", 5: "hull_showing"}),
    FeatureClass.ANCHOR_BERTH: IconRule(tag="anchor"),
    FeatureClass.TRAFFIC_LANE: IconRule(tag="arrow"),
}


def depth_band(depth):
    """Name of the depth band color for a charted depth.

    Bands are half open: a depth equal to a threshold belongs to the
    deeper band.
    """
    if depth is None:
        return "deep"
    if depth < 3:
        return "foreshore"
    if depth < 5:
        return "very_shallow"
    if depth < 10:
        return "medium_shallow"
    if depth < 25:
        return "medium_deep"
    return "deep"


def area_depth(feat):
    """Charted depth used to color a depth area (DRVAL1, else DRVAL2)."""
    depth = field_real(feat, "DRVAL1")
    if depth is None:
        depth = field_real(feat, "DRVAL2")
    return depth


def sounding_label(depth):
    """Split a sounding into whole meters and a decimeter subscript.

    >>> sounding_label(12.3)
    ('12', '3')
    >>> sounding_label(12.0)
    ('12', '')
    """
    tenths = int(round(abs(depth) * 10))
    whole, rest = divmod(tenths, 10)
    sign = "-" if depth < 0 and tenths else ""
    return f"{sign}{whole}", str(rest) if rest else ""


def icon_tag(feature_class, feat):
    """Icon binding tag for a feature of an icon class."""
    rule = ICON_RULES.get(feature_class)
    if rule is None:
        return None
    if rule.attribute is None:
        return rule.tag
    code = field_int(feat, rule.attribute)
    if code is None:
        codes = field_str_list(feat, rule.attribute)
        code = int(codes[0]) if codes and codes[0].isdigit() else None
    return rule.tags.get(code, rule.tag)


def icon_stylesheet(feat, default_color):
    """Tint CSS from the COLOUR attribute.

    The first color tints ``.tint`` elements and the second, when present,
    ``.tint2``. Unknown or missing codes fall back to ``default_color``.
    """
    names = []
    for code in field_str_list(feat, "COLOUR"):
        name = COLOUR_NAMES.get(int(code)) if code.isdigit() else None
        if name is not None:
            names.append(name)
    if not names:
        return tint_stylesheet(default_color.css())
    css = tint_stylesheet(names[0])
    if len(names) > 1:
        css += f" .tint2 {{ fill: {names[1]}; }}"
    return css


def explode(geom):
    """Yield the Point, LineString and Polygon parts of a geometry."""
    if geom is None or geom.is_empty:
        return
    if isinstance(geom, (Point, LineString, Polygon)):
        yield geom
    elif hasattr(geom, "geoms"):
        for part in geom.geoms:
            yield from explode(part)
    else:
        raise ProcessingError(f"Unhandled geometry of type {geom.geom_type}")


class PolygonAccumulator:
    """Collects a layer's polygons and releases them as one union."""

    def __init__(self):
        self._polygons = []

    def __len__(self):
        return len(self._polygons)

    def add(self, polygon):
        self._polygons.append(polygon)

    def flush(self):
        """Union and forget everything collected so far.

        Returns
        -------
        shapely geometry or None
            None if nothing was collected.
        """
        polygons, self._polygons = self._polygons, []
        return union_all(polygons)


class Symbolizer:
    """Draws a composited dataset onto a tile canvas.

    Parameters
    ----------
    canvas : TileCanvas
        Target surface.
    mapper : WebMercator
        Degree to pixel mapping for the tile.
    icons : IconRenderer
        Icon renderer.
    clip_bbox : BBox, optional
        Export bbox. Polygon borders lying on its edge are not stroked.
    """

    def __init__(self, canvas, mapper, icons, clip_bbox=None):
        self.canvas = canvas
        self.mapper = mapper
        self.icons = icons
        self.clip_edge = None
        if clip_bbox is not None:
            span = max(clip_bbox.width, clip_bbox.height)
            self.clip_edge = clip_bbox.to_polygon().exterior.buffer(span * 1e-9)
        self._handlers = {
            FeatureClass.GENERIC: self._draw_generic,
            FeatureClass.DEPTH_AREA: self._draw_depth_area,
            FeatureClass.DREDGED_AREA: self._draw_depth_area,
            FeatureClass.SOUNDING: self._draw_sounding,
            FeatureClass.ANCHOR_BERTH: self._draw_anchor_berth,
            FeatureClass.TRAFFIC_LANE: self._draw_traffic_lane,
            FeatureClass.NAMED_AREA: self._draw_named_area,
        }
        for feature_class in ICON_RULES:
            self._handlers.setdefault(feature_class, self._draw_icon_feature)

    def render(self, dataset, style):
        """Draw every style layer present in ``dataset`` in style order."""
        if style.background is not None:
            self.canvas.set_color(style.background)
            self.canvas.paint()
        for lstyle in style.layers:
            layer = dataset.get_layer(lstyle.layer_name)
            if layer is None:
                continue
            logger.debug("  Layer: %s (%d features)", lstyle.layer_name, len(layer))
            self.render_layer(layer, lstyle)

    def render_layer(self, layer, lstyle):
        """Draw one layer: features first, then the merged polygons."""
        feature_class = FeatureClass.from_layer(layer.name)
        handler = self._handlers[feature_class]
        accumulator = PolygonAccumulator()
        for feat in layer:
            if feat.geometry is None:
                continue
            handler(feat, lstyle, accumulator)
        merged = accumulator.flush()
        if merged is not None:
            self.draw_area(merged, lstyle.fill_color, lstyle)

    # -- generic geometry --------------------------------------------------

    def _draw_generic(self, feat, lstyle, accumulator):
        lines = []
        for part in explode(feat.geometry):
            if isinstance(part, Point):
                self.draw_marker(part, lstyle)
                if lstyle.attr_name:
                    self.draw_point_label(part, field_str(feat, lstyle.attr_name), lstyle)
            elif isinstance(part, LineString):
                lines.append(part)
            elif lstyle.unions_polygons:
                accumulator.add(part)
            else:
                self.draw_area(part, lstyle.fill_color, lstyle)
        if lines:
            self.draw_lines(lines, lstyle)

    def draw_marker(self, point, lstyle):
        """Circle or square marker; a zero marker size draws nothing."""
        if lstyle.marker_size <= 0:
            return
        x, y = self.mapper.deg_to_pixels(point.x, point.y)
        canvas = self.canvas
        canvas.new_path()
        if lstyle.marker_shape is MarkerShape.SQUARE:
            half = lstyle.marker_size / 2
            canvas.rectangle(x - half, y - half, lstyle.marker_size, lstyle.marker_size)
        else:
            canvas.arc(x, y, lstyle.marker_size)
        canvas.set_color(lstyle.fill_color)
        canvas.fill(preserve=True)
        self._stroke(lstyle)

    def draw_point_label(self, point, text, lstyle):
        if not text:
            return
        x, y = self.mapper.deg_to_pixels(point.x, point.y)
        _, height = self.canvas.text_extents(text, LABEL_SIZE)
        self.canvas.set_color(lstyle.line_color)
        self.canvas.show_text(x + lstyle.marker_size + 2, y + height / 2, text, LABEL_SIZE)

    def _stroke(self, lstyle):
        if lstyle.line_width <= 0:
            self.canvas.new_path()
            return
        self.canvas.set_color(lstyle.line_color)
        self.canvas.set_line_width(lstyle.line_width)
        self.canvas.set_dash()
        self.canvas.stroke()

    def draw_lines(self, lines, lstyle):
        """Stroke line parts with the layer's line pattern.

        The pattern phase carries over from one part to the next so dashes
        stay continuous across a multi-part line.
        """
        if lstyle.line_width <= 0:
            return
        canvas = self.canvas
        width = lstyle.line_width
        kind = LineDash(lstyle.line_dash)
        pattern = linestyles.dash_pattern(kind, width)
        period = sum(pattern)
        phase = 0.0
        canvas.set_color(lstyle.line_color)
        canvas.set_line_width(width)
        for line in lines:
            points = self.mapper.coords_to_pixels(line.coords)
            if len(points) < 2:
                continue
            length = linestyles.arc_length(points)[-1]
            if kind is LineDash.WAVY:
                points, phase = linestyles.wavy(points, max(2.0, 1.5 * width),
                                                max(8.0, 6 * width), phase)
                canvas.set_dash()
            elif kind is LineDash.TRIANGLES:
                shapes, _ = linestyles.triangles(points, 10 * width, 4 * width, phase)
                for shape in shapes:
                    canvas.new_path()
                    canvas.polyline(shape, closed=True)
                    canvas.fill()
                phase = (phase + length) % (10 * width)
                canvas.set_dash()
            else:
                if kind is LineDash.T_DASH:
                    segments, _ = linestyles.ticks(points, period, 3 * width, phase)
                    canvas.set_dash()
                    canvas.new_path()
                    for segment in segments:
                        canvas.polyline(segment)
                    canvas.stroke()
                canvas.set_dash(pattern, phase)
                if period:
                    phase = (phase + length) % period
            canvas.new_path()
            canvas.polyline(points)
            canvas.stroke()
        canvas.set_dash()

    def draw_area(self, geom, fill_color, lstyle):
        """Fill polygons and stroke their borders.

        Borders lying on the export bbox edge are artifacts of clipping and
        are not stroked.
        """
        polygons = [p for p in explode(geom) if isinstance(p, Polygon)]
        if not polygons:
            return
        canvas = self.canvas
        canvas.new_path()
        for polygon in polygons:
            polygon = orient(polygon, sign=1.0)
            canvas.polyline(self.mapper.coords_to_pixels(polygon.exterior.coords), closed=True)
            for ring in polygon.interiors:
                canvas.polyline(self.mapper.coords_to_pixels(ring.coords), closed=True)
        canvas.set_color(fill_color)
        canvas.fill()

        if lstyle.line_width <= 0:
            return
        borders = [p.boundary for p in polygons]
        if self.clip_edge is not None:
            borders = [erase(b, self.clip_edge) for b in borders]
        lines = [part for b in borders for part in explode(b) if isinstance(part, LineString)]
        if lines:
            self.draw_lines(lines, lstyle)

    # -- depth -------------------------------------------------------------

    def _draw_depth_area(self, feat, lstyle, accumulator):
        color = getattr(lstyle.depth_colors, depth_band(area_depth(feat)))
        polygons = [p for p in explode(feat.geometry) if isinstance(p, Polygon)]
        if polygons:
            self.draw_area(feat.geometry, color, lstyle)
        else:
            self._draw_generic(feat, lstyle, accumulator)

    def _draw_sounding(self, feat, lstyle, accumulator):
        for part in explode(feat.geometry):
            if not isinstance(part, Point):
                continue
            depth = part.z if part.has_z else field_real(feat, "VALSOU")
            if depth is None:
                continue
            self.draw_sounding(part, depth, lstyle)

    def draw_sounding(self, point, depth, lstyle):
        """Depth label with whole meters and a smaller decimeter subscript."""
        primary, subscript = sounding_label(depth)
        x, y = self.mapper.deg_to_pixels(point.x, point.y)
        canvas = self.canvas
        width, height = canvas.text_extents(primary, LABEL_SIZE)
        sub_width, sub_height = canvas.text_extents(subscript, SUBSCRIPT_SIZE)
        left = x - (width + sub_width) / 2
        baseline = y + height / 2
        canvas.set_color(lstyle.line_color)
        canvas.show_text(left, baseline, primary, LABEL_SIZE)
        if subscript:
            canvas.show_text(left + width, baseline + sub_height / 2, subscript, SUBSCRIPT_SIZE)

    # -- icons -------------------------------------------------------------

    def icon_path(self, feature_class, feat, lstyle):
        tag = icon_tag(feature_class, feat)
        return lstyle.icons.get(tag) or lstyle.icons.get("default")

    def draw_icon(self, point, feature_class, feat, lstyle, rotation=0.0):
        """Draw the class icon at ``point``; without a binding draw a marker."""
        path = self.icon_path(feature_class, feat, lstyle)
        if path is None:
            self.draw_marker(point, lstyle)
            return
        center = self.mapper.deg_to_pixels(point.x, point.y)
        self.icons.render(self.canvas, path, center, lstyle.icon_size,
                          icon_stylesheet(feat, lstyle.icon_color), rotation)

    def _draw_icon_feature(self, feat, lstyle, accumulator):
        feature_class = FeatureClass.from_layer(lstyle.layer_name)
        if isinstance(feat.geometry, Point):
            self.draw_icon(feat.geometry, feature_class, feat, lstyle)
        else:
            self._draw_generic(feat, lstyle, accumulator)

    def _draw_anchor_berth(self, feat, lstyle, accumulator):
        geom = feat.geometry
        if isinstance(geom, Point):
            radius = field_real(feat, "RADIUS")
            if radius and lstyle.line_width > 0:
                x, y = self.mapper.deg_to_pixels(geom.x, geom.y)
                pixels = self.mapper.meters_radius_to_pixels(geom.x, geom.y, radius)
                self.canvas.new_path()
                self.canvas.arc(x, y, pixels)
                self.canvas.set_color(lstyle.line_color)
                self.canvas.set_line_width(lstyle.line_width)
                self.canvas.set_dash(linestyles.dash_pattern(lstyle.line_dash,
                                                             lstyle.line_width))
                self.canvas.stroke()
                self.canvas.set_dash()
            self.draw_icon(geom, FeatureClass.ANCHOR_BERTH, feat, lstyle)
        else:
            self._draw_generic(feat, lstyle, accumulator)
            self.draw_icon(geom.centroid, FeatureClass.ANCHOR_BERTH, feat, lstyle)

    def _draw_traffic_lane(self, feat, lstyle, accumulator):
        orientation = field_real(feat, "ORIENT", 0.0)
        self.draw_icon(feat.geometry.centroid, FeatureClass.TRAFFIC_LANE, feat, lstyle,
                       rotation=orientation)

    def _draw_named_area(self, feat, lstyle, accumulator):
        name = field_str(feat, "OBJNAM").strip()
        if not name:
            return
        centroid = feat.geometry.centroid
        x, y = self.mapper.deg_to_pixels(centroid.x, centroid.y)
        width, height = self.canvas.text_extents(name, LABEL_SIZE)
        self.canvas.set_color(lstyle.line_color)
        self.canvas.show_text(x - width / 2, y + height / 2, name, LABEL_SIZE)
