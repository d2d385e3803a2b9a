"""Spatial compositing of overlapping charts.

Charts are processed from most to least detailed. A running polygon of
still-missing coverage limits what each less detailed chart may add, so
area already supplied by a better chart is never drawn twice.
"""
import logging

from .chart_source import open_chart
from .errors import DataIntegrityError, ProcessingError
from .geometry import clip, erase, union

logger = logging.getLogger(__name__)

# Layers whose features may be split across adjacent charts. These are
# copied whole and merged by feature key instead of clipped, so area
# features keep a single outline and a centroid independent of the tile.
MERGE_LAYERS = frozenset({
    "TSSLPT",   # traffic separation scheme lane part
    "ACHBRT",   # anchor berth
    "LNDARE",   # land area
    "SEAARE",   # sea area / named water area
    "BUAARE",   # built-up area
    "LNDRGN",   # land region
    "CBLSUB",   # submarine cable
    "M_COVR",   # coverage
})


def select_charts(charts, bbox, min_scale):
    """Pick charts for a request, most detailed first.

    Parameters
    ----------
    charts : iterable of ChartMetadata
        Candidate charts.
    bbox : BBox
        Requested area in degrees.
    min_scale : int
        Smallest acceptable compilation scale denominator.

    Returns
    -------
    list of ChartMetadata
        Charts with ``scale >= min_scale`` intersecting ``bbox``, sorted by
        ascending scale (ties broken by chart id).
    """
    selected = [c for c in charts if c.scale >= min_scale and bbox.intersects(c.bbox)]
    return sorted(selected, key=lambda c: (c.scale, c.id))


class ChartCompositor:
    """Merge chart layers into a single tile dataset.

    Parameters
    ----------
    index : ChartIndex
        Frozen chart index to select from.
    opener : callable, optional
        Opens a chart path and returns a chart source.
    """

    def __init__(self, index, opener=open_chart):
        self.index = index
        self.opener = opener

    def export(self, output, layer_names, bbox, min_scale):
        """Populate ``output`` with the best data for ``bbox``.

        Parameters
        ----------
        output : Dataset
            Empty dataset to fill.
        layer_names : list of str
            S-57 layers to export.
        bbox : BBox
            Requested area in degrees.
        min_scale : int
            Minimum compilation scale.

        Returns
        -------
        bool
            False if no chart matches, True otherwise (even when coverage
            stays partial).

        Raises
        ------
        ProcessingError
            If a chart cannot be read or a geometry operation fails.
        """
        logger.info("Filter: scale=%d, bbox=(%g to %g),(%g to %g)", min_scale,
                    bbox.min_x, bbox.max_x, bbox.min_y, bbox.max_y)
        selected = select_charts(self.index, bbox, min_scale)
        if not selected:
            return False

        logger.info("Selected %d/%d charts", len(selected), len(self.index))
        for chart in selected:
            logger.debug(" - (%d) %s", chart.scale, chart.path)

        for name in layer_names:
            output.create_layer(name)

        remaining = bbox.to_polygon()
        for chart in selected:
            logger.debug(" - Process: %s", chart.id)
            try:
                with self.opener(chart.path) as source:
                    available = set(source.layer_names())
                    for name in layer_names:
                        if name not in available:
                            continue
                        if name in MERGE_LAYERS:
                            self._merge_layer(output.get_layer(name), source.features(name))
                        else:
                            self._clip_layer(output.get_layer(name), source.features(name),
                                             remaining)
            except DataIntegrityError as err:
                raise ProcessingError(f"Cannot read chart {chart.id}: {err}") from err

            remaining = erase(remaining, chart.bbox.to_polygon())
            if remaining.is_empty:
                logger.debug(" - Complete coverage (STOP)")
                break

        return True

    @staticmethod
    def _merge_layer(layer, features):
        for feat in features:
            if feat.geometry is None:
                continue
            existing = layer.get(feat.key)
            if existing is None:
                layer.add(feat)
            else:
                merged = union(existing.geometry, feat.geometry)
                layer.replace(feat.key, existing.with_geometry(merged))

    @staticmethod
    def _clip_layer(layer, features, remaining):
        for feat in features:
            if feat.geometry is None:
                continue
            clipped = clip(feat.geometry, remaining)
            if clipped is not None:
                layer.add(feat.with_geometry(clipped))
