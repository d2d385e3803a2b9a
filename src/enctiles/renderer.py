"""On-demand tile rendering.

A :class:`TileRenderer` is built once at startup: it indexes the chart
root, loads every style and freezes both. Each :meth:`TileRenderer.render`
call then composites a fresh dataset for the tile and draws it, touching no
shared mutable state.
"""
import logging
import math

from .canvas import TileCanvas
from .chart_index import ChartIndex
from .chart_source import open_chart
from .compositor import ChartCompositor
from .dataset import Dataset
from .errors import ProcessingError
from .icons import IconRenderer
from .style import load_styles
from .symbology import Symbolizer
from .web_mercator import TileConvention, WebMercator

logger = logging.getLogger(__name__)


def min_scale(bbox, zoom, scale_base):
    """Minimum compilation scale worth drawing at ``zoom``.

    Parameters
    ----------
    bbox : BBox
        Tile area in degrees; its mean latitude corrects for Mercator
        stretching.
    zoom : int
        Zoom level.
    scale_base : float
        Map scale denominator at zoom 0 on the equator.

    Returns
    -------
    int
    """
    mean_lat = math.radians((bbox.min_y + bbox.max_y) / 2)
    return int(round(scale_base * math.cos(mean_lat) / 2 ** zoom))


class TileRenderer:
    """Render chart tiles for a fixed configuration.

    Parameters
    ----------
    config : RendererConfig
        Resolved settings.
    index : ChartIndex, optional
        Prebuilt chart index. By default charts are indexed from
        ``config.chart_path`` with metadata cached in ``config.meta_path``.
    styles : mapping, optional
        Style name to :class:`~enctiles.style.RenderStyle`. By default all
        styles in ``config.style_path`` are loaded.
    opener : callable, optional
        Chart opener, by default :func:`~enctiles.chart_source.open_chart`.
    """

    def __init__(self, config, index=None, styles=None, opener=open_chart):
        self.config = config
        self.opener = opener
        if index is None:
            index = ChartIndex(cache_dir=config.meta_path, opener=opener)
            index.load(config.chart_path)
        if not index.frozen:
            index.freeze()
        self.index = index
        if styles is None:
            styles = load_styles(config.style_path, config.svg_path)
        self.styles = styles
        self.compositor = ChartCompositor(index, opener=opener)
        self.icons = IconRenderer()

    @property
    def style_names(self):
        return sorted(self.styles)

    def tile_bbox(self, mapper):
        """Tile bbox in degrees, enlarged by the configured oversampling."""
        return mapper.bbox_deg().oversample(self.config.oversample)

    def render(self, x, y, z, style_name, convention=None):
        """Render one tile.

        Parameters
        ----------
        x, y, z : int
            Tile address.
        style_name : str
            Name of a loaded style.
        convention : TileConvention or str, optional
            Row numbering of ``y``. Defaults to the configured convention.

        Returns
        -------
        bytes or None
            PNG data, or None if the style is unknown, no chart covers the
            tile at the required detail, or compositing failed.
        """
        style = self.styles.get(style_name)
        if style is None:
            logger.info("Unknown style '%s'", style_name)
            return None
        if convention is None:
            convention = self.config.tile_convention
        mapper = WebMercator(x, y, z, TileConvention.parse(convention),
                             self.config.tile_size)
        bbox = self.tile_bbox(mapper)
        scale = min_scale(bbox, z, self.config.scale_base)
        logger.info("Render tile %d/%d/%d style=%s", z, x, y, style_name)

        with Dataset() as data:
            try:
                if not self.compositor.export(data, style.layer_names, bbox, scale):
                    logger.info("No chart data for tile %d/%d/%d", z, x, y)
                    return None
                canvas = TileCanvas(self.config.tile_size)
                Symbolizer(canvas, mapper, self.icons, clip_bbox=bbox).render(data, style)
            except ProcessingError:
                logger.exception("Failed to render tile %d/%d/%d", z, x, y)
                return None
        return canvas.to_png()
