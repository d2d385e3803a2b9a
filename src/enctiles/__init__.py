"""Nautical chart tiles rendered on demand from S-57 vector charts."""

__version__ = "0.1.0"

from .config import RendererConfig, load_config, settings
from .errors import (ConfigurationError, DataIntegrityError, EncTilesError,
                     IndexFrozenError, ProcessingError)
from .chart_index import ChartIndex, ChartMetadata
from .compositor import ChartCompositor
from .renderer import TileRenderer
from .web_mercator import TileConvention, WebMercator
