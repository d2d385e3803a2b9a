"""Chart metadata index.

Scans a chart root for S-57 cells and records each chart's compilation
scale and coverage rectangle. Parsed metadata is cached as small text
records so later startups do not have to parse every cell again.

The index is built once at startup and frozen; after that it is only
read, so request threads share it without locking.
"""
import logging
import pathlib
import types
from dataclasses import dataclass

from tqdm import tqdm

from .chart_source import find_charts, open_chart
from .dataset import require_int
from .errors import DataIntegrityError, IndexFrozenError
from .geometry import BBox

logger = logging.getLogger(__name__)

CACHE_SCHEMA = "enctiles-chart-cache 1"
DEFAULT_CACHE_DIR = pathlib.Path("~/.cache/enctiles").expanduser()

# Category of coverage (CATCOV): 1 = coverage available, 2 = no coverage
CATCOV_AVAILABLE = 1


@dataclass(frozen=True)
class ChartMetadata:
    """Metadata for one chart.

    Attributes
    ----------
    id : str
        Chart identifier (file stem), unique within an index.
    path : pathlib.Path
        Path to the chart's base cell.
    scale : int
        Compilation scale denominator. Smaller is more detailed.
    bbox : BBox
        Coverage rectangle in degrees.
    """

    id: str
    path: pathlib.Path
    scale: int
    bbox: BBox


class ChartIndex:
    """Registry of chart metadata keyed by chart identifier.

    Parameters
    ----------
    cache_dir : str or pathlib.Path, optional
        Directory for cached metadata records. Defaults to
        ``~/.cache/enctiles``.
    opener : callable, optional
        Chart opener, by default :func:`~enctiles.chart_source.open_chart`.
    """

    def __init__(self, cache_dir=None, opener=open_chart):
        self.cache_dir = pathlib.Path(cache_dir) if cache_dir else DEFAULT_CACHE_DIR
        self.opener = opener
        self._charts = {}
        self._frozen = False

    def __len__(self):
        return len(self._charts)

    def __contains__(self, chart_id):
        return chart_id in self._charts

    def __iter__(self):
        return iter(self._charts.values())

    def get(self, chart_id):
        return self._charts.get(chart_id)

    @property
    def frozen(self):
        return self._frozen

    def freeze(self):
        """Make the index read-only."""
        self._charts = types.MappingProxyType(dict(self._charts))
        self._frozen = True

    def clear(self):
        """Drop every chart and make the index writable again."""
        self._charts = {}
        self._frozen = False

    def _check_writable(self):
        if self._frozen:
            raise IndexFrozenError("Chart index is frozen")

    def load(self, root, progress=False):
        """Recursively load every chart under ``root``.

        Charts that fail to parse are logged and skipped.

        Parameters
        ----------
        root : str or pathlib.Path
            Chart root directory.
        progress : bool, optional
            Show a tqdm progress bar, by default False.

        Returns
        -------
        int
            Number of charts in the index after loading.
        """
        self._check_writable()
        paths = find_charts(root)
        for path in tqdm(paths, desc="Indexing charts", unit="chart", disable=not progress):
            try:
                self.load_chart(path)
            except DataIntegrityError as err:
                logger.warning("Skipping chart %s: %s", path, err)
        logger.info("%d charts loaded from %s", len(self._charts), root)
        return len(self._charts)

    def load_chart(self, path):
        """Load one chart, preferring a valid cache record."""
        self._check_writable()
        path = pathlib.Path(path).absolute()
        meta = self.cache_load(path)
        if meta is None:
            meta = self.disk_parse(path)
            self.cache_save(meta)
        self._charts[meta.id] = meta
        return meta

    def disk_parse(self, path):
        """Read scale and coverage from the chart itself.

        Parameters
        ----------
        path : pathlib.Path
            Chart base cell.

        Returns
        -------
        ChartMetadata

        Raises
        ------
        DataIntegrityError
            If the DSID or M_COVR layer, the DSID feature, or a required
            field is missing, or no coverage is available.
        """
        path = pathlib.Path(path)
        logger.info("Open chart: %s", path)
        with self.opener(path) as source:
            names = source.layer_names()
            for required in ("DSID", "M_COVR"):
                if required not in names:
                    raise DataIntegrityError(f"Cannot open {required} layer")

            dsid = next(iter(source.features("DSID")), None)
            if dsid is None:
                raise DataIntegrityError("Cannot read DSID feature")
            scale = require_int(dsid, "DSPM_CSCL")

            bbox = None
            for feat in source.features("M_COVR"):
                if require_int(feat, "CATCOV") != CATCOV_AVAILABLE:
                    continue
                if feat.geometry is None or feat.geometry.is_empty:
                    raise DataIntegrityError("Cannot get coverage feature geometry")
                bbox = BBox.from_bounds(feat.geometry.bounds).merge(bbox)
            if bbox is None:
                raise DataIntegrityError("Chart has no available coverage")

        logger.debug("  scale: %d coverage: %s", scale, bbox)
        return ChartMetadata(id=path.stem, path=path, scale=scale, bbox=bbox)

    def _cache_file(self, path):
        return self.cache_dir / pathlib.Path(path).stem

    def cache_save(self, meta):
        """Write a metadata record. Failures are logged and ignored.

        Returns
        -------
        bool
            True if the record was written.
        """
        lines = [CACHE_SCHEMA, str(meta.path), str(meta.scale),
                 repr(meta.bbox.min_x), repr(meta.bbox.max_x),
                 repr(meta.bbox.min_y), repr(meta.bbox.max_y)]
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            self._cache_file(meta.path).write_text("\n".join(lines) + "\n")
        except OSError as err:
            logger.debug("Cannot write chart cache for %s: %s", meta.id, err)
            return False
        return True

    def cache_load(self, path):
        """Read a cached metadata record for ``path``.

        A record is accepted only if its schema line is known and its stored
        source path equals ``path`` exactly.

        Returns
        -------
        ChartMetadata or None
            None on a cache miss or stale record.
        """
        path = pathlib.Path(path)
        cached = self._cache_file(path)
        try:
            lines = cached.read_text().splitlines()
        except OSError:
            return None
        if len(lines) < 7 or lines[0] != CACHE_SCHEMA:
            return None
        if lines[1] != str(path):
            logger.debug("Stale cache record for %s", path)
            return None
        try:
            scale = int(lines[2])
            min_x, max_x, min_y, max_y = (float(v) for v in lines[3:7])
        except ValueError:
            return None
        logger.debug("Load chart bounds from cache: %s", path)
        return ChartMetadata(id=path.stem, path=path, scale=scale,
                             bbox=BBox(min_x, max_x, min_y, max_y))
