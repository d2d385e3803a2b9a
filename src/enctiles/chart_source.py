"""Read access to S-57 chart cells.

Charts are opened with fiona through GDAL's S57 driver. Each feature is
converted to an :class:`~enctiles.dataset.Feature` with a shapely geometry.
"""
import logging
import pathlib

import fiona
from fiona.errors import FionaError
from shapely.geometry import shape

from .dataset import Feature
from .errors import DataIntegrityError

logger = logging.getLogger(__name__)

CHART_SUFFIX = ".000"


class FionaChartSource:
    """Chart source backed by an S-57 cell on disk.

    Parameters
    ----------
    path : str or pathlib.Path
        Path to the ``.000`` base cell.

    Raises
    ------
    DataIntegrityError
        If the cell cannot be opened.
    """

    def __init__(self, path):
        self.path = pathlib.Path(path)
        try:
            self._layers = list(fiona.listlayers(str(self.path)))
        except (FionaError, OSError) as err:
            raise DataIntegrityError(f"Cannot open chart {self.path}: {err}") from err

    def __repr__(self):
        return f"FionaChartSource({str(self.path)!r})"

    def layer_names(self):
        return list(self._layers)

    def features(self, name):
        """Iterate the features of one layer.

        Parameters
        ----------
        name : str
            S-57 object class acronym, e.g. ``"DEPARE"``.

        Yields
        ------
        Feature
        """
        if name not in self._layers:
            return
        try:
            with fiona.open(str(self.path), layer=name) as src:
                for record in src:
                    geometry = record.geometry
                    yield Feature(
                        fid=str(record.id),
                        fields=dict(record.properties or {}),
                        geometry=shape(geometry) if geometry is not None else None,
                    )
        except FionaError as err:
            raise DataIntegrityError(f"Cannot read layer {name} of {self.path}: {err}") from err

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def open_chart(path):
    """Default chart opener used by the index and the compositor."""
    return FionaChartSource(path)


def find_charts(root):
    """Recursively list S-57 base cells below ``root`` in sorted order."""
    root = pathlib.Path(root)
    return sorted(p for p in root.rglob(f"*{CHART_SUFFIX}") if p.is_file())
