"""Shared pytest fixtures for enctiles tests."""

import tempfile
from pathlib import Path

import pytest
from shapely.geometry import box

from enctiles.dataset import Dataset, Feature
from enctiles.errors import DataIntegrityError
from enctiles.geometry import BBox


SVG_ICON = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 24 24">'
    '<circle class="tint" cx="12" cy="12" r="8" fill="black"/></svg>'
)

STYLE_XML = """<?xml version="1.0"?>
<style>
  <background>fff</background>
  <layer>
    <layer_name>DEPARE</layer_name>
    <fill_color>c9edfd</fill_color>
    <line_color>000</line_color>
    <line_width>1</line_width>
    <line_dash>0</line_dash>
    <marker_size>0</marker_size>
  </layer>
  <layer>
    <layer_name>LNDARE</layer_name>
    <fill_color>f0e0b0</fill_color>
    <line_color>806040</line_color>
    <line_width>1</line_width>
    <line_dash>1</line_dash>
    <marker_size>3</marker_size>
  </layer>
  <layer>
    <layer_name>BOYLAT</layer_name>
    <fill_color>f0f</fill_color>
    <line_color>000</line_color>
    <line_width>1</line_width>
    <line_dash>0</line_dash>
    <marker_size>4</marker_size>
    <icon name="default">default.svg</icon>
  </layer>
</style>
"""


class ChartStore:
    """In-memory charts served through the chart opener interface.

    Each chart gets an empty ``.000`` file on disk so directory scans find
    it, while its content lives in a :class:`Dataset`.
    """

    def __init__(self, root):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.charts = {}
        self.opened = []

    def add(self, name, scale, bbox, layers=None, catcov=1):
        """Register a chart with a DSID record and one coverage polygon."""
        path = (self.root / f"{name}.000").absolute()
        path.touch()
        coverage = box(bbox.min_x, bbox.min_y, bbox.max_x, bbox.max_y)
        data = {
            "DSID": [Feature("1", {"DSPM_CSCL": scale})],
            "M_COVR": [Feature("1", {"CATCOV": catcov}, coverage)],
        }
        data.update(layers or {})
        self.charts[str(path)] = Dataset(data)
        return path

    def add_dataset(self, name, dataset):
        path = (self.root / f"{name}.000").absolute()
        path.touch()
        self.charts[str(path)] = dataset
        return path

    def open(self, path):
        key = str(Path(path).absolute())
        self.opened.append(Path(key).stem)
        try:
            return self.charts[key]
        except KeyError:
            raise DataIntegrityError(f"Cannot open chart {path}") from None


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def chart_store(temp_dir):
    """Provide an empty in-memory chart store rooted in a temp directory."""
    return ChartStore(temp_dir / "charts")


@pytest.fixture
def unit_bbox():
    """Provide a one degree box off the Norwegian coast."""
    return BBox(10.0, 11.0, 59.0, 60.0)


@pytest.fixture
def icon_dir(temp_dir):
    """Provide a directory with a tintable SVG icon."""
    path = temp_dir / "icons"
    path.mkdir()
    (path / "default.svg").write_text(SVG_ICON)
    (path / "light.svg").write_text(SVG_ICON)
    return path


@pytest.fixture
def style_dir(temp_dir, icon_dir):
    """Provide a style directory holding a ``day`` style."""
    path = temp_dir / "styles"
    path.mkdir()
    (path / "day.xml").write_text(STYLE_XML)
    return path


@pytest.fixture
def settings_file(temp_dir, style_dir, icon_dir):
    """Provide a settings file with relative paths."""
    (temp_dir / "charts").mkdir(exist_ok=True)
    path = temp_dir / "settings.toml"
    path.write_text(
        "[default]\n"
        'chart_path = "charts"\n'
        'meta_path = "cache"\n'
        'style_path = "styles"\n'
        'svg_path = "icons"\n'
        "tile_size = 128\n"
    )
    return path
