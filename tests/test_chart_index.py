"""Tests for the enctiles.chart_index module."""

from unittest.mock import patch

import pytest
from shapely.geometry import box

from enctiles.chart_index import CACHE_SCHEMA, ChartIndex, ChartMetadata
from enctiles.dataset import Dataset, Feature
from enctiles.errors import DataIntegrityError, IndexFrozenError
from enctiles.geometry import BBox


class TestDiskParse:
    """Tests for reading metadata from the chart itself."""

    def test_reads_scale_and_coverage(self, chart_store, unit_bbox, temp_dir):
        """disk_parse should return scale and coverage bounds."""
        path = chart_store.add("NO5A0001", 5000, unit_bbox)
        index = ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open)

        meta = index.disk_parse(path)

        assert meta.id == "NO5A0001"
        assert meta.scale == 5000
        assert meta.bbox == unit_bbox

    def test_merges_available_coverage_only(self, chart_store, temp_dir):
        """Only CATCOV=1 polygons should contribute to the coverage box."""
        data = Dataset({
            "DSID": [Feature("1", {"DSPM_CSCL": 22000})],
            "M_COVR": [
                Feature("1", {"CATCOV": 1}, box(0, 0, 1, 1)),
                Feature("2", {"CATCOV": 1}, box(2, 1, 3, 2)),
                Feature("3", {"CATCOV": 2}, box(-10, -10, 10, 10)),
            ],
        })
        path = chart_store.add_dataset("NO3A0002", data)
        index = ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open)

        meta = index.disk_parse(path)

        assert meta.scale == 22000
        assert meta.bbox == BBox(0, 3, 0, 2)

    def test_missing_dsid_layer(self, chart_store, temp_dir):
        """A chart without a DSID layer is a data integrity error."""
        path = chart_store.add_dataset("BAD", Dataset({"M_COVR": []}))
        index = ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open)

        with pytest.raises(DataIntegrityError, match="DSID"):
            index.disk_parse(path)

    def test_missing_coverage_layer(self, chart_store, temp_dir):
        """A chart without an M_COVR layer is a data integrity error."""
        data = Dataset({"DSID": [Feature("1", {"DSPM_CSCL": 5000})]})
        path = chart_store.add_dataset("BAD", data)
        index = ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open)

        with pytest.raises(DataIntegrityError, match="M_COVR"):
            index.disk_parse(path)

    def test_wrong_scale_type(self, chart_store, temp_dir):
        """A non-integer compilation scale is a data integrity error."""
        data = Dataset({
            "DSID": [Feature("1", {"DSPM_CSCL": "large"})],
            "M_COVR": [Feature("1", {"CATCOV": 1}, box(0, 0, 1, 1))],
        })
        path = chart_store.add_dataset("BAD", data)
        index = ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open)

        with pytest.raises(DataIntegrityError):
            index.disk_parse(path)

    def test_no_available_coverage(self, chart_store, unit_bbox, temp_dir):
        """A chart whose coverage is all 'no coverage' is rejected."""
        path = chart_store.add("EMPTY", 5000, unit_bbox, catcov=2)
        index = ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open)

        with pytest.raises(DataIntegrityError):
            index.disk_parse(path)


class TestCache:
    """Tests for cache_save and cache_load."""

    def test_round_trip(self, temp_dir, unit_bbox):
        """A saved record should load back unchanged."""
        index = ChartIndex(cache_dir=temp_dir / "cache")
        path = (temp_dir / "NO5A0001.000").absolute()
        meta = ChartMetadata("NO5A0001", path, 5000, unit_bbox)

        assert index.cache_save(meta) is True
        assert index.cache_load(path) == meta

    def test_record_starts_with_schema(self, temp_dir, unit_bbox):
        """The cache record should begin with the schema line."""
        index = ChartIndex(cache_dir=temp_dir / "cache")
        path = (temp_dir / "NO5A0001.000").absolute()
        index.cache_save(ChartMetadata("NO5A0001", path, 5000, unit_bbox))

        lines = (temp_dir / "cache" / "NO5A0001").read_text().splitlines()
        assert lines[0] == CACHE_SCHEMA
        assert lines[1] == str(path)
        assert lines[2] == "5000"

    def test_stale_path_is_miss(self, temp_dir, unit_bbox):
        """A record stored for another source path should be ignored."""
        index = ChartIndex(cache_dir=temp_dir / "cache")
        index.cache_save(ChartMetadata("NO5A0001", temp_dir / "a" / "NO5A0001.000",
                                       5000, unit_bbox))

        assert index.cache_load(temp_dir / "b" / "NO5A0001.000") is None

    def test_unknown_schema_is_miss(self, temp_dir):
        """A record with an unknown schema line should be ignored."""
        cache = temp_dir / "cache"
        cache.mkdir()
        path = temp_dir / "NO5A0001.000"
        (cache / "NO5A0001").write_text(f"{path}\n5000\n0\n1\n0\n1\n")
        index = ChartIndex(cache_dir=cache)

        assert index.cache_load(path) is None

    def test_garbage_is_miss(self, temp_dir):
        """Unparseable numbers should count as a cache miss."""
        cache = temp_dir / "cache"
        cache.mkdir()
        path = temp_dir / "NO5A0001.000"
        (cache / "NO5A0001").write_text(f"{CACHE_SCHEMA}\n{path}\nbig\n0\n1\n0\n1\n")
        index = ChartIndex(cache_dir=cache)

        assert index.cache_load(path) is None

    def test_write_failure_is_not_fatal(self, temp_dir, unit_bbox):
        """cache_save should return False when the directory is unusable."""
        blocker = temp_dir / "blocker"
        blocker.write_text("not a directory")
        index = ChartIndex(cache_dir=blocker / "cache")
        meta = ChartMetadata("NO5A0001", temp_dir / "NO5A0001.000", 5000, unit_bbox)

        assert index.cache_save(meta) is False


class TestLoad:
    """Tests for ChartIndex.load and load_chart."""

    def test_load_indexes_all_charts(self, chart_store, unit_bbox, temp_dir):
        """load should index every chart below the root."""
        chart_store.add("NO5A0001", 5000, unit_bbox)
        chart_store.add("NO3A0002", 50000, unit_bbox)
        index = ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open)

        assert index.load(chart_store.root) == 2
        assert "NO5A0001" in index
        assert index.get("NO3A0002").scale == 50000

    def test_load_skips_bad_charts(self, chart_store, unit_bbox, temp_dir):
        """Charts failing to parse should be skipped, not abort the scan."""
        chart_store.add("GOOD", 5000, unit_bbox)
        chart_store.add_dataset("BAD", Dataset({"DSID": []}))
        index = ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open)

        assert index.load(chart_store.root) == 1
        assert "BAD" not in index

    def test_second_load_uses_cache(self, chart_store, unit_bbox, temp_dir):
        """A chart parsed once should come from the cache afterwards."""
        path = chart_store.add("NO5A0001", 5000, unit_bbox)
        ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open).load_chart(path)
        chart_store.opened.clear()

        index = ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open)
        with patch.object(index, "disk_parse") as disk_parse:
            meta = index.load_chart(path)

        disk_parse.assert_not_called()
        assert chart_store.opened == []
        assert meta.scale == 5000

    def test_cache_miss_parses_and_saves(self, chart_store, unit_bbox, temp_dir):
        """A cache miss should parse the chart and write a record."""
        path = chart_store.add("NO5A0001", 5000, unit_bbox)
        index = ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open)

        index.load_chart(path)

        assert chart_store.opened == ["NO5A0001"]
        assert (temp_dir / "cache" / "NO5A0001").is_file()


class TestFreeze:
    """Tests for the build-then-freeze discipline."""

    def test_frozen_index_rejects_loads(self, chart_store, unit_bbox, temp_dir):
        """Loading into a frozen index should raise IndexFrozenError."""
        path = chart_store.add("NO5A0001", 5000, unit_bbox)
        index = ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open)
        index.freeze()

        assert index.frozen
        with pytest.raises(IndexFrozenError):
            index.load_chart(path)

    def test_clear_unfreezes(self, chart_store, unit_bbox, temp_dir):
        """clear should empty the index and allow loading again."""
        path = chart_store.add("NO5A0001", 5000, unit_bbox)
        index = ChartIndex(cache_dir=temp_dir / "cache", opener=chart_store.open)
        index.load_chart(path)
        index.freeze()

        index.clear()

        assert len(index) == 0
        assert not index.frozen
        index.load_chart(path)
        assert len(index) == 1
