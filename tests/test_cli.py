"""Tests for the enctiles.cli module."""

from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from enctiles.cli import app, parse_bbox
from enctiles.errors import ConfigurationError
from enctiles.geometry import BBox
from enctiles.web_mercator import TileConvention


runner = CliRunner()


@pytest.fixture
def mock_renderer():
    """Patch TileRenderer and load_config in the CLI module."""
    with patch("enctiles.cli.load_config") as load_config, \
            patch("enctiles.cli.TileRenderer") as renderer_cls:
        load_config.return_value = MagicMock(server_host="127.0.0.1", server_port=8888)
        renderer = renderer_cls.return_value
        renderer.render.return_value = b"\x89PNGdata"
        yield renderer


class TestRenderCommand:
    """Tests for the render CLI command."""

    def test_writes_png(self, mock_renderer, temp_dir):
        """render should write the tile to the output file."""
        out = temp_dir / "tile.png"
        result = runner.invoke(app, ["render", "8670", "4811", "14", "-o", str(out)])

        assert result.exit_code == 0
        assert out.read_bytes() == b"\x89PNGdata"
        mock_renderer.render.assert_called_once_with(8670, 4811, 14, "default",
                                                     convention=None)

    def test_tms_flag(self, mock_renderer, temp_dir):
        """--tms should request bottom-up rows."""
        out = temp_dir / "tile.png"
        runner.invoke(app, ["render", "1", "2", "3", "-o", str(out), "-s", "day", "--tms"])

        mock_renderer.render.assert_called_once_with(1, 2, 3, "day",
                                                     convention=TileConvention.TMS)

    def test_no_data_exits_with_error(self, mock_renderer, temp_dir):
        """render should exit non-zero when there is nothing to draw."""
        mock_renderer.render.return_value = None
        result = runner.invoke(app, ["render", "1", "2", "3", "-o", str(temp_dir / "t.png")])

        assert result.exit_code == 1
        assert not (temp_dir / "t.png").exists()

    def test_configuration_error(self, temp_dir):
        """A broken configuration should exit with an error."""
        with patch("enctiles.cli.load_config", side_effect=ConfigurationError("bad")):
            result = runner.invoke(app, ["render", "1", "2", "3"])

        assert result.exit_code == 1


class TestServeCommand:
    """Tests for the serve CLI command."""

    @patch("enctiles.cli.uvicorn.run")
    def test_uses_configured_address(self, mock_run, mock_renderer):
        """serve should default to the configured host and port."""
        result = runner.invoke(app, ["serve"])

        assert result.exit_code == 0
        assert mock_run.call_args.kwargs == {"host": "127.0.0.1", "port": 8888}

    @patch("enctiles.cli.uvicorn.run")
    def test_overrides(self, mock_run, mock_renderer):
        """--host and --port should override the configuration."""
        runner.invoke(app, ["serve", "--host", "0.0.0.0", "--port", "9000"])

        assert mock_run.call_args.kwargs == {"host": "0.0.0.0", "port": 9000}


class TestIndexCommand:
    """Tests for the index CLI command."""

    def test_empty_chart_root(self, settings_file):
        """index should report zero charts for an empty root."""
        result = runner.invoke(app, ["index", "-c", str(settings_file)])

        assert result.exit_code == 0
        assert "0 charts" in result.output


class TestDatasetCommand:
    """Tests for the dataset CLI command."""

    def test_bad_bbox(self, settings_file):
        """A malformed bbox should be a usage error."""
        result = runner.invoke(app, ["dataset", "LNDARE", "--bbox", "1,2,3",
                                     "-c", str(settings_file)])

        assert result.exit_code == 2

    def test_no_charts(self, settings_file):
        """dataset should exit non-zero when no chart matches."""
        result = runner.invoke(app, ["dataset", "LNDARE", "--bbox", "10,11,59,60",
                                     "-c", str(settings_file)])

        assert result.exit_code == 1
        assert "No charts match" in result.output


class TestParseBbox:
    """Tests for parse_bbox."""

    def test_order(self):
        """The bbox is given as minx,maxx,miny,maxy."""
        assert parse_bbox("10,11,59,60") == BBox(10.0, 11.0, 59.0, 60.0)


class TestCallback:
    """Tests for the CLI callback (help text)."""

    def test_help_shows_description(self):
        """--help should show the app description."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "nautical charts" in result.output.lower()
