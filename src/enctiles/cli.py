"""Command-line interface for enctiles.

Render single tiles, run the tile server and inspect the chart index or a
composited dataset from the shell.
"""
import logging
import pathlib
from typing import List, Optional

import typer
import uvicorn

from .chart_index import ChartIndex
from .compositor import ChartCompositor
from .config import load_config
from .dataset import Dataset
from .errors import EncTilesError
from .geometry import BBox
from .renderer import TileRenderer
from .server import create_app
from .web_mercator import TileConvention

logger = logging.getLogger(__name__)

app = typer.Typer()

ConfigOption = typer.Option(None, "--config", "-c", help="Settings file.")


def _config(path):
    try:
        return load_config(path)
    except EncTilesError as err:
        typer.echo(f"Configuration error: {err}", err=True)
        raise typer.Exit(code=1)


def _renderer(cfg):
    try:
        return TileRenderer(cfg)
    except EncTilesError as err:
        typer.echo(f"Cannot start renderer: {err}", err=True)
        raise typer.Exit(code=1)


def parse_bbox(value):
    """Parse ``minx,maxx,miny,maxy`` into a :class:`BBox`."""
    try:
        min_x, max_x, min_y, max_y = (float(v) for v in value.split(","))
    except ValueError:
        raise typer.BadParameter("Expected minx,maxx,miny,maxy") from None
    if min_x > max_x or min_y > max_y:
        raise typer.BadParameter("Minimum exceeds maximum")
    return BBox(min_x, max_x, min_y, max_y)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging.")):
    """Render S-57 nautical charts as web map tiles."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def render(x: int, y: int, z: int,
           config: Optional[pathlib.Path] = ConfigOption,
           output: pathlib.Path = typer.Option("tile.png", "--output", "-o"),
           style: str = typer.Option("default", "--style", "-s"),
           tms: bool = typer.Option(False, "--tms", help="Rows numbered bottom-up.")):
    """Render one tile to a PNG file."""
    renderer = _renderer(_config(config))
    convention = TileConvention.TMS if tms else None
    png = renderer.render(x, y, z, style, convention=convention)
    if png is None:
        typer.echo(f"No data for tile {z}/{x}/{y} with style '{style}'", err=True)
        raise typer.Exit(code=1)
    output.write_bytes(png)
    typer.echo(f"Wrote {output}")


@app.command()
def serve(config: Optional[pathlib.Path] = ConfigOption,
          host: Optional[str] = typer.Option(None, "--host"),
          port: Optional[int] = typer.Option(None, "--port")):
    """Serve tiles over HTTP."""
    cfg = _config(config)
    tile_app = create_app(_renderer(cfg))
    uvicorn.run(tile_app, host=host or cfg.server_host, port=port or cfg.server_port)


@app.command()
def index(config: Optional[pathlib.Path] = ConfigOption):
    """Scan the chart root and list the indexed charts."""
    cfg = _config(config)
    charts = ChartIndex(cache_dir=cfg.meta_path)
    charts.load(cfg.chart_path, progress=True)
    for meta in sorted(charts, key=lambda m: (m.scale, m.id)):
        bbox = meta.bbox
        typer.echo(f"{meta.id:12s} 1:{meta.scale:<10d} "
                   f"({bbox.min_x:.4f} to {bbox.max_x:.4f}),({bbox.min_y:.4f} to {bbox.max_y:.4f})")
    typer.echo(f"{len(charts)} charts")


@app.command()
def dataset(layers: List[str] = typer.Argument(..., help="S-57 layer names."),
            bbox: str = typer.Option(..., "--bbox", help="minx,maxx,miny,maxy in degrees."),
            scale: int = typer.Option(0, "--scale", help="Minimum compilation scale."),
            config: Optional[pathlib.Path] = ConfigOption):
    """Composite charts for an area and list the resulting features."""
    area = parse_bbox(bbox)
    cfg = _config(config)
    charts = ChartIndex(cache_dir=cfg.meta_path)
    charts.load(cfg.chart_path)
    charts.freeze()

    with Dataset() as data:
        try:
            found = ChartCompositor(charts).export(data, layers, area, scale)
        except EncTilesError as err:
            typer.echo(f"Export failed: {err}", err=True)
            raise typer.Exit(code=1)
        if not found:
            typer.echo("No charts match")
            raise typer.Exit(code=1)
        for name in data.layer_names():
            layer = data.get_layer(name)
            typer.echo(f"{name}: {len(layer)} features")
            for feat in layer:
                typer.echo(f"  {feat.key} {feat.geometry.geom_type}")
