"""Vector icon rendering.

SVG icons are rasterized with cairosvg at the requested size, optionally
with an extra CSS stylesheet (used to tint ``.tint`` elements) and a
rotation, then placed on the tile canvas centered on the feature. When an
icon cannot be rendered a bold "?" is drawn in its place.
"""
import functools
import io
import logging
import pathlib
import re
from xml.etree.ElementTree import ParseError

import cairosvg
import numpy as np
from PIL import Image

from .style import BLACK

logger = logging.getLogger(__name__)

_SVG_OPEN = re.compile(rb"<svg\b[^>]*>", re.IGNORECASE)


def inject_stylesheet(svg, stylesheet):
    """Insert a ``<style>`` element right after the root ``<svg>`` tag."""
    if not stylesheet:
        return svg
    match = _SVG_OPEN.search(svg)
    if match is None:
        raise ValueError("Document has no <svg> element")
    style = b"<style>" + stylesheet.encode("utf-8") + b"</style>"
    return svg[:match.end()] + style + svg[match.end():]


def tint_stylesheet(color):
    """CSS that colors the tintable parts of an icon."""
    return f".tint {{ fill: {color}; }}"


@functools.lru_cache(maxsize=512)
def rasterize(path, size, stylesheet="", rotation=0.0):
    """Render an SVG file to an RGBA array.

    Parameters
    ----------
    path : pathlib.Path
        SVG file.
    size : int
        Output width and height in pixels before rotation.
    stylesheet : str, optional
        Extra CSS applied to the document.
    rotation : float, optional
        Clockwise rotation in degrees.

    Returns
    -------
    numpy.ndarray
        (H, W, 4) uint8 array. Read-only, shared between callers.
    """
    svg = inject_stylesheet(pathlib.Path(path).read_bytes(), stylesheet)
    png = cairosvg.svg2png(bytestring=svg, output_width=size, output_height=size)
    img = Image.open(io.BytesIO(png)).convert("RGBA")
    if rotation:
        img = img.rotate(-rotation, resample=Image.Resampling.BICUBIC, expand=True)
    arr = np.asarray(img)
    arr.setflags(write=False)
    return arr


class IconRenderer:
    """Draws icon resources onto a :class:`~enctiles.canvas.TileCanvas`."""

    def render(self, canvas, path, center, size, stylesheet="", rotation=0.0):
        """Draw an icon centered at ``center``.

        Returns
        -------
        bool
            False if the icon failed and the fallback marker was drawn.
        """
        try:
            rgba = rasterize(pathlib.Path(path), int(round(size)), stylesheet or "",
                             float(rotation))
        except (OSError, ValueError, ParseError) as err:
            logger.warning("Error rendering icon %s: %s", path, err)
            self.render_missing(canvas, center)
            return False
        canvas.draw_image(rgba, *center)
        return True

    @staticmethod
    def render_missing(canvas, center, size=35):
        """Plot a big "?" where an icon could not be drawn."""
        width, height = canvas.text_extents("?", size, bold=True)
        canvas.set_color(BLACK)
        canvas.show_text(center[0] - width / 2, center[1] + height / 2, "?", size, bold=True)
