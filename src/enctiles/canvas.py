"""Raster drawing surface for one tile.

Paths are built with cairo-like ``move_to``/``line_to``/``arc`` calls and
committed with ``fill`` or ``stroke``. Drawing is done by matplotlib's Agg
backend on a one inch figure whose dpi equals the tile size, with data
coordinates in tile pixels (origin top left, y down). Every public length
(line width, dash, font size) is in pixels.
"""
import io
import math

import matplotlib
matplotlib.use('Agg')
import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.font_manager import FontProperties
from matplotlib.patches import PathPatch
from matplotlib.path import Path
from matplotlib.textpath import TextPath
from PIL import Image

from .style import BLACK

FONT_FAMILY = "monospace"


def font(size, bold=False):
    return FontProperties(family=FONT_FAMILY, weight="bold" if bold else "normal", size=size)


class TileCanvas:
    """Fixed size RGBA drawing surface.

    Parameters
    ----------
    size : int
        Side length in pixels.
    """

    def __init__(self, size):
        self.size = size
        self.figure = Figure(figsize=(1, 1), dpi=size)
        self.figure.patch.set_alpha(0.0)
        self._agg = FigureCanvasAgg(self.figure)
        ax = self.figure.add_axes([0, 0, 1, 1])
        ax.set_xlim(0, size)
        ax.set_ylim(size, 0)
        ax.set_autoscale_on(False)
        ax.axis('off')
        ax.patch.set_alpha(0.0)
        self.ax = ax

        # points per pixel
        self._pt = 72.0 / size
        self._zorder = 0
        self._vertices = []
        self._codes = []
        self._color = BLACK
        self._line_width = 1.0
        self._dash = None

    def _next_z(self):
        self._zorder += 1
        return self._zorder

    # -- state -------------------------------------------------------------

    def set_color(self, color):
        self._color = color

    def set_line_width(self, width):
        self._line_width = float(width)

    def set_dash(self, pattern=None, offset=0.0):
        """Set the stroke dash pattern.

        Parameters
        ----------
        pattern : sequence of float, optional
            Alternating on/off lengths in pixels. None or empty is solid.
        offset : float, optional
            Distance into the pattern at which strokes start.
        """
        if not pattern:
            self._dash = None
            return
        pattern = tuple(float(p) for p in pattern)
        if len(pattern) == 1:
            pattern = pattern * 2
        self._dash = (float(offset), pattern)

    # -- path construction -------------------------------------------------

    def new_path(self):
        self._vertices = []
        self._codes = []

    @property
    def has_path(self):
        return bool(self._vertices)

    def move_to(self, x, y):
        self._vertices.append((float(x), float(y)))
        self._codes.append(Path.MOVETO)

    def line_to(self, x, y):
        if not self._vertices:
            self.move_to(x, y)
            return
        self._vertices.append((float(x), float(y)))
        self._codes.append(Path.LINETO)

    def close_path(self):
        if self._vertices:
            self._vertices.append(self._vertices[-1])
            self._codes.append(Path.CLOSEPOLY)

    def polyline(self, points, closed=False):
        """Append a sub-path through an (N, 2) array of pixel points."""
        points = np.asarray(points, dtype=float)
        if len(points) == 0:
            return
        self.move_to(*points[0])
        for x, y in points[1:]:
            self.line_to(x, y)
        if closed:
            self.close_path()

    def arc(self, cx, cy, radius, angle1=0.0, angle2=2 * math.pi):
        """Append a circular arc; a full turn becomes a closed sub-path."""
        steps = max(16, int(radius * abs(angle2 - angle1)))
        theta = np.linspace(angle1, angle2, steps + 1)
        points = np.column_stack([cx + radius * np.cos(theta), cy + radius * np.sin(theta)])
        self.polyline(points, closed=math.isclose(abs(angle2 - angle1), 2 * math.pi))

    def rectangle(self, x, y, width, height):
        self.polyline([(x, y), (x + width, y), (x + width, y + height), (x, y + height)],
                      closed=True)

    def _take_path(self, preserve):
        path = Path(np.asarray(self._vertices, dtype=float), list(self._codes))
        if not preserve:
            self.new_path()
        return path

    # -- painting ----------------------------------------------------------

    def fill(self, preserve=False):
        """Fill the current path with the current color (nonzero winding)."""
        if not self._vertices:
            return
        patch = PathPatch(self._take_path(preserve), facecolor=self._color.rgba(),
                          edgecolor="none", linewidth=0, zorder=self._next_z())
        self.ax.add_patch(patch)

    def stroke(self, preserve=False):
        """Stroke the current path with the current color, width and dash."""
        if not self._vertices:
            return
        width = self._line_width * self._pt
        linestyle = "solid"
        if self._dash is not None:
            offset, pattern = self._dash
            # matplotlib multiplies dashes by the line width when
            # lines.scale_dashes is set; dash lengths here are absolute
            scale = self._pt
            if matplotlib.rcParams["lines.scale_dashes"] and width > 0:
                scale /= width
            linestyle = (offset * scale, tuple(p * scale for p in pattern))
        patch = PathPatch(self._take_path(preserve), facecolor="none",
                          edgecolor=self._color.rgba(), linewidth=width,
                          linestyle=linestyle, capstyle="butt", joinstyle="round",
                          zorder=self._next_z())
        self.ax.add_patch(patch)

    def paint(self):
        """Flood the whole surface with the current color."""
        self.new_path()
        self.rectangle(0, 0, self.size, self.size)
        self.fill()

    # -- text and images ---------------------------------------------------

    @staticmethod
    def text_extents(text, size, bold=False):
        """Measure rendered text.

        Returns
        -------
        tuple of float
            (width, height) in pixels.
        """
        if not text:
            return 0.0, 0.0
        extents = TextPath((0, 0), text, size=size, prop=font(size, bold)).get_extents()
        return extents.width, extents.height

    def show_text(self, x, y, text, size, bold=False):
        """Draw text with the left end of its baseline at (x, y)."""
        self.ax.text(x, y, text, fontproperties=font(size * self._pt, bold),
                     color=self._color.rgba(), ha="left", va="baseline",
                     zorder=self._next_z(), clip_on=True)

    def draw_image(self, rgba, cx, cy):
        """Draw an RGBA image array centered on (cx, cy)."""
        rgba = np.asarray(rgba)
        height, width = rgba.shape[:2]
        left, top = cx - width / 2, cy - height / 2
        self.ax.imshow(rgba, extent=(left, left + width, top + height, top),
                       origin="upper", interpolation="nearest", aspect="auto",
                       zorder=self._next_z())

    # -- output ------------------------------------------------------------

    def to_image(self):
        """Rasterize everything drawn so far into a PIL image."""
        self._agg.draw()
        rgba = np.asarray(self._agg.buffer_rgba())
        return Image.fromarray(np.ascontiguousarray(rgba))

    def to_png(self):
        """Encode the surface as PNG bytes."""
        buf = io.BytesIO()
        self.to_image().save(buf, format="PNG")
        return buf.getvalue()
