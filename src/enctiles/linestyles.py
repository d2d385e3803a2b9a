"""Pixel-space line pattern geometry.

All functions take an (N, 2) array of pixel vertices and work on arc
length, so patterns keep a constant spacing regardless of vertex density.
A ``phase`` (distance already consumed from the pattern) is threaded
through consecutive parts of a multi-part line to keep patterns continuous.
"""
import numpy as np

from .style import LineDash

_EPS = 1e-12


def arc_length(points):
    """Cumulative arc length at each vertex."""
    points = np.asarray(points, dtype=float)
    if len(points) < 2:
        return np.zeros(len(points))
    seg = np.hypot(*np.diff(points, axis=0).T)
    return np.concatenate([[0.0], np.cumsum(seg)])


def dash_pattern(kind, line_width):
    """On/off dash lengths for the simple dash kinds.

    Parameters
    ----------
    kind : LineDash
        Dash code from the style.
    line_width : float
        Stroke width in pixels.

    Returns
    -------
    tuple of float
        Empty for solid lines.
    """
    width = max(float(line_width), 1.0)
    if kind == LineDash.FINE:
        return (width, width)
    if kind == LineDash.MEDIUM:
        return (2 * width, 2 * width)
    if kind in (LineDash.COARSE, LineDash.T_DASH):
        return (10 * width, 10 * width)
    return ()


def sample(points, distances):
    """Positions and unit tangents at arc-length ``distances``.

    Returns
    -------
    tuple of numpy.ndarray
        (positions, tangents), each (M, 2).
    """
    points = np.asarray(points, dtype=float)
    s = arc_length(points)
    distances = np.clip(np.asarray(distances, dtype=float), 0.0, s[-1])
    idx = np.clip(np.searchsorted(s, distances, side="right") - 1, 0, len(points) - 2)
    seg_len = np.maximum(s[idx + 1] - s[idx], _EPS)
    t = ((distances - s[idx]) / seg_len)[:, None]
    start, end = points[idx], points[idx + 1]
    positions = start + t * (end - start)
    tangents = (end - start) / seg_len[:, None]
    return positions, tangents


def wavy(points, amplitude, wavelength, phase=0.0):
    """Sinusoid following the line.

    Returns
    -------
    tuple
        (vertices, new_phase)
    """
    s = arc_length(points)
    total = s[-1] if len(s) else 0.0
    if total <= _EPS:
        return np.asarray(points, dtype=float), phase
    distances = np.linspace(0.0, total, max(int(total) + 1, 2))
    pos, tan = sample(points, distances)
    normal = np.column_stack([-tan[:, 1], tan[:, 0]])
    offset = amplitude * np.sin(2 * np.pi * (distances + phase) / wavelength)
    return pos + normal * offset[:, None], (phase + total) % wavelength


def _mark_distances(total, spacing, phase):
    first = (spacing - phase % spacing) % spacing
    return np.arange(first, total + _EPS, spacing)


def ticks(points, spacing, length, phase=0.0):
    """Perpendicular tick segments every ``spacing`` pixels.

    Returns
    -------
    tuple
        (list of (2, 2) arrays, new_phase)
    """
    total = arc_length(points)[-1] if len(points) else 0.0
    if total <= _EPS:
        return [], phase
    distances = _mark_distances(total, spacing, phase)
    if len(distances) == 0:
        return [], (phase + total) % spacing
    pos, tan = sample(points, distances)
    normal = np.column_stack([-tan[:, 1], tan[:, 0]])
    segments = [np.array([p, p + n * length]) for p, n in zip(pos, normal)]
    return segments, (phase + total) % spacing


def triangles(points, spacing, size, phase=0.0):
    """Small triangles standing on the line every ``spacing`` pixels.

    Returns
    -------
    tuple
        (list of (3, 2) arrays, new_phase)
    """
    total = arc_length(points)[-1] if len(points) else 0.0
    if total <= _EPS:
        return [], phase
    distances = _mark_distances(total, spacing, phase)
    if len(distances) == 0:
        return [], (phase + total) % spacing
    pos, tan = sample(points, distances)
    normal = np.column_stack([-tan[:, 1], tan[:, 0]])
    half = size / 2
    shapes = [np.array([p - t * half, p + t * half, p + n * size])
              for p, t, n in zip(pos, tan, normal)]
    return shapes, (phase + total) % spacing
