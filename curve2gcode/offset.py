"""Parallel-curve offsetting for tool radius compensation.

Each primitive is offset on its own: there is no corner mitering or
trimming, so adjacent offset segments may gap or overlap at sharp
corners. Degenerate input never raises; it comes back unchanged.
"""

import dataclasses
import logging
from typing import Sequence

import numpy as np

from .geometry import Curve, CurveKind

logger = logging.getLogger(__name__)

# Edges shorter than this have no usable normal
MIN_EDGE_LENGTH = 1e-4


def _edge_normal(p1: np.ndarray, p2: np.ndarray) -> np.ndarray | None:
    """Left-hand unit normal (-dy, dx) of the XY edge p1->p2, or None if too short."""
    dx = p2[0] - p1[0]
    dy = p2[1] - p1[1]
    length = float(np.hypot(dx, dy))
    if length < MIN_EDGE_LENGTH:
        return None
    return np.array([-dy / length, dx / length, 0.0])


def _offset_line(line: Curve, offset: float) -> Curve:
    if len(line.points) < 2:
        return line

    normal = _edge_normal(line.points[0], line.points[1])
    if normal is None:
        return line

    shifted = line.points[:2] + normal * offset
    return dataclasses.replace(line, points=shifted)


def _offset_circle(circle: Curve, offset: float) -> Curve:
    if len(circle.points) < 1:
        return circle
    # No clamping: a large inward offset can leave a zero or negative radius
    return dataclasses.replace(circle, radius=circle.radius + offset)


def _offset_arc(arc: Curve, offset: float) -> Curve:
    """Grow or shrink an arc radially; center and angles stay put."""
    if len(arc.points) < 3 or arc.radius == 0:
        return arc

    center = arc.points[0]
    new_radius = arc.radius + offset
    scale = new_radius / arc.radius
    start = center + (arc.points[1] - center) * scale
    end = center + (arc.points[2] - center) * scale
    # Z is carried through unchanged
    start[2] = arc.points[1, 2]
    end[2] = arc.points[2, 2]

    return dataclasses.replace(
        arc,
        points=np.array([center, start, end]),
        radius=new_radius,
    )


def _offset_polyline(polyline: Curve, offset: float) -> Curve:
    """Shift each vertex along the normal of the edge leaving it.

    The last vertex reuses the normal of the last edge. Vertices that start
    a degenerate edge are dropped.
    """
    pts = polyline.points
    if len(pts) < 2:
        return polyline

    shifted = []
    for p1, p2 in zip(pts[:-1], pts[1:]):
        normal = _edge_normal(p1, p2)
        if normal is None:
            continue
        shifted.append(p1 + normal * offset)

    normal = _edge_normal(pts[-2], pts[-1])
    if normal is not None:
        shifted.append(pts[-1] + normal * offset)

    return dataclasses.replace(polyline, points=np.array(shifted).reshape(-1, 3))


_OFFSETTERS = {
    CurveKind.LINE: _offset_line,
    CurveKind.CIRCLE: _offset_circle,
    CurveKind.ARC: _offset_arc,
    CurveKind.POLYLINE: _offset_polyline,
}


def offset_curve(curve: Curve, offset: float) -> Curve:
    """Offset one curve by a signed distance; unsupported kinds pass through."""
    offsetter = _OFFSETTERS.get(curve.kind)
    if offsetter is None:
        return curve
    return offsetter(curve, offset)


def offset_curves(curves: Sequence[Curve], amount: float, inward: bool) -> list[Curve]:
    """Offset every curve in a list.

    Args:
        curves: Curves to offset
        amount: Offset magnitude (usually the tool radius)
        inward: If True the offset is applied as -amount

    Returns:
        New list with one offset curve per input curve
    """
    offset = amount * (-1.0 if inward else 1.0)
    result = [offset_curve(c, offset) for c in curves]
    logger.debug("Offset %d curves by %.4f", len(result), offset)
    return result
