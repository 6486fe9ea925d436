"""Spline approximation by circular arcs and line segments."""

import logging
import math
from typing import Sequence

import numpy as np

from .geometry import Curve, CurveKind

logger = logging.getLogger(__name__)

# |d| below this means the three points are treated as collinear
COLLINEAR_EPSILON = 1e-4


def fit_arc_through_points(p1: np.ndarray, p2: np.ndarray, p3: np.ndarray) -> Curve:
    """Fit the circle through three points and return the arc from p1 to p3.

    Collinear triples cannot define a circle; they come back as a LINE
    curve carrying all three points.
    """
    ax, ay = p1[0], p1[1]
    bx, by = p2[0], p2[1]
    cx, cy = p3[0], p3[1]

    d = 2 * (ax * (by - cy) + bx * (cy - ay) + cx * (ay - by))
    if abs(d) < COLLINEAR_EPSILON:
        return Curve(CurveKind.LINE, np.array([p1, p2, p3]))

    a2 = ax * ax + ay * ay
    b2 = bx * bx + by * by
    c2 = cx * cx + cy * cy
    ux = (a2 * (by - cy) + b2 * (cy - ay) + c2 * (ay - by)) / d
    uy = (a2 * (cx - bx) + b2 * (ax - cx) + c2 * (bx - ax)) / d

    radius = math.hypot(ax - ux, ay - uy)
    start_angle = math.degrees(math.atan2(ay - uy, ax - ux))
    end_angle = math.degrees(math.atan2(cy - uy, cx - ux))

    return Curve.arc(
        center=(ux, uy, p1[2]),
        start=(ax, ay, p1[2]),
        end=(cx, cy, p3[2]),
        radius=radius,
        start_angle=start_angle,
        end_angle=end_angle,
    )


def convert_spline_to_arcs(spline: Curve, tolerance: float = 0.01) -> list[Curve]:
    """Approximate a spline by one arc per sliding window of three points.

    Windows overlap (step 1), so n points give n - 2 curves. The tolerance
    is accepted for API symmetry with `is_arc_within_tolerance`; the fit
    itself is not tolerance-gated.

    Args:
        spline: Curve whose points are sampled along the spline
        tolerance: Allowed radial deviation, see `is_arc_within_tolerance`

    Returns:
        List of ARC curves, with LINE fallbacks for collinear windows
    """
    pts = spline.points
    if len(pts) < 3:
        return []

    arcs = [
        fit_arc_through_points(pts[i], pts[i + 1], pts[i + 2])
        for i in range(len(pts) - 2)
    ]

    fallbacks = sum(1 for a in arcs if a.kind == CurveKind.LINE)
    logger.debug(
        "Spline with %d points -> %d arcs (%d collinear fallbacks)",
        len(pts), len(arcs) - fallbacks, fallbacks,
    )
    return arcs


def convert_splines(curves: Sequence[Curve], tolerance: float = 0.01) -> list[Curve]:
    """Replace every spline in a curve list by its arc approximation."""
    result = []
    for curve in curves:
        if curve.kind == CurveKind.SPLINE:
            result.extend(convert_spline_to_arcs(curve, tolerance))
        else:
            result.append(curve)
    return result


def approximate_spline_with_lines(spline: Curve, segment_length: float) -> list[Curve]:
    """Break a spline into straight segments no longer than segment_length."""
    pts = spline.points
    if len(pts) < 2 or segment_length <= 0:
        return []

    lines = []
    for p1, p2 in zip(pts[:-1], pts[1:]):
        distance = math.hypot(p2[0] - p1[0], p2[1] - p1[1])
        segments = math.ceil(distance / segment_length)

        for j in range(segments):
            t1 = j / segments
            t2 = (j + 1) / segments
            lines.append(Curve.line(p1 + (p2 - p1) * t1, p1 + (p2 - p1) * t2))

    return lines


def is_arc_within_tolerance(arc: Curve, points: Sequence, tolerance: float = 0.01) -> bool:
    """Check that every point lies within tolerance of the arc's circle."""
    if arc is None or arc.kind != CurveKind.ARC or len(points) == 0:
        return False

    cx, cy = arc.points[0, 0], arc.points[0, 1]
    for p in points:
        distance = math.hypot(p[0] - cx, p[1] - cy)
        if abs(distance - arc.radius) > tolerance:
            return False

    return True
