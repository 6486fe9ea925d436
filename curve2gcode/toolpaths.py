"""Pocket clearing and depth pass planning."""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np
from shapely.geometry import LinearRing

from .geometry import BoundingBox, Curve, CurveKind, curves_bounds
from .offset import offset_curves

logger = logging.getLogger(__name__)

# Offset rings narrower or shorter than this are considered collapsed
MIN_POCKET_SIZE = 0.1

# Hard cap on generated pocket curves
MAX_POCKET_CURVES = 1000

_DEPTH_EPSILON = 1e-6


class GenerationCancelled(RuntimeError):
    """Raised when a caller-supplied cancel hook stops a long-running loop."""


@dataclass(frozen=True)
class DepthPass:
    """One Z level of a multi-pass cut."""
    pass_number: int  # 1-based
    depth: float  # negative, below the reference surface
    depth_increment: float


def calculate_depth_passes(total_depth: float, depth_per_pass: float) -> list[DepthPass]:
    """Split a total depth into passes of at most depth_per_pass.

    The last pass is clamped so the cut never goes below total_depth.
    Non-positive inputs give no passes.

    >>> [p.depth for p in calculate_depth_passes(10, 3)]
    [-3.0, -6.0, -9.0, -10.0]
    """
    if total_depth <= 0 or depth_per_pass <= 0:
        return []

    passes = []
    current_depth = 0.0
    pass_number = 1

    while current_depth < total_depth - _DEPTH_EPSILON:
        current_depth += depth_per_pass
        # Snap float drift onto the final depth
        if current_depth > total_depth - _DEPTH_EPSILON:
            current_depth = total_depth

        passes.append(DepthPass(
            pass_number=pass_number,
            depth=-float(current_depth),
            depth_increment=float(depth_per_pass),
        ))
        pass_number += 1

    return passes


def find_islands(boundary: Sequence[Curve]) -> list[Curve]:
    """Pick the boundary curves that sit inside another boundary curve.

    Containment is judged on bounding boxes only, so this is an
    approximation of real polygon nesting.
    """
    boxes = [c.bounds for c in boundary]
    islands = []

    for i, inner in enumerate(boxes):
        if inner is None:
            continue
        for j, outer in enumerate(boxes):
            if i == j or outer is None:
                continue
            if outer.contains(inner) and not inner.contains(outer):
                islands.append(boundary[i])
                break

    return islands


def _orient_clockwise(curve: Curve) -> Curve:
    """Reverse closed counter-clockwise polylines.

    The offset engine shifts along the left-hand normal, so a negative
    (inward) offset only shrinks a ring that runs clockwise.
    """
    if curve.kind != CurveKind.POLYLINE or len(curve.points) < 4:
        return curve
    if not np.allclose(curve.points[0, :2], curve.points[-1, :2]):
        return curve

    ring = LinearRing(curve.points[:, :2])
    if ring.is_ccw:
        return Curve(curve.kind, curve.points[::-1].copy(), layer=curve.layer)
    return curve


def _drop_collapsed(ring: list[Curve]) -> list[Curve]:
    """Remove circles and arcs whose radius has shrunk below half the collapse size."""
    return [
        c for c in ring
        if c.kind not in (CurveKind.CIRCLE, CurveKind.ARC) or c.radius > MIN_POCKET_SIZE / 2
    ]


def _hits_island(curve: Curve, island_bounds: list[BoundingBox]) -> bool:
    bounds = curve.bounds
    if bounds is None:
        return False
    return any(bounds.intersects(b) for b in island_bounds)


def generate_pocket(
    boundary: Sequence[Curve],
    stepover: float,
    detect_islands: bool = False,
    islands: Optional[Sequence[Curve]] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> list[Curve]:
    """Fill a boundary with concentric inward offset rings.

    Each ring is the previous one offset inward by the stepover. Circles and
    arcs whose radius drops to MIN_POCKET_SIZE / 2 or below leave the ring.
    The loop stops when the ring comes back empty, when its bounding box
    gets thinner than MIN_POCKET_SIZE, when it stops moving inward (its box
    is no longer inside the previous one), or when MAX_POCKET_CURVES curves
    have been produced.

    Args:
        boundary: Curves enclosing the pocket
        stepover: Distance between successive rings
        detect_islands: Drop rings whose bounding box touches an island
        islands: Island curves; if None and detect_islands is set, they
            are found among the boundary curves with `find_islands`
        should_cancel: Polled once per ring; returning True aborts

    Returns:
        Generated ring curves, not including the boundary itself

    Raises:
        GenerationCancelled: If should_cancel returned True
    """
    if not boundary:
        return []
    if stepover <= 0:
        logger.warning("Pocket stepover %.4f is not positive, skipping pocket", stepover)
        return []

    if detect_islands and islands is None:
        islands = find_islands(boundary)
        island_ids = {id(c) for c in islands}
        current = [c for c in boundary if id(c) not in island_ids]
    else:
        current = list(boundary)

    current = [_orient_clockwise(c) for c in current]
    previous_bounds = curves_bounds(current)
    if previous_bounds is None:
        return []

    pocket_paths: list[Curve] = []
    rings = 0

    while True:
        if should_cancel is not None and should_cancel():
            raise GenerationCancelled(f"Pocket generation cancelled after {rings} rings")

        ring = _drop_collapsed(offset_curves(current, stepover, inward=True))
        if not ring:
            break

        ring_bounds = curves_bounds(ring)
        if ring_bounds is None:
            break
        if ring_bounds.width < MIN_POCKET_SIZE or ring_bounds.height < MIN_POCKET_SIZE:
            logger.debug("Pocket collapsed after %d rings", rings)
            break
        if not previous_bounds.contains(ring_bounds):
            if rings == 0:
                logger.warning(
                    "First pocket ring moved outward; the boundary probably runs counter-clockwise"
                )
            else:
                logger.debug("Offset ring %d moved outward, stopping", rings + 1)
            break

        room = MAX_POCKET_CURVES - len(pocket_paths)
        pocket_paths.extend(ring[:room])
        rings += 1

        if len(pocket_paths) >= MAX_POCKET_CURVES:
            logger.warning("Pocket reached the %d curve limit", MAX_POCKET_CURVES)
            break

        current = ring
        previous_bounds = ring_bounds

    if detect_islands and islands:
        island_bounds = [b for b in (c.bounds for c in islands) if b is not None]
        before = len(pocket_paths)
        pocket_paths = [p for p in pocket_paths if not _hits_island(p, island_bounds)]
        logger.debug("Island filter dropped %d of %d rings", before - len(pocket_paths), before)

    return pocket_paths


def generate_zigzag_pattern(bounds: BoundingBox, stepover: float) -> Optional[Curve]:
    """Raster a bounding box with alternating left/right passes.

    Returns a single polyline, or None for a non-positive stepover.
    """
    if stepover <= 0:
        return None

    rows = int(math.floor(bounds.height / stepover + 1e-9)) + 1
    points = []
    left_to_right = True

    for i in range(rows):
        y = bounds.min_y + i * stepover
        if left_to_right:
            points.append((bounds.min_x, y))
            points.append((bounds.max_x, y))
        else:
            points.append((bounds.max_x, y))
            points.append((bounds.min_x, y))
        left_to_right = not left_to_right

    return Curve.polyline(points)


def estimate_cut_time(
    passes: Sequence[DepthPass],
    total_distance: float,
    feed_rate: float,
) -> float:
    """Estimate cutting time in minutes (feed rate in length/minute).

    A single-pass job counts as one pass.
    """
    if feed_rate <= 0:
        raise ValueError(f"Feed rate must be positive, got {feed_rate}")
    return total_distance * max(1, len(passes)) / feed_rate
