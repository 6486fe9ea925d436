"""Curve records, bounding boxes and length helpers."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence

import numpy as np
from shapely.geometry import LineString


class CurveKind(Enum):
    LINE = "line"
    CIRCLE = "circle"
    ARC = "arc"
    POLYLINE = "polyline"
    SPLINE = "spline"


@dataclass(frozen=True)
class Point:
    """A point in machine space."""
    x: float
    y: float
    z: float = 0.0


@dataclass
class BoundingBox:
    """Axis-aligned bounding box."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def intersects(self, other: "BoundingBox") -> bool:
        """True if the boxes overlap; touching edges count as overlap."""
        return not (
            self.max_x < other.min_x
            or self.min_x > other.max_x
            or self.max_y < other.min_y
            or self.min_y > other.max_y
        )

    def contains(self, other: "BoundingBox", tolerance: float = 1e-9) -> bool:
        """True if `other` lies inside this box (edges included)."""
        return (
            other.min_x >= self.min_x - tolerance
            and other.min_y >= self.min_y - tolerance
            and other.max_x <= self.max_x + tolerance
            and other.max_y <= self.max_y + tolerance
        )


def _as_points(points: Iterable) -> np.ndarray:
    """Normalize points (Point, 2-tuples or 3-tuples) to a read-only Nx3 array."""
    rows = []
    for p in points:
        if isinstance(p, Point):
            rows.append((p.x, p.y, p.z))
        elif len(p) == 2:
            rows.append((p[0], p[1], 0.0))
        else:
            rows.append((p[0], p[1], p[2]))

    arr = np.array(rows, dtype=float).reshape(-1, 3)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class Curve:
    """A typed curve from the drawing.

    Point layout per kind:
        LINE: start, end
        CIRCLE: center (plus radius)
        ARC: center, start, end (plus radius and angles in degrees)
        POLYLINE: two or more vertices
        SPLINE: control/fit points, consumed only by the arc converter

    Curves are never modified in place; pipeline stages build new ones.
    """
    kind: CurveKind
    points: np.ndarray  # Nx3 array of (x, y, z), read-only
    radius: float = 0.0
    start_angle: float = 0.0  # degrees
    end_angle: float = 0.0  # degrees
    layer: Optional[str] = None

    def __post_init__(self):
        pts = self.points
        if not (
            isinstance(pts, np.ndarray)
            and pts.ndim == 2
            and pts.shape[1] == 3
            and not pts.flags.writeable
        ):
            object.__setattr__(self, "points", _as_points(pts))

    @classmethod
    def line(cls, start, end, layer: Optional[str] = None) -> "Curve":
        return cls(CurveKind.LINE, _as_points([start, end]), layer=layer)

    @classmethod
    def circle(cls, center, radius: float, layer: Optional[str] = None) -> "Curve":
        return cls(CurveKind.CIRCLE, _as_points([center]), radius=radius, layer=layer)

    @classmethod
    def arc(
        cls,
        center,
        start,
        end,
        radius: float,
        start_angle: float,
        end_angle: float,
        layer: Optional[str] = None,
    ) -> "Curve":
        return cls(
            CurveKind.ARC,
            _as_points([center, start, end]),
            radius=radius,
            start_angle=start_angle,
            end_angle=end_angle,
            layer=layer,
        )

    @classmethod
    def polyline(cls, points: Sequence, layer: Optional[str] = None) -> "Curve":
        return cls(CurveKind.POLYLINE, _as_points(points), layer=layer)

    @classmethod
    def spline(cls, points: Sequence, layer: Optional[str] = None) -> "Curve":
        return cls(CurveKind.SPLINE, _as_points(points), layer=layer)

    def point(self, index: int) -> Point:
        """Return one point as a Point record."""
        x, y, z = self.points[index]
        return Point(float(x), float(y), float(z))

    @property
    def bounds(self) -> Optional[BoundingBox]:
        """Bounding box of the curve, or None if it has no points.

        Circles span center +/- radius; every other kind spans its points.
        """
        if len(self.points) == 0:
            return None

        if self.kind == CurveKind.CIRCLE:
            cx, cy = self.points[0, 0], self.points[0, 1]
            r = abs(self.radius)
            return BoundingBox(
                min_x=float(cx - r),
                min_y=float(cy - r),
                max_x=float(cx + r),
                max_y=float(cy + r),
            )

        return BoundingBox(
            min_x=float(self.points[:, 0].min()),
            min_y=float(self.points[:, 1].min()),
            max_x=float(self.points[:, 0].max()),
            max_y=float(self.points[:, 1].max()),
        )

    @property
    def length(self) -> float:
        """Approximate cutting length in the XY plane."""
        if self.kind == CurveKind.CIRCLE:
            return 2 * math.pi * abs(self.radius)

        if self.kind == CurveKind.ARC:
            sweep = (self.end_angle - self.start_angle) % 360.0
            return math.radians(sweep) * abs(self.radius)

        if len(self.points) < 2:
            return 0.0
        return LineString(self.points[:, :2]).length


def curves_bounds(curves: Sequence[Curve]) -> Optional[BoundingBox]:
    """Combined bounding box of a list of curves."""
    boxes = [c.bounds for c in curves]
    boxes = [b for b in boxes if b is not None]
    if not boxes:
        return None

    return BoundingBox(
        min_x=min(b.min_x for b in boxes),
        min_y=min(b.min_y for b in boxes),
        max_x=max(b.max_x for b in boxes),
        max_y=max(b.max_y for b in boxes),
    )


def path_length(curves: Sequence[Curve]) -> float:
    """Total cutting length of a curve list."""
    return sum(c.length for c in curves)
