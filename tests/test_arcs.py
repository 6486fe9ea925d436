"""
Unit tests for spline approximation.
"""

import math
import os
import sys
import unittest

import numpy as np

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from curve2gcode.arcs import (
    approximate_spline_with_lines,
    convert_spline_to_arcs,
    convert_splines,
    fit_arc_through_points,
    is_arc_within_tolerance,
)
from curve2gcode.geometry import Curve, CurveKind


def _pt(x, y, z=0.0):
    return np.array([x, y, z], dtype=float)


class TestFitArc(unittest.TestCase):
    """Three-point circle fit"""

    def test_known_circle(self):
        arc = fit_arc_through_points(_pt(0, 0), _pt(1, 1), _pt(2, 0))
        self.assertEqual(arc.kind, CurveKind.ARC)
        self.assertAlmostEqual(arc.points[0, 0], 1.0)
        self.assertAlmostEqual(arc.points[0, 1], 0.0)
        self.assertAlmostEqual(arc.radius, 1.0)
        self.assertAlmostEqual(arc.start_angle, 180.0)
        self.assertAlmostEqual(arc.end_angle, 0.0)

    def test_radius_matches_distance_to_each_point(self):
        pts = [_pt(3, 1), _pt(-2, 4), _pt(0.5, -6)]
        arc = fit_arc_through_points(*pts)
        cx, cy = arc.points[0, 0], arc.points[0, 1]
        for p in pts:
            self.assertAlmostEqual(math.hypot(p[0] - cx, p[1] - cy), arc.radius, places=9)

    def test_arc_runs_from_first_to_last_point(self):
        arc = fit_arc_through_points(_pt(0, 0, -1), _pt(1, 1, -1), _pt(2, 0, -1))
        np.testing.assert_allclose(arc.points[1], [0, 0, -1])
        np.testing.assert_allclose(arc.points[2], [2, 0, -1])

    def test_collinear_points_fall_back_to_line(self):
        fallback = fit_arc_through_points(_pt(0, 0), _pt(1, 0), _pt(2, 0))
        self.assertEqual(fallback.kind, CurveKind.LINE)
        # All three points are kept
        self.assertEqual(len(fallback.points), 3)


class TestConvertSpline(unittest.TestCase):
    def test_sliding_windows(self):
        spline = Curve.spline([(0, 0), (1, 1), (2, 0), (3, 1), (4, 0)])
        arcs = convert_spline_to_arcs(spline)
        self.assertEqual(len(arcs), 3)
        self.assertTrue(all(a.kind == CurveKind.ARC for a in arcs))

    def test_too_few_points(self):
        self.assertEqual(convert_spline_to_arcs(Curve.spline([(0, 0), (1, 1)])), [])

    def test_convert_splines_keeps_other_kinds(self):
        line = Curve.line((0, 0), (1, 0))
        spline = Curve.spline([(0, 0), (1, 1), (2, 0)])
        result = convert_splines([line, spline])
        self.assertEqual(len(result), 2)
        self.assertIs(result[0], line)
        self.assertEqual(result[1].kind, CurveKind.ARC)


class TestLineApproximation(unittest.TestCase):
    def test_segments_no_longer_than_limit(self):
        lines = approximate_spline_with_lines(Curve.spline([(0, 0), (10, 0)]), 3)
        self.assertEqual(len(lines), 4)
        for line in lines:
            self.assertLessEqual(line.length, 3 + 1e-9)
        np.testing.assert_allclose(lines[-1].points[1], [10, 0, 0])

    def test_z_is_interpolated(self):
        lines = approximate_spline_with_lines(Curve.spline([(0, 0, 0), (4, 0, -2)]), 2)
        self.assertEqual(len(lines), 2)
        self.assertAlmostEqual(lines[0].points[1, 2], -1.0)

    def test_invalid_segment_length(self):
        self.assertEqual(approximate_spline_with_lines(Curve.spline([(0, 0), (1, 0)]), 0), [])


class TestArcTolerance(unittest.TestCase):
    def setUp(self):
        self.arc = fit_arc_through_points(_pt(0, 0), _pt(1, 1), _pt(2, 0))

    def test_points_on_circle(self):
        self.assertTrue(is_arc_within_tolerance(self.arc, [(0, 0), (1, 1), (1, -1)]))

    def test_point_off_circle(self):
        self.assertFalse(is_arc_within_tolerance(self.arc, [(1, 1.5)]))

    def test_non_arc_is_rejected(self):
        self.assertFalse(is_arc_within_tolerance(Curve.line((0, 0), (1, 0)), [(0, 0)]))


if __name__ == "__main__":
    unittest.main()
