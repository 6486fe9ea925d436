"""
Unit tests for pocket generation and depth pass planning.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from curve2gcode.geometry import BoundingBox, Curve, CurveKind
from curve2gcode.toolpaths import (
    MAX_POCKET_CURVES,
    GenerationCancelled,
    calculate_depth_passes,
    estimate_cut_time,
    find_islands,
    generate_pocket,
    generate_zigzag_pattern,
)

# Clockwise unit square
UNIT_SQUARE_CW = [(0, 0), (0, 1), (1, 1), (1, 0), (0, 0)]


class TestDepthPasses(unittest.TestCase):
    def test_last_pass_is_clamped(self):
        passes = calculate_depth_passes(10, 3)
        self.assertEqual([p.depth for p in passes], [-3, -6, -9, -10])
        self.assertEqual([p.pass_number for p in passes], [1, 2, 3, 4])
        self.assertTrue(all(p.depth_increment == 3 for p in passes))

    def test_exact_division(self):
        self.assertEqual([p.depth for p in calculate_depth_passes(6, 2)], [-2, -4, -6])

    def test_float_drift_adds_no_sliver_pass(self):
        passes = calculate_depth_passes(1.0, 0.1)
        self.assertEqual(len(passes), 10)
        self.assertEqual(passes[-1].depth, -1.0)

    def test_non_positive_inputs(self):
        self.assertEqual(calculate_depth_passes(0, 3), [])
        self.assertEqual(calculate_depth_passes(10, 0), [])
        self.assertEqual(calculate_depth_passes(-5, 1), [])


class TestPocket(unittest.TestCase):
    def test_unit_square_gives_one_ring(self):
        pocket = generate_pocket([Curve.polyline(UNIT_SQUARE_CW)], 1)
        self.assertEqual(len(pocket), 1)

    def test_counter_clockwise_square_is_reoriented(self):
        pocket = generate_pocket([Curve.polyline(UNIT_SQUARE_CW[::-1])], 1)
        self.assertEqual(len(pocket), 1)

    def test_circle_shrinks_until_collapse(self):
        pocket = generate_pocket([Curve.circle((0, 0), 5)], 1)
        self.assertEqual([c.radius for c in pocket], [4, 3, 2, 1])
        self.assertTrue(all(c.kind == CurveKind.CIRCLE for c in pocket))

    def test_rings_never_pass_through_zero_radius(self):
        pocket = generate_pocket([Curve.circle((0, 0), 5.5)], 1)
        self.assertEqual([c.radius for c in pocket], [4.5, 3.5, 2.5, 1.5, 0.5])

    def test_counter_clockwise_line_loop_warns(self):
        loop = [
            Curve.line((0, 0), (10, 0)),
            Curve.line((10, 0), (10, 10)),
            Curve.line((10, 10), (0, 10)),
            Curve.line((0, 10), (0, 0)),
        ]
        with self.assertLogs("curve2gcode.toolpaths", level="WARNING"):
            self.assertEqual(generate_pocket(loop, 1), [])

    def test_boundary_is_not_included(self):
        boundary = Curve.circle((0, 0), 5)
        pocket = generate_pocket([boundary], 1)
        self.assertNotIn(boundary, pocket)

    def test_curve_cap(self):
        boundary = [Curve.circle((0, 0), 2000), Curve.circle((0, 0), 1500), Curve.circle((0, 0), 1000)]
        pocket = generate_pocket(boundary, 1)
        self.assertEqual(len(pocket), MAX_POCKET_CURVES)

    def test_empty_boundary(self):
        self.assertEqual(generate_pocket([], 1), [])

    def test_non_positive_stepover(self):
        with self.assertLogs("curve2gcode.toolpaths", level="WARNING"):
            self.assertEqual(generate_pocket([Curve.circle((0, 0), 5)], 0), [])

    def test_cancel_hook_raises(self):
        with self.assertRaises(GenerationCancelled):
            generate_pocket([Curve.circle((0, 0), 5)], 1, should_cancel=lambda: True)

    def test_cancel_hook_polled_per_ring(self):
        calls = []

        def should_cancel():
            calls.append(1)
            return False

        generate_pocket([Curve.circle((0, 0), 5)], 1, should_cancel=should_cancel)
        # Four rings plus the iteration that detects the collapse
        self.assertEqual(len(calls), 5)


class TestIslands(unittest.TestCase):
    def setUp(self):
        self.outer = Curve.circle((0, 0), 10)
        self.island = Curve.circle((6, 0), 1)

    def test_find_islands_uses_box_nesting(self):
        self.assertEqual(find_islands([self.outer, self.island]), [self.island])

    def test_explicit_islands_filter_rings(self):
        pocket = generate_pocket([self.outer], 1, detect_islands=True, islands=[self.island])
        # Rings with radius >= 5 touch the island box (x 5..7)
        self.assertEqual([c.radius for c in pocket], [4, 3, 2, 1])

    def test_islands_ignored_without_detection(self):
        pocket = generate_pocket([self.outer], 1, islands=[self.island])
        self.assertEqual(len(pocket), 9)

    def test_detected_islands_are_not_offset(self):
        pocket = generate_pocket([self.outer, self.island], 1, detect_islands=True)
        self.assertEqual([c.radius for c in pocket], [4, 3, 2, 1])


class TestZigzag(unittest.TestCase):
    def test_rows_alternate_direction(self):
        zigzag = generate_zigzag_pattern(BoundingBox(0, 0, 10, 4), 2)
        self.assertEqual(zigzag.kind, CurveKind.POLYLINE)
        self.assertEqual(
            [tuple(p) for p in zigzag.points[:, :2].tolist()],
            [(0, 0), (10, 0), (10, 2), (0, 2), (0, 4), (10, 4)],
        )

    def test_invalid_stepover(self):
        self.assertIsNone(generate_zigzag_pattern(BoundingBox(0, 0, 10, 4), 0))


class TestCutTime(unittest.TestCase):
    def test_multiplies_by_pass_count(self):
        passes = calculate_depth_passes(4, 1)
        self.assertAlmostEqual(estimate_cut_time(passes, 100, 200), 2.0)

    def test_single_pass_job(self):
        self.assertAlmostEqual(estimate_cut_time([], 100, 200), 0.5)

    def test_feed_rate_must_be_positive(self):
        with self.assertRaises(ValueError):
            estimate_cut_time([], 100, 0)


if __name__ == "__main__":
    unittest.main()
