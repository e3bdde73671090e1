"""Tests for spline flattening and arc/line decomposition."""

import math

import numpy as np
import pytest

from glc_core.dxf_reader.elements import TagRecord
from glc_core.dxf_reader.spline import (
    DecompositionOptions,
    basis_functions,
    decompose_points,
    evaluate_bspline,
    fit_circle,
    flatten_bspline,
    parse_spline_data,
    solve_3x3,
    spline_points,
    spline_to_segments,
)


def circle_points(center, radius, start_deg, end_deg, count):
    angles = np.radians(np.linspace(start_deg, end_deg, count))
    return [(center[0] + radius * math.cos(a), center[1] + radius * math.sin(a)) for a in angles]


class TestLinearAlgebra:
    def test_solve_3x3(self):
        solution = solve_3x3([[2, 1, 0], [1, 3, 1], [0, 1, 4]], [3, 5, 5])
        assert solution == pytest.approx([1, 1, 1])

    def test_solve_needs_pivoting(self):
        solution = solve_3x3([[0, 1, 0], [1, 0, 0], [0, 0, 1]], [2, 3, 4])
        assert solution == pytest.approx([3, 2, 4])

    def test_singular_is_none(self):
        assert solve_3x3([[1, 2, 3], [2, 4, 6], [1, 1, 1]], [1, 2, 3]) is None

    def test_fit_circle(self):
        center, radius = fit_circle(circle_points((100, -50), 250, 10, 80, 20))
        assert center == pytest.approx((100, -50), abs=1e-3)
        assert radius == pytest.approx(250, abs=1e-3)

    def test_collinear_points_do_not_fit(self):
        assert fit_circle([(0, 0), (1, 0), (2, 0), (3, 0)]) is None


class TestBSpline:
    def test_basis_partition_of_unity(self):
        knots = [0, 0, 0, 0, 0.5, 1, 1, 1, 1]
        for t in (0.0, 0.2, 0.5, 0.9, 1.0):
            assert basis_functions(knots, 3, 5, t).sum() == pytest.approx(1.0)

    def test_clamped_ends(self):
        controls = [(0, 0), (1, 2), (3, 2), (4, 0)]
        knots = [0, 0, 0, 0, 1, 1, 1, 1]
        assert evaluate_bspline(controls, knots, 3, 0.0) == pytest.approx((0, 0))
        assert evaluate_bspline(controls, knots, 3, 1.0) == pytest.approx((4, 0))

    def test_single_span_matches_bezier(self):
        controls = [(0, 0), (1, 2), (3, 2), (4, 0)]
        knots = [0, 0, 0, 0, 1, 1, 1, 1]
        t = 0.3
        bezier = [
            sum(
                math.comb(3, i) * (1 - t) ** (3 - i) * t ** i * controls[i][axis]
                for i in range(4)
            )
            for axis in (0, 1)
        ]
        assert evaluate_bspline(controls, knots, 3, t) == pytest.approx(tuple(bezier))

    def test_flatten_respects_error(self):
        controls = [(0, 0), (100, 200), (300, 200), (400, 0)]
        knots = [0, 0, 0, 0, 1, 1, 1, 1]
        points = flatten_bspline(controls, knots, 3, 0.0, 1.0, max_error=1.0)
        assert points[0] == pytest.approx((0, 0))
        assert points[-1] == pytest.approx((400, 0))
        assert len(points) > 8

    def test_flatten_depth_cap(self):
        controls = [(0, 0), (100, 200), (300, 200), (400, 0)]
        knots = [0, 0, 0, 0, 1, 1, 1, 1]
        points = flatten_bspline(controls, knots, 3, 0.0, 1.0, max_error=0.0, max_depth=3)
        assert len(points) == 2 ** 3 + 1


def spline_records(controls=(), knots=(), fits=(), degree=3, flags=0):
    pairs = [(70, flags), (71, degree)]
    pairs += [(40, k) for k in knots]
    for x, y in controls:
        pairs += [(10, x), (20, y), (30, 0)]
    for x, y in fits:
        pairs += [(11, x), (21, y), (31, 0)]
    return [TagRecord(code=c, value=str(v)) for c, v in pairs]


class TestSplineData:
    def test_parse(self):
        data = parse_spline_data(
            spline_records(controls=[(0, 0), (1, 1)], knots=[0, 0, 1, 1], degree=1, flags=1)
        )
        assert data.degree == 1
        assert data.closed
        assert data.knots == [0, 0, 1, 1]
        assert data.control_points == [(0.0, 0.0), (1.0, 1.0)]

    def test_fit_points_preferred(self):
        data = parse_spline_data(
            spline_records(controls=[(0, 0), (5, 5)], fits=[(0, 0), (1, 0), (1, 0), (2, 0)])
        )
        assert spline_points(data, 1.0) == [(0.0, 0.0), (1.0, 0.0), (2.0, 0.0)]

    def test_short_knot_vector_uses_control_polygon(self):
        data = parse_spline_data(spline_records(controls=[(0, 0), (1, 2), (3, 2), (4, 0)], knots=[0, 1]))
        assert spline_points(data, 1.0) == [(0.0, 0.0), (1.0, 2.0), (3.0, 2.0), (4.0, 0.0)]


class TestDecomposition:
    def test_circle_run_becomes_single_arc(self):
        points = circle_points((0, 0), 250, 0, 90, 91)
        fit = decompose_points(points, DecompositionOptions())

        assert len(fit.segments) == 1
        arc = fit.segments[0]
        assert arc.kind == "arc"
        assert arc.center == pytest.approx((0, 0), abs=5.0)
        assert arc.radius == pytest.approx(250, abs=5.0)
        assert arc.start == points[0]
        assert arc.end == points[-1]
        assert arc.clockwise is False
        assert fit.stats.arc_count == 1

    def test_straight_run_becomes_lines(self):
        points = [(float(x), 0.0) for x in range(0, 1201, 10)]
        fit = decompose_points(points, DecompositionOptions())
        assert all(s.kind == "line" for s in fit.segments)
        assert fit.segments[0].start == (0.0, 0.0)
        assert fit.segments[-1].end == (1200.0, 0.0)
        assert sum(s.length for s in fit.segments) == pytest.approx(1200)

    def test_segments_are_contiguous(self):
        points = circle_points((0, 0), 1000, 0, 180, 181)
        fit = decompose_points(points, DecompositionOptions())
        for a, b in zip(fit.segments, fit.segments[1:]):
            assert a.end == b.start
        assert fit.stats.min_segment_length <= fit.stats.avg_segment_length <= fit.stats.max_segment_length

    def test_single_long_step_is_one_line(self):
        fit = decompose_points([(0, 0), (5000, 0)], DecompositionOptions())
        assert len(fit.segments) == 1
        assert fit.segments[0].kind == "line"

    def test_scaled_options(self):
        options = DecompositionOptions().scaled(0.1)
        assert options.target_length == pytest.approx(40)
        assert options.max_arc_radius == pytest.approx(3000)


class TestSplineToSegments:
    def test_fit_point_spline(self):
        fits = circle_points((0, 0), 250, 0, 90, 46)
        fit = spline_to_segments(spline_records(fits=fits), DecompositionOptions())
        assert [s.kind for s in fit.segments] == ["arc"]
        assert fit.stats.source_point_count == 46

    def test_closed_spline_returns_to_start(self):
        fits = [(0, 0), (400, 0), (400, 400), (0, 400)]
        fit = spline_to_segments(spline_records(fits=fits, flags=1), DecompositionOptions())
        assert fit.segments[0].start == (0.0, 0.0)
        assert fit.segments[-1].end == (0.0, 0.0)

    def test_empty_spline(self):
        fit = spline_to_segments(spline_records(), DecompositionOptions())
        assert fit.segments == []
