"""Tests for spatial utility functions."""

import math

import pytest
from glc_core.contours.spatial_utils import (
    boundary_area,
    boundary_points,
    bounds,
    distance,
    segments_cross,
    signed_area,
)
from glc_core.dxf_reader.elements import LineSegment, arc_from_angles


def square_segments(*corners):
    return [LineSegment(a, b) for a, b in zip(corners, corners[1:] + corners[:1])]


class TestSignedArea:
    """Tests for the shoelace sum."""

    def test_counter_clockwise_is_positive(self):
        square = [(0, 0), (4, 0), (4, 4), (0, 4)]
        assert signed_area(square) == pytest.approx(16.0)

    def test_clockwise_is_negative(self):
        square = [(0, 0), (0, 4), (4, 4), (4, 0)]
        assert signed_area(square) == pytest.approx(-16.0)

    def test_repeated_closing_point(self):
        square = [(0, 0), (4, 0), (4, 4), (0, 4), (0, 0)]
        assert signed_area(square) == pytest.approx(16.0)

    def test_degenerate(self):
        assert signed_area([(0, 0), (1, 1)]) == 0.0


class TestBoundaryArea:
    """Tests for boundary_area function."""

    def test_square_area(self):
        assert boundary_area(square_segments((0, 0), (4, 0), (4, 4), (0, 4))) == pytest.approx(16.0)

    def test_clockwise_is_positive(self):
        assert boundary_area(square_segments((0, 0), (0, 4), (4, 4), (4, 0))) == pytest.approx(16.0)

    def test_l_shaped_room(self):
        l_shape = square_segments((0, 0), (2, 0), (2, 1), (1, 1), (1, 2), (0, 2))
        assert boundary_area(l_shape) == pytest.approx(3.0)

    def test_half_disc(self):
        segments = [LineSegment((-10, 0), (10, 0)), arc_from_angles((0, 0), 10, 0, 180)]
        assert boundary_area(segments, arc_divisions=64) == pytest.approx(math.pi * 50, rel=1e-3)

    def test_single_segment(self):
        assert boundary_area([LineSegment((0, 0), (1, 1))]) == 0.0


class TestBoundaryPoints:
    def test_lines_share_joints(self):
        segments = [LineSegment((0, 0), (1, 0)), LineSegment((1, 0), (1, 1))]
        assert boundary_points(segments) == [(0, 0), (1, 0), (1, 1)]

    def test_arc_is_sampled(self):
        arc = arc_from_angles((0, 0), 10, 0, 90)
        points = boundary_points([arc], arc_divisions=4)
        assert len(points) == 5
        assert points[2] == pytest.approx((10 * math.cos(math.pi / 4), 10 * math.sin(math.pi / 4)))


class TestBounds:
    def test_bounds(self):
        assert bounds([(1, 5), (-2, 3), (4, -1)]) == (-2.0, -1.0, 4.0, 5.0)

    def test_empty(self):
        assert bounds([]) == (0.0, 0.0, 0.0, 0.0)


class TestSegmentsCross:
    """Tests for the parametric crossing test."""

    def test_crossing_segments(self):
        assert segments_cross((0, 0), (4, 4), (0, 4), (4, 0)) is True

    def test_parallel_segments(self):
        assert segments_cross((0, 0), (4, 0), (0, 1), (4, 1)) is False

    def test_non_intersecting_segments(self):
        assert segments_cross((0, 0), (1, 1), (2, 2), (3, 0)) is False

    def test_touching_at_endpoint_is_not_a_crossing(self):
        assert segments_cross((0, 0), (2, 0), (2, 0), (2, 2)) is False

    def test_t_junction_is_not_a_crossing(self):
        assert segments_cross((0, 0), (4, 0), (2, 0), (2, 3)) is False

    def test_collinear_overlap_is_not_a_crossing(self):
        assert segments_cross((0, 0), (4, 0), (2, 0), (6, 0)) is False

    def test_zero_length_segment(self):
        assert segments_cross((1, 1), (1, 1), (0, 0), (2, 2)) is False


def test_distance():
    assert distance((0, 0), (3, 4)) == pytest.approx(5.0)
