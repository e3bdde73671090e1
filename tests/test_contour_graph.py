"""Tests for ContourGraph and contour assembly."""

import math

import pytest
from glc_core.contours.graph import ContourGraph, build_contours, count_intersections, make_contour
from glc_core.contours.snapping import UnionFind, dedupe_segments, snap_endpoints
from glc_core.contours.types import Winding, reverse_contour_segments
from glc_core.dxf_reader.elements import LineSegment, arc_from_angles
from glc_core.dxf_reader.polylines import bulge_segment


def polyline(*points, closed=True):
    pairs = list(zip(points, points[1:]))
    if closed:
        pairs.append((points[-1], points[0]))
    return [LineSegment(start=a, end=b) for a, b in pairs]


RECTANGLE = polyline((0, 0), (1000, 0), (1000, 2000), (0, 2000))


class TestGraphConstruction:
    """Tests for building the contour graph."""

    def test_single_segment_creates_two_nodes(self):
        graph = ContourGraph()
        graph.add_segment(LineSegment((0, 0), (5, 0)))

        assert len(graph.nodes) == 2
        assert len(graph.edges) == 1

    def test_connected_segments_share_node(self):
        graph = ContourGraph()
        graph.add_segments(polyline((0, 0), (5, 0), (5, 5), closed=False))

        assert len(graph.nodes) == 3
        assert graph.nodes[1].degree == 2

    def test_tolerance_merges_nearby_endpoints(self):
        graph = ContourGraph(node_tolerance=0.5)
        graph.add_segment(LineSegment((0, 0), (5, 0)))
        graph.add_segment(LineSegment((5.3, 0), (5.3, 5)))

        assert len(graph.nodes) == 3

    def test_no_merge_beyond_tolerance(self):
        graph = ContourGraph(node_tolerance=0.5)
        graph.add_segment(LineSegment((0, 0), (5, 0)))
        graph.add_segment(LineSegment((5.6, 0), (5.6, 5)))

        assert len(graph.nodes) == 4

    def test_find_node_near_returns_first_match(self):
        graph = ContourGraph(node_tolerance=1.0)
        graph.add_segment(LineSegment((0, 0), (10, 0)))
        graph.add_segment(LineSegment((1.5, 0), (1.5, 10)))

        node = graph.find_node_near((0.8, 0))
        assert node is not None
        assert node.point == (0, 0)
        assert graph.find_node_near((5, 5)) is None

    def test_components(self):
        graph = ContourGraph()
        graph.add_segments(RECTANGLE + [LineSegment((5000, 0), (6000, 0))])
        assert graph.components() == [[0, 1, 2, 3], [4]]

    def test_open_edges(self):
        graph = ContourGraph()
        graph.add_segments(polyline((0, 0), (5, 0), (5, 5), closed=False))
        assert graph.open_edge_ids() == [0, 1]
        assert graph.open_node_count() == 2


class TestWalk:
    def test_closed_walk_orients_segments(self):
        graph = ContourGraph()
        graph.add_segments(
            [
                LineSegment((0, 0), (10, 0)),
                LineSegment((10, 10), (10, 0)),
                LineSegment((10, 10), (0, 0)),
            ]
        )
        unused = set(range(3))

        chain, closed = graph.walk(0, unused)

        assert closed
        assert unused == set()
        assert [s.start for s in chain] == [(0, 0), (10, 0), (10, 10)]

    def test_open_walk(self):
        graph = ContourGraph()
        graph.add_segments(polyline((0, 0), (10, 0), (10, 10), closed=False))
        chain, closed = graph.walk(0, {0, 1})
        assert not closed
        assert len(chain) == 2


class TestSnapping:
    def test_union_find(self):
        sets = UnionFind(4)
        assert sets.union(0, 1)
        assert sets.union(2, 3)
        assert not sets.union(1, 0)
        assert sets.find(0) == sets.find(1)
        assert sets.find(1) != sets.find(2)

    def test_endpoints_snap_to_centroid(self):
        result = snap_endpoints([LineSegment((0, 0), (10, 0)), LineSegment((10.1, 0), (10, 10))], 0.2)
        assert result.snapped_vertex_pairs == 1
        assert result.segments[0].end == pytest.approx((10.05, 0))
        assert result.segments[1].start == pytest.approx((10.05, 0))

    def test_collapsed_line_dropped(self):
        result = snap_endpoints([LineSegment((0, 0), (0.1, 0))], 0.2)
        assert result.segments == []
        assert result.collapsed_segments == 1

    def test_dedupe_ignores_orientation(self):
        kept, removed = dedupe_segments([LineSegment((0, 0), (5, 0)), LineSegment((5, 0), (0, 0))])
        assert len(kept) == 1
        assert removed == 1

    def test_complementary_half_circles_are_distinct(self):
        upper = arc_from_angles((0, 0), 100, 0, 180)
        lower = arc_from_angles((0, 0), 100, 180, 360)
        kept, removed = dedupe_segments([upper, lower])
        assert len(kept) == 2
        assert removed == 0


class TestBuildContours:
    """Tests for closed contour extraction."""

    def test_rectangle(self):
        result = build_contours(RECTANGLE)

        assert len(result.contours) == 1
        contour = result.contours[0]
        assert contour.perimeter == pytest.approx(6000)
        assert contour.signed_area == pytest.approx(2_000_000)
        assert contour.area == pytest.approx(2_000_000)
        assert contour.winding is Winding.CCW
        assert result.open_chains == []
        assert result.warnings == []

    def test_reversed_rectangle_flips_winding(self):
        result = build_contours(reverse_contour_segments(RECTANGLE))

        contour = result.contours[0]
        assert contour.perimeter == pytest.approx(6000)
        assert contour.signed_area == pytest.approx(-2_000_000)
        assert contour.winding is Winding.CW

    def test_small_gap_is_snapped_closed(self):
        segments = polyline((0, 0), (100, 0), (100, 100), (0, 100), closed=False)
        segments.append(LineSegment((0, 100), (0.1, 0)))

        result = build_contours(segments)

        assert len(result.contours) == 1
        assert result.snapped_vertex_pairs == 1
        assert result.contours[0].area == pytest.approx(10_000, rel=1e-3)

    def test_open_chain_keeps_every_segment(self):
        segments = polyline((0, 0), (10, 0), (10, 10), (20, 10), closed=False)

        result = build_contours(segments)

        assert result.contours == []
        assert len(result.open_chains) == 1
        assert len(result.open_chains[0].segments) == 3
        assert result.discarded_open_groups == 1
        assert "Open contours detected." in result.warnings

    def test_mid_chain_seed_splits_open_chain(self):
        segments = [
            LineSegment((10, 0), (10, 10)),
            LineSegment((0, 0), (10, 0)),
            LineSegment((10, 10), (20, 10)),
        ]

        result = build_contours(segments)

        assert [len(c.segments) for c in result.open_chains] == [2, 1]
        assert result.discarded_open_groups == 1

    def test_stray_fragment_is_isolated(self):
        result = build_contours(RECTANGLE + [LineSegment((5000, 0), (6000, 0))])
        assert len(result.contours) == 1
        assert len(result.open_chains) == 1
        assert result.discarded_open_groups == 1

    def test_duplicate_segments_removed(self):
        result = build_contours(RECTANGLE + [RECTANGLE[0].reversed()])
        assert result.duplicate_segments == 1
        assert len(result.contours) == 1

    def test_circle_from_two_arcs(self):
        segments = [arc_from_angles((0, 0), 100, 0, 180), arc_from_angles((0, 0), 100, 180, 360)]

        result = build_contours(segments)

        assert len(result.contours) == 1
        contour = result.contours[0]
        assert contour.perimeter == pytest.approx(2 * math.pi * 100)
        assert contour.area == pytest.approx(math.pi * 100 ** 2, rel=0.01)

    def test_two_rooms(self):
        second = polyline((3000, 0), (4000, 0), (4000, 1000), (3000, 1000))
        result = build_contours(RECTANGLE + second)
        assert len(result.contours) == 2
        assert result.node_count == 8
        assert result.edge_count == 8

    def test_snap_above_node_tolerance_rejected(self):
        with pytest.raises(ValueError):
            build_contours(RECTANGLE, node_tolerance=0.5, snap_tolerance=1.0)

    def test_to_dict(self):
        data = build_contours(RECTANGLE).to_dict()
        assert data["contour_count"] == 1
        assert data["intersections"] == 0


class TestIntersections:
    def test_bow_tie(self):
        bow_tie = polyline((0, 0), (10, 10), (10, 0), (0, 10))

        result = build_contours(bow_tie)

        assert result.intersections == 1
        assert "Detected 1 potential edge intersections." in result.warnings

    def test_shared_corner_is_not_counted(self):
        assert count_intersections([make_contour(RECTANGLE)], 0.5) == 0

    def test_major_arc_room_is_simple(self):
        room = [bulge_segment((0, 0), (1000, 0), 2.0), LineSegment((1000, 0), (0, 0))]

        result = build_contours(room)

        assert len(result.contours) == 1
        assert result.intersections == 0
        contour = result.contours[0]
        assert contour.winding is Winding.CCW
        major_segment = math.pi * 625 ** 2 - 625 ** 2 / 2 * (2 * math.asin(0.8) - math.sin(2 * math.asin(0.8)))
        assert contour.area == pytest.approx(major_segment, rel=0.02)

    def test_overlapping_rooms(self):
        other = polyline((500, 500), (1500, 500), (1500, 1500), (500, 1500))
        assert count_intersections([make_contour(RECTANGLE), make_contour(other)], 0.5) == 2
