"""Spatial utility functions for contour geometry.

Uses Shapely for areas, bounds and crossing tests and numpy for the signed
shoelace sum.
"""

from typing import List, Sequence, Tuple

import numpy as np
from shapely.geometry import LineString, MultiPoint, Polygon as ShapelyPolygon

from glc_core.dxf_reader.elements import Point2D, Segment

# Sampling resolution used when an arc is flattened for area computation
AREA_ARC_DIVISIONS = 18


def distance(p1: Point2D, p2: Point2D) -> float:
    """Calculate Euclidean distance between two points."""
    return ((p2[0] - p1[0]) ** 2 + (p2[1] - p1[1]) ** 2) ** 0.5


def boundary_points(segments: Sequence[Segment], arc_divisions: int = AREA_ARC_DIVISIONS) -> List[Point2D]:
    """Sampled boundary polyline of a chain of segments.

    Lines contribute their endpoints, arcs ``arc_divisions`` steps. Shared
    joints are emitted once.
    """
    points: List[Point2D] = []
    for i, segment in enumerate(segments):
        sampled = segment.sample_points(arc_divisions if segment.kind == "arc" else 1)
        points.extend(sampled if i == 0 else sampled[1:])
    return points


def signed_area(points: Sequence[Point2D]) -> float:
    """Shoelace area of a closed ring; positive when counter-clockwise.

    Args:
        points: Ring vertices, first point not repeated

    Returns:
        Signed area in square units
    """
    if len(points) < 3:
        return 0.0
    pts = np.asarray(points, dtype=float)
    x = pts[:, 0]
    y = pts[:, 1]
    return float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y) / 2.0)


def boundary_area(segments: Sequence[Segment], arc_divisions: int = AREA_ARC_DIVISIONS) -> float:
    """Unsigned area enclosed by a closed chain of segments.

    Args:
        segments: Closed chain in travel order
        arc_divisions: Sampling steps per arc

    Returns:
        Area in square units (always positive)
    """
    points = boundary_points(segments, arc_divisions)
    if len(points) < 3:
        return 0.0
    return float(ShapelyPolygon(points).area)


def bounds(points: Sequence[Point2D]) -> Tuple[float, float, float, float]:
    """Axis-aligned bounding box as (min_x, min_y, max_x, max_y)."""
    if not points:
        return (0.0, 0.0, 0.0, 0.0)
    return tuple(float(v) for v in MultiPoint(list(points)).bounds)


def segments_cross(p1: Point2D, p2: Point2D, p3: Point2D, p4: Point2D) -> bool:
    """Check if two line segments cross at interior points.

    Touching at an endpoint, T-junctions, collinear overlaps and
    zero-length segments never count.

    Args:
        p1, p2: Endpoints of first segment
        p3, p4: Endpoints of second segment

    Returns:
        True if the segments properly cross
    """
    if p1 == p2 or p3 == p4:
        return False
    return bool(LineString([p1, p2]).crosses(LineString([p3, p4])))
