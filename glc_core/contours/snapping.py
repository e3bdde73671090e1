"""Endpoint snapping and duplicate removal ahead of graph construction."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from glc_core.dxf_reader.elements import Point2D, Segment
from .spatial_utils import distance

logger = logging.getLogger(__name__)

COLLAPSED_LENGTH = 1e-9
KEY_DIGITS = 6


class UnionFind:
    """Disjoint sets over 0..n-1 with path compression and union by size."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.size = [1] * size

    def find(self, item: int) -> int:
        root = item
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[item] != root:
            self.parent[item], item = root, self.parent[item]
        return root

    def union(self, a: int, b: int) -> bool:
        """Merge the sets of ``a`` and ``b``; False when already joined."""
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return False
        if self.size[ra] < self.size[rb]:
            ra, rb = rb, ra
        self.parent[rb] = ra
        self.size[ra] += self.size[rb]
        return True


@dataclass
class SnapResult:
    segments: List[Segment] = field(default_factory=list)
    snapped_vertex_pairs: int = 0
    collapsed_segments: int = 0


def snap_endpoints(segments: Sequence[Segment], tolerance: float) -> SnapResult:
    """Replace every endpoint by the centroid of its tolerance cluster.

    Endpoints are sorted by x so each one is only compared with neighbours
    whose x lies within ``tolerance``. Clusters are transitive. Lines whose
    ends land on the same point are dropped.
    """
    result = SnapResult()
    points: List[Point2D] = []
    for segment in segments:
        points.append(segment.start)
        points.append(segment.end)

    clusters = UnionFind(len(points))
    order = sorted(range(len(points)), key=lambda i: points[i][0])
    for pos, i in enumerate(order):
        for j in order[pos + 1:]:
            if points[j][0] - points[i][0] > tolerance:
                break
            d = distance(points[i], points[j])
            if d <= tolerance:
                clusters.union(i, j)
                if d > 0:
                    result.snapped_vertex_pairs += 1

    sums: Dict[int, List[float]] = {}
    for i, p in enumerate(points):
        acc = sums.setdefault(clusters.find(i), [0.0, 0.0, 0.0])
        acc[0] += p[0]
        acc[1] += p[1]
        acc[2] += 1
    centroids = {root: (acc[0] / acc[2], acc[1] / acc[2]) for root, acc in sums.items()}

    for k, segment in enumerate(segments):
        start = centroids[clusters.find(2 * k)]
        end = centroids[clusters.find(2 * k + 1)]
        if start != segment.start or end != segment.end:
            segment = segment.with_endpoints(start, end)
        if segment.kind == "line" and segment.length <= COLLAPSED_LENGTH:
            result.collapsed_segments += 1
            continue
        result.segments.append(segment)

    if result.snapped_vertex_pairs:
        logger.debug(f"Snapped {result.snapped_vertex_pairs} endpoint pairs within {tolerance}")
    return result


def _point_key(p: Point2D) -> Tuple[float, float]:
    return (round(p[0], KEY_DIGITS), round(p[1], KEY_DIGITS))


def segment_key(segment: Segment) -> tuple:
    """Orientation-independent identity of a segment."""
    ends = tuple(sorted((_point_key(segment.start), _point_key(segment.end))))
    if segment.kind == "arc":
        return (
            "arc",
            ends,
            _point_key(segment.center),
            round(segment.radius, KEY_DIGITS),
            round(segment.sweep_deg, KEY_DIGITS),
            _point_key(segment.midpoint),
        )
    return ("line", ends)


def dedupe_segments(segments: Sequence[Segment]) -> Tuple[List[Segment], int]:
    """Drop exact duplicates, keeping first occurrences in order."""
    seen = set()
    kept: List[Segment] = []
    for segment in segments:
        key = segment_key(segment)
        if key in seen:
            continue
        seen.add(key)
        kept.append(segment)
    return kept, len(segments) - len(kept)
