"""Contour graph for detecting closed ceiling boundaries.

Builds a graph from boundary segments where nodes are endpoints and edges
are segments, then walks each connected component into closed contours and
open chains. Uses an R-tree broad phase for the self-intersection check.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple

from rtree import index

from glc_core.dxf_reader.elements import Point2D, Segment
from .snapping import dedupe_segments, snap_endpoints
from .spatial_utils import boundary_points, distance, segments_cross, signed_area
from .types import Contour, OpenChain, Winding

logger = logging.getLogger(__name__)

DEFAULT_NODE_TOLERANCE = 0.5
DEFAULT_SNAP_TOLERANCE = 0.2
INTERSECTION_ARC_DIVISIONS = 16


@dataclass
class GraphNode:
    """A node in the contour graph representing a segment endpoint."""

    id: int = 0
    point: Point2D = (0.0, 0.0)
    edge_ids: List[int] = field(default_factory=list)

    @property
    def degree(self) -> int:
        return len(self.edge_ids)


@dataclass
class GraphEdge:
    """An edge in the contour graph representing one segment."""

    id: int = 0
    segment: Optional[Segment] = None
    start_node: int = 0
    end_node: int = 0

    def other_node(self, node_id: int) -> int:
        return self.end_node if self.start_node == node_id else self.start_node

    def oriented_from(self, node_id: int) -> Segment:
        """The segment as travelled when leaving ``node_id``."""
        if self.start_node == node_id:
            return self.segment
        return self.segment.reversed()


class ContourGraph:
    """Graph structure for segment connectivity and loop extraction."""

    def __init__(self, node_tolerance: float = DEFAULT_NODE_TOLERANCE):
        """Initialize the contour graph.

        Args:
            node_tolerance: Distance within which an endpoint joins an existing node
        """
        self.node_tolerance = node_tolerance
        self.nodes: List[GraphNode] = []
        self.edges: List[GraphEdge] = []

    def add_segment(self, segment: Segment) -> GraphEdge:
        """Add a segment as an edge between its endpoint nodes."""
        start = self._get_or_create_node(segment.start)
        end = self._get_or_create_node(segment.end)
        edge = GraphEdge(id=len(self.edges), segment=segment, start_node=start.id, end_node=end.id)
        self.edges.append(edge)
        start.edge_ids.append(edge.id)
        end.edge_ids.append(edge.id)
        return edge

    def add_segments(self, segments: Sequence[Segment]) -> None:
        for segment in segments:
            self.add_segment(segment)

    def _get_or_create_node(self, point: Point2D) -> GraphNode:
        existing = self.find_node_near(point)
        if existing is not None:
            return existing
        node = GraphNode(id=len(self.nodes), point=point)
        self.nodes.append(node)
        return node

    def find_node_near(self, point: Point2D) -> Optional[GraphNode]:
        """First node, in creation order, within tolerance of ``point``."""
        for node in self.nodes:
            if distance(node.point, point) <= self.node_tolerance:
                return node
        return None

    def components(self) -> List[List[int]]:
        """Connected components as ascending edge id lists, ordered by first edge."""
        seen: Set[int] = set()
        result: List[List[int]] = []
        for edge in self.edges:
            if edge.id in seen:
                continue
            seen.add(edge.id)
            queue = deque([edge.id])
            component: List[int] = []
            while queue:
                current = self.edges[queue.popleft()]
                component.append(current.id)
                for node_id in (current.start_node, current.end_node):
                    for neighbour in self.nodes[node_id].edge_ids:
                        if neighbour not in seen:
                            seen.add(neighbour)
                            queue.append(neighbour)
            result.append(sorted(component))
        return result

    def walk(self, seed_id: int, unused: Set[int]) -> Tuple[List[Segment], bool]:
        """Walk from the seed edge's start node through unused edges.

        At a junction the first unused edge in the node's adjacency order is
        taken. Consumed edges are removed from ``unused``.
        The walk only moves forward, so an open chain whose seed edge is
        reversed or lies mid-chain comes back as two pieces.

        Returns:
            The oriented segments and whether the walk returned to its start
        """
        seed = self.edges[seed_id]
        start_node = seed.start_node
        current_node = start_node
        current = seed
        chain: List[Segment] = []
        for _ in range(len(self.edges) + 5):
            if current.id not in unused:
                break
            unused.discard(current.id)
            chain.append(current.oriented_from(current_node))
            current_node = current.other_node(current_node)
            if current_node == start_node:
                return chain, True
            candidates = [eid for eid in self.nodes[current_node].edge_ids if eid in unused]
            if not candidates:
                break
            current = self.edges[candidates[0]]
        return chain, False

    def open_edge_ids(self) -> List[int]:
        """Edges touching a node whose degree is not two."""
        return [
            e.id
            for e in self.edges
            if self.nodes[e.start_node].degree != 2 or self.nodes[e.end_node].degree != 2
        ]

    def open_node_count(self) -> int:
        return sum(1 for node in self.nodes if node.degree != 2)


@dataclass
class ContourAssembly:
    """Result of contour assembly with its diagnostics."""

    contours: List[Contour] = field(default_factory=list)
    open_chains: List[OpenChain] = field(default_factory=list)
    open_edge_ids: List[int] = field(default_factory=list)
    node_count: int = 0
    edge_count: int = 0
    open_node_count: int = 0
    snapped_vertex_pairs: int = 0
    duplicate_segments: int = 0
    collapsed_segments: int = 0
    auto_closures: int = 0
    discarded_open_groups: int = 0
    intersections: int = 0
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "contour_count": len(self.contours),
            "open_chain_count": len(self.open_chains),
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "open_node_count": self.open_node_count,
            "open_edge_count": len(self.open_edge_ids),
            "snapped_vertex_pairs": self.snapped_vertex_pairs,
            "duplicate_segments": self.duplicate_segments,
            "collapsed_segments": self.collapsed_segments,
            "auto_closures": self.auto_closures,
            "discarded_open_groups": self.discarded_open_groups,
            "intersections": self.intersections,
        }


def make_contour(segments: List[Segment]) -> Contour:
    area = signed_area(boundary_points(segments))
    return Contour(
        segments=segments,
        perimeter=sum(s.length for s in segments),
        signed_area=area,
        winding=Winding.from_signed_area(area),
    )


def make_open_chain(segments: List[Segment]) -> OpenChain:
    return OpenChain(segments=segments, perimeter=sum(s.length for s in segments))


def count_intersections(contours: Sequence[Contour], tolerance: float) -> int:
    """Count crossing pairs among the sampled edges of all closed contours.

    Pairs sharing an endpoint within ``tolerance`` are excluded. The R-tree
    only prunes pairs whose bounding boxes are disjoint.
    """
    edges: List[Tuple[Point2D, Point2D]] = []
    for contour in contours:
        for segment in contour.segments:
            pts = segment.sample_points(INTERSECTION_ARC_DIVISIONS if segment.kind == "arc" else 1)
            edges.extend(zip(pts[:-1], pts[1:]))

    spatial_index = index.Index()
    boxes = []
    for i, (a, b) in enumerate(edges):
        box = (min(a[0], b[0]), min(a[1], b[1]), max(a[0], b[0]), max(a[1], b[1]))
        boxes.append(box)
        spatial_index.insert(i, box)

    hits = 0
    for i, (a1, a2) in enumerate(edges):
        for j in spatial_index.intersection(boxes[i]):
            if j <= i:
                continue
            b1, b2 = edges[j]
            if (
                distance(a1, b1) <= tolerance
                or distance(a1, b2) <= tolerance
                or distance(a2, b1) <= tolerance
                or distance(a2, b2) <= tolerance
            ):
                continue
            if segments_cross(a1, a2, b1, b2):
                hits += 1
    return hits


def build_contours(
    segments: Sequence[Segment],
    node_tolerance: float = DEFAULT_NODE_TOLERANCE,
    snap_tolerance: float = DEFAULT_SNAP_TOLERANCE,
) -> ContourAssembly:
    """Assemble closed contours from loose boundary segments.

    Args:
        segments: Normalized segments in millimetres
        node_tolerance: Endpoint distance for joining a graph node
        snap_tolerance: Endpoint distance for pre-snapping, not above node_tolerance

    Returns:
        ContourAssembly with contours, open chains and diagnostic counters
    """
    if snap_tolerance > node_tolerance:
        raise ValueError(
            f"snap tolerance {snap_tolerance} must not exceed node tolerance {node_tolerance}"
        )

    result = ContourAssembly()
    snapped = snap_endpoints(segments, snap_tolerance)
    result.snapped_vertex_pairs = snapped.snapped_vertex_pairs
    result.collapsed_segments = snapped.collapsed_segments
    unique, result.duplicate_segments = dedupe_segments(snapped.segments)

    graph = ContourGraph(node_tolerance)
    graph.add_segments(unique)
    result.node_count = len(graph.nodes)
    result.edge_count = len(graph.edges)
    result.open_node_count = graph.open_node_count()
    result.open_edge_ids = graph.open_edge_ids()

    unused = set(range(len(graph.edges)))
    for component in graph.components():
        found = 0
        for seed_id in component:
            if seed_id not in unused:
                continue
            chain, closed = graph.walk(seed_id, unused)
            if (
                not closed
                and len(chain) >= 2
                and distance(chain[-1].end, chain[0].start) <= node_tolerance
            ):
                chain[-1] = chain[-1].with_endpoints(chain[-1].start, chain[0].start)
                closed = True
                result.auto_closures += 1
            if closed and len(chain) > 1:
                result.contours.append(make_contour(chain))
                found += 1
            else:
                result.open_chains.append(make_open_chain(chain))
        if found == 0:
            result.discarded_open_groups += 1

    result.intersections = count_intersections(result.contours, node_tolerance)
    if result.intersections > 0:
        result.warnings.append(f"Detected {result.intersections} potential edge intersections.")
    if result.open_chains or result.open_edge_ids:
        result.warnings.append("Open contours detected.")

    logger.info(
        f"Assembled {len(result.contours)} closed contours and {len(result.open_chains)} open "
        f"chains from {len(graph.edges)} edges ({result.auto_closures} auto-closed)"
    )
    return result
