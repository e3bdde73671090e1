"""LWPOLYLINE / POLYLINE decoding with bulge arcs."""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .elements import ArcSegment, LineSegment, Point2D, Segment, TagRecord, angle_of
from .records import parse_float, parse_int

BULGE_EPSILON = 1e-12
MIN_CHORD = 1e-9
ELEVATION_EPSILON = 1e-9

# POLYLINE (70) flags
POLYLINE_CLOSED = 1
POLYLINE_3D = 8
POLYLINE_3D_MESH = 16
POLYLINE_MESH_CLOSED_N = 32
POLYLINE_POLYFACE = 64
# VERTEX (70) flags
VERTEX_POLYFACE_FACE = 128


def bulge_segment(a: Point2D, b: Point2D, bulge: float) -> Segment:
    """Line or arc between two polyline vertices.

    The bulge is tan(included angle / 4); a positive bulge turns
    counter-clockwise from ``a`` to ``b``.
    """
    if abs(bulge) <= BULGE_EPSILON:
        return LineSegment(start=a, end=b)

    chord = math.hypot(b[0] - a[0], b[1] - a[1])
    theta = 4.0 * math.atan(bulge)
    radius = chord * (1.0 + bulge * bulge) / (4.0 * abs(bulge))
    if not math.isfinite(radius) or radius <= MIN_CHORD:
        return LineSegment(start=a, end=b)

    mid = ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)
    ux = (b[0] - a[0]) / chord
    uy = (b[1] - a[1]) / chord
    nx, ny = -uy, ux
    # signed centre offset along the left normal; negative past a half circle
    sagitta = abs(bulge) * chord / 2.0
    offset = math.copysign(radius - sagitta, bulge)
    center = (mid[0] + offset * nx, mid[1] + offset * ny)
    return ArcSegment(
        center=center,
        radius=radius,
        start=a,
        end=b,
        start_angle_deg=angle_of(a, center),
        end_angle_deg=angle_of(b, center),
        sweep_deg=math.degrees(abs(theta)),
        clockwise=theta < 0,
    )


def vertices_to_segments(
    vertices: Sequence[Point2D], bulges: Sequence[float], closed: bool
) -> List[Segment]:
    """Convert consecutive vertex pairs (wrapping when closed) into segments."""
    segments: List[Segment] = []
    if len(vertices) < 2:
        return segments
    count = len(vertices) if closed else len(vertices) - 1
    for i in range(count):
        a = vertices[i]
        b = vertices[(i + 1) % len(vertices)]
        if math.hypot(b[0] - a[0], b[1] - a[1]) <= MIN_CHORD:
            continue
        bulge = bulges[i] if i < len(bulges) and math.isfinite(bulges[i]) else 0.0
        segments.append(bulge_segment(a, b, bulge))
    return segments


def parse_lwpolyline(records: Sequence[TagRecord]) -> List[Segment]:
    """Segments of an LWPOLYLINE; empty when fewer than two valid vertices."""
    xs: List[float] = []
    ys: List[float] = []
    bulges: List[float] = []
    closed = False
    for record in records:
        if record.code == 70:
            closed = bool(parse_int(record.value) & POLYLINE_CLOSED)
        elif record.code == 10:
            xs.append(parse_float(record.value))
            ys.append(float("nan"))
            bulges.append(0.0)
        elif record.code == 20 and xs:
            ys[-1] = parse_float(record.value)
        elif record.code == 42 and xs:
            bulges[-1] = parse_float(record.value)

    vertices: List[Point2D] = []
    kept_bulges: List[float] = []
    for x, y, bulge in zip(xs, ys, bulges):
        if math.isfinite(x) and math.isfinite(y):
            vertices.append((x, y))
            kept_bulges.append(bulge)
    if len(vertices) < 2:
        return []
    return vertices_to_segments(vertices, kept_bulges, closed)


@dataclass
class PolylineResult:
    """Outcome of decoding a legacy POLYLINE."""

    segments: List[Segment] = field(default_factory=list)
    rejected_3d: bool = False
    legacy_mesh_fallback: bool = False


def _split_vertices(records: Sequence[TagRecord]):
    header: Dict[int, str] = {}
    vertices: List[Dict[int, str]] = []
    current = None
    seen_vertex = False
    for record in records:
        if record.code == 0:
            marker = record.value.strip()
            if current is not None:
                vertices.append(current)
                current = None
            if marker == "VERTEX":
                seen_vertex = True
                current = {}
            elif marker == "SEQEND":
                break
            continue
        if not seen_vertex:
            header[record.code] = record.value.strip()
        elif current is not None:
            current[record.code] = record.value.strip()
    if current is not None:
        vertices.append(current)
    return header, vertices


def parse_polyline(records: Sequence[TagRecord]) -> PolylineResult:
    """Decode a heavy POLYLINE with its VERTEX records.

    3D polylines, meshes and vertices with a non-zero elevation are rejected.
    A polyface flagged entity with flat vertices is flattened through the
    legacy fallback; its closedness follows the presence of face records.
    """
    header, raw_vertices = _split_vertices(records)
    flags = parse_int(header.get(70), default=0)
    explicit_3d = bool(flags & (POLYLINE_3D | POLYLINE_3D_MESH | POLYLINE_MESH_CLOSED_N))
    polyface = bool(flags & POLYLINE_POLYFACE)

    points: List[Point2D] = []
    bulges: List[float] = []
    has_face_records = False
    has_elevation = False
    for vertex in raw_vertices:
        vertex_flags = parse_int(vertex.get(70), default=0)
        if vertex_flags & VERTEX_POLYFACE_FACE and any(code in vertex for code in (71, 72, 73, 74)):
            has_face_records = True
            continue
        x = parse_float(vertex.get(10))
        y = parse_float(vertex.get(20))
        z = parse_float(vertex.get(30), default=0.0)
        if not (math.isfinite(x) and math.isfinite(y)):
            continue
        if math.isfinite(z) and abs(z) > ELEVATION_EPSILON:
            has_elevation = True
        points.append((x, y))
        bulges.append(parse_float(vertex.get(42), default=0.0))

    if explicit_3d or has_elevation:
        return PolylineResult(rejected_3d=True)

    fallback = polyface
    closed = bool(flags & POLYLINE_CLOSED) or (fallback and has_face_records)
    return PolylineResult(
        segments=vertices_to_segments(points, bulges, closed) if len(points) >= 2 else [],
        legacy_mesh_fallback=fallback,
    )
