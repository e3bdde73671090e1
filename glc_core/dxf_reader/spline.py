"""SPLINE flattening and arc/line decomposition.

A spline is first turned into a dense point sequence (fit points, or the
B-spline evaluated with adaptive midpoint subdivision). The sequence is then
split greedily into runs that are each replaced by a least-squares arc or a
straight line, so the output only contains primitives the ceiling tool can
author.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .elements import ArcSegment, LineSegment, Point2D, Segment, TagRecord, angle_of
from .records import parse_float, parse_int

MAX_FLATTEN_DEPTH = 22
MIN_FLATTEN_ERROR_MM = 0.5
PIVOT_EPSILON = 1e-12
MIN_ARC_SWEEP_DEG = 2.0
MAX_ARC_SWEEP_DEG = 359.9
DUPLICATE_POINT_EPSILON = 1e-9
CLOSURE_EPSILON = 1e-6


@dataclass(frozen=True)
class DecompositionOptions:
    """Thresholds for flattening and decomposition, in drawing units."""

    flatten_error: float = 3.0
    max_deviation: float = 5.0
    target_length: float = 400.0
    min_length: float = 350.0
    max_length: float = 450.0
    max_arc_radius: float = 30000.0

    def scaled(self, factor: float) -> "DecompositionOptions":
        """Options with every length multiplied by ``factor``."""
        return DecompositionOptions(
            flatten_error=self.flatten_error * factor,
            max_deviation=self.max_deviation * factor,
            target_length=self.target_length * factor,
            min_length=self.min_length * factor,
            max_length=self.max_length * factor,
            max_arc_radius=self.max_arc_radius * factor,
        )


@dataclass
class SplineData:
    degree: int = 3
    flags: int = 0
    knots: List[float] = field(default_factory=list)
    control_points: List[Point2D] = field(default_factory=list)
    fit_points: List[Point2D] = field(default_factory=list)

    @property
    def closed(self) -> bool:
        return bool(self.flags & 1)


@dataclass
class DecompositionStats:
    """Per-spline decomposition statistics, in drawing units."""

    source_point_count: int = 0
    arc_count: int = 0
    line_count: int = 0
    max_arc_residual: float = 0.0
    max_line_deviation: float = 0.0
    min_segment_length: float = 0.0
    max_segment_length: float = 0.0
    avg_segment_length: float = 0.0


@dataclass
class SplineFit:
    segments: List[Segment] = field(default_factory=list)
    stats: DecompositionStats = field(default_factory=DecompositionStats)


def parse_spline_data(records: Sequence[TagRecord]) -> SplineData:
    data = SplineData()
    controls: List[List[float]] = []
    fits: List[List[float]] = []
    for record in records:
        code = record.code
        if code == 70:
            data.flags = parse_int(record.value)
        elif code == 71:
            degree = parse_int(record.value, default=0)
            if degree >= 1:
                data.degree = degree
        elif code == 40:
            knot = parse_float(record.value)
            if math.isfinite(knot):
                data.knots.append(knot)
        elif code == 10:
            controls.append([parse_float(record.value), float("nan")])
        elif code == 20 and controls:
            controls[-1][1] = parse_float(record.value)
        elif code == 11:
            fits.append([parse_float(record.value), float("nan")])
        elif code == 21 and fits:
            fits[-1][1] = parse_float(record.value)

    data.control_points = [(x, y) for x, y in controls if math.isfinite(x) and math.isfinite(y)]
    data.fit_points = [(x, y) for x, y in fits if math.isfinite(x) and math.isfinite(y)]
    return data


def basis_functions(knots: Sequence[float], degree: int, count: int, t: float) -> np.ndarray:
    """Cox-de Boor basis values N_{i,degree}(t) for i in range(count).

    At the upper end of the parameter range the last non-empty span is
    treated as closed so the curve reaches its final control point.
    """
    knots_arr = np.asarray(knots, dtype=float)
    spans = len(knots_arr) - 1
    n = np.zeros(spans)
    for i in range(spans):
        if knots_arr[i] <= t < knots_arr[i + 1]:
            n[i] = 1.0
    if not n.any() and t >= knots_arr[count]:
        for i in range(min(count, spans) - 1, -1, -1):
            if knots_arr[i] < knots_arr[i + 1]:
                n[i] = 1.0
                break

    for k in range(1, degree + 1):
        nxt = np.zeros(spans - k)
        for i in range(spans - k):
            left = knots_arr[i + k] - knots_arr[i]
            right = knots_arr[i + k + 1] - knots_arr[i + 1]
            value = 0.0
            if left != 0.0:
                value += (t - knots_arr[i]) / left * n[i]
            if right != 0.0:
                value += (knots_arr[i + k + 1] - t) / right * n[i + 1]
            nxt[i] = value
        n = nxt
    return n[:count]


def evaluate_bspline(
    control_points: Sequence[Point2D], knots: Sequence[float], degree: int, t: float
) -> Point2D:
    weights = basis_functions(knots, degree, len(control_points), t)
    pts = np.asarray(control_points, dtype=float)
    x, y = weights @ pts
    return (float(x), float(y))


def distance(a: Point2D, b: Point2D) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def distance_to_line(point: Point2D, a: Point2D, b: Point2D) -> float:
    """Perpendicular distance from ``point`` to the infinite line through a, b."""
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    len2 = dx * dx + dy * dy
    if len2 <= 1e-12:
        return distance(point, a)
    t = ((point[0] - a[0]) * dx + (point[1] - a[1]) * dy) / len2
    return math.hypot(point[0] - (a[0] + t * dx), point[1] - (a[1] + t * dy))


def flatten_bspline(
    control_points: Sequence[Point2D],
    knots: Sequence[float],
    degree: int,
    start_t: float,
    end_t: float,
    max_error: float,
    max_depth: int = MAX_FLATTEN_DEPTH,
) -> List[Point2D]:
    """Adaptive midpoint subdivision until the chordal deviation is small."""

    def evaluate(t: float) -> Point2D:
        return evaluate_bspline(control_points, knots, degree, t)

    points: List[Point2D] = []

    def subdivide(t0: float, p0: Point2D, t1: float, p1: Point2D, depth: int) -> None:
        tm = (t0 + t1) / 2.0
        pm = evaluate(tm)
        if distance_to_line(pm, p0, p1) <= max_error or depth >= max_depth:
            points.append(p1)
            return
        subdivide(t0, p0, tm, pm, depth + 1)
        subdivide(tm, pm, t1, p1, depth + 1)

    p_start = evaluate(start_t)
    p_end = evaluate(end_t)
    points.append(p_start)
    subdivide(start_t, p_start, end_t, p_end, 0)
    return points


def dedupe_consecutive(points: Sequence[Point2D]) -> List[Point2D]:
    out: List[Point2D] = []
    for p in points:
        if not (math.isfinite(p[0]) and math.isfinite(p[1])):
            continue
        if not out or distance(out[-1], p) > DUPLICATE_POINT_EPSILON:
            out.append((p[0], p[1]))
    return out


def solve_3x3(matrix, rhs) -> Optional[np.ndarray]:
    """Gaussian elimination with partial pivoting; None for a singular system."""
    a = np.hstack([np.asarray(matrix, dtype=float), np.asarray(rhs, dtype=float).reshape(3, 1)])
    for i in range(3):
        pivot_row = i + int(np.argmax(np.abs(a[i:, i])))
        if abs(a[pivot_row, i]) < PIVOT_EPSILON:
            return None
        if pivot_row != i:
            a[[i, pivot_row]] = a[[pivot_row, i]]
        a[i] = a[i] / a[i, i]
        for r in range(3):
            if r != i:
                a[r] = a[r] - a[r, i] * a[i]
    return a[:, 3].copy()


def fit_circle(points: Sequence[Point2D]) -> Optional[Tuple[Point2D, float]]:
    """Algebraic least-squares circle through ``points``.

    Solves x² + y² + a·x + b·y + c = 0 in the least-squares sense.
    """
    if len(points) < 3:
        return None
    pts = np.asarray(points, dtype=float)
    x = pts[:, 0]
    y = pts[:, 1]
    z = x * x + y * y
    lhs = [
        [np.sum(x * x), np.sum(x * y), np.sum(x)],
        [np.sum(x * y), np.sum(y * y), np.sum(y)],
        [np.sum(x), np.sum(y), float(len(pts))],
    ]
    rhs = [-np.sum(x * z), -np.sum(y * z), -np.sum(z)]
    solution = solve_3x3(lhs, rhs)
    if solution is None:
        return None
    a, b, c = solution
    cx = -a / 2.0
    cy = -b / 2.0
    r2 = cx * cx + cy * cy - c
    if not math.isfinite(r2) or r2 <= 1e-12:
        return None
    return (float(cx), float(cy)), math.sqrt(r2)


def max_line_deviation(points: Sequence[Point2D], start: int, end: int) -> float:
    a, b = points[start], points[end]
    deviation = 0.0
    for i in range(start + 1, end):
        deviation = max(deviation, distance_to_line(points[i], a, b))
    return deviation


def arc_from_range(
    points: Sequence[Point2D], start: int, end: int, max_deviation: float, max_radius: float
) -> Optional[Tuple[ArcSegment, float]]:
    """Fitted arc over points[start:end+1] with its worst radial residual."""
    window = points[start:end + 1]
    fit = fit_circle(window)
    if fit is None:
        return None
    center, radius = fit
    if not math.isfinite(radius) or radius >= max_radius:
        return None
    pts = np.asarray(window, dtype=float)
    radial = np.hypot(pts[:, 0] - center[0], pts[:, 1] - center[1])
    residual = float(np.max(np.abs(radial - radius)))
    if residual > max_deviation:
        return None

    angles = np.unwrap(np.arctan2(pts[:, 1] - center[1], pts[:, 0] - center[0]))
    sweep_rad = float(angles[-1] - angles[0])
    sweep_deg = math.degrees(abs(sweep_rad))
    if not math.isfinite(sweep_deg) or sweep_deg < MIN_ARC_SWEEP_DEG or sweep_deg > MAX_ARC_SWEEP_DEG:
        return None
    a, b = points[start], points[end]
    arc = ArcSegment(
        center=center,
        radius=radius,
        start=a,
        end=b,
        start_angle_deg=angle_of(a, center),
        end_angle_deg=angle_of(b, center),
        sweep_deg=sweep_deg,
        clockwise=sweep_rad < 0,
    )
    return arc, residual


@dataclass
class _Candidate:
    segment: Segment
    end_index: int
    length: float
    is_arc: bool
    metric: float


def decompose_points(points: Sequence[Point2D], options: DecompositionOptions) -> SplineFit:
    """Split a point sequence into arc and line runs.

    From each start index, run ends are tried within a window bounded by the
    minimum and maximum run length (the last point is exempt from the
    minimum, a single step from the maximum). Arcs beat lines, then the run closest
    to the target length wins, then the longer run. When nothing qualifies a
    single line to the next point keeps the scan moving.
    """
    result = SplineFit()
    result.stats.source_point_count = len(points)
    if len(points) < 2:
        return result

    last = len(points) - 1
    steps = [distance(points[i], points[i + 1]) for i in range(last)]
    idx = 0
    while idx < last:
        j = idx + 1
        length = 0.0
        while j < last and length < options.min_length:
            length += steps[j - 1]
            j += 1
        j_max = j
        stretch = length
        while j_max < last:
            next_len = stretch + steps[j_max - 1]
            if next_len > options.max_length:
                break
            stretch = next_len
            j_max += 1

        candidates: List[_Candidate] = []
        run_length = 0.0
        for end in range(idx + 1, j_max + 1):
            run_length += steps[end - 1]
            if end < last and run_length < options.min_length:
                continue
            if end > idx + 1 and run_length > options.max_length:
                break
            arc = arc_from_range(points, idx, end, options.max_deviation, options.max_arc_radius)
            if arc is not None:
                candidates.append(_Candidate(arc[0], end, run_length, True, arc[1]))
            deviation = max_line_deviation(points, idx, end)
            if deviation <= options.max_deviation:
                line = LineSegment(start=points[idx], end=points[end])
                candidates.append(_Candidate(line, end, run_length, False, deviation))

        if not candidates:
            result.segments.append(LineSegment(start=points[idx], end=points[idx + 1]))
            result.stats.line_count += 1
            idx += 1
            continue

        best = min(
            candidates,
            key=lambda c: (not c.is_arc, abs(c.length - options.target_length), -c.length),
        )
        result.segments.append(best.segment)
        if best.is_arc:
            result.stats.arc_count += 1
            result.stats.max_arc_residual = max(result.stats.max_arc_residual, best.metric)
        else:
            result.stats.line_count += 1
            result.stats.max_line_deviation = max(result.stats.max_line_deviation, best.metric)
        idx = best.end_index

    lengths = [seg.length for seg in result.segments]
    result.stats.min_segment_length = min(lengths)
    result.stats.max_segment_length = max(lengths)
    result.stats.avg_segment_length = sum(lengths) / len(lengths)
    return result


def spline_points(data: SplineData, flatten_error: float) -> List[Point2D]:
    """Dense point sequence for a spline, before decomposition."""
    if len(data.fit_points) >= 2:
        return dedupe_consecutive(data.fit_points)
    if len(data.control_points) < 2:
        return []

    needed_knots = len(data.control_points) + data.degree + 1
    if len(data.knots) < needed_knots:
        return dedupe_consecutive(data.control_points)
    start_t = data.knots[data.degree]
    end_t = data.knots[len(data.control_points)]
    if not (math.isfinite(start_t) and math.isfinite(end_t)) or end_t <= start_t:
        return dedupe_consecutive(data.control_points)
    return dedupe_consecutive(
        flatten_bspline(
            data.control_points, data.knots, data.degree, start_t, end_t, flatten_error
        )
    )


def spline_to_segments(
    records: Sequence[TagRecord], options: DecompositionOptions, min_flatten_error: float = MIN_FLATTEN_ERROR_MM
) -> SplineFit:
    """Decompose a SPLINE entity into arcs and lines in drawing units."""
    data = parse_spline_data(records)
    points = spline_points(data, max(min_flatten_error, options.flatten_error))
    if len(points) < 2:
        return SplineFit(stats=DecompositionStats(source_point_count=len(points)))
    if data.closed and distance(points[0], points[-1]) > CLOSURE_EPSILON:
        points.append(points[0])
    return decompose_points(points, options)
