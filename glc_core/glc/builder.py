"""GLC room-file emitter.

Each closed contour becomes one ROOMBEGIN ... ROOMEND block. Geometry is
mirrored in Y about the contour's bounding box because the target tool's
display axis points down.
"""

import logging
import math
import uuid
from typing import Callable, List, Optional, Sequence, Tuple

from glc_core.contours.spatial_utils import boundary_area, bounds
from glc_core.contours.types import Contour
from glc_core.dxf_reader.elements import ArcSegment, LineSegment, Point2D, Segment, angle_of
from .formatting import DEFAULT_DIGITS, format_number

logger = logging.getLogger(__name__)

LINE_BREAK = "\r\n"
AREA_ARC_DIVISIONS = 24
GVALS_DIGITS = 6
WALL_WIDTH = 100

UidFactory = Callable[[], str]


def new_uid() -> str:
    return str(uuid.uuid4()).upper()


def endpoint_bounds(segments: Sequence[Segment]) -> Tuple[float, float, float, float]:
    """(min_x, min_y, max_x, max_y) over segment endpoints."""
    return bounds([p for s in segments for p in (s.start, s.end)])


def mirror_segments(segments: Sequence[Segment]) -> List[Segment]:
    """Mirror Y about the bounding box; arcs reverse their turning direction."""
    _, min_y, _, max_y = endpoint_bounds(segments)

    def flip(p: Point2D) -> Point2D:
        return (p[0], min_y + max_y - p[1])

    mirrored: List[Segment] = []
    for seg in segments:
        if isinstance(seg, LineSegment):
            mirrored.append(LineSegment(start=flip(seg.start), end=flip(seg.end)))
            continue
        center = flip(seg.center)
        start = flip(seg.start)
        end = flip(seg.end)
        mirrored.append(
            ArcSegment(
                center=center,
                radius=seg.radius,
                start=start,
                end=end,
                start_angle_deg=angle_of(start, center),
                end_angle_deg=angle_of(end, center),
                sweep_deg=seg.sweep_deg,
                clockwise=not seg.clockwise,
            )
        )
    return mirrored


def chord_length(seg: Segment) -> float:
    return math.hypot(seg.end[0] - seg.start[0], seg.end[1] - seg.start[1])


def arc_point_and_sagitta(seg: ArcSegment) -> Tuple[Point2D, float]:
    """Arc midpoint and its signed offset from the chord midpoint.

    The offset is measured along the chord's left normal.
    """
    arc_point = seg.midpoint
    mid_x = (seg.start[0] + seg.end[0]) / 2.0
    mid_y = (seg.start[1] + seg.end[1]) / 2.0
    vx = seg.end[0] - seg.start[0]
    vy = seg.end[1] - seg.start[1]
    length = math.hypot(vx, vy) or 1.0
    nx, ny = -vy / length, vx / length
    sagitta = (arc_point[0] - mid_x) * nx + (arc_point[1] - mid_y) * ny
    return arc_point, sagitta


def _pair(p: Point2D, digits: int) -> str:
    return f"{format_number(p[0], digits)}, {format_number(p[1], digits)}"


def build_room(
    contour: Contour,
    room_index: int,
    uid_factory: Optional[UidFactory] = None,
    digits: int = DEFAULT_DIGITS,
) -> List[str]:
    """Lines of one ROOM block; ``room_index`` is zero-based."""
    make_uid = uid_factory or new_uid
    segments = mirror_segments(contour.segments)
    number = room_index + 1
    room_uid = make_uid()
    zone_uid = make_uid()

    perimeter = sum(s.length for s in segments)
    arcs = [s for s in segments if s.kind == "arc"]
    curved_length = sum(s.length for s in arcs)
    area = boundary_area(segments, AREA_ARC_DIVISIONS)
    min_x, min_y, max_x, max_y = endpoint_bounds(segments)
    width = format_number(abs(max_x - min_x), digits)
    height = format_number(abs(max_y - min_y), digits)

    lines = [
        "ROOMBEGIN",
        f"RoomName Ceiling_{number}",
        f"UID1 {room_uid}",
        f"Doc1CID {number}",
        "WITHOUT_POLOTNO False",
        "WITHOUT_HARPOON False",
        "POINTS",
    ]
    lines.extend(f"AnglePoint {_pair(s.start, digits)}" for s in segments)
    lines.append("POINTSEND")

    lines.append("OTRARCS")
    for idx, seg in enumerate(segments):
        lines.append(f"WallWid3 {idx}, 0")
        if seg.kind == "arc":
            lines.append(f"OtrArcHei {idx}, {format_number(arc_point_and_sagitta(seg)[1], digits)}")
    lines.append("OTRARCSEND")
    lines.extend(["BLUEPOINTS", "BLUEPOINTSEND"])

    lines.append("otrlist_")
    for idx, seg in enumerate(segments):
        po1 = idx + 1
        po2 = 1 if idx == len(segments) - 1 else idx + 2
        lines.append("NPLine")
        lines.append(f"PoBeg {_pair(seg.start, digits)}")
        lines.append(f"PoEnd {_pair(seg.end, digits)}")
        if seg.kind == "arc":
            arc_point, sagitta = arc_point_and_sagitta(seg)
            lines.append(f"ArcPoint {_pair(arc_point, digits)}")
            lines.append(f"ArcHei {format_number(sagitta, digits)}")
        lines.extend(
            [
                f"Wid1 {WALL_WIDTH}",
                f"PoNumber1 {po1}",
                f"PoNumber2 {po2}",
                f"JValue {format_number(chord_length(seg), digits)}",
                f"IdntBeg P{po1}",
                f"IdntEnd P{po2}",
                "IdntBeg2 ",
                "IdntEnd2 ",
                "FixedBeg False",
                "END",
            ]
        )
    lines.append("otrlist_end")

    lines.extend(
        [
            "dim_lines_",
            "dim_lines_end",
            "StartPointA -1",
            "VIREZS",
            "VIREZSEND",
            "GlobPlanX 0",
            "GlobPlanY 0",
            "ZONESLIST",
            "OneZone",
            f"ZoneGUI1 {zone_uid}",
        ]
    )
    for seg in segments:
        lines.extend(
            [
                "ZoneLine",
                f"PoBeg {_pair(seg.start, digits)}",
                f"PoEnd {_pair(seg.end, digits)}",
                f"Wid1 {WALL_WIDTH}",
                "TipeOtr 1",
                "END",
            ]
        )
    lines.extend(
        [
            "ZoneDepth 0",
            "ZoneDepth2 0",
            "Dep_X1 -1",
            "Dep_Y1 -1",
            "Dep_Alp 0",
            "PPGrpID 0",
            "PPLevlNum 0",
            "HandMade False",
            "OneZoneEND",
            "ZONESLISTEND",
            "ALLDIMLINES",
            "ALLDIMLINESEND",
            "ESTIME_BEGIN",
            "ESTIME_END",
        ]
    )

    area_m2 = format_number(area / 1_000_000, GVALS_DIGITS)
    perimeter_m = format_number(perimeter / 1000, GVALS_DIGITS)
    lines.extend(
        [
            "GValsBegin",
            f"A {area_m2}",
            f"B {area_m2}",
            f"C {area_m2}",
            f"D {perimeter_m}",
            "E 0",
            "F 0",
            f"G {perimeter_m}",
            f"I {len(arcs)}",
            f"J {format_number(curved_length / 1000, GVALS_DIGITS)}",
            "L 0",
            "M 0",
            "O 0",
            "P 0",
            "Q 0",
            "R 0",
            f"CWid1 {width}",
            f"CHei1 {height}",
            f"CWid2 {width}",
            f"CHei2 {height}",
            "GValsEnd",
            "UseEstim True",
            "UseSclad False",
            "PARAMS2_BEGIN",
            "FirstLineWidth 0",
            "FullLineWidth 0",
            "StretchParamPer 0",
            "StretchParamPer_2 0",
            "ColorLineName ",
            "LineLineName ",
            "ArtNoName 0",
            "PARAMS2_END",
            "ROOMEND",
        ]
    )
    return lines


def build_glc(
    contours: Sequence[Contour],
    uid_factory: Optional[UidFactory] = None,
    digits: int = DEFAULT_DIGITS,
) -> str:
    """Render all contours as GLC text, CRLF separated with a trailing CRLF.

    Args:
        contours: Closed contours in millimetres, emitted in order
        uid_factory: Source of room and zone identifiers, uuid4 by default
        digits: Decimal places of coordinate fields

    Returns:
        The complete GLC document
    """
    lines: List[str] = []
    for idx, contour in enumerate(contours):
        lines.extend(build_room(contour, idx, uid_factory, digits))
    logger.info(f"Emitted {len(contours)} GLC rooms")
    return LINE_BREAK.join(lines) + LINE_BREAK
