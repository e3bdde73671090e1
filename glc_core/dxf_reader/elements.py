"""Drawing data classes produced by the DXF reader and geometry normalizer."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

import numpy as np


Point2D = Tuple[float, float]


def normalize_angle_deg(angle: float) -> float:
    """Map an angle in degrees into [0, 360)."""
    a = angle % 360.0
    if a < 0:
        a += 360.0
    return a


def angle_of(point: Point2D, center: Point2D) -> float:
    """Polar angle of ``point`` around ``center`` in degrees, in [0, 360)."""
    return normalize_angle_deg(
        math.degrees(math.atan2(point[1] - center[1], point[0] - center[0]))
    )


@dataclass(frozen=True)
class TagRecord:
    """A single (group code, value) pair of a DXF tag stream."""

    code: int
    value: str


@dataclass(frozen=True)
class Entity:
    """A DXF entity with its raw records.

    Composite entities (POLYLINE, INSERT with attributes) keep their nested
    VERTEX/ATTRIB/SEQEND markers as code-0 records inside ``records``.
    """

    kind: str
    records: Tuple[TagRecord, ...] = ()

    def header_records(self) -> Tuple[TagRecord, ...]:
        """Records before the first nested code-0 marker."""
        for i, record in enumerate(self.records):
            if record.code == 0:
                return self.records[:i]
        return self.records

    def field_map(self) -> Dict[int, str]:
        """Map group code to stripped value over the header records."""
        return {r.code: r.value.strip() for r in self.header_records()}


@dataclass(frozen=True)
class Block:
    """A named block definition from the BLOCKS section."""

    name: str
    base_point: Point2D = (0.0, 0.0)
    entities: Tuple[Entity, ...] = ()


class EntityKind(Enum):
    """Entity kinds the normalizer knows how to handle."""

    LINE = "LINE"
    ARC = "ARC"
    LWPOLYLINE = "LWPOLYLINE"
    POLYLINE = "POLYLINE"
    SPLINE = "SPLINE"
    TEXT = "TEXT"
    MTEXT = "MTEXT"
    INSERT = "INSERT"
    IGNORED = "IGNORED"
    UNSUPPORTED = "UNSUPPORTED"

    @classmethod
    def classify(cls, name: str) -> "EntityKind":
        if name in IGNORED_ENTITY_NAMES:
            return cls.IGNORED
        try:
            kind = cls(name)
        except ValueError:
            return cls.UNSUPPORTED
        if kind in (cls.IGNORED, cls.UNSUPPORTED):
            return cls.UNSUPPORTED
        return kind


# Renderable annotation entities that never carry room geometry
IGNORED_ENTITY_NAMES = frozenset({"DIMENSION", "HATCH"})


@dataclass(frozen=True)
class LineSegment:
    """Straight boundary segment."""

    start: Point2D
    end: Point2D

    @property
    def kind(self) -> str:
        return "line"

    @property
    def length(self) -> float:
        return math.hypot(self.end[0] - self.start[0], self.end[1] - self.start[1])

    def reversed(self) -> "LineSegment":
        return LineSegment(start=self.end, end=self.start)

    def with_endpoints(self, start: Point2D, end: Point2D) -> "LineSegment":
        return LineSegment(start=start, end=end)

    def sample_points(self, divisions: int = 1) -> List[Point2D]:
        return [self.start, self.end]

    def to_dict(self) -> dict:
        return {"type": self.kind, "start": self.start, "end": self.end}


@dataclass(frozen=True)
class ArcSegment:
    """Circular arc boundary segment.

    ``sweep_deg`` is in (0, 360] and is travelled from ``start`` to ``end``
    counter-clockwise unless ``clockwise`` is set.
    """

    center: Point2D
    radius: float
    start: Point2D
    end: Point2D
    start_angle_deg: float
    end_angle_deg: float
    sweep_deg: float
    clockwise: bool = False

    @property
    def kind(self) -> str:
        return "arc"

    @property
    def length(self) -> float:
        return math.pi * self.radius * abs(self.sweep_deg) / 180.0

    @property
    def midpoint(self) -> Point2D:
        """Point on the arc halfway along its sweep."""
        start_angle = math.atan2(self.start[1] - self.center[1], self.start[0] - self.center[0])
        direction = -1.0 if self.clockwise else 1.0
        mid_angle = start_angle + direction * math.radians(abs(self.sweep_deg)) / 2.0
        return (
            self.center[0] + self.radius * math.cos(mid_angle),
            self.center[1] + self.radius * math.sin(mid_angle),
        )

    def reversed(self) -> "ArcSegment":
        return ArcSegment(
            center=self.center,
            radius=self.radius,
            start=self.end,
            end=self.start,
            start_angle_deg=self.end_angle_deg,
            end_angle_deg=self.start_angle_deg,
            sweep_deg=self.sweep_deg,
            clockwise=not self.clockwise,
        )

    def with_endpoints(self, start: Point2D, end: Point2D) -> "ArcSegment":
        return ArcSegment(
            center=self.center,
            radius=self.radius,
            start=start,
            end=end,
            start_angle_deg=angle_of(start, self.center),
            end_angle_deg=angle_of(end, self.center),
            sweep_deg=self.sweep_deg,
            clockwise=self.clockwise,
        )

    def sample_points(self, divisions: int = 12) -> List[Point2D]:
        """Points along the arc, both ends included, in travel direction."""
        start_angle = math.atan2(self.start[1] - self.center[1], self.start[0] - self.center[0])
        direction = -1.0 if self.clockwise else 1.0
        delta = direction * math.radians(abs(self.sweep_deg))
        angles = start_angle + np.linspace(0.0, delta, divisions + 1)
        xs = self.center[0] + self.radius * np.cos(angles)
        ys = self.center[1] + self.radius * np.sin(angles)
        return list(zip(xs.tolist(), ys.tolist()))

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "center": self.center,
            "radius": self.radius,
            "start": self.start,
            "end": self.end,
            "start_angle_deg": self.start_angle_deg,
            "end_angle_deg": self.end_angle_deg,
            "sweep_deg": self.sweep_deg,
            "clockwise": self.clockwise,
        }


Segment = Union[LineSegment, ArcSegment]


def arc_from_angles(
    center: Point2D, radius: float, start_deg: float, end_deg: float
) -> ArcSegment:
    """Counter-clockwise arc from DXF start/end angles."""
    start_deg = normalize_angle_deg(start_deg)
    end_deg = normalize_angle_deg(end_deg)
    sweep = end_deg - start_deg
    if sweep <= 0:
        sweep += 360.0
    start_rad = math.radians(start_deg)
    end_rad = math.radians(end_deg)
    return ArcSegment(
        center=center,
        radius=radius,
        start=(center[0] + radius * math.cos(start_rad), center[1] + radius * math.sin(start_rad)),
        end=(center[0] + radius * math.cos(end_rad), center[1] + radius * math.sin(end_rad)),
        start_angle_deg=start_deg,
        end_angle_deg=end_deg,
        sweep_deg=sweep,
        clockwise=False,
    )


@dataclass(frozen=True)
class TextLabel:
    """Text annotation carried for preview only."""

    position: Point2D = (0.0, 0.0)
    text: str = ""
    height_mm: float = 2.5
    rotation_deg: float = 0.0

    @property
    def kind(self) -> str:
        return "text"

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "position": self.position,
            "text": self.text,
            "height_mm": self.height_mm,
            "rotation_deg": self.rotation_deg,
        }


RawEntity = Union[LineSegment, ArcSegment, TextLabel]


@dataclass
class DxfDocument:
    """Sections of a DXF file relevant to the conversion."""

    insunits: int = 0
    entities: List[Entity] = field(default_factory=list)
    blocks: Dict[str, Block] = field(default_factory=dict)
    record_count: int = 0

    def block(self, name: str) -> Optional[Block]:
        return self.blocks.get(name)
