"""Contour data types."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence

from glc_core.dxf_reader.elements import Segment


class Winding(str, Enum):
    """Orientation of a closed loop."""

    CW = "CW"
    CCW = "CCW"

    @classmethod
    def from_signed_area(cls, area: float) -> "Winding":
        return cls.CCW if area >= 0 else cls.CW


@dataclass
class Contour:
    """A closed boundary loop."""

    segments: List[Segment] = field(default_factory=list)
    perimeter: float = 0.0
    signed_area: float = 0.0
    winding: Winding = Winding.CCW

    @property
    def closed(self) -> bool:
        return True

    @property
    def area(self) -> float:
        return abs(self.signed_area)

    def to_dict(self) -> dict:
        return {
            "closed": True,
            "segment_count": len(self.segments),
            "perimeter": self.perimeter,
            "signed_area": self.signed_area,
            "winding": self.winding.value,
            "segments": [s.to_dict() for s in self.segments],
        }


@dataclass
class OpenChain:
    """A walked chain that did not return to its start."""

    segments: List[Segment] = field(default_factory=list)
    perimeter: float = 0.0

    @property
    def closed(self) -> bool:
        return False

    def to_dict(self) -> dict:
        return {
            "closed": False,
            "segment_count": len(self.segments),
            "perimeter": self.perimeter,
            "segments": [s.to_dict() for s in self.segments],
        }


def reverse_contour_segments(segments: Sequence[Segment]) -> List[Segment]:
    """Reverse traversal order: segments in reverse order, each reversed."""
    return [segment.reversed() for segment in reversed(segments)]
