"""GLC Output Module

This module renders closed ceiling contours as GLC room blocks.
"""

from .builder import arc_point_and_sagitta, build_glc, build_room, mirror_segments
from .formatting import format_number

__all__ = [
    "build_glc",
    "build_room",
    "mirror_segments",
    "arc_point_and_sagitta",
    "format_number",
]
