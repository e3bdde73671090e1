"""DXF Reader Module

This module reads DXF text into tag records, scopes the HEADER, ENTITIES and
BLOCKS sections, and normalizes supported entities into millimetre Line/Arc
segments with block references expanded.
"""

from .document import extract_document, load_document
from .elements import (
    ArcSegment,
    Block,
    DxfDocument,
    Entity,
    EntityKind,
    LineSegment,
    Segment,
    TagRecord,
    TextLabel,
)
from .normalizer import GeometryNormalizer, NormalizationStats, NormalizedGeometry
from .records import read_records
from .spline import DecompositionOptions
from .units import DXF_UNIT_TO_MM, UnitOverride, resolve_unit_scale

__all__ = [
    "read_records",
    "load_document",
    "extract_document",
    "TagRecord",
    "Entity",
    "Block",
    "DxfDocument",
    "EntityKind",
    "LineSegment",
    "ArcSegment",
    "Segment",
    "TextLabel",
    "GeometryNormalizer",
    "NormalizationStats",
    "NormalizedGeometry",
    "DecompositionOptions",
    "DXF_UNIT_TO_MM",
    "UnitOverride",
    "resolve_unit_scale",
]
