"""Geometry normalization: DXF entities to canonical Line/Arc segments.

Every supported entity kind has one handler. Block references are expanded
recursively with an accumulated affine transform; recursion is bounded by a
maximum depth, a per-path set of active block names and a document-wide
expansion budget.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence

import numpy as np

from . import transform
from .elements import (
    DxfDocument,
    Entity,
    EntityKind,
    LineSegment,
    RawEntity,
    Segment,
    TextLabel,
    arc_from_angles,
)
from .polylines import parse_lwpolyline, parse_polyline
from .records import parse_float
from .spline import MIN_FLATTEN_ERROR_MM, DecompositionOptions, spline_to_segments

logger = logging.getLogger(__name__)

DEFAULT_TEXT_HEIGHT = 2.5
MAX_INSERT_DEPTH = 20
MAX_INSERT_EXPANSIONS = 200000

SUPPORTED_GEOMETRY = "LINE, ARC, LWPOLYLINE, POLYLINE(2D), SPLINE(approximated)"


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def _format_counter(counter: Counter) -> str:
    return ", ".join(f"{kind}:{count}" for kind, count in sorted(counter.items()))


@dataclass
class SplineSummary:
    """Spline decomposition statistics aggregated over a document, in mm."""

    entities: int = 0
    source_points: int = 0
    output_segments: int = 0
    arcs: int = 0
    lines: int = 0
    max_arc_residual_mm: float = 0.0
    max_line_deviation_mm: float = 0.0
    min_segment_length_mm: float = math.inf
    max_segment_length_mm: float = 0.0
    avg_segment_length_acc: float = 0.0
    avg_segment_length_count: int = 0

    @property
    def avg_segment_length_mm(self) -> float:
        if self.avg_segment_length_count == 0:
            return 0.0
        return self.avg_segment_length_acc / self.avg_segment_length_count

    def to_dict(self) -> dict:
        return {
            "entities": self.entities,
            "source_point_count": self.source_points,
            "output_segments": self.output_segments,
            "arcs": self.arcs,
            "lines": self.lines,
            "max_arc_residual_mm": round(self.max_arc_residual_mm, 3),
            "max_line_deviation_mm": round(self.max_line_deviation_mm, 3),
            "min_segment_length_mm": round(
                self.min_segment_length_mm if math.isfinite(self.min_segment_length_mm) else 0.0, 3
            ),
            "avg_segment_length_mm": round(self.avg_segment_length_mm, 3),
            "max_segment_length_mm": round(self.max_segment_length_mm, 3),
        }


@dataclass
class NormalizationStats:
    """Diagnostic counters accumulated during one normalization call."""

    max_insert_depth: int = MAX_INSERT_DEPTH
    max_insert_expansions: int = MAX_INSERT_EXPANSIONS
    detected: Counter = field(default_factory=Counter)
    unsupported: Counter = field(default_factory=Counter)
    ignored_3d: Counter = field(default_factory=Counter)
    malformed: Counter = field(default_factory=Counter)
    arc_transform_rejected: Counter = field(default_factory=Counter)
    skipped_non_geometry: int = 0
    skipped_malformed: int = 0
    skipped_3d: int = 0
    parsed_segments: int = 0
    block_references: int = 0
    expanded_block_segments: int = 0
    insert_expansions: int = 0
    insert_cycle_skips: int = 0
    insert_depth_skips: int = 0
    insert_missing_block_skips: int = 0
    insert_limit_hits: int = 0
    legacy_mesh_polylines: int = 0
    spline: SplineSummary = field(default_factory=SplineSummary)

    @property
    def skipped_segments(self) -> int:
        return self.skipped_non_geometry + self.skipped_malformed + self.skipped_3d

    def warnings(self) -> List[str]:
        messages: List[str] = []
        if self.detected:
            messages.append(f"Detected entity types: {_format_counter(self.detected)}")
        if self.unsupported:
            messages.append(f"Unsupported entities ignored: {_format_counter(self.unsupported)}")
        if self.ignored_3d:
            messages.append(f"Ignored 3D POLYLINE entities: {_format_counter(self.ignored_3d)}")
        if self.malformed:
            messages.append(f"Malformed entities skipped: {_format_counter(self.malformed)}")
        if self.arc_transform_rejected:
            messages.append(
                "Arcs skipped after non-uniform INSERT transform: "
                f"{_format_counter(self.arc_transform_rejected)}"
            )
        messages.append(f"Skipped {self.skipped_non_geometry} non-geometry entities")
        messages.append(f"Extracted {self.parsed_segments} contour segments for contour building.")
        if self.legacy_mesh_polylines:
            messages.append(
                f"Used legacy mesh POLYLINE fallback on {self.legacy_mesh_polylines} "
                "entities (flattened to 2D)."
            )
        if self.insert_cycle_skips:
            messages.append(
                f"Skipped {self.insert_cycle_skips} INSERT references due to cyclic block links."
            )
        if self.insert_depth_skips:
            messages.append(
                f"Skipped {self.insert_depth_skips} INSERT references due to max nesting "
                f"depth {self.max_insert_depth}."
            )
        if self.insert_limit_hits:
            messages.append(
                f"INSERT expansion limit reached ({self.max_insert_expansions}); "
                "extra nested entities were skipped."
            )
        if self.spline.entities:
            s = self.spline
            min_len = s.min_segment_length_mm if math.isfinite(s.min_segment_length_mm) else 0.0
            messages.append(
                f"SPLINE stats: entities={s.entities}, arcs={s.arcs}, lines={s.lines}, "
                f"segmentLen(mm) min/avg/max={min_len:.1f}/{s.avg_segment_length_mm:.1f}/"
                f"{s.max_segment_length_mm:.1f}."
            )
        return messages

    def to_dict(self) -> dict:
        return {
            "parsed_segments": self.parsed_segments,
            "skipped_segments": self.skipped_segments,
            "skipped_non_geometry": self.skipped_non_geometry,
            "skipped_malformed": self.skipped_malformed,
            "skipped_3d_entities": self.skipped_3d,
            "block_reference_count": self.block_references,
            "expanded_block_segments": self.expanded_block_segments,
            "legacy_mesh_polyline_count": self.legacy_mesh_polylines,
            "insert_cycle_skips": self.insert_cycle_skips,
            "insert_depth_skips": self.insert_depth_skips,
            "insert_missing_block_skips": self.insert_missing_block_skips,
            "insert_expansion_limit_hits": self.insert_limit_hits,
            "spline_approximation_count": self.spline.entities,
            "spline_stats": self.spline.to_dict(),
            "detected_entity_types": dict(self.detected),
            "unsupported_entity_types": dict(self.unsupported),
            "ignored_3d_entity_types": dict(self.ignored_3d),
            "malformed_entity_types": dict(self.malformed),
            "arc_transform_rejected_types": dict(self.arc_transform_rejected),
        }


@dataclass
class NormalizedGeometry:
    """Normalizer output in millimetres."""

    unit_scale: float = 1.0
    segments: List[Segment] = field(default_factory=list)
    text_labels: List[TextLabel] = field(default_factory=list)
    raw_entities: List[RawEntity] = field(default_factory=list)
    stats: NormalizationStats = field(default_factory=NormalizationStats)


@dataclass
class _Pass:
    """State of one normalize() call."""

    document: DxfDocument
    unit_scale: float
    spline_options: DecompositionOptions
    output: NormalizedGeometry


Handler = Callable[[_Pass, Entity, np.ndarray, int, FrozenSet[str]], None]


class GeometryNormalizer:
    """Converts extracted DXF entities into contour segments."""

    def __init__(
        self,
        max_insert_depth: int = MAX_INSERT_DEPTH,
        max_insert_expansions: int = MAX_INSERT_EXPANSIONS,
        spline_options_mm: Optional[DecompositionOptions] = None,
    ):
        """
        Initialize the normalizer.

        Args:
            max_insert_depth: Deepest allowed block nesting
            max_insert_expansions: Document-wide budget of expanded block entities
            spline_options_mm: Spline decomposition thresholds in millimetres
        """
        self.max_insert_depth = max_insert_depth
        self.max_insert_expansions = max_insert_expansions
        self.spline_options_mm = spline_options_mm or DecompositionOptions()
        self._handlers: Dict[EntityKind, Handler] = {
            EntityKind.LINE: self._handle_line,
            EntityKind.ARC: self._handle_arc,
            EntityKind.LWPOLYLINE: self._handle_lwpolyline,
            EntityKind.POLYLINE: self._handle_polyline,
            EntityKind.SPLINE: self._handle_spline,
            EntityKind.TEXT: self._handle_text,
            EntityKind.MTEXT: self._handle_mtext,
            EntityKind.INSERT: self._handle_insert,
            EntityKind.IGNORED: self._handle_ignored,
            EntityKind.UNSUPPORTED: self._handle_unsupported,
        }

    @classmethod
    def from_config(cls, config) -> "GeometryNormalizer":
        """Build a normalizer from a ConverterConfig."""
        return cls(
            max_insert_depth=config.max_insert_depth,
            max_insert_expansions=config.max_insert_expansions,
            spline_options_mm=config.decomposition_options(),
        )

    def normalize(self, document: DxfDocument, unit_scale: float = 1.0) -> NormalizedGeometry:
        """Normalize every top-level entity of ``document``.

        Args:
            document: Extracted DXF document
            unit_scale: Millimetres per drawing unit

        Returns:
            NormalizedGeometry with segments and text labels in millimetres
        """
        unit = max(unit_scale, 1e-9)
        output = NormalizedGeometry(
            unit_scale=unit_scale,
            stats=NormalizationStats(
                max_insert_depth=self.max_insert_depth,
                max_insert_expansions=self.max_insert_expansions,
            ),
        )
        state = _Pass(
            document=document,
            unit_scale=unit_scale,
            spline_options=self.spline_options_mm.scaled(1.0 / unit),
            output=output,
        )
        root = transform.scaling(unit_scale)
        for entity in document.entities:
            before = len(output.segments)
            self._process(state, entity, root, 0, frozenset())
            if entity.kind == EntityKind.INSERT.value:
                output.stats.expanded_block_segments += len(output.segments) - before

        output.stats.parsed_segments = len(output.segments)
        logger.info(
            f"Normalized {len(document.entities)} entities into {len(output.segments)} segments "
            f"({len(output.text_labels)} text labels)"
        )
        return output

    def _process(
        self,
        state: _Pass,
        entity: Entity,
        matrix: np.ndarray,
        depth: int,
        active_blocks: FrozenSet[str],
    ) -> None:
        state.output.stats.detected[entity.kind] += 1
        handler = self._handlers[EntityKind.classify(entity.kind)]
        handler(state, entity, matrix, depth, active_blocks)

    def _emit(self, state: _Pass, segments: Sequence[Segment], matrix: np.ndarray, source: str) -> None:
        stats = state.output.stats
        for segment in segments:
            mapped = transform.transform_segment(segment, matrix)
            if mapped is None:
                stats.arc_transform_rejected[source] += 1
                stats.skipped_malformed += 1
                logger.warning(f"Dropped {source} arc under a non-uniform block transform")
                continue
            state.output.segments.append(mapped)
            state.output.raw_entities.append(mapped)

    def _malformed(self, state: _Pass, kind: str) -> None:
        state.output.stats.malformed[kind] += 1
        state.output.stats.skipped_malformed += 1
        logger.debug(f"Skipped malformed {kind} entity")

    def _handle_line(self, state, entity, matrix, depth, active_blocks) -> None:
        data = entity.field_map()
        x1, y1 = parse_float(data.get(10)), parse_float(data.get(20))
        x2, y2 = parse_float(data.get(11)), parse_float(data.get(21))
        if not _finite(x1, y1, x2, y2):
            self._malformed(state, entity.kind)
            return
        self._emit(state, [LineSegment(start=(x1, y1), end=(x2, y2))], matrix, entity.kind)

    def _handle_arc(self, state, entity, matrix, depth, active_blocks) -> None:
        data = entity.field_map()
        cx, cy = parse_float(data.get(10)), parse_float(data.get(20))
        radius = parse_float(data.get(40))
        start_deg, end_deg = parse_float(data.get(50)), parse_float(data.get(51))
        if not _finite(cx, cy, radius, start_deg, end_deg) or radius <= 0:
            self._malformed(state, entity.kind)
            return
        arc = arc_from_angles((cx, cy), radius, start_deg, end_deg)
        self._emit(state, [arc], matrix, entity.kind)

    def _handle_lwpolyline(self, state, entity, matrix, depth, active_blocks) -> None:
        segments = parse_lwpolyline(entity.records)
        if not segments:
            self._malformed(state, entity.kind)
            return
        self._emit(state, segments, matrix, entity.kind)

    def _handle_polyline(self, state, entity, matrix, depth, active_blocks) -> None:
        stats = state.output.stats
        result = parse_polyline(entity.records)
        if result.rejected_3d:
            stats.ignored_3d[entity.kind] += 1
            stats.skipped_3d += 1
            logger.debug("Rejected 3D POLYLINE")
            return
        if result.legacy_mesh_fallback:
            stats.legacy_mesh_polylines += 1
        if not result.segments:
            self._malformed(state, entity.kind)
            return
        self._emit(state, result.segments, matrix, entity.kind)

    def _handle_spline(self, state, entity, matrix, depth, active_blocks) -> None:
        fit = spline_to_segments(
            entity.records,
            state.spline_options,
            min_flatten_error=MIN_FLATTEN_ERROR_MM / max(state.unit_scale, 1e-9),
        )
        if not fit.segments:
            self._malformed(state, entity.kind)
            return
        scale = state.unit_scale
        summary = state.output.stats.spline
        summary.entities += 1
        summary.source_points += fit.stats.source_point_count
        summary.output_segments += len(fit.segments)
        summary.arcs += fit.stats.arc_count
        summary.lines += fit.stats.line_count
        summary.max_arc_residual_mm = max(summary.max_arc_residual_mm, fit.stats.max_arc_residual * scale)
        summary.max_line_deviation_mm = max(
            summary.max_line_deviation_mm, fit.stats.max_line_deviation * scale
        )
        if fit.stats.min_segment_length > 0:
            summary.min_segment_length_mm = min(
                summary.min_segment_length_mm, fit.stats.min_segment_length * scale
            )
        summary.max_segment_length_mm = max(
            summary.max_segment_length_mm, fit.stats.max_segment_length * scale
        )
        if fit.stats.avg_segment_length > 0:
            summary.avg_segment_length_acc += fit.stats.avg_segment_length * scale
            summary.avg_segment_length_count += 1
        self._emit(state, fit.segments, matrix, entity.kind)

    def _text_label(self, data: Dict[int, str], text: str) -> Optional[TextLabel]:
        x, y = parse_float(data.get(10)), parse_float(data.get(20))
        if not _finite(x, y):
            return None
        height = parse_float(data.get(40), default=DEFAULT_TEXT_HEIGHT)
        rotation = parse_float(data.get(50), default=0.0)
        return TextLabel(
            position=(x, y),
            text=text.strip(),
            height_mm=height if math.isfinite(height) and height > 0 else DEFAULT_TEXT_HEIGHT,
            rotation_deg=rotation if math.isfinite(rotation) else 0.0,
        )

    def _emit_label(self, state: _Pass, label: Optional[TextLabel], matrix: np.ndarray, kind: str) -> None:
        if label is None:
            self._malformed(state, kind)
            return
        mapped = transform.transform_text(label, matrix)
        state.output.text_labels.append(mapped)
        state.output.raw_entities.append(mapped)

    def _handle_text(self, state, entity, matrix, depth, active_blocks) -> None:
        data = entity.field_map()
        label = self._text_label(data, data.get(1, ""))
        self._emit_label(state, label, matrix, entity.kind)

    def _handle_mtext(self, state, entity, matrix, depth, active_blocks) -> None:
        chunks = [r.value for r in entity.header_records() if r.code in (1, 3)]
        label = self._text_label(entity.field_map(), "".join(chunks))
        self._emit_label(state, label, matrix, entity.kind)

    def _handle_insert(self, state, entity, matrix, depth, active_blocks) -> None:
        stats = state.output.stats
        data = entity.field_map()
        name = data.get(2, "")
        x, y = parse_float(data.get(10, "0")), parse_float(data.get(20, "0"))
        sx, sy = parse_float(data.get(41, "1")), parse_float(data.get(42, "1"))
        rotation = parse_float(data.get(50, "0"))
        if not name or not _finite(x, y, sx, sy, rotation):
            self._malformed(state, entity.kind)
            return

        block = state.document.block(name)
        if block is None:
            stats.insert_missing_block_skips += 1
            stats.unsupported["INSERT_MISSING_BLOCK"] += 1
            stats.skipped_non_geometry += 1
            return
        if depth >= self.max_insert_depth:
            stats.insert_depth_skips += 1
            stats.unsupported["INSERT_MAX_DEPTH"] += 1
            stats.skipped_non_geometry += 1
            logger.warning(f"INSERT {name!r} exceeds max nesting depth {self.max_insert_depth}")
            return
        if name in active_blocks:
            stats.insert_cycle_skips += 1
            stats.unsupported["INSERT_CYCLE"] += 1
            stats.skipped_non_geometry += 1
            logger.warning(f"INSERT {name!r} references itself through its block chain")
            return

        stats.block_references += 1
        child = matrix @ transform.insert_matrix((x, y), sx, sy, rotation, block.base_point)
        nested_active = active_blocks | {name}
        for block_entity in block.entities:
            stats.insert_expansions += 1
            if stats.insert_expansions > self.max_insert_expansions:
                stats.insert_limit_hits += 1
                stats.unsupported["INSERT_LIMIT"] += 1
                logger.warning(
                    f"INSERT expansion limit {self.max_insert_expansions} reached in block {name!r}"
                )
                break
            self._process(state, block_entity, child, depth + 1, nested_active)

    def _handle_ignored(self, state, entity, matrix, depth, active_blocks) -> None:
        state.output.stats.skipped_non_geometry += 1

    def _handle_unsupported(self, state, entity, matrix, depth, active_blocks) -> None:
        state.output.stats.unsupported[entity.kind] += 1
        state.output.stats.skipped_non_geometry += 1
