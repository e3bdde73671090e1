"""DXF to GLC conversion pipeline.

Runs the record reader, document extractor, geometry normalizer, contour
assembler and GLC emitter over one drawing and collects a single report.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from glc_core.contours import Contour, OpenChain, build_contours
from glc_core.dxf_reader import (
    GeometryNormalizer,
    Segment,
    TextLabel,
    UnitOverride,
    load_document,
    resolve_unit_scale,
)
from glc_core.dxf_reader.elements import RawEntity
from glc_core.dxf_reader.normalizer import SUPPORTED_GEOMETRY
from glc_core.dxf_reader.units import unit_name
from glc_core.glc import build_glc
from glc_core.glc.builder import UidFactory
from .config import ConverterConfig
from .report import ConversionReport

logger = logging.getLogger(__name__)

NON_ASCII_WARNING = "DXF is not pure ASCII; parser continues with plain text mode."
NO_GEOMETRY_ERROR = f"No supported contour geometry found. Supported: {SUPPORTED_GEOMETRY}."
REGION_ERROR = (
    "DXF geometry is stored as REGION/ACIS solids. "
    "This parser currently requires exploded 2D edges."
)
NO_CONTOURS_ERROR = "No valid closed ceiling contours detected."


@dataclass
class ConversionResult:
    """Output text, report and intermediate data products of one conversion."""

    output_text: Optional[str] = None
    report: ConversionReport = field(default_factory=ConversionReport)
    insunits: int = 0
    unit_scale: float = 1.0
    raw_entities: List[RawEntity] = field(default_factory=list)
    segments: List[Segment] = field(default_factory=list)
    text_labels: List[TextLabel] = field(default_factory=list)
    contours: List[Contour] = field(default_factory=list)
    open_chains: List[OpenChain] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.output_text is not None and self.report.ok

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "insunits": self.insunits,
            "units": unit_name(self.insunits),
            "unit_scale": self.unit_scale,
            "report": self.report.to_dict(),
            "summary": {
                "segment_count": len(self.segments),
                "text_label_count": len(self.text_labels),
                "contour_count": len(self.contours),
                "open_chain_count": len(self.open_chains),
                "total_perimeter_m": round(sum(c.perimeter for c in self.contours) / 1000, 3),
                "total_area_m2": round(sum(c.area for c in self.contours) / 1_000_000, 6),
            },
            "contours": [c.to_dict() for c in self.contours],
            "open_chains": [c.to_dict() for c in self.open_chains],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def save_glc(self, path: str | Path, encoding: str = "cp1251") -> None:
        """Save the GLC text using the target tool's single-byte encoding."""
        if self.output_text is None:
            raise ValueError("Conversion failed; no GLC output to save")
        with open(path, "w", encoding=encoding, errors="replace", newline="") as f:
            f.write(self.output_text)


class DxfGlcConverter:
    """Converts DXF drawings into GLC ceiling room files."""

    def __init__(self, config: Optional[ConverterConfig] = None, uid_factory: Optional[UidFactory] = None):
        """
        Initialize the converter.

        Args:
            config: Tolerances and limits, defaults when omitted
            uid_factory: Source of GLC room/zone identifiers, uuid4 when omitted
        """
        self.config = config or ConverterConfig()
        self.config.validate()
        self.uid_factory = uid_factory
        self.normalizer = GeometryNormalizer.from_config(self.config)

    def convert(self, text: str, unit_override: Union[str, UnitOverride, None] = "auto") -> ConversionResult:
        """
        Convert the full text of a DXF drawing.

        Args:
            text: DXF file contents
            unit_override: "auto", "mm", "cm" or "m"

        Returns:
            ConversionResult; ``output_text`` is None whenever the report has errors
        """
        override = UnitOverride.parse(unit_override)
        result = ConversionResult()
        report = result.report

        if not text.isascii():
            report.warnings.append(NON_ASCII_WARNING)

        document = load_document(text)
        result.insunits = document.insunits
        result.unit_scale = resolve_unit_scale(override, document.insunits)
        logger.info(
            f"Units: $INSUNITS={document.insunits} ({unit_name(document.insunits)}), "
            f"override={override.value}, scale={result.unit_scale} mm/unit"
        )

        geometry = self.normalizer.normalize(document, result.unit_scale)
        result.segments = geometry.segments
        result.text_labels = geometry.text_labels
        result.raw_entities = geometry.raw_entities
        stats = geometry.stats
        report.warnings.extend(stats.warnings())

        counts = {
            "record_count": document.record_count,
            "entity_count": len(document.entities),
            "block_count": len(document.blocks),
        }
        counts.update(stats.to_dict())

        if not geometry.segments:
            report.errors.append(NO_GEOMETRY_ERROR)
            if stats.detected.get("REGION", 0) > 0:
                report.errors.append(REGION_ERROR)
            report.counts = counts
            return result

        assembly = build_contours(
            geometry.segments,
            node_tolerance=self.config.node_tolerance_mm,
            snap_tolerance=self.config.snap_tolerance_mm,
        )
        result.contours = assembly.contours
        result.open_chains = assembly.open_chains
        report.warnings.extend(assembly.warnings)
        counts.update(assembly.to_dict())
        report.counts = counts

        if not assembly.contours:
            report.errors.append(NO_CONTOURS_ERROR)
            return result

        result.output_text = build_glc(
            assembly.contours, self.uid_factory, digits=self.config.coordinate_digits
        )
        logger.info(
            f"Converted {len(assembly.contours)} contours "
            f"({sum(c.perimeter for c in assembly.contours) / 1000:.3f} m total perimeter)"
        )
        return result

    def convert_file(
        self,
        path: str | Path,
        unit_override: Union[str, UnitOverride, None] = "auto",
        encoding: str = "utf-8",
    ) -> ConversionResult:
        """Read a DXF file and convert it; undecodable bytes are replaced."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        logger.info(f"Loading DXF file: {path}")
        with open(path, "r", encoding=encoding, errors="replace", newline="") as f:
            text = f.read()
        return self.convert(text, unit_override)
