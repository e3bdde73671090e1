"""Conversion report: fatal errors, warnings and diagnostic counts."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ConversionReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    counts: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "counts": dict(self.counts),
        }
