"""Converter configuration management."""

import os
from dataclasses import dataclass

from glc_core.dxf_reader.spline import DecompositionOptions


@dataclass
class ConverterConfig:
    """Tolerances and limits of a DXF to GLC conversion."""

    # Contour assembly (mm)
    node_tolerance_mm: float = 0.5
    snap_tolerance_mm: float = 0.2

    # Block expansion guards
    max_insert_depth: int = 20
    max_insert_expansions: int = 200000

    # Spline decomposition (mm)
    spline_flatten_error_mm: float = 3.0
    spline_max_deviation_mm: float = 5.0
    spline_target_length_mm: float = 400.0
    spline_min_length_mm: float = 350.0
    spline_max_length_mm: float = 450.0
    spline_max_arc_radius_mm: float = 30000.0

    # Output
    coordinate_digits: int = 4

    @classmethod
    def from_env(cls) -> "ConverterConfig":
        """Load configuration from environment variables."""
        return cls(
            # Contours
            node_tolerance_mm=float(os.getenv("GLC_NODE_TOLERANCE_MM", "0.5")),
            snap_tolerance_mm=float(os.getenv("GLC_SNAP_TOLERANCE_MM", "0.2")),

            # Blocks
            max_insert_depth=int(os.getenv("GLC_MAX_INSERT_DEPTH", "20")),
            max_insert_expansions=int(os.getenv("GLC_MAX_INSERT_EXPANSIONS", "200000")),

            # Splines
            spline_flatten_error_mm=float(os.getenv("GLC_SPLINE_FLATTEN_ERROR_MM", "3.0")),
            spline_max_deviation_mm=float(os.getenv("GLC_SPLINE_MAX_DEVIATION_MM", "5.0")),
            spline_target_length_mm=float(os.getenv("GLC_SPLINE_TARGET_LENGTH_MM", "400")),
            spline_min_length_mm=float(os.getenv("GLC_SPLINE_MIN_LENGTH_MM", "350")),
            spline_max_length_mm=float(os.getenv("GLC_SPLINE_MAX_LENGTH_MM", "450")),
            spline_max_arc_radius_mm=float(os.getenv("GLC_SPLINE_MAX_ARC_RADIUS_MM", "30000")),

            # Output
            coordinate_digits=int(os.getenv("GLC_COORDINATE_DIGITS", "4")),
        )

    def validate(self) -> None:
        """Raise ValueError for inconsistent tolerances or non-positive limits."""
        positive = {
            "node_tolerance_mm": self.node_tolerance_mm,
            "snap_tolerance_mm": self.snap_tolerance_mm,
            "max_insert_depth": self.max_insert_depth,
            "max_insert_expansions": self.max_insert_expansions,
            "spline_flatten_error_mm": self.spline_flatten_error_mm,
            "spline_max_deviation_mm": self.spline_max_deviation_mm,
            "spline_target_length_mm": self.spline_target_length_mm,
            "spline_min_length_mm": self.spline_min_length_mm,
            "spline_max_length_mm": self.spline_max_length_mm,
            "spline_max_arc_radius_mm": self.spline_max_arc_radius_mm,
            "coordinate_digits": self.coordinate_digits,
        }
        for name, value in positive.items():
            if not value > 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.snap_tolerance_mm > self.node_tolerance_mm:
            raise ValueError(
                f"snap_tolerance_mm ({self.snap_tolerance_mm}) must not exceed "
                f"node_tolerance_mm ({self.node_tolerance_mm})"
            )

    def decomposition_options(self) -> DecompositionOptions:
        """Spline decomposition thresholds in millimetres."""
        return DecompositionOptions(
            flatten_error=self.spline_flatten_error_mm,
            max_deviation=self.spline_max_deviation_mm,
            target_length=self.spline_target_length_mm,
            min_length=self.spline_min_length_mm,
            max_length=self.spline_max_length_mm,
            max_arc_radius=self.spline_max_arc_radius_mm,
        )
