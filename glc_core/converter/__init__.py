"""DXF to GLC Converter Module

This module wires the DXF reader, contour assembly and GLC output into one
conversion call with a structured report.
"""

from .config import ConverterConfig
from .pipeline import ConversionResult, DxfGlcConverter
from .report import ConversionReport

__all__ = [
    "DxfGlcConverter",
    "ConversionResult",
    "ConversionReport",
    "ConverterConfig",
]
