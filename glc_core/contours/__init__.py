"""Contour Assembly Module

This module snaps segment endpoints, builds the endpoint graph and extracts
closed ceiling contours and open chains from it.
"""

from .graph import ContourAssembly, ContourGraph, build_contours
from .snapping import UnionFind, dedupe_segments, snap_endpoints
from .types import Contour, OpenChain, Winding, reverse_contour_segments

__all__ = [
    "build_contours",
    "ContourAssembly",
    "ContourGraph",
    "Contour",
    "OpenChain",
    "Winding",
    "reverse_contour_segments",
    "UnionFind",
    "snap_endpoints",
    "dedupe_segments",
]
