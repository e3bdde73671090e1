"""2D affine transforms for block expansion.

Matrices are 3x3 homogeneous numpy arrays; composition is ``parent @ child``.
"""

import math
from typing import Optional, Tuple

import numpy as np

from .elements import ArcSegment, LineSegment, Point2D, Segment, TextLabel, angle_of

# Relative tolerance for accepting a transform as a similarity
SIMILARITY_TOLERANCE = 1e-6


def identity() -> np.ndarray:
    return np.eye(3)


def scaling(sx: float, sy: Optional[float] = None) -> np.ndarray:
    return np.array(
        [[sx, 0.0, 0.0], [0.0, sx if sy is None else sy, 0.0], [0.0, 0.0, 1.0]]
    )


def translation(dx: float, dy: float) -> np.ndarray:
    return np.array([[1.0, 0.0, dx], [0.0, 1.0, dy], [0.0, 0.0, 1.0]])


def rotation(angle_deg: float) -> np.ndarray:
    a = math.radians(angle_deg)
    c, s = math.cos(a), math.sin(a)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def insert_matrix(
    insert_point: Point2D,
    scale_x: float,
    scale_y: float,
    rotation_deg: float,
    base_point: Point2D = (0.0, 0.0),
) -> np.ndarray:
    """Block-to-parent transform of an INSERT.

    Block coordinates are shifted by the block base point, scaled, rotated,
    then moved to the insertion point.
    """
    return (
        translation(insert_point[0], insert_point[1])
        @ rotation(rotation_deg)
        @ scaling(scale_x, scale_y)
        @ translation(-base_point[0], -base_point[1])
    )


def apply(matrix: np.ndarray, point: Point2D) -> Point2D:
    x = matrix[0, 0] * point[0] + matrix[0, 1] * point[1] + matrix[0, 2]
    y = matrix[1, 0] * point[0] + matrix[1, 1] * point[1] + matrix[1, 2]
    return (float(x), float(y))


def scale_factors(matrix: np.ndarray) -> Tuple[float, float]:
    """Lengths of the transformed unit axes."""
    return (
        float(math.hypot(matrix[0, 0], matrix[1, 0])),
        float(math.hypot(matrix[0, 1], matrix[1, 1])),
    )


def determinant(matrix: np.ndarray) -> float:
    return float(matrix[0, 0] * matrix[1, 1] - matrix[0, 1] * matrix[1, 0])


def rotation_deg(matrix: np.ndarray) -> float:
    return math.degrees(math.atan2(matrix[1, 0], matrix[0, 0]))


def is_similarity(matrix: np.ndarray) -> bool:
    """True when circles map to circles (uniform scale, no shear)."""
    sx, sy = scale_factors(matrix)
    if not (math.isfinite(sx) and math.isfinite(sy)) or sx <= 0 or sy <= 0:
        return False
    orthogonality = abs(matrix[0, 0] * matrix[0, 1] + matrix[1, 0] * matrix[1, 1])
    if abs(sx - sy) > SIMILARITY_TOLERANCE * max(1.0, sx, sy):
        return False
    return orthogonality <= SIMILARITY_TOLERANCE * max(1.0, sx * sy)


def transform_segment(segment: Segment, matrix: np.ndarray) -> Optional[Segment]:
    """Map a segment through ``matrix``.

    Returns None for an arc under a non-uniform or sheared transform, which
    cannot stay circular.
    """
    if isinstance(segment, LineSegment):
        return LineSegment(start=apply(matrix, segment.start), end=apply(matrix, segment.end))

    if not is_similarity(matrix):
        return None
    sx, _ = scale_factors(matrix)
    center = apply(matrix, segment.center)
    start = apply(matrix, segment.start)
    end = apply(matrix, segment.end)
    mirrored = determinant(matrix) < 0
    return ArcSegment(
        center=center,
        radius=segment.radius * sx,
        start=start,
        end=end,
        start_angle_deg=angle_of(start, center),
        end_angle_deg=angle_of(end, center),
        sweep_deg=segment.sweep_deg,
        clockwise=not segment.clockwise if mirrored else segment.clockwise,
    )


def transform_text(label: TextLabel, matrix: np.ndarray) -> TextLabel:
    sx, sy = scale_factors(matrix)
    text_scale = (sx + sy) / 2.0
    if not math.isfinite(text_scale):
        text_scale = 1.0
    return TextLabel(
        position=apply(matrix, label.position),
        text=label.text,
        height_mm=label.height_mm * text_scale,
        rotation_deg=label.rotation_deg + rotation_deg(matrix),
    )
