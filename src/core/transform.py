# core/transform.py
import math
from typing import Sequence

import numpy as np


def normalize(v) -> np.ndarray:
    """Return v as a unit float32 vector (zero vectors are returned unchanged)."""
    v = np.asarray(v, dtype=np.float32)
    length = float(np.linalg.norm(v))
    if length == 0.0:
        return v
    return v / length


def _rotation_x(degrees: float) -> np.ndarray:
    r = math.radians(degrees)
    c, s = math.cos(r), math.sin(r)
    return np.array([[1, 0, 0, 0],
                     [0, c, -s, 0],
                     [0, s, c, 0],
                     [0, 0, 0, 1]], dtype=np.float64)


def _rotation_y(degrees: float) -> np.ndarray:
    r = math.radians(degrees)
    c, s = math.cos(r), math.sin(r)
    return np.array([[c, 0, s, 0],
                     [0, 1, 0, 0],
                     [-s, 0, c, 0],
                     [0, 0, 0, 1]], dtype=np.float64)


def _rotation_z(degrees: float) -> np.ndarray:
    r = math.radians(degrees)
    c, s = math.cos(r), math.sin(r)
    return np.array([[c, -s, 0, 0],
                     [s, c, 0, 0],
                     [0, 0, 1, 0],
                     [0, 0, 0, 1]], dtype=np.float64)


def build_transformation_matrix(translation: Sequence[float],
                                rotation: Sequence[float],
                                scale: Sequence[float]) -> np.ndarray:
    """
    Compose translate * rotate(x, y, z) * scale into a 4x4 matrix.

    Rotation angles are in degrees and applied in x, y, z order.
    """
    t = np.identity(4, dtype=np.float64)
    t[:3, 3] = translation
    s = np.diag([scale[0], scale[1], scale[2], 1.0])
    r = _rotation_x(rotation[0]) @ _rotation_y(rotation[1]) @ _rotation_z(rotation[2])
    return t @ r @ s


def transform_set(matrix: np.ndarray):
    """Return (transform, inverse, inverse_transpose) as float32 arrays."""
    inverse = np.linalg.inv(matrix)
    return (matrix.astype(np.float32),
            inverse.astype(np.float32),
            inverse.T.astype(np.float32))
