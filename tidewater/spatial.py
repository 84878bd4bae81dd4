"""
Spatial utility functions for 3D geometry.

Helper functions for vector coercion and direction vectors shared by the
surface model and the queries. Row-wise helpers work on (N, 3) arrays and
give each row the same result regardless of batch size.
"""

import numpy as np


def as_vector(value) -> np.ndarray:
    """
    Coerce a position-like value to a float64 (3,) array.

    Args:
        value: Sequence or array [x, y, z]

    Returns:
        New float64 array (never aliases the input)
    """
    vec = np.array(value, dtype=np.float64)
    if vec.shape != (3,):
        raise ValueError(f"Expected a 3D vector, got shape {vec.shape}")
    return vec


def row_lengths(vecs: np.ndarray) -> np.ndarray:
    """
    Euclidean length of each row of an (N, 3) array.

    Summed component by component so a row's length never depends on how
    many rows are in the batch.
    """
    return np.sqrt(vecs[:, 0] * vecs[:, 0] + vecs[:, 1] * vecs[:, 1] + vecs[:, 2] * vecs[:, 2])


def normalize_rows(vecs: np.ndarray) -> np.ndarray:
    """
    Normalize each row of an (N, 3) array to unit length.

    A zero row normalizes to the zero vector, not NaN.
    """
    lengths = row_lengths(vecs)
    safe = np.where(lengths == 0.0, 1.0, lengths)
    return vecs / safe[:, np.newaxis]


def horizontal_direction(angle: float) -> np.ndarray:
    """
    Unit vector in the XZ plane at `angle` radians from +X.

    Used for the tide axis, which always lies in the horizontal plane.
    """
    return np.array([np.cos(angle), 0.0, np.sin(angle)], dtype=np.float64)
