"""
Core Utility Functions.

Common utilities used across the application.
"""

from typing import List, Optional, Sequence

import numpy as np


def l2_normalize(vector: np.ndarray) -> np.ndarray:
    """
    Scale a vector to unit length.

    A zero vector is returned unchanged (there is no direction to keep).
    """
    norm = float(np.linalg.norm(vector))
    if norm == 0.0:
        return vector
    return vector / norm


def to_vector(values: Optional[Sequence[float]], dim: Optional[int] = None) -> Optional[np.ndarray]:
    """
    Convert a stored float list to a float64 numpy array.

    Short inputs are zero-padded and long inputs truncated when `dim` is
    given, so stored vectors of a slightly different width never break
    elementwise math.
    """
    if values is None:
        return None
    arr = np.asarray(values, dtype=np.float64)
    if dim is None or arr.shape[0] == dim:
        return arr
    if arr.shape[0] > dim:
        return arr[:dim]
    padded = np.zeros(dim, dtype=np.float64)
    padded[: arr.shape[0]] = arr
    return padded


def vector_to_list(vector: Optional[np.ndarray]) -> Optional[List[float]]:
    """Inverse of to_vector for persistence and API responses."""
    if vector is None:
        return None
    return [float(v) for v in vector]
