"""Vector normalization and the similarity metric."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np

from facematch.core.features import extract_features

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

    from facematch.core.observation import GeometricObservation

SIMILARITY_FORMULA: str = "clamped-dot-v1"


def normalize(vector: NDArray[np.floating] | Sequence[float]) -> NDArray[np.float32]:
    """Scale a vector to unit Euclidean length.

    The zero vector is returned unchanged (as float32).
    """
    values = np.asarray(vector, dtype=np.float64)
    norm = float(np.linalg.norm(values))
    if norm > 0:
        values = values / norm
    return values.astype(np.float32)


def similarity(a: NDArray[np.floating] | Sequence[float], b: NDArray[np.floating] | Sequence[float]) -> float:
    """Similarity of two embeddings in ``[0, 1]``.

    Computed as the dot product clamped into ``[0, 1]``. Vectors of different
    length score 0 instead of raising, so a record produced under another
    feature layout can never match.
    """
    first = np.asarray(a, dtype=np.float64)
    second = np.asarray(b, dtype=np.float64)
    if first.ndim != 1 or first.shape != second.shape:
        return 0.0

    dot = float(np.dot(first, second))
    if not math.isfinite(dot):
        return 0.0
    return min(max(dot, 0.0), 1.0)


def embed(observation: GeometricObservation) -> NDArray[np.float32]:
    """Extract and normalize the embedding of an observation."""
    return normalize(extract_features(observation))
