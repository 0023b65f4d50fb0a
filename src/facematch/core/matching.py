"""Threshold-gated nearest match over an enrolled set."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from facematch.core.vectors import similarity

if TYPE_CHECKING:
    from collections.abc import Iterable

    import numpy as np
    from numpy.typing import NDArray

K = TypeVar("K")


@dataclass(frozen=True)
class Match(Generic[K]):
    """The best candidate of a resolver pass."""

    identity: K
    score: float


def find_best_match(
    query: NDArray[np.floating],
    candidates: Iterable[tuple[K, NDArray[np.floating]]],
    threshold: float,
) -> Match[K] | None:
    """Return the candidate most similar to ``query``, if it beats ``threshold``.

    A candidate must score strictly above the threshold. Candidates are
    scanned once in the given order and the best is only replaced on a
    strictly higher score, so ties go to the earliest candidate.
    Linear in the number of candidates; no index is built.
    """
    best: Match[K] | None = None
    best_score = threshold
    for identity, embedding in candidates:
        score = similarity(query, embedding)
        if score > best_score:
            best_score = score
            best = Match(identity=identity, score=score)
    return best
