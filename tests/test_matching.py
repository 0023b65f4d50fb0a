"""Tests for the threshold-gated match resolver."""

from __future__ import annotations

import math

import numpy as np

from facematch.core.matching import Match, find_best_match

THRESHOLD = 0.8


def _scoring(score: float) -> np.ndarray:
    """A unit vector whose similarity with ``[1, 0]`` is ``score``."""
    return np.array([score, math.sqrt(1.0 - score * score)])


QUERY = np.array([1.0, 0.0])


class TestFindBestMatch:
    def test_empty_candidates(self) -> None:
        assert find_best_match(QUERY, [], THRESHOLD) is None

    def test_nothing_above_threshold(self) -> None:
        candidates = [(1, _scoring(0.1)), (2, _scoring(0.5)), (3, _scoring(0.79))]
        assert find_best_match(QUERY, candidates, THRESHOLD) is None

    def test_score_equal_to_threshold_is_rejected(self) -> None:
        candidates = [(1, np.array([0.8, 0.6]))]
        assert find_best_match(QUERY, candidates, THRESHOLD) is None

    def test_single_candidate_above_threshold(self) -> None:
        match = find_best_match(QUERY, [("a", _scoring(THRESHOLD + 1e-3))], THRESHOLD)
        assert match is not None
        assert match.identity == "a"
        assert match.score > THRESHOLD

    def test_highest_score_wins(self) -> None:
        candidates = [(1, _scoring(0.9)), (2, _scoring(1.0))]
        match = find_best_match(QUERY, candidates, THRESHOLD)
        assert match == Match(identity=2, score=1.0)

    def test_tie_goes_to_first_candidate(self) -> None:
        candidates = [(1, _scoring(0.9)), (2, _scoring(0.9)), (3, _scoring(0.85))]
        match = find_best_match(QUERY, candidates, THRESHOLD)
        assert match is not None
        assert match.identity == 1

    def test_dimension_mismatch_never_matches(self) -> None:
        candidates = [(1, np.array([1.0, 0.0, 0.0]))]
        assert find_best_match(QUERY, candidates, 0.0) is None

    def test_accepts_a_generator(self) -> None:
        candidates = ((i, _scoring(s)) for i, s in enumerate((0.85, 0.95, 0.9)))
        match = find_best_match(QUERY, candidates, THRESHOLD)
        assert match is not None
        assert match.identity == 1
