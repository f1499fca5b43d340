"""
Fuzzy matching for city, category and subject-name correction.

Similarity is a rapidfuzz scorer rescaled to [0, 1]; the default
``ratio`` scorer is symmetric, gives 1.0 for identical strings and
degrades with edit distance.
"""

import logging
from typing import Callable, List, NamedTuple, Optional, Sequence

from rapidfuzz import fuzz

from apps.core.errors import NoCandidates

logger = logging.getLogger(__name__)

Scorer = Callable[[str, str], float]

SCORERS = {
    "ratio": fuzz.ratio,
    "partial_ratio": fuzz.partial_ratio,
    "token_sort_ratio": fuzz.token_sort_ratio,
    "token_set_ratio": fuzz.token_set_ratio,
}


class Rating(NamedTuple):
    """Similarity of one candidate against the query"""
    target: str
    rating: float
    index: int


class FuzzyMatcher:
    """Score string pairs and pick the best candidate."""

    def __init__(self, scorer: str = "ratio", similarity_fn: Optional[Scorer] = None):
        """
        :param scorer: rapidfuzz scorer name ("ratio", "partial_ratio",
            "token_sort_ratio", "token_set_ratio")
        :param similarity_fn: replaces the rapidfuzz scorer entirely; must
            already return values in [0, 1]
        """
        if similarity_fn is None and scorer not in SCORERS:
            raise ValueError(f"Unknown scorer '{scorer}', expected one of {sorted(SCORERS)}")
        self.scorer_name = scorer
        self._scorer = SCORERS.get(scorer)
        self._similarity_fn = similarity_fn

    def similarity(self, a: str, b: str) -> float:
        if self._similarity_fn is not None:
            return float(self._similarity_fn(a, b))
        if a == b:
            return 1.0
        return self._scorer(a, b, processor=None) / 100.0

    def ratings(self, query: str, candidates: Sequence[str]) -> List[Rating]:
        """Similarity of ``query`` against every candidate, in candidate order"""
        return [
            Rating(target=candidate, rating=self.similarity(query, candidate), index=i)
            for i, candidate in enumerate(candidates)
        ]

    def best_match(self, query: str, candidates: Sequence[str]) -> Rating:
        """
        Highest-rated candidate; ties go to the earliest candidate.

        Raises:
            NoCandidates: if ``candidates`` is empty
        """
        if not candidates:
            raise NoCandidates(query)
        # max() keeps the first of equal maxima
        return max(self.ratings(query, candidates), key=lambda r: r.rating)


def create_fuzzy_matcher(scorer: Optional[str] = None) -> FuzzyMatcher:
    """Factory function to create FuzzyMatcher instance"""
    from apps.core.config import settings

    return FuzzyMatcher(scorer or settings.fuzzy_scorer)
