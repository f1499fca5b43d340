#!/usr/bin/env python3
"""Search service: free-text request -> filters -> ranked, paginated subjects"""

import logging
import math
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from apps.core.config import settings
from apps.core.errors import NoCandidates, SearchCancelled
from apps.subjects.dto import ScoredCandidate, SearchFilters, SubjectDTO
from apps.subjects.services.catalog_store import CatalogStore, create_catalog_store
from apps.subjects.services.fuzzy_matcher import FuzzyMatcher, create_fuzzy_matcher
from apps.subjects.services.lexicon import Lexicon, get_lexicon
from apps.subjects.services.query_parser import QueryParser

logger = logging.getLogger(__name__)


def normalize_category(category: str) -> str:
    """Lowercase and drop one trailing "s" ("cafes" -> "cafe", "bus" -> "bu")"""
    category = category.lower()
    return category[:-1] if category.endswith("s") else category


def count_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if page_size > 0 else 0


@dataclass
class SearchOutcome:
    """Resolved filters plus one page of results"""
    query: str
    type: Optional[str]
    city: Optional[str]
    rating_min: float
    review_count_min: int
    page: int
    page_size: int
    total: int
    results: List[SubjectDTO] = field(default_factory=list)
    used_fallback: bool = False

    @property
    def total_pages(self) -> int:
        return count_pages(self.total, self.page_size)


class SearchService:
    """Resolves a search request against the catalog.

    Steps: parse the text, correct a misspelled city, infer a category,
    run the filtered lookup and, when it finds nothing, rank the catalog
    by name/type similarity instead.
    """

    def __init__(
        self,
        store: CatalogStore,
        lexicon: Lexicon,
        matcher: FuzzyMatcher,
        city_threshold: float = 0.7,
        category_threshold: float = 0.0,
        fallback_threshold: float = 0.4,
    ):
        self.store = store
        self.lexicon = lexicon
        self.parser = QueryParser(lexicon)
        self.matcher = matcher
        self.city_threshold = city_threshold
        self.category_threshold = category_threshold
        self.fallback_threshold = fallback_threshold

    def resolve(
        self,
        raw_query: str,
        explicit_type: Optional[str] = None,
        explicit_city: Optional[str] = None,
        rating_min: float = 0,
        review_count_min: int = 0,
        page: int = 1,
        page_size: int = 10,
        cancel_event: Optional[threading.Event] = None,
    ) -> SearchOutcome:
        raw_query = raw_query or ""
        parsed = self.parser.parse(raw_query)
        query = parsed.query

        category = explicit_type or parsed.type
        city = explicit_city or parsed.city

        if not city:
            self._check_cancelled(cancel_event, "city_correction")
            city = self._correct_city(raw_query)

        if not category and query:
            category = self._infer_category(query)

        if category:
            category = normalize_category(category)

        filters = SearchFilters(
            query=query,
            city=city,
            types=self.lexicon.expand_category(category) if category else (),
            rating_min=rating_min,
            review_count_min=review_count_min,
        )

        self._check_cancelled(cancel_event, "filtered_search")
        results, total = self.store.filtered_search(filters, page_size, (page - 1) * page_size)

        used_fallback = False
        if total == 0 and (query or category or city):
            logger.debug(f"No filtered results for '{raw_query}', falling back to fuzzy search")
            results = self._fallback_search(query, category, city, page_size, cancel_event)
            total = len(results)
            used_fallback = True

        return SearchOutcome(
            query=raw_query,
            type=category,
            city=city,
            rating_min=rating_min,
            review_count_min=review_count_min,
            page=page,
            page_size=page_size,
            total=total,
            results=results,
            used_fallback=used_fallback,
        )

    def _check_cancelled(self, cancel_event: Optional[threading.Event], stage: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Search cancelled before {stage}")
            raise SearchCancelled(stage)

    def _correct_city(self, raw_query: str) -> Optional[str]:
        """Closest catalog city to the whole text, else to the first close token"""
        cities = self.store.distinct_cities()
        candidates = [c.lower() for c in cities]
        words = raw_query.lower().split()

        try:
            match = self.matcher.best_match(" ".join(words), candidates)
        except NoCandidates:
            logger.debug("Catalog has no cities; skipping city correction")
            return None

        if match.rating > self.city_threshold:
            city = cities[match.index]
            logger.info(f"Corrected city from query text: {city}")
            return city

        for word in words:
            word_match = self.matcher.best_match(word, candidates)
            if word_match.rating > self.city_threshold:
                city = cities[word_match.index]
                logger.info(f"Corrected city from word '{word}' to '{city}'")
                return city

        return None

    def _infer_category(self, query: str) -> Optional[str]:
        # any similarity above the (zero by default) threshold is accepted
        try:
            match = self.matcher.best_match(query.lower(), list(self.lexicon.category_expansion))
        except NoCandidates:
            return None

        if match.rating > self.category_threshold:
            logger.debug(f"Inferred category '{match.target}' from '{query}' ({match.rating:.2f})")
            return match.target
        return None

    def _fallback_search(
        self,
        query: Optional[str],
        category: Optional[str],
        city: Optional[str],
        page_size: int,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[SubjectDTO]:
        self._check_cancelled(cancel_event, "fallback_scan")
        subjects = self.store.all_subjects(city)

        if not query:
            return []

        query = query.lower()
        for subject in subjects:
            if subject.name.lower() == query:
                return [subject]

        ranked = self._rank_by_similarity(subjects, query, category, cancel_event)[:page_size]
        by_id = {subject.id: subject for subject in subjects}
        return [by_id[candidate.subject_id] for candidate in ranked]

    def _rank_by_similarity(
        self,
        subjects: List[SubjectDTO],
        query: str,
        category: Optional[str],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[ScoredCandidate]:
        """Sum name and type similarities per subject id, best first"""
        scores: Dict[int, float] = {}

        def accumulate(target: str, values: List[str]) -> None:
            for rating in self.matcher.ratings(target, values):
                if rating.rating > self.fallback_threshold:
                    subject_id = subjects[rating.index].id
                    scores[subject_id] = scores.get(subject_id, 0.0) + rating.rating

        self._check_cancelled(cancel_event, "name_scoring")
        accumulate(query, [s.name.lower() for s in subjects])

        if category:
            self._check_cancelled(cancel_event, "type_scoring")
            accumulate(category.lower(), [s.type.lower() for s in subjects])

        candidates = [ScoredCandidate(subject_id, score) for subject_id, score in scores.items()]
        # ties keep catalog id order
        candidates.sort(key=lambda c: (-c.accumulated_score, c.subject_id))
        return candidates


def create_search_service(
    db: Session,
    lexicon: Optional[Lexicon] = None,
    matcher: Optional[FuzzyMatcher] = None,
) -> SearchService:
    """Factory function to create SearchService instance"""
    return SearchService(
        store=create_catalog_store(db),
        lexicon=lexicon or get_lexicon(),
        matcher=matcher or create_fuzzy_matcher(),
        city_threshold=settings.search_city_match_threshold,
        category_threshold=settings.search_category_match_threshold,
        fallback_threshold=settings.search_fallback_score_threshold,
    )
