#!/usr/bin/env python3
"""Read-only catalog access used by the search pipeline"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apps.core.errors import StoreUnavailable
from apps.subjects.dto import SearchFilters, SubjectDTO
from apps.subjects.models import Subject

logger = logging.getLogger(__name__)


class CatalogStore:
    """Catalog lookups over the subjects table"""

    def __init__(self, db: Session):
        self.db = db

    def _apply_filters(self, query, filters: SearchFilters):
        if filters.query:
            query = query.filter(func.lower(Subject.name).contains(filters.query.lower(), autoescape=True))

        if filters.city:
            query = query.filter(func.lower(Subject.city) == filters.city.lower())

        if filters.types:
            query = query.filter(func.lower(Subject.type).in_([t.lower() for t in filters.types]))

        if filters.rating_min > 0:
            query = query.filter(Subject.average_rating >= filters.rating_min)

        if filters.review_count_min > 0:
            query = query.filter(Subject.review_count >= filters.review_count_min)

        return query

    def filtered_search(
        self,
        filters: SearchFilters,
        page_size: int,
        offset: int
    ) -> Tuple[List[SubjectDTO], int]:
        """One page of rows matching every filter, plus the unpaginated count"""
        try:
            base = self._apply_filters(self.db.query(Subject), filters)
            rows = base.order_by(Subject.id).limit(page_size).offset(offset).all()
            total = self._apply_filters(self.db.query(func.count(Subject.id)), filters).scalar()
        except SQLAlchemyError:
            logger.exception("Catalog filtered search failed")
            raise StoreUnavailable("filtered_search")

        return [SubjectDTO.from_db(row) for row in rows], int(total or 0)

    def distinct_cities(self) -> List[str]:
        """Every city present in the catalog (NULL cities skipped)"""
        try:
            rows = (
                self.db.query(Subject.city)
                .filter(Subject.city.isnot(None))
                .distinct()
                .order_by(Subject.city)
                .all()
            )
        except SQLAlchemyError:
            logger.exception("Catalog city listing failed")
            raise StoreUnavailable("distinct_cities")

        return [row.city for row in rows if row.city]

    def all_subjects(self, city: Optional[str] = None) -> List[SubjectDTO]:
        """Full scan, optionally scoped to one city (case-insensitive)"""
        try:
            query = self.db.query(Subject)
            if city:
                query = query.filter(func.lower(Subject.city) == city.lower())
            rows = query.order_by(Subject.id).all()
        except SQLAlchemyError:
            logger.exception("Catalog scan failed")
            raise StoreUnavailable("all_subjects")

        return [SubjectDTO.from_db(row) for row in rows]


def create_catalog_store(db: Session) -> CatalogStore:
    """Factory function to create CatalogStore instance"""
    return CatalogStore(db)
