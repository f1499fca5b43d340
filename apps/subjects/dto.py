"""Read-only data carriers passed between the store and the search pipeline."""

from dataclasses import dataclass
from typing import Optional
from pydantic import BaseModel, ConfigDict
from apps.subjects.models import Subject


class SubjectDTO(BaseModel):
    """Snapshot of a Subject row; the pipeline never touches ORM objects."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    name: str
    type: str
    location: Optional[str] = None
    city: Optional[str] = None
    average_rating: float = 0.0
    review_count: int = 0

    @classmethod
    def from_db(cls, subject: Subject) -> "SubjectDTO":
        """Build a snapshot from a Subject model"""
        return cls(
            id=subject.id,
            name=subject.name,
            type=subject.type,
            location=subject.location,
            city=subject.city,
            average_rating=subject.average_rating or 0.0,
            review_count=subject.review_count or 0,
        )


@dataclass(frozen=True)
class ParsedQuery:
    """Structured hints extracted from a free-text request"""
    query: Optional[str] = None
    type: Optional[str] = None
    city: Optional[str] = None


@dataclass(frozen=True)
class ScoredCandidate:
    """Subject id with the similarity accumulated over the fallback passes"""
    subject_id: int
    accumulated_score: float


@dataclass(frozen=True)
class SearchFilters:
    """Conjunctive filter set for the primary catalog lookup"""
    query: Optional[str] = None
    city: Optional[str] = None
    types: tuple = ()
    rating_min: float = 0.0
    review_count_min: int = 0
