"""Pydantic schemas for search functionality"""

import logging
import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from apps.core.config import settings
from apps.core.errors import InvalidInput
from apps.subjects.dto import SubjectDTO

logger = logging.getLogger(__name__)

# largest row offset/limit the SQL backends accept
MAX_SQL_INTEGER = 2 ** 63 - 1


def parse_number(value: Any, field: str) -> float:
    """Finite float from a query-string or JSON value; raises InvalidInput"""
    if isinstance(value, bool) or value is None:
        raise InvalidInput(field=field, value=value)
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        raise InvalidInput(field=field, value=value)
    if not math.isfinite(number):
        raise InvalidInput(field=field, value=value)
    return number


def _coerce(value: Any, field: str, default, cast, positive: bool = False):
    try:
        number = cast(parse_number(value, field))
    except InvalidInput:
        if value not in (None, ""):
            logger.debug(f"Invalid {field}={value!r}, using default {default}")
        return default
    if positive and number <= 0:
        return default
    if cast is int and number > MAX_SQL_INTEGER:
        logger.debug(f"Out of range {field}={value!r}, using default {default}")
        return default
    return number


class SearchRequest(BaseModel):
    """Request schema for the search endpoint (query string or JSON body)"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    q: str = Field("", description="Free-text search request")
    type: Optional[str] = Field(None, description="Explicit category filter")
    city: Optional[str] = Field(None, description="Explicit city filter")
    rating_min: float = Field(0.0, alias="ratingMin", description="Minimum average rating")
    review_count_min: int = Field(0, alias="reviewCountMin", description="Minimum review count")
    page: int = Field(settings.search_default_page, description="1-based page number")
    page_size: int = Field(settings.search_default_page_size, alias="pageSize", description="Results per page")

    @field_validator("q", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("type", "city", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, (dict, list)):
            return None
        value = str(value).strip()
        return value or None

    @field_validator("rating_min", mode="before")
    @classmethod
    def _rating_min(cls, value: Any) -> float:
        return _coerce(value, "ratingMin", 0.0, float)

    @field_validator("review_count_min", mode="before")
    @classmethod
    def _review_count_min(cls, value: Any) -> int:
        return _coerce(value, "reviewCountMin", 0, int)

    @field_validator("page", mode="before")
    @classmethod
    def _page(cls, value: Any) -> int:
        return _coerce(value, "page", settings.search_default_page, int, positive=True)

    @field_validator("page_size", mode="before")
    @classmethod
    def _page_size(cls, value: Any) -> int:
        size = _coerce(value, "pageSize", settings.search_default_page_size, int, positive=True)
        if settings.search_max_page_size:
            size = min(size, settings.search_max_page_size)
        return size

    @model_validator(mode="after")
    def _offset_in_range(self) -> "SearchRequest":
        if self.page * self.page_size > MAX_SQL_INTEGER:
            logger.debug(f"Offset for page={self.page} pageSize={self.page_size} out of range, using page 1")
            self.page = settings.search_default_page
        return self


class SearchFiltersResponse(BaseModel):
    """Filters actually applied after parsing and correction"""

    model_config = ConfigDict(populate_by_name=True)

    type: Optional[str] = None
    city: Optional[str] = None
    rating_min: float = Field(0.0, alias="ratingMin")
    review_count_min: int = Field(0, alias="reviewCountMin")


class SearchMeta(BaseModel):
    """Paging metadata"""

    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    page_size: int = Field(..., alias="pageSize")
    total_pages: int = Field(..., alias="totalPages")


class SearchResponse(BaseModel):
    """Response envelope for the search endpoint"""
    query: str
    filters: SearchFiltersResponse
    meta: SearchMeta
    results: List[SubjectDTO]


class ParseResponse(BaseModel):
    """Tokenizer output for debugging"""
    input: str
    query: Optional[str] = None
    type: Optional[str] = None
    city: Optional[str] = None
