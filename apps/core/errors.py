"""
Search error hierarchy.

Only ``StoreUnavailable`` and ``SearchCancelled`` ever reach a client; the
other errors are raised and recovered inside the search pipeline.
"""

from typing import Any, Dict

from fastapi import status

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again later."


class SearchError(Exception):
    """Base exception for all search service errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "server_error"

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE, **kwargs: Any):
        self.message = message
        self.details = kwargs
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class InvalidInput(SearchError):
    """A numeric paging/filter parameter could not be parsed."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "invalid_input"

    def __init__(self, message: str = "Invalid numeric parameter", field: str = None, value: Any = None):
        super().__init__(message, field=field, value=value)


class NoCandidates(SearchError):
    """The fuzzy matcher was asked to pick from an empty candidate list."""

    error_code = "no_candidates"

    def __init__(self, query: str = ""):
        super().__init__(f"No candidates to match '{query}' against", query=query)


class StoreUnavailable(SearchError):
    """The catalog store failed; the request is aborted."""

    error_code = "store_unavailable"

    def __init__(self, operation: str = None):
        # never carry driver detail into the message
        super().__init__(GENERIC_ERROR_MESSAGE, operation=operation)


class SearchCancelled(SearchError):
    """The caller cancelled the search (usually a request timeout)."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "search_cancelled"

    def __init__(self, stage: str = None):
        super().__init__("Request timed out.", stage=stage)
