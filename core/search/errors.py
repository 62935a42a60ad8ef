"""
Search error taxonomy.

- FilterValidationError: invalid filter combination, raised before any store access.
- StoreError: failure from the backing store while executing a query.
- SearchTimeoutError / SearchCancelledError: the store query was aborted.

A missing offer is not an error: lookups return None.
"""

from typing import Optional


class SearchError(Exception):
    """Base exception for the search engine."""
    pass


class FilterValidationError(SearchError):
    """Raised when filter parameters are semantically invalid."""

    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class StoreError(SearchError):
    """Raised when the offer store fails while executing a search."""

    def __init__(self, message: str = "Offer store query failed", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class SearchTimeoutError(StoreError):
    """Raised when a store query exceeds its statement timeout."""
    pass


class SearchCancelledError(StoreError):
    """Raised when the caller cancelled the request while queries were in flight."""
    pass
