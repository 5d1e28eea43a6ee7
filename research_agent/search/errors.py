"""Search backend errors.

Adapters raise these; the search tool catches them and degrades to an
empty result set so a failing backend never ends the turn.
"""

from __future__ import annotations


class SearchError(Exception):
    """Base class for every failure raised by a search provider."""


class SearchConfigError(SearchError):
    """A required credential or base URL is missing."""


class SearchAPIError(SearchError):
    """The backend answered with a non-2xx status or an unusable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SearchTimeoutError(SearchError):
    """The backend did not answer before the request deadline."""
