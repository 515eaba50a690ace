"""Exceptions raised by the search core."""
from __future__ import annotations


class SearchError(Exception):
    """Base class for failures surfaced to callers of the search core."""


class InvalidQueryError(SearchError, ValueError):
    """The request itself is unusable (empty query, bad sort mode, bad price bounds)."""


class UpstreamUnavailableError(SearchError):
    """The catalog failed or timed out.

    The message stays generic. The underlying exception is chained via
    ``__cause__`` and logged where it is raised.
    """

    def __init__(self, message: str = "Search failed") -> None:
        super().__init__(message)
