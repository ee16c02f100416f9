"""
Custom exception hierarchy for the crawl pipeline.

ConfigurationError is fatal only to the operation that needed the missing
setting. ExternalCallError subclasses are recovered from by fallback or an
Absent keyword outcome. PersistenceError ends the keyword that raised it.
"""

from __future__ import annotations

from typing import Any


class NewsCrawlerError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(NewsCrawlerError):
    """Required credential or setting is missing."""


class ExternalCallError(NewsCrawlerError):
    """Search API, LLM API or network failure."""


class SearchError(ExternalCallError):
    """News search request failed."""

    def __init__(
        self,
        message: str = "",
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.status = status
        super().__init__(message, details)


class LLMError(ExternalCallError):
    """LLM call failed or returned an unusable response."""


class SummarizationError(ExternalCallError):
    """Summary could not be produced."""


class ParseError(NewsCrawlerError):
    """Malformed LLM output."""


class PersistenceError(NewsCrawlerError):
    """Storage write or read failed."""
