"""
errors.py - Exception hierarchy for the aggregation pipeline.

Failure policy:
    FetchError     -> absorbed per URL inside the download phase
    CategoryError  -> fatal to one category, propagated to the orchestrator
    RefreshError   -> several categories failed (continue-on-error mode)
    ConfigError    -> startup only, fatal to the process
"""
from __future__ import annotations


class BlocklistError(Exception):
    """Base class for all aggregator errors."""


class ConfigError(BlocklistError):
    """Category configuration could not be loaded or is malformed."""


class FetchError(BlocklistError):
    """A URL could not be fetched after every attempt was used."""

    def __init__(self, url: str, attempts: int, reason: str | None = None):
        self.url = url
        self.attempts = attempts
        self.reason = reason
        message = f"Failed to fetch {url} after {attempts} attempts"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class CategoryError(BlocklistError):
    """Filesystem failure while refreshing one category."""

    def __init__(self, category: str, cause: BaseException):
        self.category = category
        self.cause = cause
        super().__init__(f"Category '{category}' failed: {cause}")


class RefreshError(BlocklistError):
    """One or more categories failed during a refresh."""

    def __init__(self, failures: list[CategoryError]):
        self.failures = failures
        names = ", ".join(f.category for f in failures)
        super().__init__(f"{len(failures)} categories failed: {names}")
