"""
Error Classification

Defines error types raised across the ingestion pipeline.
Errors are classified as recoverable (a later cycle may succeed) or
unrecoverable (configuration or programming mistakes).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import httpx


class ErrorCategory(str, Enum):
    """Categories of errors for recovery decisions."""

    NETWORK = "network"           # Network/connectivity issues
    RATE_LIMIT = "rate_limit"     # API rate limits
    TIMEOUT = "timeout"           # Operation timed out
    PROVIDER = "provider"         # Upstream answered with an error or junk
    NO_DATA = "no_data"           # Every source failed or returned nothing
    PERSISTENCE = "persistence"   # Snapshot storage failed
    VALIDATION = "validation"     # Input validation error
    UNKNOWN = "unknown"           # Unclassified error


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = True
    retry_after_seconds: Optional[float] = None
    provider: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class RecoverableError(Exception):
    """
    Base class for errors that a later attempt may not hit.

    These errors are typically transient:
    - Network issues
    - Rate limits
    - Timeouts
    - Temporary provider outages
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        retry_after: Optional[float] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.retry_after = retry_after
        self.context = context or ErrorContext(category=category, recoverable=True)


class UnrecoverableError(Exception):
    """Base class for errors that retrying will not fix."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.context = context or ErrorContext(category=category, recoverable=False)


class SourceUnavailableError(RecoverableError):
    """A single upstream source failed for this cycle."""

    def __init__(
        self,
        source: str,
        message: str,
        category: ErrorCategory = ErrorCategory.PROVIDER,
        retry_after: Optional[float] = None,
    ):
        super().__init__(
            f"{source}: {message}",
            category=category,
            retry_after=retry_after,
            context=ErrorContext(
                category=category,
                recoverable=True,
                retry_after_seconds=retry_after,
                provider=source,
            ),
        )
        self.source = source


class NoDataAvailableError(RecoverableError):
    """Every source failed or returned zero tokens in one cycle."""

    def __init__(self, outcomes: Optional[Mapping[str, Any]] = None):
        self.outcomes = dict(outcomes or {})
        failed = sorted(name for name, outcome in self.outcomes.items() if not getattr(outcome, "ok", False))
        message = "no data currently available"
        if failed:
            message = f"{message} (failed sources: {', '.join(failed)})"
        super().__init__(message, category=ErrorCategory.NO_DATA)


class PersistenceError(RecoverableError):
    """Progression snapshot could not be read or written."""

    def __init__(self, message: str, *, backend: Optional[str] = None):
        super().__init__(
            message,
            category=ErrorCategory.PERSISTENCE,
            context=ErrorContext(
                category=ErrorCategory.PERSISTENCE,
                recoverable=True,
                details={"backend": backend} if backend else {},
            ),
        )


def classify_error(error: Exception, *, source: Optional[str] = None) -> ErrorContext:
    """Map an arbitrary exception onto an ``ErrorContext``."""
    if isinstance(error, (RecoverableError, UnrecoverableError)):
        return error.context

    if isinstance(error, (TimeoutError, httpx.TimeoutException)):
        return ErrorContext(category=ErrorCategory.TIMEOUT, recoverable=True, provider=source)

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status == 429:
            retry_after = error.response.headers.get("retry-after")
            try:
                retry_seconds = float(retry_after) if retry_after else None
            except ValueError:
                retry_seconds = None
            return ErrorContext(
                category=ErrorCategory.RATE_LIMIT,
                recoverable=True,
                retry_after_seconds=retry_seconds,
                provider=source,
            )
        return ErrorContext(
            category=ErrorCategory.PROVIDER,
            recoverable=status >= 500,
            provider=source,
            details={"status_code": status},
        )

    if isinstance(error, (httpx.TransportError, ConnectionError, OSError)):
        return ErrorContext(category=ErrorCategory.NETWORK, recoverable=True, provider=source)

    if isinstance(error, ValueError):
        return ErrorContext(category=ErrorCategory.VALIDATION, recoverable=False, provider=source)

    return ErrorContext(category=ErrorCategory.UNKNOWN, recoverable=True, provider=source)


def as_source_error(source: str, error: Exception) -> SourceUnavailableError:
    """Wrap a transport exception raised while talking to ``source``."""
    if isinstance(error, SourceUnavailableError):
        return error
    ctx = classify_error(error, source=source)
    return SourceUnavailableError(
        source,
        str(error) or error.__class__.__name__,
        category=ctx.category,
        retry_after=ctx.retry_after_seconds,
    )
