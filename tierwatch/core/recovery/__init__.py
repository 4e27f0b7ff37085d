"""
Error handling and reconnect policy shared by providers, feeds and the scheduler.
"""

from .errors import (
    ErrorCategory,
    ErrorContext,
    NoDataAvailableError,
    PersistenceError,
    RecoverableError,
    SourceUnavailableError,
    UnrecoverableError,
    as_source_error,
    classify_error,
)
from .retry import RetryPolicy

__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "NoDataAvailableError",
    "PersistenceError",
    "RecoverableError",
    "SourceUnavailableError",
    "UnrecoverableError",
    "as_source_error",
    "classify_error",
    "RetryPolicy",
]
