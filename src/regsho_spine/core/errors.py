"""
Structured error types for regsho-spine.

Provides a small hierarchy of typed errors with metadata for retry
decisions, error categorization and structured logging.

Instead of generic exceptions that lose context, RegShoError and its
subclasses carry:
- **Category:** What kind of error (network, source, storage, etc.)
- **Retryable:** Whether the operation could succeed if repeated later
- **Context:** Date key, URL, HTTP status and free-form metadata
- **Cause:** Chained underlying exception for root cause analysis

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                        RegShoError                           │
        │           (category, retryable, context, cause)              │
        ├─────────────────────────────────────────────────────────────┤
        │                                                              │
        │  TransientError        SourceError          StorageError     │
        │  (retryable=True)      (SOURCE)             (STORAGE)        │
        │       │                     │                                │
        │  NetworkError          SourceNotFoundError   ConfigError      │
        │  RemoteTimeoutError    ResponseTooLargeError (CONFIG)         │
        └─────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Raise a bare Exception for an expected remote failure
    ✅ DO: Raise the subclass the coordinator knows how to degrade

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining

Usage:
    from regsho_spine.core.errors import NetworkError, SourceNotFoundError

    try:
        response = await client.get(url)
    except httpx.RequestError as e:
        raise NetworkError("Failed to reach source", cause=e)
    if response.status_code == 404:
        raise SourceNotFoundError("No file published").with_context(url=url)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    - **Infrastructure:** NETWORK, STORAGE
    - **Source:** SOURCE
    - **Configuration:** CONFIG
    - **Internal:** INTERNAL, UNKNOWN
    """

    NETWORK = "NETWORK"
    SOURCE = "SOURCE"
    STORAGE = "STORAGE"
    CONFIG = "CONFIG"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        date_key: Source date key (YYYYMMDD) being processed
        source_name: Name of the data source (e.g., "finra_regsho")
        url: URL that was being accessed
        http_status: HTTP status code if applicable
        metadata: Additional key-value pairs
    """

    date_key: str | None = None
    source_name: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["date_key", "source_name", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class RegShoError(Exception):
    """
    Base exception for all regsho-spine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so callers
    rarely pass them explicitly.

    Examples:
        >>> error = RegShoError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        >>> error = RegShoError("Fetch failed").with_context(date_key="20240603")
        >>> error.context.date_key
        '20240603'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> RegShoError:
        """
        Add context to this error (fluent API).

        Usage:
            raise SourceError("Failed").with_context(
                url="https://cdn.finra.org/...",
                date_key="20240603",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Usually Retryable)
# =============================================================================


class TransientError(RegShoError):
    """
    Temporary error that may succeed on retry.

    The coordinator never retries on its own; retry policy belongs to the
    caller or the scheduler that invoked it.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class NetworkError(TransientError):
    """Connectivity failure talking to the remote source."""

    default_category = ErrorCategory.NETWORK


class RemoteTimeoutError(TransientError):
    """Remote call exceeded its timeout bound."""

    default_category = ErrorCategory.NETWORK


# =============================================================================
# SOURCE ERRORS
# =============================================================================


class SourceError(RegShoError):
    """
    Error from the data source.

    Default not retryable (e.g., 404 for a holiday).
    """

    default_category = ErrorCategory.SOURCE
    default_retryable = False


class SourceNotFoundError(SourceError):
    """The source has no file for the requested date (weekends, holidays)."""


class ResponseTooLargeError(SourceError):
    """Response body exceeded the configured size ceiling."""

    def __init__(self, message: str, *, limit: int, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.limit = limit


# =============================================================================
# STORAGE / CONFIG ERRORS
# =============================================================================


class StorageError(RegShoError):
    """Persistence layer failure (connectivity, unexpected constraint)."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


class ConfigError(RegShoError):
    """Missing or invalid configuration."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, RegShoError):
        return error.retryable
    return isinstance(error, (ConnectionError, OSError))


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, RegShoError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RegShoError",
    "TransientError",
    "NetworkError",
    "RemoteTimeoutError",
    "SourceError",
    "SourceNotFoundError",
    "ResponseTooLargeError",
    "StorageError",
    "ConfigError",
    "is_retryable",
    "categorize_error",
]
