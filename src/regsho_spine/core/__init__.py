"""Core primitives shared by regsho-spine domains."""

from regsho_spine.core.errors import (
    ErrorCategory,
    ErrorContext,
    NetworkError,
    RegShoError,
    RemoteTimeoutError,
    ResponseTooLargeError,
    SourceError,
    SourceNotFoundError,
    StorageError,
)
from regsho_spine.core.logging import LogContext, configure_logging, get_logger
from regsho_spine.core.protocols import Connection
from regsho_spine.core.settings import RegShoSettings, get_settings, reset_settings
from regsho_spine.core.sqlite_conn import SqliteConnection

__all__ = [
    "Connection",
    "ErrorCategory",
    "ErrorContext",
    "LogContext",
    "NetworkError",
    "RegShoError",
    "RegShoSettings",
    "RemoteTimeoutError",
    "ResponseTooLargeError",
    "SourceError",
    "SourceNotFoundError",
    "SqliteConnection",
    "StorageError",
    "configure_logging",
    "get_logger",
    "get_settings",
    "reset_settings",
]
