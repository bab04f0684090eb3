"""
Shared pytest fixtures for regsho-spine tests.

This module provides:
- An in-memory ShortSaleRepository
- A scripted fetcher standing in for the FINRA CDN
- A fixed clock factory for calendar-dependent operations
- Settings and structlog isolation between tests

Usage:
    async def test_something(repository, make_fetcher, daily_file):
        fetcher = make_fetcher(default=daily_file)
        ...
"""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest
import structlog

from regsho_spine.core.settings import reset_settings
from regsho_spine.core.sqlite_conn import SqliteConnection
from regsho_spine.domains.short_volume.repository import ShortSaleRepository

HEADER = "Date|Symbol|ShortVolume|ShortExemptVolume|TotalVolume|Market"


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def _isolate_settings_and_logging(monkeypatch):
    """Fresh settings singleton and default structlog config per test."""
    for name in ("REGSHO_DATABASE_PATH", "REGSHO_RETENTION_DAYS", "REGSHO_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


# =============================================================================
# Storage
# =============================================================================


@pytest.fixture
def connection():
    conn = SqliteConnection(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def repository(connection) -> ShortSaleRepository:
    repo = ShortSaleRepository(connection)
    repo.ensure_schema()
    return repo


# =============================================================================
# Source data
# =============================================================================


def _daily_file(date_key: str) -> str:
    return "\n".join(
        [
            HEADER,
            f"{date_key}|ABCD|1000|200|5000|N",
            f"{date_key}|XYZ|300|0|600|Q",
            "",
        ]
    )


@pytest.fixture
def daily_file() -> Callable[[str], str]:
    """Build a two-record daily file body for a date key."""
    return _daily_file


class FakeFetcher:
    """
    Scripted stand-in for ShortVolumeFetcher.

    Each outcome is a body string, None (empty file), an exception to
    raise, a callable of the date key, or a list consumed one per call.
    """

    def __init__(
        self,
        responses: dict[str, Any] | None = None,
        default: Any = None,
        gate: asyncio.Event | None = None,
    ):
        self.responses = dict(responses or {})
        self.default = default
        self.gate = gate
        self.calls: list[str] = []

    async def fetch(self, date_key: str) -> str | None:
        self.calls.append(date_key)
        if self.gate is not None:
            await self.gate.wait()

        outcome = self.responses.get(date_key, self.default)
        if isinstance(outcome, list):
            outcome = outcome.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            outcome = outcome(date_key)
        return outcome


@pytest.fixture
def make_fetcher() -> Callable[..., FakeFetcher]:
    return FakeFetcher


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def fixed_clock() -> Callable[..., Callable[[], datetime]]:
    """``fixed_clock(2024, 6, 4, 15)`` -> clock pinned to that UTC instant."""

    def factory(*args: int) -> Callable[[], datetime]:
        instant = datetime(*args, tzinfo=UTC)
        return lambda: instant

    return factory
