"""Base repository with small query helpers.

Provides :class:`BaseRepository`, which pairs a
:class:`~regsho_spine.core.protocols.Connection` with helpers that return
rows as plain dicts and translate driver failures into
:class:`~regsho_spine.core.errors.StorageError`.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                       BaseRepository                               │
    │                                                                    │
    │   conn: Connection        ← protocol from regsho_spine.core        │
    │                                                                    │
    │   execute(sql, params)     → cursor                                │
    │   query(sql, params)       → list[dict]                            │
    │   query_one(sql, params)   → dict | None                           │
    │   scalar(sql, params)      → first column of first row             │
    └────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from regsho_spine.core.errors import StorageError
from regsho_spine.core.protocols import Connection


class BaseRepository:
    """Base class for data-access repositories.

    Every helper holds ``self.lock`` while it talks to the connection so a
    repository can be shared between the event loop and worker threads.
    Any ``sqlite3.Error`` raised underneath surfaces as ``StorageError``.
    """

    def __init__(self, conn: Connection) -> None:
        self.conn = conn
        self.lock = threading.RLock()

    @contextmanager
    def guarded(self, operation: str) -> Iterator[None]:
        """Serialize access and wrap driver errors for *operation*."""
        with self.lock:
            try:
                yield
            except sqlite3.Error as e:
                raise StorageError(f"{operation} failed: {e}", cause=e).with_context(
                    operation=operation
                ) from e

    # -- Query helpers -----------------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a statement and return the raw cursor/result."""
        return self.conn.execute(sql, params)

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts."""
        cursor = self.conn.execute(sql, params)
        rows = cursor.fetchall()
        if not rows:
            return []

        # sqlite3.Row supports dict(row); plain tuples need the description
        try:
            return [dict(row) for row in rows]
        except (TypeError, ValueError):
            pass

        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row, strict=False)) for row in rows]

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute a SELECT and return the first row as a dict (or None)."""
        results = self.query(sql, params)
        return results[0] if results else None

    def scalar(self, sql: str, params: tuple = ()) -> Any:
        """Execute a SELECT and return the first column of the first row."""
        row = self.conn.execute(sql, params).fetchone()
        if row is None:
            return None
        return row[0]

    def commit(self) -> None:
        """Commit the current transaction."""
        self.conn.commit()


__all__ = [
    "BaseRepository",
]
