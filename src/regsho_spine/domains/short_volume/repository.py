"""
Short sale volume repository - persistence and read queries.

One table, unique on (date, symbol).  Writes are insert-or-ignore: the
first row stored for a key wins and re-ingesting a date is a no-op for the
rows already present.  Rows leave the table only through retention pruning
or a full clear.

Every method raises ``StorageError`` on a driver failure.
"""

from collections.abc import Iterable

from regsho_spine.core.logging import get_logger
from regsho_spine.core.repository import BaseRepository
from regsho_spine.domains.short_volume.models import DatabaseStats, ShortSaleRecord
from regsho_spine.domains.short_volume.schema import (
    COLUMNS,
    DDL,
    INSERT_CHUNK_SIZE,
    SEARCH_LIMIT,
    TABLE,
)

logger = get_logger(__name__)

_INSERT_SQL = (
    f"INSERT OR IGNORE INTO {TABLE} ({', '.join(COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in COLUMNS)})"
)
_SELECT_COLUMNS = ", ".join(COLUMNS)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ShortSaleRepository(BaseRepository):
    """Store for ShortSaleRecord rows."""

    def ensure_schema(self) -> None:
        """Create the table and its indexes if missing."""
        with self.guarded("ensure_schema"):
            for statement in DDL:
                self.execute(statement)
            self.commit()

    # -- Writes ------------------------------------------------------------

    def upsert_many(self, records: Iterable[ShortSaleRecord]) -> int:
        """
        Insert records, ignoring any whose (date, symbol) already exists.

        Runs as one transaction in chunks of ``INSERT_CHUNK_SIZE``; a failure
        rolls back the whole call.

        Returns:
            Number of rows newly inserted (ignored duplicates excluded)
        """
        rows = [record.to_row() for record in records]
        if not rows:
            return 0

        inserted = 0
        with self.guarded("upsert_many"):
            try:
                for start in range(0, len(rows), INSERT_CHUNK_SIZE):
                    cursor = self.conn.executemany(
                        _INSERT_SQL, rows[start : start + INSERT_CHUNK_SIZE]
                    )
                    inserted += max(cursor.rowcount, 0)
                self.commit()
            except Exception:
                self.conn.rollback()
                raise

        logger.info(
            "short_volume.store.upserted", received=len(rows), inserted=inserted
        )
        return inserted

    def delete_older_than(self, cutoff_date_key: str) -> int:
        """
        Delete every row with ``date < cutoff_date_key``.

        Returns:
            Number of rows removed (counted before the delete)
        """
        with self.guarded("delete_older_than"):
            try:
                count = self.scalar(
                    f"SELECT COUNT(*) FROM {TABLE} WHERE date < ?", (cutoff_date_key,)
                )
                self.execute(f"DELETE FROM {TABLE} WHERE date < ?", (cutoff_date_key,))
                self.commit()
            except Exception:
                self.conn.rollback()
                raise

        logger.info("short_volume.store.pruned", cutoff=cutoff_date_key, deleted=count)
        return count

    def delete_all(self) -> int:
        """Delete every row. Returns the number removed."""
        with self.guarded("delete_all"):
            try:
                count = self.scalar(f"SELECT COUNT(*) FROM {TABLE}")
                self.execute(f"DELETE FROM {TABLE}")
                self.commit()
            except Exception:
                self.conn.rollback()
                raise

        logger.warning("short_volume.store.cleared", deleted=count)
        return count

    # -- Reads -------------------------------------------------------------

    def get_by_symbol(self, symbol: str, limit: int = 30) -> list[ShortSaleRecord]:
        """Most recent *limit* records for a symbol, newest first."""
        with self.guarded("get_by_symbol"):
            rows = self.query(
                f"SELECT {_SELECT_COLUMNS} FROM {TABLE} "
                "WHERE symbol = ? ORDER BY date DESC LIMIT ?",
                (symbol.strip().upper(), limit),
            )
        return [ShortSaleRecord.from_row(row) for row in rows]

    def get_by_date_range(
        self, start: str, end: str, symbol: str | None = None
    ) -> list[ShortSaleRecord]:
        """
        Records with ``start <= date <= end``, optionally for one symbol.

        Ordered by date descending, then symbol ascending.
        """
        sql = f"SELECT {_SELECT_COLUMNS} FROM {TABLE} WHERE date BETWEEN ? AND ?"
        params: tuple = (start, end)
        if symbol:
            sql += " AND symbol = ?"
            params += (symbol.strip().upper(),)
        sql += " ORDER BY date DESC, symbol ASC"

        with self.guarded("get_by_date_range"):
            rows = self.query(sql, params)
        return [ShortSaleRecord.from_row(row) for row in rows]

    def get_top_by_ratio(
        self, date_key: str, limit: int = 50, min_total_volume: int = 0
    ) -> list[ShortSaleRecord]:
        """
        Records for one date ordered by short ratio, highest first.

        Args:
            min_total_volume: Only rows with ``total_volume`` strictly above
                this floor are considered. The default of 0 still excludes
                rows with zero total volume
        """
        with self.guarded("get_top_by_ratio"):
            rows = self.query(
                f"SELECT {_SELECT_COLUMNS} FROM {TABLE} "
                "WHERE date = ? AND total_volume > ? "
                "ORDER BY short_ratio DESC, symbol ASC LIMIT ?",
                (date_key, min_total_volume, limit),
            )
        return [ShortSaleRecord.from_row(row) for row in rows]

    def get_distinct_dates(self) -> list[str]:
        """Every date key with at least one row, newest first."""
        with self.guarded("get_distinct_dates"):
            rows = self.query(f"SELECT DISTINCT date FROM {TABLE} ORDER BY date DESC")
        return [row["date"] for row in rows]

    def get_latest_date(self) -> str | None:
        """Newest stored date key, or None when empty."""
        with self.guarded("get_latest_date"):
            return self.scalar(f"SELECT MAX(date) FROM {TABLE}")

    def search_symbols_by_prefix(self, prefix: str, limit: int = SEARCH_LIMIT) -> list[str]:
        """Distinct symbols starting with *prefix* (case-insensitive), ascending."""
        prefix = prefix.strip()
        if not prefix:
            return []
        limit = max(0, min(limit, SEARCH_LIMIT))

        with self.guarded("search_symbols_by_prefix"):
            rows = self.query(
                f"SELECT DISTINCT symbol FROM {TABLE} "
                "WHERE UPPER(symbol) LIKE ? ESCAPE '\\' ORDER BY symbol ASC LIMIT ?",
                (_escape_like(prefix.upper()) + "%", limit),
            )
        return [row["symbol"] for row in rows]

    def get_stats(self) -> DatabaseStats:
        """Aggregate counts and the covered date span."""
        with self.guarded("get_stats"):
            row = self.query_one(
                f"""
                SELECT
                    COUNT(*) AS total_records,
                    COUNT(DISTINCT symbol) AS unique_symbols,
                    COUNT(DISTINCT date) AS unique_dates,
                    MIN(date) AS earliest_date,
                    MAX(date) AS latest_date
                FROM {TABLE}
                """
            )
        return DatabaseStats(**row)

    def count(self, date_key: str | None = None) -> int:
        """Row count, overall or for one date."""
        with self.guarded("count"):
            if date_key is None:
                return self.scalar(f"SELECT COUNT(*) FROM {TABLE}")
            return self.scalar(f"SELECT COUNT(*) FROM {TABLE} WHERE date = ?", (date_key,))

