"""
Ingestion coordinator - fetch → parse → store for one date, deduplicated.

Concurrent callers asking for the same date key share one in-flight
operation and its result:

    Idle ──ingest(key)──► InFlight ──(success | failure)──► Idle
                            ▲  │
             ingest(key) ───┘  └── every waiter receives the same IngestResult

The in-flight table is owned by the coordinator instance (inject a fresh
coordinator per test).  Registration happens with no ``await`` between
the membership check and the insert, which makes check-and-set atomic on
the event loop.  Entries are removed when the task finishes, whatever the
outcome, so failures are never cached.

Failure mapping (see ``IngestResult``):
    SourceNotFoundError / empty body / zero records -> status "no_data"
    RemoteTimeoutError / NetworkError / ResponseTooLargeError / StorageError
                                                    -> status "error"
    anything else                                   -> propagates
"""

import asyncio
from datetime import date, datetime
from typing import Protocol

from regsho_spine.core.errors import (
    NetworkError,
    RemoteTimeoutError,
    ResponseTooLargeError,
    SourceNotFoundError,
    StorageError,
    categorize_error,
    is_retryable,
)
from regsho_spine.core.logging import LogContext, get_logger
from regsho_spine.domains.short_volume.dates import (
    coerce_date,
    format_date_key,
    is_weekend,
    iter_days,
)
from regsho_spine.domains.short_volume.models import (
    BackfillResult,
    IngestResult,
    IngestStatus,
    ShortSaleRecord,
)
from regsho_spine.domains.short_volume.parser import ParseStats, parse_short_volume_content

logger = get_logger(__name__)

DEFAULT_BACKFILL_DELAY = 1.0

_DEGRADED_ERRORS = (RemoteTimeoutError, NetworkError, ResponseTooLargeError, StorageError)


class Fetcher(Protocol):
    async def fetch(self, date_key: str) -> str | None: ...


class RecordStore(Protocol):
    def upsert_many(self, records: list[ShortSaleRecord]) -> int: ...


class IngestionCoordinator:
    """
    Orchestrates one date's ingestion and deduplicates concurrent requests.

    Args:
        fetcher: Anything with ``async fetch(date_key) -> str | None``
        store: Anything with ``upsert_many(records) -> int``; called on a
            worker thread so the event loop is not blocked by SQLite
        backfill_delay: Seconds to sleep between backfill days
    """

    def __init__(
        self,
        fetcher: Fetcher,
        store: RecordStore,
        backfill_delay: float = DEFAULT_BACKFILL_DELAY,
    ):
        self.fetcher = fetcher
        self.store = store
        self.backfill_delay = backfill_delay
        self._in_flight: dict[str, asyncio.Task[IngestResult]] = {}

    def in_flight(self) -> list[str]:
        """Date keys with an ingestion currently running."""
        return sorted(self._in_flight)

    def is_in_flight(self, date_key: str) -> bool:
        return date_key in self._in_flight

    async def ingest(self, target: date | datetime | str) -> IngestResult:
        """
        Ingest one date, joining an in-flight ingestion of the same key.

        Raises:
            ValueError: if *target* is not a recognizable date
        """
        date_key = format_date_key(coerce_date(target))

        task = self._in_flight.get(date_key)
        if task is None:
            task = asyncio.create_task(self._run(date_key), name=f"ingest-{date_key}")
            self._in_flight[date_key] = task
            task.add_done_callback(lambda t, key=date_key: self._release(key, t))
        else:
            logger.info("short_volume.ingest.joined", date_key=date_key)

        # Waiters may be cancelled; the shared ingestion still runs to completion
        return await asyncio.shield(task)

    def _release(self, date_key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(date_key) is task:
            del self._in_flight[date_key]
        # Waiters re-raise the exception themselves; all of them may be gone
        if not task.cancelled():
            task.exception()

    async def _run(self, date_key: str) -> IngestResult:
        async with LogContext(date_key=date_key):
            logger.info("short_volume.ingest.started")
            try:
                body = await self.fetcher.fetch(date_key)
            except SourceNotFoundError:
                logger.info("short_volume.ingest.no_data", reason="not_found")
                return IngestResult(
                    success=False, date=date_key, status=IngestStatus.NO_DATA, reason="not_found"
                )
            except _DEGRADED_ERRORS as e:
                return self._failure(date_key, e)

            if body is None:
                logger.info("short_volume.ingest.no_data", reason="empty")
                return IngestResult(
                    success=False, date=date_key, status=IngestStatus.NO_DATA, reason="empty"
                )

            stats = ParseStats()
            records = parse_short_volume_content(body, date_key, stats)
            if not records:
                logger.info("short_volume.ingest.no_data", reason="no_records")
                return IngestResult(
                    success=False, date=date_key, status=IngestStatus.NO_DATA, reason="no_records"
                )

            try:
                inserted = await asyncio.to_thread(self.store.upsert_many, records)
            except StorageError as e:
                return self._failure(date_key, e)

            logger.info(
                "short_volume.ingest.completed",
                count=len(records),
                inserted=inserted,
                malformed_lines=stats.malformed,
            )
            return IngestResult(
                success=True,
                date=date_key,
                count=len(records),
                inserted=inserted,
                status=IngestStatus.INGESTED,
            )

    def _failure(self, date_key: str, error: Exception) -> IngestResult:
        logger.error(
            "short_volume.ingest.failed",
            error_type=type(error).__name__,
            category=categorize_error(error).value,
            retryable=is_retryable(error),
            error=str(error),
        )
        return IngestResult(
            success=False,
            date=date_key,
            status=IngestStatus.ERROR,
            reason=type(error).__name__,
            error=str(error),
        )

    async def backfill(
        self, start: date | datetime | str, end: date | datetime | str
    ) -> BackfillResult:
        """
        Ingest every weekday from *start* to *end* inclusive, one at a time.

        Weekend days are skipped without a fetch.  A day that raises is
        logged, recorded in ``failed_dates`` and the loop moves on.
        """
        start_date, end_date = coerce_date(start), coerce_date(end)
        result = BackfillResult(start=format_date_key(start_date), end=format_date_key(end_date))
        logger.info("short_volume.backfill.started", start=result.start, end=result.end)

        first = True
        for day in iter_days(start_date, end_date):
            date_key = format_date_key(day)
            if is_weekend(day):
                logger.info("short_volume.backfill.weekend_skipped", date_key=date_key)
                result.days_skipped += 1
                continue

            if not first and self.backfill_delay > 0:
                await asyncio.sleep(self.backfill_delay)
            first = False

            try:
                day_result = await self.ingest(day)
            except Exception as e:
                logger.exception("short_volume.backfill.day_failed", date_key=date_key, error=str(e))
                result.failed_dates.append(date_key)
                result.days_processed += 1
                continue

            result.per_day.append(day_result)
            result.days_processed += 1
            if day_result.success:
                result.total_records += day_result.count
            elif day_result.failed:
                result.failed_dates.append(date_key)

        logger.info(
            "short_volume.backfill.completed",
            total_records=result.total_records,
            days_processed=result.days_processed,
            days_skipped=result.days_skipped,
            failed=len(result.failed_dates),
        )
        return result
