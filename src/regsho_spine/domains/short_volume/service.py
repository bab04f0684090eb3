"""
Short volume service - the contract the API layer and scheduler call.

Wires the fetcher, repository and coordinator together and exposes the
operations a dashboard backend needs:

    ingest_date(date?)              -> IngestResult
    backfill(start, end)            -> BackfillResult
    run_daily() / check_latest()    -> IngestResult      (scheduled jobs)
    query_by_symbol / query_by_range / query_top_by_ratio
    list_dates / search_symbols / stats
    prune_older_than(days)          -> PruneResult
    clear_all()                     -> ClearResult

"Today" and "yesterday" come from the injected clock evaluated in the
source's reference time zone.

Usage:
    async with ShortVolumeService.from_settings(get_settings()) as service:
        result = await service.ingest_date()
        if result.no_data:
            ...
"""

import asyncio
from datetime import date, datetime, timedelta

from regsho_spine.core.logging import get_logger
from regsho_spine.core.settings import RegShoSettings
from regsho_spine.core.sqlite_conn import SqliteConnection
from regsho_spine.domains.short_volume.connector import ShortVolumeFetcher
from regsho_spine.domains.short_volume.coordinator import IngestionCoordinator
from regsho_spine.domains.short_volume.dates import (
    DEFAULT_TIMEZONE,
    Clock,
    format_date_key,
    is_weekend,
    to_date_key,
    today_in,
    yesterday,
)
from regsho_spine.domains.short_volume.models import (
    BackfillResult,
    ClearResult,
    DatabaseStats,
    IngestResult,
    IngestStatus,
    PruneResult,
    ShortSaleRecord,
)
from regsho_spine.domains.short_volume.repository import ShortSaleRepository
from regsho_spine.domains.short_volume.schema import SEARCH_LIMIT

logger = get_logger(__name__)

DateInput = date | datetime | str


class ShortVolumeService:
    """Facade over the short volume pipeline and store."""

    def __init__(
        self,
        repository: ShortSaleRepository,
        coordinator: IngestionCoordinator,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Clock | None = None,
        top_ratio_min_volume: int = 0,
        retention_days: int = 30,
        connection: SqliteConnection | None = None,
    ):
        self.repository = repository
        self.coordinator = coordinator
        self.timezone = timezone
        self.clock = clock
        self.top_ratio_min_volume = top_ratio_min_volume
        self.retention_days = retention_days
        self._connection = connection

    @classmethod
    def from_settings(
        cls,
        settings: RegShoSettings,
        *,
        clock: Clock | None = None,
        fetcher: ShortVolumeFetcher | None = None,
    ) -> "ShortVolumeService":
        """Build the production wiring: SQLite file + HTTP fetcher."""
        connection = SqliteConnection(settings.database_path)
        repository = ShortSaleRepository(connection)
        repository.ensure_schema()
        coordinator = IngestionCoordinator(
            fetcher=fetcher or ShortVolumeFetcher.from_settings(settings),
            store=repository,
            backfill_delay=settings.backfill_delay,
        )
        return cls(
            repository=repository,
            coordinator=coordinator,
            timezone=settings.reference_timezone,
            clock=clock,
            top_ratio_min_volume=settings.top_ratio_min_volume,
            retention_days=settings.retention_days,
            connection=connection,
        )

    # -- Lifecycle -----------------------------------------------------------

    async def aclose(self) -> None:
        aclose = getattr(self.coordinator.fetcher, "aclose", None)
        if aclose is not None:
            await aclose()
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    async def __aenter__(self) -> "ShortVolumeService":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    # -- Calendar ------------------------------------------------------------

    def yesterday(self) -> date:
        return yesterday(self.timezone, self.clock)

    def today(self) -> date:
        return today_in(self.timezone, self.clock)

    # -- Ingestion -----------------------------------------------------------

    async def ingest_date(self, target: DateInput | None = None) -> IngestResult:
        """Ingest *target*, defaulting to yesterday in the reference zone."""
        return await self.coordinator.ingest(target if target is not None else self.yesterday())

    async def backfill(self, start: DateInput, end: DateInput) -> BackfillResult:
        return await self.coordinator.backfill(start, end)

    async def run_daily(self) -> IngestResult:
        """
        Scheduled job: ingest yesterday unless it fell on a weekend.

        Weekend days return ``status="skipped"`` without touching the network.
        """
        target = self.yesterday()
        date_key = format_date_key(target)
        if is_weekend(target):
            logger.info("short_volume.daily.weekend_skipped", date_key=date_key)
            return IngestResult(
                success=False, date=date_key, status=IngestStatus.SKIPPED, reason="weekend"
            )

        result = await self.coordinator.ingest(target)
        if result.success:
            logger.info("short_volume.daily.completed", date_key=date_key, count=result.count)
        elif result.no_data:
            logger.warning("short_volume.daily.no_data", date_key=date_key, reason=result.reason)
        return result

    async def check_latest(self) -> IngestResult:
        """Run the daily job only if yesterday is not already stored."""
        date_key = format_date_key(self.yesterday())
        latest = await asyncio.to_thread(self.repository.get_latest_date)
        if latest == date_key:
            logger.info("short_volume.daily.already_current", date_key=date_key)
            return IngestResult(
                success=True,
                date=date_key,
                status=IngestStatus.CURRENT,
                already_current=True,
            )
        logger.info("short_volume.daily.behind", date_key=date_key, latest=latest)
        return await self.run_daily()

    # -- Queries -------------------------------------------------------------

    def query_by_symbol(self, symbol: str, limit: int = 30) -> list[ShortSaleRecord]:
        return self.repository.get_by_symbol(symbol, limit)

    def query_by_range(
        self, start: DateInput, end: DateInput, symbol: str | None = None
    ) -> list[ShortSaleRecord]:
        return self.repository.get_by_date_range(to_date_key(start), to_date_key(end), symbol)

    def query_top_by_ratio(
        self, target: DateInput, limit: int = 50, min_total_volume: int | None = None
    ) -> list[ShortSaleRecord]:
        floor = self.top_ratio_min_volume if min_total_volume is None else min_total_volume
        return self.repository.get_top_by_ratio(to_date_key(target), limit, floor)

    def list_dates(self) -> list[str]:
        return self.repository.get_distinct_dates()

    def search_symbols(self, prefix: str, limit: int = SEARCH_LIMIT) -> list[str]:
        return self.repository.search_symbols_by_prefix(prefix, limit)

    def stats(self) -> DatabaseStats:
        return self.repository.get_stats()

    # -- Maintenance -----------------------------------------------------------

    def retention_cutoff(self, days: int) -> str:
        """Date key *days* before today in the reference zone."""
        if days < 0:
            raise ValueError(f"days must be >= 0, got {days}")
        return format_date_key(self.today() - timedelta(days=days))

    def prune_older_than(self, days: int | None = None) -> PruneResult:
        """Delete rows dated before ``today - days`` (default: retention_days)."""
        cutoff = self.retention_cutoff(self.retention_days if days is None else days)
        deleted = self.repository.delete_older_than(cutoff)
        return PruneResult(deleted_count=deleted, cutoff_date=cutoff)

    def clear_all(self) -> ClearResult:
        return ClearResult(deleted_count=self.repository.delete_all())
