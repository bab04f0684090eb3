"""Tests for ShortVolumeService: scheduled jobs, queries and retention."""

from __future__ import annotations

import asyncio
import threading

import pytest

from regsho_spine.core.settings import RegShoSettings
from regsho_spine.domains.short_volume.coordinator import IngestionCoordinator
from regsho_spine.domains.short_volume.models import IngestStatus, ShortSaleRecord
from regsho_spine.domains.short_volume.service import ShortVolumeService


@pytest.fixture
def build(repository, make_fetcher, fixed_clock, daily_file):
    """``build(clock_args, **fetcher_kwargs)`` -> (service, fetcher)."""

    def factory(*clock_args, top_ratio_min_volume=0, **fetcher_kwargs):
        fetcher_kwargs.setdefault("default", daily_file)
        fetcher = make_fetcher(**fetcher_kwargs)
        service = ShortVolumeService(
            repository=repository,
            coordinator=IngestionCoordinator(fetcher, repository, backfill_delay=0),
            clock=fixed_clock(*clock_args),
            top_ratio_min_volume=top_ratio_min_volume,
            retention_days=30,
        )
        return service, fetcher

    return factory


class TestIngestDate:
    @pytest.mark.asyncio
    async def test_defaults_to_yesterday_in_new_york(self, build):
        # 02:00 UTC Wednesday is still Tuesday 2024-06-04 in New York
        service, fetcher = build(2024, 6, 5, 2, 0)

        result = await service.ingest_date()

        assert fetcher.calls == ["20240603"]
        assert result.success

    @pytest.mark.asyncio
    async def test_explicit_date(self, build):
        service, fetcher = build(2024, 6, 5, 12)
        await service.ingest_date("2024-05-31")
        assert fetcher.calls == ["20240531"]

    @pytest.mark.asyncio
    async def test_backfill(self, build):
        service, fetcher = build(2024, 6, 10, 12)
        result = await service.backfill("20240603", "20240609")
        assert result.days_processed == 5
        assert result.days_skipped == 2


class TestRunDaily:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "clock_args, weekend_day",
        [
            ((2024, 6, 9, 15), "20240608"),  # Sunday run -> Saturday
            ((2024, 6, 10, 15), "20240609"),  # Monday run -> Sunday
        ],
    )
    async def test_weekend_skipped_without_fetch(self, build, clock_args, weekend_day):
        service, fetcher = build(*clock_args)

        result = await service.run_daily()

        assert fetcher.calls == []
        assert result.status == IngestStatus.SKIPPED
        assert result.reason == "weekend"
        assert result.date == weekend_day
        assert result.no_data

    @pytest.mark.asyncio
    async def test_weekday_ingests(self, build):
        service, fetcher = build(2024, 6, 4, 15)

        result = await service.run_daily()

        assert fetcher.calls == ["20240603"]
        assert result.status == IngestStatus.INGESTED


class TestCheckLatest:
    @pytest.mark.asyncio
    async def test_already_current(self, build, repository):
        repository.upsert_many([ShortSaleRecord.build("20240603", "ABCD", 1, 0, 2)])
        service, fetcher = build(2024, 6, 4, 15)

        result = await service.check_latest()

        assert result.success
        assert result.already_current
        assert result.status == IngestStatus.CURRENT
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_behind_runs_daily(self, build, repository):
        repository.upsert_many([ShortSaleRecord.build("20240531", "ABCD", 1, 0, 2)])
        service, fetcher = build(2024, 6, 4, 15)

        result = await service.check_latest()

        assert fetcher.calls == ["20240603"]
        assert result.success
        assert not result.already_current

    @pytest.mark.asyncio
    async def test_empty_store_runs_daily(self, build):
        service, fetcher = build(2024, 6, 4, 15)
        await service.check_latest()
        assert fetcher.calls == ["20240603"]

    @pytest.mark.asyncio
    async def test_store_read_does_not_block_event_loop(self, build, repository):
        repository.upsert_many([ShortSaleRecord.build("20240603", "ABCD", 1, 0, 2)])
        service, _ = build(2024, 6, 4, 15)
        held = threading.Event()
        release = threading.Event()

        def hold_lock():
            with repository.lock:
                held.set()
                release.wait(2)

        holder = threading.Thread(target=hold_lock)
        holder.start()
        held.wait(2)

        task = asyncio.create_task(service.check_latest())
        await asyncio.sleep(0.05)
        assert not task.done()

        release.set()
        result = await task
        holder.join()

        assert result.already_current


class TestQueries:
    @pytest.mark.asyncio
    async def test_queries_after_ingest(self, build):
        service, _ = build(2024, 6, 4, 15)
        await service.ingest_date("20240603")

        assert [r.symbol for r in service.query_by_symbol("abcd")] == ["ABCD"]
        assert len(service.query_by_range("2024-06-01", "2024-06-30")) == 2
        assert len(service.query_by_range("20240603", "20240603", symbol="XYZ")) == 1
        assert service.list_dates() == ["20240603"]
        assert service.search_symbols("x") == ["XYZ"]
        assert service.stats().total_records == 2

    @pytest.mark.asyncio
    async def test_top_uses_configured_floor(self, build):
        # XYZ: 300/600 = 50%, ABCD: 1000/5000 = 20%
        service, _ = build(2024, 6, 4, 15, top_ratio_min_volume=1000)
        await service.ingest_date("20240603")

        assert [r.symbol for r in service.query_top_by_ratio("20240603")] == ["ABCD"]
        assert [r.symbol for r in service.query_top_by_ratio("20240603", min_total_volume=0)] == [
            "XYZ",
            "ABCD",
        ]

    def test_invalid_date_raises(self, build):
        service, _ = build(2024, 6, 4, 15)
        with pytest.raises(ValueError):
            service.query_by_range("soon", "later")


class TestRetention:
    def test_prune_cutoff_in_reference_zone(self, build, repository):
        repository.upsert_many(
            [
                ShortSaleRecord.build(day, "ABCD", 1, 0, 2)
                for day in ("20240603", "20240604", "20240605", "20240607")
            ]
        )
        # 03:00 UTC on Jun 11 is still Jun 10 in New York
        service, _ = build(2024, 6, 11, 3)

        result = service.prune_older_than(5)

        assert result.cutoff_date == "20240605"
        assert result.deleted_count == 2
        assert repository.get_distinct_dates() == ["20240607", "20240605"]

    def test_prune_defaults_to_retention_days(self, build):
        service, _ = build(2024, 6, 30, 15)
        assert service.prune_older_than().cutoff_date == "20240531"

    def test_negative_days_rejected(self, build):
        service, _ = build(2024, 6, 10, 15)
        with pytest.raises(ValueError):
            service.prune_older_than(-1)

    def test_clear_all(self, build, repository):
        repository.upsert_many([ShortSaleRecord.build("20240603", "ABCD", 1, 0, 2)])
        service, _ = build(2024, 6, 10, 15)

        assert service.clear_all().deleted_count == 1
        assert repository.count() == 0


class TestFromSettings:
    @pytest.mark.asyncio
    async def test_wires_file_database(self, tmp_path, make_fetcher, daily_file, fixed_clock):
        settings = RegShoSettings(database_path=tmp_path / "svc" / "regsho.db", backfill_delay=0)
        fetcher = make_fetcher(default=daily_file)

        async with ShortVolumeService.from_settings(
            settings, clock=fixed_clock(2024, 6, 4, 15), fetcher=fetcher
        ) as service:
            result = await service.ingest_date()
            assert result.count == 2
            assert service.coordinator.backfill_delay == 0

        assert (tmp_path / "svc" / "regsho.db").exists()
