"""Tests for short volume records and result types."""

import pytest

from regsho_spine.domains.short_volume.models import (
    BackfillResult,
    IngestResult,
    IngestStatus,
    ShortSaleRecord,
    compute_short_ratio,
)


class TestComputeShortRatio:
    @pytest.mark.parametrize(
        "short, total, expected",
        [
            (1000, 5000, 20.0),
            (0, 5000, 0.0),
            (5000, 5000, 100.0),
            (2, 3, 66.6667),
            (10, 0, 0.0),
            (0, 0, 0.0),
        ],
    )
    def test_formula(self, short, total, expected):
        assert compute_short_ratio(short, total) == expected


class TestShortSaleRecord:
    def test_build_derives_ratio(self):
        record = ShortSaleRecord.build("20240603", "ABCD", 1000, 200, 5000, "N")
        assert record.short_ratio == 20.0

    def test_row_round_trip(self):
        record = ShortSaleRecord.build("20240603", "ABCD", 1000, 200, 5000, "N")
        columns = ("date", "symbol", "short_volume", "short_exempt_volume",
                   "total_volume", "market", "short_ratio")
        row = dict(zip(columns, record.to_row()))
        row["id"] = 7
        assert ShortSaleRecord.from_row(row) == record

    def test_frozen(self):
        record = ShortSaleRecord.build("20240603", "ABCD", 1, 0, 2)
        with pytest.raises(AttributeError):
            record.symbol = "OTHER"


class TestIngestResult:
    def test_success(self):
        result = IngestResult(success=True, date="20240603", count=3, inserted=3,
                              status=IngestStatus.INGESTED)
        assert not result.no_data
        assert not result.failed

    @pytest.mark.parametrize("status", [IngestStatus.NO_DATA, IngestStatus.SKIPPED])
    def test_no_data_statuses(self, status):
        result = IngestResult(success=False, date="20240601", status=status)
        assert result.no_data
        assert not result.failed

    def test_error_status(self):
        result = IngestResult(success=False, date="20240603", status=IngestStatus.ERROR,
                              reason="NetworkError", error="boom")
        assert result.failed
        assert not result.no_data

    def test_to_dict_omits_none(self):
        data = IngestResult(success=False, date="20240603").to_dict()
        assert data == {
            "success": False,
            "date": "20240603",
            "count": 0,
            "inserted": 0,
            "status": "no_data",
            "already_current": False,
        }


class TestBackfillResult:
    def test_to_dict_excludes_per_day(self):
        result = BackfillResult(start="20240603", end="20240609", total_records=4,
                                days_processed=5, days_skipped=2, failed_dates=["20240605"])
        result.per_day.append(IngestResult(success=True, date="20240603"))
        data = result.to_dict()
        assert "per_day" not in data
        assert data["failed_dates"] == ["20240605"]
        assert data["days_skipped"] == 2
