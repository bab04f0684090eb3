"""
Short sale volume record and pipeline result types.

ShortSaleRecord is the single persisted entity: one row per symbol per
trading date.  The remaining dataclasses are the summaries returned to
callers of the ingestion and maintenance operations.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from regsho_spine.domains.short_volume.schema import RATIO_PRECISION


def compute_short_ratio(short_volume: int, total_volume: int) -> float:
    """
    Short volume as a percentage of total volume.

    Division by zero maps to 0.0, never an error or NaN.

    Example:
        compute_short_ratio(1000, 5000) -> 20.0
    """
    if total_volume <= 0:
        return 0.0
    return round(short_volume / total_volume * 100, RATIO_PRECISION)


@dataclass(frozen=True)
class ShortSaleRecord:
    """
    One symbol's short sale volume on one trading date.

    Records are created only from a parsed source line and are never
    updated in place.  ``short_ratio`` is always derived from the two
    volumes via ``compute_short_ratio``.
    """

    date: str  # YYYYMMDD date key
    symbol: str
    short_volume: int
    short_exempt_volume: int
    total_volume: int
    market: str = ""
    short_ratio: float = 0.0

    @classmethod
    def build(
        cls,
        date: str,
        symbol: str,
        short_volume: int,
        short_exempt_volume: int,
        total_volume: int,
        market: str = "",
    ) -> "ShortSaleRecord":
        """Create a record with its ratio derived from the volumes."""
        return cls(
            date=date,
            symbol=symbol,
            short_volume=short_volume,
            short_exempt_volume=short_exempt_volume,
            total_volume=total_volume,
            market=market,
            short_ratio=compute_short_ratio(short_volume, total_volume),
        )

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ShortSaleRecord":
        """Rehydrate from a storage row (extra columns are ignored)."""
        return cls(
            date=row["date"],
            symbol=row["symbol"],
            short_volume=row["short_volume"],
            short_exempt_volume=row["short_exempt_volume"],
            total_volume=row["total_volume"],
            market=row["market"] or "",
            short_ratio=row["short_ratio"],
        )

    def to_row(self) -> tuple:
        """Column values in ``schema.COLUMNS`` order."""
        return (
            self.date,
            self.symbol,
            self.short_volume,
            self.short_exempt_volume,
            self.total_volume,
            self.market,
            self.short_ratio,
        )


# =============================================================================
# RESULT TYPES
# =============================================================================


class IngestStatus:
    """Outcome classes of one ingestion attempt."""

    INGESTED = "ingested"
    CURRENT = "current"
    NO_DATA = "no_data"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class IngestResult:
    """
    Summary of one ingestion attempt for a date key.

    ``count`` is the number of records parsed from the file; ``inserted``
    is how many of those were new rows (0 when re-ingesting a date).
    """

    success: bool
    date: str
    count: int = 0
    inserted: int = 0
    status: str = IngestStatus.NO_DATA
    reason: str | None = None
    error: str | None = None
    already_current: bool = False

    @property
    def no_data(self) -> bool:
        """Expected "nothing published" outcome (weekend, holiday, empty file)."""
        return self.status in (IngestStatus.NO_DATA, IngestStatus.SKIPPED)

    @property
    def failed(self) -> bool:
        """A real problem occurred (network, storage)."""
        return self.status == IngestStatus.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class BackfillResult:
    """Summary of a sequential backfill over a date range."""

    start: str
    end: str
    total_records: int = 0
    days_processed: int = 0
    days_skipped: int = 0
    failed_dates: list[str] = field(default_factory=list)
    per_day: list[IngestResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "total_records": self.total_records,
            "days_processed": self.days_processed,
            "days_skipped": self.days_skipped,
            "failed_dates": list(self.failed_dates),
        }


@dataclass(frozen=True)
class DatabaseStats:
    """Aggregate statistics over the stored records."""

    total_records: int
    unique_symbols: int
    unique_dates: int
    earliest_date: str | None
    latest_date: str | None


@dataclass(frozen=True)
class PruneResult:
    """Outcome of retention pruning."""

    deleted_count: int
    cutoff_date: str


@dataclass(frozen=True)
class ClearResult:
    """Outcome of a full clear."""

    deleted_count: int
