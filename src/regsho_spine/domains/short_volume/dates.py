"""
Date key formatting and reference-time-zone calendar helpers.

FINRA names each daily file after the trading date it covers
(``CNMSshvol20240603.txt``) and publishes on US market time, so "yesterday"
has to be computed in that zone rather than in the host's local zone.

All functions are pure.  Anything that needs "now" takes a clock callable
so tests can pin it.
"""

from collections.abc import Callable, Iterator
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from regsho_spine.domains.short_volume.schema import DATE_KEY_FORMAT

Clock = Callable[[], datetime]

DEFAULT_TIMEZONE = "America/New_York"

SATURDAY = 5
SUNDAY = 6


def utc_now() -> datetime:
    """Default clock: the current instant, timezone-aware."""
    return datetime.now(UTC)


def format_date_key(value: date) -> str:
    """
    Format a date as a ``YYYYMMDD`` key using its own calendar fields.

    No time-zone conversion is applied; a datetime is formatted as-is.

    Example:
        format_date_key(date(2024, 6, 3)) -> "20240603"
    """
    return f"{value.year:04d}{value.month:02d}{value.day:02d}"


def parse_date_key(key: str) -> date:
    """Parse a ``YYYYMMDD`` key. Raises ValueError if malformed."""
    key = key.strip()
    if len(key) != 8 or not key.isdigit():
        raise ValueError(f"Invalid date key: {key!r} (expected YYYYMMDD)")
    return datetime.strptime(key, DATE_KEY_FORMAT).date()


def coerce_date(value: date | datetime | str) -> date:
    """
    Normalize caller input to a calendar date.

    Accepts a ``date``, a ``datetime`` (its own calendar date), a
    ``YYYYMMDD`` key or an ISO ``YYYY-MM-DD`` string.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 8 and text.isdigit():
            return parse_date_key(text)
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        raise ValueError(f"Unrecognized date: {value!r} (use YYYYMMDD or YYYY-MM-DD)")
    raise ValueError(f"Unsupported date value: {value!r}")


def to_date_key(value: date | datetime | str) -> str:
    """Coerce any accepted date input straight to its key."""
    return format_date_key(coerce_date(value))


def today_in(timezone: str = DEFAULT_TIMEZONE, clock: Clock | None = None) -> date:
    """
    The calendar date "now" in *timezone*.

    A naive clock reading is treated as UTC.
    """
    now = (clock or utc_now)()
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(ZoneInfo(timezone)).date()


def yesterday(timezone: str = DEFAULT_TIMEZONE, clock: Clock | None = None) -> date:
    """
    The calendar day before today in *timezone*.

    "Now" is projected into the zone first and one calendar day is then
    subtracted, so month and year rollover come from date arithmetic.

    Example:
        2024-03-01 03:00 UTC is still 2024-02-29 in New York,
        so yesterday("America/New_York") -> 2024-02-28
    """
    return today_in(timezone, clock) - timedelta(days=1)


def is_weekend(value: date) -> bool:
    """True for Saturday and Sunday (no trading, no file)."""
    return value.weekday() in (SATURDAY, SUNDAY)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from *start* to *end*, inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
