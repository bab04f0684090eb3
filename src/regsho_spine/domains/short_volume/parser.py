"""
Daily short sale volume file parsing.

FINRA's consolidated NMS file is pipe-delimited with a header line:

    Date|Symbol|ShortVolume|ShortExemptVolume|TotalVolume|Market
    20240603|A|408214|1245|1040823|B,Q,N
    ...

Parsing is deliberately lenient (best effort, not a validator):
- the first line is always treated as the header and skipped
- blank lines are ignored
- lines with fewer than five fields are dropped (this includes the
  record-count trailer some files end with)
- a volume that is not a non-negative base-10 integer becomes 0
- the sixth (market) field is optional and defaults to ""

Dropped lines are counted in ``ParseStats`` so the coordinator can log them.
"""

from collections.abc import Iterator
from dataclasses import dataclass

from regsho_spine.core.logging import get_logger
from regsho_spine.domains.short_volume.models import ShortSaleRecord
from regsho_spine.domains.short_volume.schema import FIELD_DELIMITER, MIN_FIELDS

logger = get_logger(__name__)

# Fallback for an unparseable volume field
VOLUME_FALLBACK = 0


@dataclass
class ParseStats:
    """Line accounting for one parse."""

    lines_read: int = 0
    records: int = 0
    malformed: int = 0
    coerced_fields: int = 0


def parse_volume(value: str, stats: ParseStats | None = None) -> int:
    """
    Parse a volume field, falling back to ``VOLUME_FALLBACK``.

    FINRA publishes whole share counts; anything else is an anomaly in the
    file and is recorded as zero rather than failing the whole file.
    """
    text = value.strip()
    if text.isascii() and text.isdigit():
        return int(text)
    if stats is not None:
        stats.coerced_fields += 1
    return VOLUME_FALLBACK


def iter_short_volume_records(
    content: str, date_key: str, stats: ParseStats | None = None
) -> Iterator[ShortSaleRecord]:
    """Yield records in file order. See module docstring for the rules."""
    stats = stats if stats is not None else ParseStats()
    lines = content.splitlines()

    for line in lines[1:]:
        line = line.strip()
        if not line:
            continue
        stats.lines_read += 1

        values = line.split(FIELD_DELIMITER)
        if len(values) < MIN_FIELDS:
            stats.malformed += 1
            continue

        stats.records += 1
        yield ShortSaleRecord.build(
            date=date_key,
            symbol=values[1].strip(),
            short_volume=parse_volume(values[2], stats),
            short_exempt_volume=parse_volume(values[3], stats),
            total_volume=parse_volume(values[4], stats),
            market=values[5].strip() if len(values) > MIN_FIELDS else "",
        )


def parse_short_volume_content(
    content: str, date_key: str, stats: ParseStats | None = None
) -> list[ShortSaleRecord]:
    """
    Parse a whole file body into records for *date_key*.

    Header-only, empty or whitespace-only input yields an empty list.
    """
    stats = stats if stats is not None else ParseStats()
    records = list(iter_short_volume_records(content, date_key, stats))

    if stats.malformed or stats.coerced_fields:
        logger.info(
            "short_volume.parse.anomalies",
            date_key=date_key,
            malformed_lines=stats.malformed,
            coerced_fields=stats.coerced_fields,
        )
    logger.debug("short_volume.parse.completed", date_key=date_key, records=len(records))
    return records
