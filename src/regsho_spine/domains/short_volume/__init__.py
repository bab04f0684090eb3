"""
FINRA Reg SHO Daily Short Sale Volume Domain.

A thin domain built on regsho_spine.core primitives:
- schema: Table, indexes, constants
- models: ShortSaleRecord and result types
- dates: Date keys and reference-time-zone calendar
- parser: Lenient pipe-delimited file parsing
- connector: HTTP retrieval of one date's file
- repository: Insert-or-ignore storage and read queries
- coordinator: Deduplicated fetch → parse → store, backfill
- service: Contract for the API layer and scheduled jobs
"""

from regsho_spine.domains.short_volume.coordinator import IngestionCoordinator
from regsho_spine.domains.short_volume.models import (
    BackfillResult,
    IngestResult,
    IngestStatus,
    ShortSaleRecord,
)
from regsho_spine.domains.short_volume.service import ShortVolumeService

__all__ = [
    "BackfillResult",
    "IngestResult",
    "IngestStatus",
    "IngestionCoordinator",
    "ShortSaleRecord",
    "ShortVolumeService",
]
