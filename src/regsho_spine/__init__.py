"""
regsho-spine - FINRA Reg SHO daily short sale volume ingestion.

- regsho_spine.core: errors, logging, settings, connection primitives
- regsho_spine.domains.short_volume: fetch, parse, store and query pipeline
- regsho_spine.cli: scheduler/cron entry point
"""

__version__ = "0.1.0"
