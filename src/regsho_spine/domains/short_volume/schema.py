"""
Reg SHO daily short sale volume domain schema - table, indexes and constants.

This is the only place that defines short-volume specific constants.
All other modules in this domain import from here.
"""

# Source identifier used in error context
SOURCE_NAME = "finra_regsho_daily"

TABLE = "short_sale_data"

# Field delimiter of the daily CNMSshvol files
FIELD_DELIMITER = "|"

# [recordType, symbol, shortVolume, shortExemptVolume, totalVolume, market?]
MIN_FIELDS = 5

# Decimal places kept on short_ratio; applied once, in the parser
RATIO_PRECISION = 4

# Rows per executemany() batch when storing a file
INSERT_CHUNK_SIZE = 1000

# Symbol prefix search cap
SEARCH_LIMIT = 20

DATE_KEY_FORMAT = "%Y%m%d"

COLUMNS = (
    "date",
    "symbol",
    "short_volume",
    "short_exempt_volume",
    "total_volume",
    "market",
    "short_ratio",
)

DDL = [
    f"""
    CREATE TABLE IF NOT EXISTS {TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date TEXT NOT NULL,
        symbol TEXT NOT NULL,
        short_volume INTEGER NOT NULL DEFAULT 0,
        short_exempt_volume INTEGER NOT NULL DEFAULT 0,
        total_volume INTEGER NOT NULL DEFAULT 0,
        market TEXT NOT NULL DEFAULT '',
        short_ratio REAL NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        UNIQUE(date, symbol)
    )
    """,
    f"CREATE INDEX IF NOT EXISTS idx_{TABLE}_date ON {TABLE}(date)",
    f"CREATE INDEX IF NOT EXISTS idx_{TABLE}_symbol ON {TABLE}(symbol)",
]
