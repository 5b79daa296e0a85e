"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines the static tables the sync pipeline works from.

- Approximate fiat prices per asset
- Ledger partition names and recycle-bin header
- Source status labels

============================================================
DESIGN PRINCIPLES
============================================================
- All constants are immutable
- No business logic here

============================================================
"""

from types import MappingProxyType


# ============================================================
# SYSTEM CONSTANTS
# ============================================================

SYSTEM_NAME = "crypto-ledger-sync"
SYSTEM_VERSION = "1.0.0"

DEFAULT_LOOKBACK_DAYS = 7
DEFAULT_FETCH_CONCURRENCY = 6
DEFAULT_ADAPTER_TIMEOUT_SECONDS = 60.0
DEFAULT_UPDATE_CADENCE = "Every Hour"
DEFAULT_DATABASE_URL = "sqlite:///ledger.db"


# ============================================================
# VALUE FILTER CONSTANTS
# ============================================================

DEFAULT_FIAT_CURRENCY = "AED"
DEFAULT_MINIMUM_VALUE = "1.0"
DEFAULT_UNKNOWN_ASSET_RATE = "1.0"

# Static approximate prices in AED. Not historical.
DEFAULT_PRICE_TABLE = MappingProxyType({
    "BTC": "220200",
    "ETH": "11010",
    "USDT": "3.67",
    "USDC": "3.67",
    "SOL": "181.50",
    "TRX": "0.37",
    "BNB": "2200",
    "SEI": "1.47",
    "BUSD": "3.67",
    "ADA": "1.47",
    "DOT": "18.50",
    "MATIC": "1.84",
    "LINK": "44.10",
    "UNI": "25.75",
    "LTC": "257.25",
    "XRP": "2.20",
    "AVAX": "117.00",
    "ATOM": "29.50",
    "NEAR": "22.00",
    "FTM": "2.94",
    "ALGO": "1.10",
    "VET": "0.11",
    "ICP": "36.75",
    "SAND": "1.84",
    "MANA": "1.47",
    "CRO": "0.44",
    "SHIB": "0.00009",
    "DOGE": "0.26",
    "BCH": "1468.00",
    "ETC": "92.40",
})


# ============================================================
# LEDGER CONSTANTS
# ============================================================

PARTITION_DEPOSITS = "Deposits"
PARTITION_WITHDRAWALS = "Withdrawals"
PARTITION_RECYCLE_BIN = "RecycleBin"
PARTITION_STATUS = "Status"

LEDGER_ROW_HEADER = (
    "Platform",
    "Asset",
    "Amount",
    "Timestamp",
    "From Address",
    "To Address",
    "TX ID",
)

RECYCLE_BIN_HEADER = (
    "Date & Time",
    "Platform",
    "Type",
    "Asset",
    "Amount",
    "Calculated AED",
    "Used Default Rate",
    "Filter Reason",
    "From Address",
    "To Address",
    "TX ID",
    "Status",
    "Network",
)

STATUS_HEADER = (
    "Platform",
    "API Status",
    "Last Sync",
    "Auto-Update",
    "Notes",
)


# ============================================================
# ADDRESS PLACEHOLDERS
# ============================================================

EXTERNAL_ADDRESS = "External"
INTERNAL_ADDRESS = "Internal"


__all__ = [
    "SYSTEM_NAME",
    "SYSTEM_VERSION",
    "DEFAULT_LOOKBACK_DAYS",
    "DEFAULT_FETCH_CONCURRENCY",
    "DEFAULT_ADAPTER_TIMEOUT_SECONDS",
    "DEFAULT_UPDATE_CADENCE",
    "DEFAULT_DATABASE_URL",
    "DEFAULT_FIAT_CURRENCY",
    "DEFAULT_MINIMUM_VALUE",
    "DEFAULT_UNKNOWN_ASSET_RATE",
    "DEFAULT_PRICE_TABLE",
    "PARTITION_DEPOSITS",
    "PARTITION_WITHDRAWALS",
    "PARTITION_RECYCLE_BIN",
    "PARTITION_STATUS",
    "LEDGER_ROW_HEADER",
    "RECYCLE_BIN_HEADER",
    "STATUS_HEADER",
    "EXTERNAL_ADDRESS",
    "INTERNAL_ADDRESS",
]
