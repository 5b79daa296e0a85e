"""
Ledger Store - Abstract interface over the persisted ledger.

============================================================
PARTITIONS
============================================================
- Deposits / Withdrawals: append-only ordered rows in the
  seven-field ledger projection
- RecycleBin: audit rows for value-filtered transactions,
  created with a fixed header on first use
- Status: one row per source, fully replaced every run

The existing-id index used by deduplication is derived by
scanning the TX ID column of a partition.

============================================================
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Sequence

from core.constants import (
    LEDGER_ROW_HEADER,
    PARTITION_DEPOSITS,
    PARTITION_WITHDRAWALS,
    RECYCLE_BIN_HEADER,
)
from reconciliation.models import TransactionType
from source_adapters.models import SourceStatus


logger = logging.getLogger(__name__)


LEDGER_PARTITIONS = (PARTITION_DEPOSITS, PARTITION_WITHDRAWALS)

TX_ID_COLUMN = LEDGER_ROW_HEADER.index("TX ID")
RECYCLE_TX_ID_COLUMN = RECYCLE_BIN_HEADER.index("TX ID")

Row = Sequence[str]


def partition_for(tx_type: TransactionType) -> str:
    """Ledger partition that holds transactions of ``tx_type``."""
    if tx_type == TransactionType.DEPOSIT:
        return PARTITION_DEPOSITS
    return PARTITION_WITHDRAWALS


def row_to_dict(header: Sequence[str], row: Row) -> dict[str, str]:
    """Pair a row with its header; short rows are padded with ''."""
    return {name: (row[i] if i < len(row) else "") for i, name in enumerate(header)}


class LedgerStore(ABC):
    """
    Abstract ledger store.

    Write operations raise LedgerWriteError, reads raise
    LedgerReadError. Unknown partitions raise UnknownPartitionError.
    """

    name: str = "ledger"

    # ─────────────────────────────────────────────────────────────
    # Ledger partitions
    # ─────────────────────────────────────────────────────────────

    @abstractmethod
    def append_rows(self, partition: str, rows: Iterable[Row]) -> int:
        """Append rows in order; returns the number appended."""
        pass

    @abstractmethod
    def read_rows(self, partition: str, limit: Optional[int] = None) -> list[list[str]]:
        """Rows in insertion order (the most recent ``limit`` if given)."""
        pass

    @abstractmethod
    def read_tx_ids(self, partition: str) -> set[str]:
        """Non-empty TX IDs present in a partition."""
        pass

    # ─────────────────────────────────────────────────────────────
    # Recycle bin
    # ─────────────────────────────────────────────────────────────

    @abstractmethod
    def ensure_recycle_bin(self) -> bool:
        """Create the recycle bin with its header if absent; True if created."""
        pass

    @abstractmethod
    def read_recycle_ids(self) -> set[str]:
        pass

    @abstractmethod
    def append_recycle(self, rows: Iterable[Row]) -> int:
        pass

    @abstractmethod
    def read_recycle_bin(self, limit: Optional[int] = None) -> list[list[str]]:
        pass

    # ─────────────────────────────────────────────────────────────
    # Status table
    # ─────────────────────────────────────────────────────────────

    @abstractmethod
    def overwrite_status(self, statuses: Iterable[SourceStatus]) -> int:
        """Replace the whole status table; returns the number of rows."""
        pass

    @abstractmethod
    def read_status(self) -> list[dict[str, Any]]:
        pass

    # ─────────────────────────────────────────────────────────────
    # Derived queries
    # ─────────────────────────────────────────────────────────────

    def existing_ids(self) -> dict[str, set[str]]:
        """TX ID index for both ledger partitions."""
        return {p: self.read_tx_ids(p) for p in LEDGER_PARTITIONS}

    def summary(self) -> dict[str, Any]:
        """Row counts and per-asset amount totals for each ledger partition."""
        asset_column = LEDGER_ROW_HEADER.index("Asset")
        amount_column = LEDGER_ROW_HEADER.index("Amount")
        partitions: dict[str, Any] = {}

        for partition in LEDGER_PARTITIONS:
            rows = self.read_rows(partition)
            totals: dict[str, Decimal] = defaultdict(Decimal)
            for row in rows:
                try:
                    totals[row[asset_column]] += Decimal(row[amount_column])
                except (IndexError, InvalidOperation):
                    logger.debug(f"[{self.name}] Skipping unparseable row in {partition}: {row}")
            partitions[partition] = {
                "rows": len(rows),
                "totals": {asset: format(total, "f") for asset, total in sorted(totals.items())},
            }

        return {
            "partitions": partitions,
            "recycle_bin_rows": len(self.read_recycle_bin()),
            "sources": len(self.read_status()),
        }

    def close(self) -> None:
        """Release backend resources."""
        return None


__all__ = [
    "LedgerStore",
    "LEDGER_PARTITIONS",
    "TX_ID_COLUMN",
    "RECYCLE_TX_ID_COLUMN",
    "partition_for",
    "row_to_dict",
]
