"""
In-Memory Ledger Store - Dict-backed store for tests and dry runs.
"""

import logging
from typing import Any, Iterable, Optional

from ledger.base import (
    LEDGER_PARTITIONS,
    RECYCLE_TX_ID_COLUMN,
    TX_ID_COLUMN,
    LedgerStore,
    Row,
)
from ledger.exceptions import UnknownPartitionError
from source_adapters.models import SourceStatus


logger = logging.getLogger(__name__)


class InMemoryLedgerStore(LedgerStore):
    """Ledger kept in process memory. Nothing survives the process."""

    name = "memory"

    def __init__(self) -> None:
        self._partitions: dict[str, list[list[str]]] = {p: [] for p in LEDGER_PARTITIONS}
        self._recycle_bin: Optional[list[list[str]]] = None
        self._status: list[dict[str, Any]] = []

    def _partition(self, partition: str, operation: str) -> list[list[str]]:
        if partition not in self._partitions:
            raise UnknownPartitionError(self.name, partition, operation)
        return self._partitions[partition]

    def append_rows(self, partition: str, rows: Iterable[Row]) -> int:
        target = self._partition(partition, "append_rows")
        added = [list(row) for row in rows]
        target.extend(added)
        logger.debug(f"[{self.name}] Appended {len(added)} rows to {partition}")
        return len(added)

    def read_rows(self, partition: str, limit: Optional[int] = None) -> list[list[str]]:
        rows = self._partition(partition, "read_rows")
        selected = rows[-limit:] if limit else rows
        return [list(row) for row in selected]

    def read_tx_ids(self, partition: str) -> set[str]:
        rows = self._partition(partition, "read_tx_ids")
        return {row[TX_ID_COLUMN] for row in rows if len(row) > TX_ID_COLUMN and row[TX_ID_COLUMN]}

    @property
    def has_recycle_bin(self) -> bool:
        return self._recycle_bin is not None

    def ensure_recycle_bin(self) -> bool:
        if self._recycle_bin is not None:
            return False
        self._recycle_bin = []
        logger.info(f"[{self.name}] Created recycle bin")
        return True

    def read_recycle_ids(self) -> set[str]:
        return {
            row[RECYCLE_TX_ID_COLUMN]
            for row in self._recycle_bin or []
            if len(row) > RECYCLE_TX_ID_COLUMN and row[RECYCLE_TX_ID_COLUMN]
        }

    def append_recycle(self, rows: Iterable[Row]) -> int:
        self.ensure_recycle_bin()
        added = [list(row) for row in rows]
        self._recycle_bin.extend(added)
        return len(added)

    def read_recycle_bin(self, limit: Optional[int] = None) -> list[list[str]]:
        rows = self._recycle_bin or []
        selected = rows[-limit:] if limit else rows
        return [list(row) for row in selected]

    def overwrite_status(self, statuses: Iterable[SourceStatus]) -> int:
        self._status = [status.to_dict() for status in statuses]
        return len(self._status)

    def read_status(self) -> list[dict[str, Any]]:
        return [dict(entry) for entry in self._status]

    def __repr__(self) -> str:
        counts = ", ".join(f"{p}={len(rows)}" for p, rows in self._partitions.items())
        return f"<InMemoryLedgerStore({counts})>"


__all__ = ["InMemoryLedgerStore"]
