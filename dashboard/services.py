"""
Ledger query services for the API.
"""
import logging
from typing import Any, Dict, Generator, List, Optional

from core.config import SyncConfig, get_config
from core.constants import PARTITION_DEPOSITS, PARTITION_WITHDRAWALS
from ledger.base import LedgerStore
from ledger.models import RecycleBinEntry
from ledger.sql import SqlLedgerStore

logger = logging.getLogger(__name__)

LEDGER_FIELDS = ("platform", "asset", "amount", "timestamp", "from_address", "to_address", "tx_id")

PARTITIONS = {
    "deposits": PARTITION_DEPOSITS,
    "withdrawals": PARTITION_WITHDRAWALS,
}

_store: Optional[LedgerStore] = None


def get_store() -> Generator[LedgerStore, None, None]:
    """Shared ledger store, created from configuration on first use."""
    global _store
    if _store is None:
        _store = SqlLedgerStore(get_config().database_url)
    yield _store


def get_sync_config() -> SyncConfig:
    return get_config()


class LedgerService:
    def __init__(self, store: LedgerStore):
        self.store = store

    # =======================
    # 1. LEDGER PARTITIONS
    # =======================
    def get_rows(self, partition: str, limit: Optional[int] = None) -> List[Dict[str, str]]:
        rows = self.store.read_rows(partition, limit=limit)
        return [dict(zip(LEDGER_FIELDS, row)) for row in rows]

    # =======================
    # 2. RECYCLE BIN
    # =======================
    def get_recycle_bin(self, limit: Optional[int] = None) -> List[Dict[str, str]]:
        rows = self.store.read_recycle_bin(limit=limit)
        return [dict(zip(RecycleBinEntry.COLUMNS, row)) for row in rows]

    # =======================
    # 3. STATUS / SUMMARY
    # =======================
    def get_status(self) -> List[Dict[str, Any]]:
        return self.store.read_status()

    def get_summary(self) -> Dict[str, Any]:
        return self.store.summary()
