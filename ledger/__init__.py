"""
Ledger Package - Persistence of the synchronised transaction ledger.

Components:
- base: LedgerStore interface and partition helpers
- memory: InMemoryLedgerStore (tests, dry runs)
- sql: SqlLedgerStore on SQLAlchemy
- writer: LedgerWriter, the last pipeline stage
"""

from ledger.base import LEDGER_PARTITIONS, LedgerStore, partition_for, row_to_dict
from ledger.exceptions import LedgerError, LedgerReadError, LedgerWriteError, UnknownPartitionError
from ledger.memory import InMemoryLedgerStore
from ledger.sql import SqlLedgerStore, create_ledger_engine
from ledger.writer import LedgerWriter, WriteReport


__all__ = [
    "LedgerStore",
    "LEDGER_PARTITIONS",
    "partition_for",
    "row_to_dict",
    "InMemoryLedgerStore",
    "SqlLedgerStore",
    "create_ledger_engine",
    "LedgerWriter",
    "WriteReport",
    "LedgerError",
    "LedgerReadError",
    "LedgerWriteError",
    "UnknownPartitionError",
]
