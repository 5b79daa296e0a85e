"""
SQL Ledger Store - SQLAlchemy-backed ledger persistence.

============================================================
TRANSACTIONS
============================================================
Every operation runs in its own session scope:
- Commits only if no exception occurs
- Rolls back on any SQLAlchemy error
- Re-raises as LedgerReadError / LedgerWriteError

The recycle bin table is created on first use, not up front,
so its absence is observable.

============================================================
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Iterable, Optional

from sqlalchemy import create_engine, delete, inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.clock import ensure_utc
from core.constants import DEFAULT_DATABASE_URL
from ledger.base import LEDGER_PARTITIONS, LedgerStore, Row
from ledger.exceptions import LedgerError, LedgerReadError, LedgerWriteError, UnknownPartitionError
from ledger.models import Base, LedgerEntry, RecycleBinEntry, SourceStatusEntry
from source_adapters.models import SourceStatus


logger = logging.getLogger(__name__)


def create_ledger_engine(database_url: str = DEFAULT_DATABASE_URL, echo: bool = False) -> Engine:
    """
    Create an engine for the ledger database.

    SQLite connections may be used from worker threads (the API serves
    requests from a thread pool); in-memory SQLite shares one
    connection so every session sees the same database.
    """
    kwargs: dict[str, Any] = {"echo": echo, "future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    logger.info(f"Creating ledger engine for: {database_url.split('@')[-1]}")
    return create_engine(database_url, **kwargs)


class SqlLedgerStore(LedgerStore):
    """
    Ledger persisted through SQLAlchemy.

    Usage:
        store = SqlLedgerStore("sqlite:///ledger.db")
        store.append_rows("Deposits", rows)
    """

    name = "sql"

    def __init__(
        self,
        database_url: str = DEFAULT_DATABASE_URL,
        engine: Optional[Engine] = None,
    ) -> None:
        self._engine = engine or create_ledger_engine(database_url)
        self._session_factory = sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False,
        )
        try:
            Base.metadata.create_all(
                self._engine,
                tables=[LedgerEntry.__table__, SourceStatusEntry.__table__],
            )
        except SQLAlchemyError as e:
            raise LedgerError(
                f"Cannot initialise schema: {e}",
                store_name=self.name,
                operation="create_schema",
                original_error=e,
            ) from e

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def _scope(self, operation: str, error_cls: type[LedgerError]) -> Generator[Session, None, None]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"[{self.name}] {operation} failed, rolling back: {e}")
            raise error_cls(str(e), store_name=self.name, operation=operation, original_error=e) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _check_partition(self, partition: str, operation: str) -> None:
        if partition not in LEDGER_PARTITIONS:
            raise UnknownPartitionError(self.name, partition, operation)

    # ─────────────────────────────────────────────────────────────
    # Ledger partitions
    # ─────────────────────────────────────────────────────────────

    def append_rows(self, partition: str, rows: Iterable[Row]) -> int:
        self._check_partition(partition, "append_rows")
        entries = [
            LedgerEntry(
                partition=partition,
                platform=row[0],
                asset=row[1],
                amount=row[2],
                timestamp=row[3],
                from_address=row[4],
                to_address=row[5],
                tx_id=row[6],
            )
            for row in rows
        ]
        with self._scope("append_rows", LedgerWriteError) as session:
            session.add_all(entries)
        logger.debug(f"[{self.name}] Appended {len(entries)} rows to {partition}")
        return len(entries)

    def read_rows(self, partition: str, limit: Optional[int] = None) -> list[list[str]]:
        self._check_partition(partition, "read_rows")
        stmt = select(LedgerEntry).where(LedgerEntry.partition == partition)
        with self._scope("read_rows", LedgerReadError) as session:
            if limit:
                entries = list(session.scalars(stmt.order_by(LedgerEntry.id.desc()).limit(limit)))
                entries.reverse()
            else:
                entries = list(session.scalars(stmt.order_by(LedgerEntry.id)))
            return [entry.to_row() for entry in entries]

    def read_tx_ids(self, partition: str) -> set[str]:
        self._check_partition(partition, "read_tx_ids")
        stmt = select(LedgerEntry.tx_id).where(
            LedgerEntry.partition == partition,
            LedgerEntry.tx_id != "",
        )
        with self._scope("read_tx_ids", LedgerReadError) as session:
            return set(session.scalars(stmt))

    # ─────────────────────────────────────────────────────────────
    # Recycle bin
    # ─────────────────────────────────────────────────────────────

    @property
    def has_recycle_bin(self) -> bool:
        return inspect(self._engine).has_table(RecycleBinEntry.__tablename__)

    def ensure_recycle_bin(self) -> bool:
        try:
            if self.has_recycle_bin:
                return False
            RecycleBinEntry.__table__.create(self._engine, checkfirst=True)
        except SQLAlchemyError as e:
            raise LedgerWriteError(
                str(e), store_name=self.name, operation="ensure_recycle_bin", original_error=e,
            ) from e
        logger.info(f"[{self.name}] Created recycle bin table")
        return True

    def read_recycle_ids(self) -> set[str]:
        if not self.has_recycle_bin:
            return set()
        stmt = select(RecycleBinEntry.tx_id).where(RecycleBinEntry.tx_id != "")
        with self._scope("read_recycle_ids", LedgerReadError) as session:
            return set(session.scalars(stmt))

    def append_recycle(self, rows: Iterable[Row]) -> int:
        self.ensure_recycle_bin()
        entries = [RecycleBinEntry.from_row(list(row)) for row in rows]
        with self._scope("append_recycle", LedgerWriteError) as session:
            session.add_all(entries)
        return len(entries)

    def read_recycle_bin(self, limit: Optional[int] = None) -> list[list[str]]:
        if not self.has_recycle_bin:
            return []
        with self._scope("read_recycle_bin", LedgerReadError) as session:
            if limit:
                stmt = select(RecycleBinEntry).order_by(RecycleBinEntry.id.desc()).limit(limit)
                entries = list(session.scalars(stmt))
                entries.reverse()
            else:
                entries = list(session.scalars(select(RecycleBinEntry).order_by(RecycleBinEntry.id)))
            return [entry.to_row() for entry in entries]

    # ─────────────────────────────────────────────────────────────
    # Status table
    # ─────────────────────────────────────────────────────────────

    def overwrite_status(self, statuses: Iterable[SourceStatus]) -> int:
        entries = {}
        for status in statuses:
            # later entries for the same platform win
            entries[status.platform] = SourceStatusEntry(
                platform=status.platform,
                kind=status.kind.value,
                status=status.state.value,
                last_sync=status.last_sync,
                auto_update=status.auto_update,
                notes=status.notes,
                transaction_count=status.transaction_count,
                failed_sub_fetches=list(status.failed_sub_fetches),
            )
        with self._scope("overwrite_status", LedgerWriteError) as session:
            session.execute(delete(SourceStatusEntry))
            session.add_all(entries.values())
        return len(entries)

    def read_status(self) -> list[dict[str, Any]]:
        with self._scope("read_status", LedgerReadError) as session:
            entries = session.scalars(select(SourceStatusEntry).order_by(SourceStatusEntry.platform))
            return [
                {
                    "platform": entry.platform,
                    "kind": entry.kind,
                    "status": entry.status,
                    "last_sync": ensure_utc(entry.last_sync).isoformat(),
                    "auto_update": entry.auto_update,
                    "notes": entry.notes,
                    "transaction_count": entry.transaction_count,
                    "failed_sub_fetches": list(entry.failed_sub_fetches or []),
                }
                for entry in entries
            ]

    def close(self) -> None:
        self._engine.dispose()

    def __repr__(self) -> str:
        return f"<SqlLedgerStore(url={self._engine.url.render_as_string(hide_password=True)})>"


__all__ = ["SqlLedgerStore", "create_ledger_engine"]
