"""
Ledger ORM Models.

============================================================
TABLES
============================================================
- ledger_entries: Deposits and Withdrawals partitions, one row
  per recorded transaction in the seven-field projection
- recycle_bin: value-filtered transactions (created on demand)
- source_status: last-run outcome per source (replaced each run)

Insertion order is the autoincrement id; it is the ledger order.

============================================================
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for ledger tables."""

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class LedgerEntry(Base):
    """One row of the Deposits or Withdrawals partition."""

    __tablename__ = "ledger_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    partition: Mapped[str] = mapped_column(String(32), nullable=False)

    platform: Mapped[str] = mapped_column(String(128), nullable=False)
    asset: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[str] = mapped_column(String(16), nullable=False, comment="YYYY-MM-DD HH:MM UTC")
    from_address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    to_address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tx_id: Mapped[str] = mapped_column(String(256), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_ledger_partition_tx", "partition", "tx_id"),
    )

    def to_row(self) -> list[str]:
        return [
            self.platform,
            self.asset,
            self.amount,
            self.timestamp,
            self.from_address,
            self.to_address,
            self.tx_id,
        ]


class RecycleBinEntry(Base):
    """A transaction discarded by the value filter."""

    __tablename__ = "recycle_bin"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date_time: Mapped[str] = mapped_column(String(16), nullable=False)
    platform: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    asset: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[str] = mapped_column(String(64), nullable=False)
    calculated_value: Mapped[str] = mapped_column(String(64), nullable=False)
    used_default_rate: Mapped[str] = mapped_column(String(3), nullable=False)
    filter_reason: Mapped[str] = mapped_column(Text, nullable=False)
    from_address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    to_address: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tx_id: Mapped[str] = mapped_column(String(256), nullable=False, default="", index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    network: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(nullable=False, server_default=func.now())

    COLUMNS = (
        "date_time", "platform", "type", "asset", "amount", "calculated_value",
        "used_default_rate", "filter_reason", "from_address", "to_address",
        "tx_id", "status", "network",
    )

    @classmethod
    def from_row(cls, row: list[str]) -> "RecycleBinEntry":
        return cls(**dict(zip(cls.COLUMNS, row)))

    def to_row(self) -> list[str]:
        return [getattr(self, column) for column in self.COLUMNS]


class SourceStatusEntry(Base):
    """Last-run outcome of one source."""

    __tablename__ = "source_status"

    platform: Mapped[str] = mapped_column(String(128), primary_key=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    last_sync: Mapped[datetime] = mapped_column(nullable=False)
    auto_update: Mapped[str] = mapped_column(String(64), nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    transaction_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_sub_fetches: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)


__all__ = [
    "Base",
    "LedgerEntry",
    "RecycleBinEntry",
    "SourceStatusEntry",
]
