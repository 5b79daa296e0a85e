"""
Reconciliation Data Models - The canonical transaction shape.

Every source adapter emits Transactions; every later pipeline stage
consumes them. Amounts stay decimal strings at source precision and
are only parsed for value computations.
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional

from core.clock import ensure_utc, format_ledger_time, parse_start_date


class TransactionType(Enum):
    """Direction relative to the tracked account or wallet."""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"

    @classmethod
    def parse(cls, value: Any) -> "TransactionType":
        """
        Map a direction label to a TransactionType.

        Raises:
            ValueError: If the label is not a known direction
        """
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        if key in _DIRECTION_SYNONYMS:
            return _DIRECTION_SYNONYMS[key]
        raise ValueError(f"Unknown transaction direction: {value!r}")


_DIRECTION_SYNONYMS = {
    "deposit": TransactionType.DEPOSIT,
    "in": TransactionType.DEPOSIT,
    "incoming": TransactionType.DEPOSIT,
    "credit": TransactionType.DEPOSIT,
    "receive": TransactionType.DEPOSIT,
    "received": TransactionType.DEPOSIT,
    "buy": TransactionType.DEPOSIT,
    "withdrawal": TransactionType.WITHDRAWAL,
    "withdraw": TransactionType.WITHDRAWAL,
    "out": TransactionType.WITHDRAWAL,
    "outgoing": TransactionType.WITHDRAWAL,
    "debit": TransactionType.WITHDRAWAL,
    "send": TransactionType.WITHDRAWAL,
    "sent": TransactionType.WITHDRAWAL,
    "sell": TransactionType.WITHDRAWAL,
}


class TransactionStatus(Enum):
    """Settlement state normalized from source status codes."""
    COMPLETED = "Completed"
    PENDING = "Pending"
    FAILED = "Failed"


def parse_amount(value: Any) -> Decimal:
    """
    Parse an amount string to Decimal.

    Raises:
        ValueError: If the value is not a finite number
    """
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


@dataclass(frozen=True)
class Transaction:
    """
    One deposit or withdrawal, as every pipeline stage sees it.

    Construction fails on a negative or non-numeric amount.
    """
    platform: str
    type: TransactionType
    asset: str
    amount: str
    timestamp: datetime

    from_address: str = ""
    to_address: str = ""
    tx_id: str = ""
    status: TransactionStatus = TransactionStatus.COMPLETED
    network: str = ""
    api_source: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", TransactionType.parse(self.type))
        if not isinstance(self.status, TransactionStatus):
            object.__setattr__(self, "status", TransactionStatus(self.status))
        if isinstance(self.timestamp, str):
            object.__setattr__(self, "timestamp", parse_start_date(self.timestamp))
        else:
            object.__setattr__(self, "timestamp", ensure_utc(self.timestamp))
        object.__setattr__(self, "amount", str(self.amount).strip())
        if parse_amount(self.amount) < 0:
            raise ValueError(f"Amount must be non-negative: {self.amount!r}")

    @property
    def amount_decimal(self) -> Decimal:
        return parse_amount(self.amount)

    @property
    def timestamp_iso(self) -> str:
        return self.timestamp.isoformat().replace("+00:00", "Z")

    @property
    def is_deposit(self) -> bool:
        return self.type == TransactionType.DEPOSIT

    def with_changes(self, **changes: Any) -> "Transaction":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_ledger_row(self) -> List[str]:
        """The fixed seven-field projection written to ledger partitions."""
        return [
            self.platform,
            self.asset,
            self.amount,
            format_ledger_time(self.timestamp),
            self.from_address,
            self.to_address,
            self.tx_id,
        ]

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["status"] = self.status.value
        data["timestamp"] = self.timestamp_iso
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        """Build from a plain mapping (keys as in to_dict)."""
        return cls(
            platform=str(data.get("platform", "")),
            type=data.get("type", ""),
            asset=str(data.get("asset", "")),
            amount=str(data.get("amount", "")),
            timestamp=data["timestamp"],
            from_address=str(data.get("from_address") or ""),
            to_address=str(data.get("to_address") or ""),
            tx_id=str(data.get("tx_id") or ""),
            status=data.get("status") or TransactionStatus.COMPLETED,
            network=str(data.get("network") or ""),
            api_source=str(data.get("api_source") or ""),
        )


@dataclass(frozen=True)
class FilteredTransaction:
    """A transaction the value filter discarded, with the audit details."""
    transaction: Transaction
    calculated_value: Decimal
    used_default_rate: bool
    filter_reason: str

    def to_recycle_row(self) -> List[str]:
        """Row in recycle-bin column order."""
        tx = self.transaction
        return [
            format_ledger_time(tx.timestamp),
            tx.platform,
            tx.type.value,
            tx.asset,
            _format_fixed(tx.amount_decimal, 8),
            _format_fixed(self.calculated_value, 2),
            "YES" if self.used_default_rate else "NO",
            self.filter_reason,
            tx.from_address,
            tx.to_address,
            tx.tx_id,
            tx.status.value,
            tx.network,
        ]


def _format_fixed(value: Decimal, places: int) -> str:
    return f"{value:.{places}f}"


@dataclass
class DedupResult:
    """Outcome of deduplicating one run's candidates."""
    unique: List[Transaction] = field(default_factory=list)
    duplicates: List[Transaction] = field(default_factory=list)
    total_in: int = 0

    @property
    def total_out(self) -> int:
        return len(self.unique)

    @property
    def duplicates_removed(self) -> int:
        return self.total_in - self.total_out

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_in": self.total_in,
            "total_out": self.total_out,
            "duplicates_removed": self.duplicates_removed,
        }


@dataclass
class FilterResult:
    """Outcome of the value filter."""
    kept: List[Transaction] = field(default_factory=list)
    discarded: List[FilteredTransaction] = field(default_factory=list)
    unknown_assets: List[str] = field(default_factory=list)

    @property
    def filtered_count(self) -> int:
        return len(self.discarded)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kept": len(self.kept),
            "filtered": self.filtered_count,
            "unknown_assets": list(self.unknown_assets),
        }


__all__ = [
    "TransactionType",
    "TransactionStatus",
    "Transaction",
    "FilteredTransaction",
    "DedupResult",
    "FilterResult",
    "parse_amount",
]
