"""
Source Adapter Models - Per-source run status.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from core.clock import now_utc
from core.constants import DEFAULT_UPDATE_CADENCE


class SourceKind(Enum):
    """What a source tracks."""
    EXCHANGE = "exchange"
    WALLET = "wallet"


class SourceState(Enum):
    """Status label written to the status table."""
    ACTIVE = "Active"
    WORKING = "Working"
    ERROR = "Error"
    NOT_WORKING = "Not Working"
    PENDING = "Pending"

    @property
    def is_healthy(self) -> bool:
        return self in (SourceState.ACTIVE, SourceState.WORKING)


@dataclass
class SourceStatus:
    """Outcome of one source's fetch in one run."""
    platform: str
    kind: SourceKind
    state: SourceState = SourceState.PENDING
    last_sync: datetime = field(default_factory=now_utc)
    notes: str = ""
    transaction_count: int = 0
    auto_update: str = DEFAULT_UPDATE_CADENCE
    failed_sub_fetches: list[str] = field(default_factory=list)

    @property
    def is_healthy(self) -> bool:
        return self.state.is_healthy

    def to_row(self) -> list[str]:
        """Row in status-table column order."""
        return [
            self.platform,
            self.state.value,
            self.last_sync.isoformat(),
            self.auto_update,
            self.notes,
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "kind": self.kind.value,
            "status": self.state.value,
            "last_sync": self.last_sync.isoformat(),
            "auto_update": self.auto_update,
            "notes": self.notes,
            "transaction_count": self.transaction_count,
            "failed_sub_fetches": list(self.failed_sub_fetches),
        }

    @classmethod
    def error(
        cls,
        platform: str,
        kind: SourceKind,
        notes: str,
        auto_update: Optional[str] = None,
    ) -> "SourceStatus":
        return cls(
            platform=platform,
            kind=kind,
            state=SourceState.ERROR,
            notes=notes,
            auto_update=auto_update or DEFAULT_UPDATE_CADENCE,
        )


__all__ = [
    "SourceKind",
    "SourceState",
    "SourceStatus",
]
