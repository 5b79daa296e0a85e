"""
Orchestrator - Models.

============================================================
RESPONSIBILITY
============================================================
Defines the data returned by one sync run.

- RunLog: ordered debug log, mirrored into logging
- RunSummary: source counters for the run
- SyncReport: the structured run report

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.clock import now_utc
from ledger.writer import WriteReport
from source_adapters.models import SourceKind, SourceState, SourceStatus


logger = logging.getLogger("orchestrator")


# ============================================================
# RUN LOG
# ============================================================

class RunLog:
    """
    Ordered debug log of one run.

    Every entry is also sent to the ``orchestrator`` logger so the
    same lines appear in process logs and in the run report.
    """

    def __init__(self) -> None:
        self._entries: List[str] = []

    def add(self, message: str, level: int = logging.INFO) -> None:
        self._entries.append(message)
        logger.log(level, message)

    def extend(self, messages: List[str], level: int = logging.DEBUG) -> None:
        for message in messages:
            self._entries.append(message)
            logger.log(level, message)

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


# ============================================================
# SUMMARY
# ============================================================

@dataclass
class RunSummary:
    """Source counters for one run."""

    exchange_accounts: int = 0
    wallets: int = 0
    active: int = 0
    errors: int = 0

    @classmethod
    def from_statuses(cls, statuses: List[SourceStatus]) -> "RunSummary":
        return cls(
            exchange_accounts=sum(1 for s in statuses if s.kind == SourceKind.EXCHANGE),
            wallets=sum(1 for s in statuses if s.kind == SourceKind.WALLET),
            active=sum(1 for s in statuses if s.is_healthy),
            errors=sum(1 for s in statuses if s.state in (SourceState.ERROR, SourceState.NOT_WORKING)),
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "exchange_accounts": self.exchange_accounts,
            "wallets": self.wallets,
            "active": self.active,
            "errors": self.errors,
        }


# ============================================================
# SYNC REPORT
# ============================================================

@dataclass
class SyncReport:
    """Structured result of one sync run."""

    success: bool
    message: str
    start_time: Optional[datetime] = None
    total_found: int = 0
    statuses: Dict[str, SourceStatus] = field(default_factory=dict)
    write: WriteReport = field(default_factory=WriteReport)
    summary: RunSummary = field(default_factory=RunSummary)
    debug_log: List[str] = field(default_factory=list)
    finished_at: datetime = field(default_factory=now_utc)
    error: Optional[str] = None

    @property
    def new_transactions(self) -> int:
        return self.write.total_added

    @classmethod
    def failure(
        cls,
        error: Exception,
        log: RunLog,
        start_time: Optional[datetime] = None,
        statuses: Optional[Dict[str, SourceStatus]] = None,
    ) -> "SyncReport":
        """Report for a run aborted by an unexpected exception."""
        return cls(
            success=False,
            message=f"Sync failed: {error}",
            start_time=start_time,
            statuses=dict(statuses or {}),
            summary=RunSummary.from_statuses(list((statuses or {}).values())),
            debug_log=log.entries,
            error=f"{type(error).__name__}: {error}",
        )

    def to_dict(self) -> Dict[str, Any]:
        write = self.write.to_dict()
        return {
            "success": self.success,
            "message": self.message,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "finished_at": self.finished_at.isoformat(),
            "total_found": self.total_found,
            "new_transactions": self.new_transactions,
            "statuses": {name: status.to_dict() for name, status in self.statuses.items()},
            "deduplication_stats": {
                key: write[key]
                for key in (
                    "raw_transactions",
                    "after_deduplication",
                    "after_value_filter",
                    "duplicates_removed",
                    "value_filtered",
                    "recycle_bin_saved",
                    "unknown_currencies",
                    "final_added",
                )
            },
            "write": write,
            "summary": self.summary.to_dict(),
            "debug_log": list(self.debug_log),
            "error": self.error,
        }


__all__ = [
    "RunLog",
    "RunSummary",
    "SyncReport",
]
