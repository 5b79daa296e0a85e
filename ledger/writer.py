"""
Ledger Writer - Final pipeline stage.

============================================================
RESPONSIBILITY
============================================================
1. Partition ordered transactions by type (order preserved)
2. Append each partition's rows to its ledger partition
3. Save value-filtered records to the recycle bin
4. Replace the status table with this run's source outcomes
5. Report counts and per-partition failures

============================================================
FAILURE ISOLATION
============================================================
Each partition is written in its own try block. A failed
partition is reported and the next one is still attempted.
Recycle bin and status failures are reported as errors but
never change the outcome of the transaction write.

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence

from core.constants import PARTITION_RECYCLE_BIN, PARTITION_STATUS
from ledger.base import LEDGER_PARTITIONS, LedgerStore, partition_for
from ledger.exceptions import LedgerError
from reconciliation.models import DedupResult, FilteredTransaction, FilterResult, Transaction
from source_adapters.models import SourceStatus


logger = logging.getLogger(__name__)


@dataclass
class WriteReport:
    """Counts and failures of one ledger write."""

    raw_in: int = 0
    after_dedup: int = 0
    after_filter: int = 0
    duplicates_removed: int = 0
    value_filtered: int = 0
    recycle_bin_saved: int = 0
    unknown_currencies: list[str] = field(default_factory=list)
    added: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    success: bool = True

    @property
    def total_added(self) -> int:
        return sum(self.added.get(p, 0) for p in LEDGER_PARTITIONS)

    def to_dict(self) -> dict[str, Any]:
        return {
            "raw_transactions": self.raw_in,
            "after_deduplication": self.after_dedup,
            "after_value_filter": self.after_filter,
            "duplicates_removed": self.duplicates_removed,
            "value_filtered": self.value_filtered,
            "recycle_bin_saved": self.recycle_bin_saved,
            "unknown_currencies": list(self.unknown_currencies),
            "final_added": self.total_added,
            "added": dict(self.added),
            "errors": dict(self.errors),
            "success": self.success,
        }


class LedgerWriter:
    """
    Writes one run's results to a LedgerStore.

    Usage:
        writer = LedgerWriter(store)
        report = writer.write(ordered, statuses, dedup=dedup, filtered=filtered)
    """

    def __init__(
        self,
        store: LedgerStore,
        log: Optional[Callable[[str, int], None]] = None,
    ) -> None:
        self.store = store
        self._log = log

    def _note(self, message: str, level: int = logging.INFO) -> None:
        if self._log is not None:
            self._log(message, level)
        else:
            logger.log(level, message)

    def write(
        self,
        ordered: Sequence[Transaction],
        run_status: Iterable[SourceStatus],
        dedup: Optional[DedupResult] = None,
        filtered: Optional[FilterResult] = None,
    ) -> WriteReport:
        """
        Write ordered transactions, discarded records and statuses.

        Args:
            ordered: Sequencer output
            run_status: One status per source for this run
            dedup: Deduplication outcome (for counts)
            filtered: Value filter outcome (for counts and the recycle bin)
        """
        report = WriteReport(
            raw_in=dedup.total_in if dedup else len(ordered),
            after_dedup=dedup.total_out if dedup else len(ordered),
            after_filter=len(ordered),
            duplicates_removed=dedup.duplicates_removed if dedup else 0,
            value_filtered=filtered.filtered_count if filtered else 0,
            unknown_currencies=list(filtered.unknown_assets) if filtered else [],
        )

        partitions: dict[str, list[list[str]]] = {}
        for tx in ordered:
            partitions.setdefault(partition_for(tx.type), []).append(tx.to_ledger_row())

        attempted = 0
        failed = 0
        for partition in LEDGER_PARTITIONS:
            rows = partitions.get(partition)
            if not rows:
                report.added[partition] = 0
                continue
            attempted += 1
            try:
                report.added[partition] = self.store.append_rows(partition, rows)
                self._note(f"Added {report.added[partition]} rows to {partition}")
            except LedgerError as e:
                failed += 1
                report.added[partition] = 0
                report.errors[partition] = e.message
                self._note(f"Failed to write {partition}: {e.message}", logging.ERROR)

        report.success = not (attempted and failed == attempted)

        if filtered and filtered.discarded:
            try:
                report.recycle_bin_saved = self.save_recycle_bin(filtered.discarded)
                self._note(f"Saved {report.recycle_bin_saved} records to recycle bin")
            except LedgerError as e:
                report.errors[PARTITION_RECYCLE_BIN] = e.message
                self._note(f"Recycle bin save failed: {e.message}", logging.ERROR)

        try:
            count = self.store.overwrite_status(run_status)
            self._note(f"Status table updated for {count} sources")
        except LedgerError as e:
            report.errors[PARTITION_STATUS] = e.message
            self._note(f"Status table update failed: {e.message}", logging.ERROR)

        return report

    def save_recycle_bin(self, discarded: Sequence[FilteredTransaction]) -> int:
        """
        Append discarded records not already in the recycle bin.

        Records without a TX ID are not saved since they could never
        be recognised on a later run.
        """
        self.store.ensure_recycle_bin()
        existing = self.store.read_recycle_ids()

        rows = []
        for item in discarded:
            tx_id = item.transaction.tx_id
            if not tx_id or tx_id in existing:
                continue
            existing.add(tx_id)
            rows.append(item.to_recycle_row())

        if not rows:
            return 0
        return self.store.append_recycle(rows)


__all__ = ["LedgerWriter", "WriteReport"]
