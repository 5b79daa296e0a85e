"""
Orchestrator Package - Drives sync runs.

============================================================
PACKAGE OVERVIEW
============================================================
The orchestrator has no reconciliation logic of its own. It
wires sources, reconciliation stages and the ledger writer
together for one run and reports what happened.

    +-----------------------------------------------------+
    |                  SyncOrchestrator                   |
    |-----------------------------------------------------|
    |  fetch_all      |  bounded concurrent source fetch  |
    |  reconcile      |  normalize, dedup, filter, sort   |
    |  write          |  ledger, recycle bin, status      |
    |  SyncReport     |  structured result + debug log    |
    +-----------------------------------------------------+

============================================================
USAGE
============================================================
    from ledger import SqlLedgerStore
    from orchestrator import SyncOrchestrator

    report = await SyncOrchestrator(SqlLedgerStore()).run()
    print(report.message)

============================================================
"""

from orchestrator.models import RunLog, RunSummary, SyncReport
from orchestrator.pipeline import SyncOrchestrator


__all__ = [
    "RunLog",
    "RunSummary",
    "SyncReport",
    "SyncOrchestrator",
]
