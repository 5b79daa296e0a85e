"""
Sequencer - Deterministic write order.
"""

from typing import Iterable, List

from reconciliation.models import Transaction


class Sequencer:
    """Stable ascending sort by event timestamp."""

    def sort(self, transactions: Iterable[Transaction]) -> List[Transaction]:
        # sorted() is stable: equal timestamps keep input order
        return sorted(transactions, key=lambda tx: tx.timestamp)
