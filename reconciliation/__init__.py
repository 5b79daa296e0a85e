"""
Reconciliation Package - Normalize, deduplicate, value-filter and order.

Stages run in this order on each sync:

    Normalizer -> Deduplicator -> ValueFilter -> Sequencer

Quick Start:
    from reconciliation import (
        AddressMap, Deduplicator, Normalizer, Sequencer, ValueFilter,
    )

    candidates = Normalizer(address_map).normalize(raw)
    dedup = Deduplicator().dedupe(candidates, deposit_ids, withdrawal_ids)
    filtered = ValueFilter(config.value_filter).filter(dedup.unique)
    ordered = Sequencer().sort(filtered.kept)
"""

from reconciliation.address_map import AddressMap
from reconciliation.deduplicator import Deduplicator
from reconciliation.models import (
    DedupResult,
    FilteredTransaction,
    FilterResult,
    Transaction,
    TransactionStatus,
    TransactionType,
    parse_amount,
)
from reconciliation.normalizer import Normalizer
from reconciliation.sequencer import Sequencer
from reconciliation.value_filter import ValueFilter, format_threshold


__all__ = [
    "AddressMap",
    "Deduplicator",
    "DedupResult",
    "FilteredTransaction",
    "FilterResult",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "parse_amount",
    "Normalizer",
    "Sequencer",
    "ValueFilter",
    "format_threshold",
]
