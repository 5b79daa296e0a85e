"""
Deduplicator - Drop candidates already recorded in the ledger.

A candidate is a duplicate iff its tx_id is non-empty and appears in
the existing-id set of its own partition. Same-run repeats of a
(type, tx_id) pair collapse to the first occurrence. Empty ids always
pass.
"""

import logging
from typing import AbstractSet, Iterable, Set, Tuple

from reconciliation.models import DedupResult, Transaction, TransactionType


logger = logging.getLogger(__name__)


class Deduplicator:
    """Type-scoped, tx_id-keyed deduplication."""

    def dedupe(
        self,
        candidates: Iterable[Transaction],
        existing_deposit_ids: AbstractSet[str],
        existing_withdrawal_ids: AbstractSet[str],
    ) -> DedupResult:
        result = DedupResult()
        seen: Set[Tuple[TransactionType, str]] = set()

        for tx in candidates:
            result.total_in += 1
            tx_id = tx.tx_id.strip()

            if not tx_id:
                result.unique.append(tx)
                continue

            existing = (
                existing_deposit_ids if tx.type == TransactionType.DEPOSIT
                else existing_withdrawal_ids
            )
            key = (tx.type, tx_id)

            if tx_id in existing or key in seen:
                result.duplicates.append(tx)
                continue

            seen.add(key)
            result.unique.append(tx)

        logger.info(
            f"Dedup: {result.total_in} in, {result.total_out} out, "
            f"{result.duplicates_removed} duplicates removed"
        )
        return result
