"""
Normalizer - Canonicalize adapter output into pipeline candidates.

Pure relabeling: trims text fields, uppercases asset symbols,
resolves direction vocabulary and substitutes friendly wallet names
into ``platform``. No deduplication and no filtering happens here.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Union

from reconciliation.address_map import AddressMap
from reconciliation.models import Transaction, TransactionType


logger = logging.getLogger(__name__)


RawTransaction = Union[Transaction, Mapping[str, Any]]


class Normalizer:
    """Turns heterogeneous adapter records into canonical candidates."""

    def __init__(self, address_map: Optional[AddressMap] = None) -> None:
        self._address_map = address_map or AddressMap()
        self.rejected: int = 0

    def normalize(
        self,
        raw_transactions: Iterable[RawTransaction],
        address_map: Optional[AddressMap] = None,
    ) -> List[Transaction]:
        """
        Normalize a batch of raw transactions.

        Records that cannot be represented (unknown direction, bad
        amount) are dropped and counted in ``rejected``.
        """
        address_map = address_map or self._address_map
        candidates: List[Transaction] = []
        self.rejected = 0

        for raw in raw_transactions:
            try:
                candidates.append(self._normalize_one(raw, address_map))
            except (KeyError, TypeError, ValueError) as e:
                self.rejected += 1
                logger.warning(f"Dropping unrepresentable record: {e}")

        return candidates

    def _normalize_one(self, raw: RawTransaction, address_map: AddressMap) -> Transaction:
        if isinstance(raw, Transaction):
            tx = raw
        else:
            tx = Transaction.from_dict(dict(raw))

        platform = tx.platform.strip()
        friendly = address_map.lookup(platform)
        if friendly:
            platform = friendly

        return tx.with_changes(
            platform=platform,
            type=TransactionType.parse(tx.type),
            asset=tx.asset.strip().upper(),
            amount=tx.amount.strip(),
            from_address=tx.from_address.strip(),
            to_address=tx.to_address.strip(),
            tx_id=tx.tx_id.strip(),
            network=tx.network.strip(),
        )
