"""
Bitcoin Adapter - Address history from public block explorers.

Providers are tried in order and the first non-empty answer wins:
1. blockchain.info /rawaddr/{address}
2. Blockstream /api/address/{address}/txs

Direction is derived from the UTXO view: value spent from the tracked
address versus value paid to it within one transaction.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional

from core.clock import from_epoch
from core.constants import EXTERNAL_ADDRESS
from core.wallets import Chain
from reconciliation.models import Transaction, TransactionStatus, TransactionType
from source_adapters.base import SubFetch, to_decimal
from source_adapters.exceptions import FetchError, SourceAdapterError
from source_adapters.wallet import BaseWalletAdapter


logger = logging.getLogger(__name__)


SATOSHIS_PER_BTC = Decimal(100_000_000)


class BitcoinAdapter(BaseWalletAdapter):
    """Bitcoin address adapter with explorer fallback."""

    chain = Chain.BITCOIN
    NATIVE_ASSET = "BTC"
    BLOCKCHAIN_INFO_URL = "https://blockchain.info"
    BLOCKSTREAM_URL = "https://blockstream.info/api"
    TX_LIMIT = 20

    @property
    def source_type(self) -> str:
        return "bitcoin"

    def sub_fetches(self) -> list[tuple[str, SubFetch]]:
        return [("transactions", self.fetch_transactions)]

    async def fetch_transactions(self, since: datetime) -> list[Transaction]:
        providers: list[tuple[str, Callable[[], Any]]] = [
            ("blockchain_info", self._fetch_blockchain_info),
            ("blockstream", self._fetch_blockstream),
        ]
        errors: list[str] = []

        for label, fetch in providers:
            try:
                records = await fetch()
            except SourceAdapterError as e:
                errors.append(f"{label}: {e.message}")
                self._diag(f"{label} unavailable: {e.message}")
                continue
            if records:
                return records

        if len(errors) == len(providers):
            raise FetchError(
                f"All explorers failed ({'; '.join(errors)})",
                source_name=self.name,
            )
        return []

    # ─────────────────────────────────────────────────────────────
    # Providers
    # ─────────────────────────────────────────────────────────────

    async def _fetch_blockchain_info(self) -> list[Transaction]:
        base = self._base_url or self.BLOCKCHAIN_INFO_URL
        data = await self._make_request(
            "GET",
            f"{base}/rawaddr/{self.address}",
            params={"limit": self.TX_LIMIT},
        )
        txs = (data or {}).get("txs") if isinstance(data, dict) else None
        return self._parse_records(txs, self._parse_blockchain_info, "blockchain_info")

    async def _fetch_blockstream(self) -> list[Transaction]:
        data = await self._make_request(
            "GET",
            f"{self.BLOCKSTREAM_URL}/address/{self.address}/txs",
        )
        if isinstance(data, list):
            data = data[:self.TX_LIMIT]
        return self._parse_records(data, self._parse_blockstream, "blockstream")

    def _parse_blockchain_info(self, raw: dict[str, Any]) -> Optional[Transaction]:
        inputs = [
            ((i.get("prev_out") or {}).get("addr"), (i.get("prev_out") or {}).get("value"))
            for i in raw.get("inputs") or []
        ]
        outputs = [(o.get("addr"), o.get("value")) for o in raw.get("out") or []]
        confirmed = raw.get("block_height") is not None
        return self._build(
            tx_id=raw["hash"],
            timestamp=from_epoch(raw.get("time")),
            inputs=inputs,
            outputs=outputs,
            confirmed=confirmed,
        )

    def _parse_blockstream(self, raw: dict[str, Any]) -> Optional[Transaction]:
        status = raw.get("status") or {}
        inputs = [
            ((v.get("prevout") or {}).get("scriptpubkey_address"), (v.get("prevout") or {}).get("value"))
            for v in raw.get("vin") or []
        ]
        outputs = [(o.get("scriptpubkey_address"), o.get("value")) for o in raw.get("vout") or []]
        return self._build(
            tx_id=raw["txid"],
            timestamp=from_epoch(status.get("block_time")),
            inputs=inputs,
            outputs=outputs,
            confirmed=bool(status.get("confirmed")),
        )

    # ─────────────────────────────────────────────────────────────
    # Direction
    # ─────────────────────────────────────────────────────────────

    def _build(
        self,
        tx_id: str,
        timestamp: Optional[datetime],
        inputs: list[tuple[Optional[str], Any]],
        outputs: list[tuple[Optional[str], Any]],
        confirmed: bool,
    ) -> Optional[Transaction]:
        classified = self.classify_utxo(self.address, inputs, outputs)
        if classified is None:
            return None
        tx_type, satoshis = classified

        if tx_type == TransactionType.DEPOSIT:
            from_address = _first_other(inputs, self.address) or EXTERNAL_ADDRESS
            to_address = self.address
        else:
            from_address = self.address
            to_address = _first_other(outputs, self.address) or EXTERNAL_ADDRESS

        return self._transaction(
            tx_type,
            self.NATIVE_ASSET,
            satoshis / SATOSHIS_PER_BTC,
            timestamp or self.status.last_sync,
            from_address=from_address,
            to_address=to_address,
            tx_id=str(tx_id),
            status=TransactionStatus.COMPLETED if confirmed else TransactionStatus.PENDING,
            network="BTC",
        )

    @staticmethod
    def classify_utxo(
        address: str,
        inputs: Iterable[tuple[Optional[str], Any]],
        outputs: Iterable[tuple[Optional[str], Any]],
    ) -> Optional[tuple[TransactionType, Decimal]]:
        """
        Direction and satoshi amount of a transaction for ``address``.

        Spending from the address is a withdrawal of the net amount
        that left it (change excluded). Receiving without spending is
        a deposit. Returns None when the address is not involved or
        nothing moved net.
        """
        sent = sum((to_decimal(v) for a, v in inputs if a == address), Decimal(0))
        received = sum((to_decimal(v) for a, v in outputs if a == address), Decimal(0))

        if sent > 0:
            net = sent - received
            if net > 0:
                return TransactionType.WITHDRAWAL, net
            if net < 0:
                return TransactionType.DEPOSIT, -net
            return None
        if received > 0:
            return TransactionType.DEPOSIT, received
        return None


def _first_other(entries: Iterable[tuple[Optional[str], Any]], address: str) -> Optional[str]:
    for entry_address, _ in entries:
        if entry_address and entry_address != address:
            return entry_address
    return None


__all__ = ["BitcoinAdapter"]
