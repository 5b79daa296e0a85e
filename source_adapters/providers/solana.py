"""
Solana Adapter - Native SOL transfers via JSON-RPC.

API Documentation: https://solana.com/docs/rpc

Signatures for the address are listed first (getSignaturesForAddress),
then each successful one at or after the lower bound is expanded with
getTransaction (jsonParsed) to read its system transfer instructions.
Addresses are base58 and compared exactly.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from core.clock import from_epoch
from core.constants import EXTERNAL_ADDRESS
from core.wallets import Chain
from reconciliation.models import Transaction, TransactionType
from source_adapters.base import SubFetch, to_decimal
from source_adapters.exceptions import ApiError, SourceAdapterError
from source_adapters.wallet import BaseWalletAdapter


logger = logging.getLogger(__name__)


LAMPORTS_PER_SOL = Decimal(1_000_000_000)


class SolanaAdapter(BaseWalletAdapter):
    """Solana address adapter."""

    chain = Chain.SOLANA
    NATIVE_ASSET = "SOL"
    RPC_URL = "https://api.mainnet-beta.solana.com"
    SIGNATURE_LIMIT = 20

    def __init__(self, wallet, *args, **kwargs) -> None:
        super().__init__(wallet, *args, **kwargs)
        self._request_id = 0

    @property
    def source_type(self) -> str:
        return "solana"

    def sub_fetches(self) -> list[tuple[str, SubFetch]]:
        return [("transactions", self.fetch_transactions)]

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        """Call one JSON-RPC method and return its ``result``."""
        self._request_id += 1
        data = await self._make_request(
            "POST",
            self._base_url or self.RPC_URL,
            headers={"Content-Type": "application/json"},
            json_body={
                "jsonrpc": "2.0",
                "id": self._request_id,
                "method": method,
                "params": params,
            },
        )
        if not isinstance(data, dict):
            raise ApiError("Unexpected response shape", source_name=self.name)
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ApiError(f"RPC error in {method}: {message}", source_name=self.name)
        return data.get("result")

    async def fetch_transactions(self, since: datetime) -> list[Transaction]:
        signatures = await self._rpc(
            "getSignaturesForAddress",
            [self.address, {"limit": self.SIGNATURE_LIMIT}],
        )
        if signatures is None:
            return []
        if not isinstance(signatures, list):
            raise ApiError("getSignaturesForAddress returned no list", source_name=self.name)

        transactions: list[Transaction] = []
        for entry in signatures:
            if entry.get("err") is not None:
                continue
            block_time = from_epoch(entry.get("blockTime"))
            if block_time is None or block_time < since:
                continue

            signature = entry.get("signature")
            try:
                detail = await self._rpc(
                    "getTransaction",
                    [signature, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}],
                )
            except SourceAdapterError as e:
                self._diag(f"transaction {signature} unavailable: {e.message}", logging.DEBUG)
                continue
            if not detail:
                continue

            transactions.extend(self._parse_records(
                [{"signature": signature, "blockTime": entry.get("blockTime"), "detail": detail}],
                self._parse_transaction,
                "transactions",
            ))
        return transactions

    def _parse_transaction(self, raw: dict[str, Any]) -> Optional[Transaction]:
        detail = raw["detail"]
        if (detail.get("meta") or {}).get("err") is not None:
            return None
        transfers = list(self._system_transfers(detail))
        classified = self.classify_transfers(self.address, transfers)
        if classified is None:
            return None
        tx_type, lamports, counterparty = classified

        is_deposit = tx_type == TransactionType.DEPOSIT
        return self._transaction(
            tx_type,
            self.NATIVE_ASSET,
            lamports / LAMPORTS_PER_SOL,
            from_epoch(detail.get("blockTime") or raw.get("blockTime")),
            from_address=(counterparty or EXTERNAL_ADDRESS) if is_deposit else self.address,
            to_address=self.address if is_deposit else (counterparty or EXTERNAL_ADDRESS),
            tx_id=raw["signature"],
            network="SOL",
        )

    @staticmethod
    def _system_transfers(detail: dict[str, Any]):
        """Yield (source, destination, lamports) for every system transfer."""
        message = (detail.get("transaction") or {}).get("message") or {}
        instructions = list(message.get("instructions") or [])
        for inner in (detail.get("meta") or {}).get("innerInstructions") or []:
            instructions.extend(inner.get("instructions") or [])

        for instruction in instructions:
            if instruction.get("program") != "system":
                continue
            parsed = instruction.get("parsed")
            if not isinstance(parsed, dict) or parsed.get("type") not in ("transfer", "transferWithSeed"):
                continue
            info = parsed.get("info") or {}
            yield info.get("source"), info.get("destination"), info.get("lamports")

    @staticmethod
    def classify_transfers(
        address: str,
        transfers: list[tuple[Optional[str], Optional[str], Any]],
    ) -> Optional[tuple[TransactionType, Decimal, Optional[str]]]:
        """
        Net direction of a transaction's SOL transfers for ``address``.

        Returns (type, lamports, first counterparty) or None when the
        address neither sent nor received anything.
        """
        sent = Decimal(0)
        received = Decimal(0)
        sent_to: Optional[str] = None
        received_from: Optional[str] = None

        for source, destination, lamports in transfers:
            if lamports is None:
                continue
            if source == address and destination != address:
                sent += to_decimal(lamports)
                sent_to = sent_to or destination
            elif destination == address and source != address:
                received += to_decimal(lamports)
                received_from = received_from or source

        if sent > received:
            return TransactionType.WITHDRAWAL, sent - received, sent_to
        if received > sent:
            return TransactionType.DEPOSIT, received - sent, received_from
        return None


__all__ = ["SolanaAdapter"]
