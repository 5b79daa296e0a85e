"""
TRON Adapter - Native TRX and TRC-20 transfers via TronGrid.

API Documentation: https://developers.tron.network/reference

TronGrid reports native transfer parties as hex addresses (41-prefixed)
and TRC-20 parties as base58. Both forms of the tracked address are
derived once so either can be compared.
"""

import hashlib
import logging
from datetime import datetime
from typing import Any, Optional

from core.clock import from_epoch, to_epoch_ms
from core.wallets import Chain
from reconciliation.models import Transaction, TransactionStatus, TransactionType
from source_adapters.base import SubFetch, scale_units
from source_adapters.exceptions import ApiError
from source_adapters.wallet import BaseWalletAdapter


logger = logging.getLogger(__name__)


SUN_DECIMALS = 6
_B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def base58_to_hex(address: str) -> Optional[str]:
    """Decode a base58check TRON address to lowercase hex, or None if invalid."""
    number = 0
    for char in address:
        index = _B58_ALPHABET.find(char)
        if index < 0:
            return None
        number = number * 58 + index
    if not number or number.bit_length() > 200:
        return None
    raw = number.to_bytes(25, "big")
    payload, checksum = raw[:-4], raw[-4:]
    if hashlib.sha256(hashlib.sha256(payload).digest()).digest()[:4] != checksum:
        return None
    return payload.hex()


def hex_to_base58(hex_address: str) -> Optional[str]:
    """Encode a 41-prefixed hex TRON address as base58check."""
    try:
        payload = bytes.fromhex(hex_address[2:] if hex_address.startswith("0x") else hex_address)
    except ValueError:
        return None
    if len(payload) != 21:
        return None
    checksum = hashlib.sha256(hashlib.sha256(payload).digest()).digest()[:4]
    number = int.from_bytes(payload + checksum, "big")
    encoded = ""
    while number:
        number, remainder = divmod(number, 58)
        encoded = _B58_ALPHABET[remainder] + encoded
    return encoded


class TronAdapter(BaseWalletAdapter):
    """TRON address adapter."""

    chain = Chain.TRON
    NATIVE_ASSET = "TRX"
    BASE_URL = "https://api.trongrid.io"
    PAGE_LIMIT = 200

    def __init__(self, wallet, *args, **kwargs) -> None:
        super().__init__(wallet, *args, **kwargs)
        self._hex_address = (base58_to_hex(self.address) or "").lower()

    @property
    def source_type(self) -> str:
        return "tron"

    def sub_fetches(self) -> list[tuple[str, SubFetch]]:
        return [
            ("transactions", self.fetch_transactions),
            ("trc20_transfers", self.fetch_trc20_transfers),
        ]

    def _get_default_headers(self) -> dict[str, str]:
        headers = super()._get_default_headers()
        if self._api_key:
            headers["TRON-PRO-API-KEY"] = self._api_key
        return headers

    def matches(self, candidate: Optional[str]) -> bool:
        """Whether ``candidate`` (hex or base58) is the tracked address."""
        if not candidate:
            return False
        if candidate == self.address:
            return True
        lowered = candidate.lower()
        if lowered.startswith("0x"):
            lowered = "41" + lowered[2:]
        return bool(self._hex_address) and lowered == self._hex_address

    def direction(self, sender: Optional[str], receiver: Optional[str]) -> Optional[TransactionType]:
        if self.matches(receiver):
            return TransactionType.DEPOSIT
        if self.matches(sender):
            return TransactionType.WITHDRAWAL
        return None

    async def _account_query(self, path: str, since: datetime) -> list[dict[str, Any]]:
        base = self._base_url or self.BASE_URL
        data = await self._make_request(
            "GET",
            f"{base}/v1/accounts/{self.address}{path}",
            params={
                "limit": self.PAGE_LIMIT,
                "only_confirmed": "true",
                "order_by": "block_timestamp,desc",
                "min_timestamp": to_epoch_ms(since),
            },
        )
        if not isinstance(data, dict):
            raise ApiError("Unexpected response shape", source_name=self.name)
        if data.get("success") is False:
            raise ApiError(f"TronGrid error: {data.get('error')}", source_name=self.name)
        return data.get("data") or []

    async def fetch_transactions(self, since: datetime) -> list[Transaction]:
        records = await self._account_query("/transactions", since)
        transactions: list[Transaction] = []
        for raw in records:
            transactions.extend(self._parse_records(
                self._transfer_contracts(raw), self._parse_native, "transactions",
            ))
        return transactions

    async def fetch_trc20_transfers(self, since: datetime) -> list[Transaction]:
        records = await self._account_query("/transactions/trc20", since)
        return self._parse_records(records, self._parse_trc20, "trc20_transfers")

    @staticmethod
    def _transfer_contracts(raw: dict[str, Any]) -> list[dict[str, Any]]:
        """Flatten one native transaction into per-TransferContract records."""
        ret = raw.get("ret") or [{}]
        contract_ret = (ret[0] or {}).get("contractRet")
        contracts = (raw.get("raw_data") or {}).get("contract") or []
        return [
            {
                "txID": raw.get("txID"),
                "block_timestamp": raw.get("block_timestamp"),
                "contractRet": contract_ret,
                "value": (c.get("parameter") or {}).get("value") or {},
            }
            for c in contracts
            if c.get("type") == "TransferContract"
        ]

    def _parse_native(self, raw: dict[str, Any]) -> Optional[Transaction]:
        value = raw["value"]
        sender = value.get("owner_address")
        receiver = value.get("to_address")
        tx_type = self.direction(sender, receiver)
        if tx_type is None:
            return None
        settled = raw.get("contractRet") == "SUCCESS"
        return self._transaction(
            tx_type,
            self.NATIVE_ASSET,
            scale_units(value["amount"], SUN_DECIMALS),
            from_epoch(raw.get("block_timestamp")),
            from_address=hex_to_base58(sender or "") or (sender or ""),
            to_address=hex_to_base58(receiver or "") or (receiver or ""),
            tx_id=raw["txID"],
            status=TransactionStatus.COMPLETED if settled else TransactionStatus.FAILED,
            network="TRON",
        )

    def _parse_trc20(self, raw: dict[str, Any]) -> Optional[Transaction]:
        tx_type = self.direction(raw.get("from"), raw.get("to"))
        if tx_type is None:
            return None
        token = raw.get("token_info") or {}
        symbol = token.get("symbol")
        decimals = token.get("decimals")
        if not symbol or decimals in (None, ""):
            return None
        return self._transaction(
            tx_type,
            symbol,
            scale_units(raw["value"], decimals),
            from_epoch(raw.get("block_timestamp")),
            from_address=raw.get("from") or "",
            to_address=raw.get("to") or "",
            tx_id=raw["transaction_id"],
            network="TRON",
        )


__all__ = ["TronAdapter", "base58_to_hex", "hex_to_base58"]
