"""
Etherscan Adapter - Ethereum and BSC wallets via the Etherscan V2 API.

API Documentation: https://docs.etherscan.io/etherscan-v2

V2 serves every EVM chain from one endpoint selected by ``chainid``.
Two sub-fetches per wallet:
- transactions: native transfers (action=txlist)
- token_transfers: ERC-20/BEP-20 transfers (action=tokentx), with
  symbol and decimals taken from each record
"""

import logging
from datetime import datetime
from typing import Any, Optional

from core.clock import from_epoch
from core.wallets import Chain
from reconciliation.models import Transaction, TransactionStatus
from source_adapters.base import SubFetch, classify_direction, scale_units, to_decimal
from source_adapters.exceptions import ApiError, RateLimitError
from source_adapters.wallet import BaseWalletAdapter


logger = logging.getLogger(__name__)


CHAIN_IDS = {
    Chain.ETHEREUM: 1,
    Chain.BSC: 56,
}

NATIVE_ASSETS = {
    Chain.ETHEREUM: ("ETH", "ETH"),
    Chain.BSC: ("BNB", "BSC"),
}

NATIVE_DECIMALS = 18


class EtherscanAdapter(BaseWalletAdapter):
    """
    EVM wallet adapter.

    An API key is required; wallets without one (in the registry row
    or the shared ETHERSCAN_API_KEY) report missing credentials.
    """

    V2_API_URL = "https://api.etherscan.io/v2/api"
    REQUIRES_API_KEY = True
    PAGE_SIZE = 100

    def __init__(self, wallet, *args, **kwargs) -> None:
        super().__init__(wallet, *args, **kwargs)
        self.chain = wallet.chain if wallet.chain in CHAIN_IDS else Chain.ETHEREUM
        self.NATIVE_ASSET, self._network = NATIVE_ASSETS[self.chain]

    @property
    def source_type(self) -> str:
        return "etherscan"

    def sub_fetches(self) -> list[tuple[str, SubFetch]]:
        return [
            ("transactions", self.fetch_transactions),
            ("token_transfers", self.fetch_token_transfers),
        ]

    async def _account_query(self, action: str) -> list[dict[str, Any]]:
        params = {
            "chainid": str(CHAIN_IDS[self.chain]),
            "module": "account",
            "action": action,
            "address": self.address,
            "startblock": 0,
            "endblock": 99999999,
            "page": 1,
            "offset": self.PAGE_SIZE,
            "sort": "desc",
            "apikey": self._api_key,
        }
        data = await self._make_request("GET", self._base_url or self.V2_API_URL, params=params)

        if not isinstance(data, dict):
            raise ApiError("Unexpected response shape", source_name=self.name)
        if data.get("status") == "1":
            return data.get("result") or []

        message = str(data.get("message") or "")
        result = data.get("result")
        if "no transactions" in message.lower():
            return []
        if isinstance(result, str) and "rate limit" in result.lower():
            raise RateLimitError(result, source_name=self.name)
        raise ApiError(
            f"Etherscan error: {result if isinstance(result, str) else message}",
            source_name=self.name,
        )

    async def fetch_transactions(self, since: datetime) -> list[Transaction]:
        records = await self._account_query("txlist")
        return self._parse_records(records, self._parse_native, "transactions")

    async def fetch_token_transfers(self, since: datetime) -> list[Transaction]:
        records = await self._account_query("tokentx")
        return self._parse_records(records, self._parse_token, "token_transfers")

    def _parse_native(self, raw: dict[str, Any]) -> Optional[Transaction]:
        tx_type = classify_direction(self.address, raw.get("from"), raw.get("to"))
        if tx_type is None:
            return None
        if to_decimal(raw["value"]) == 0:
            # contract calls without value transfer
            return None

        failed = raw.get("isError") == "1" or raw.get("txreceipt_status") == "0"
        return self._transaction(
            tx_type,
            self.NATIVE_ASSET,
            scale_units(raw["value"], NATIVE_DECIMALS),
            from_epoch(raw.get("timeStamp")),
            from_address=raw.get("from") or "",
            to_address=raw.get("to") or "",
            tx_id=raw["hash"],
            status=TransactionStatus.FAILED if failed else TransactionStatus.COMPLETED,
            network=self._network,
        )

    def _parse_token(self, raw: dict[str, Any]) -> Optional[Transaction]:
        tx_type = classify_direction(self.address, raw.get("from"), raw.get("to"))
        if tx_type is None:
            return None
        symbol = raw.get("tokenSymbol")
        decimals = raw.get("tokenDecimal")
        if not symbol or decimals in (None, ""):
            return None

        return self._transaction(
            tx_type,
            symbol,
            scale_units(raw["value"], decimals),
            from_epoch(raw.get("timeStamp")),
            from_address=raw.get("from") or "",
            to_address=raw.get("to") or "",
            tx_id=raw["hash"],
            network=self._network,
        )


__all__ = ["EtherscanAdapter", "CHAIN_IDS"]
