"""
ByBit Adapter - V5 asset endpoints.

API Documentation: https://bybit-exchange.github.io/docs/v5/intro

External and internal movements are separate sub-fetches:
- deposits: /v5/asset/deposit/query-record (status 3 = success)
- internal_deposits: /v5/asset/deposit/query-internal-record (status 2 = success)
- withdrawals: /v5/asset/withdraw/query-record (status "success")
- internal_transfers: /v5/asset/inter-transfer-list (status "SUCCESS")
"""

import logging
from datetime import datetime
from typing import Any, Optional

from core.clock import from_epoch, to_epoch_ms
from core.constants import EXTERNAL_ADDRESS, INTERNAL_ADDRESS
from reconciliation.models import Transaction, TransactionStatus, TransactionType
from source_adapters.base import SubFetch
from source_adapters.exceptions import ApiError, AuthenticationError, FetchError
from source_adapters.exchange import BaseExchangeAdapter
from source_adapters.signing import build_query, bybit_signature


logger = logging.getLogger(__name__)


DEPOSIT_SUCCESS = 3
INTERNAL_DEPOSIT_SUCCESS = 2
UNIFIED_ACCOUNT = "UNIFIED"


class BybitAdapter(BaseExchangeAdapter):
    """ByBit unified account adapter."""

    BASE_URL = "https://api.bybit.com"
    PAGE_LIMIT = 50

    @property
    def source_type(self) -> str:
        return "bybit"

    def sub_fetches(self) -> list[tuple[str, SubFetch]]:
        return [
            ("deposits", self.fetch_deposits),
            ("internal_deposits", self.fetch_internal_deposits),
            ("withdrawals", self.fetch_withdrawals),
            ("internal_transfers", self.fetch_internal_transfers),
        ]

    # ─────────────────────────────────────────────────────────────
    # Signed Requests
    # ─────────────────────────────────────────────────────────────

    def _sign_request(self, timestamp: str, payload: str) -> str:
        return bybit_signature(
            timestamp,
            self._credentials.api_key,
            str(self.RECV_WINDOW),
            payload,
            self._credentials.api_secret,
        )

    async def _signed_request(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """GET a signed V5 endpoint and return its ``result`` object."""
        timestamp = self._timestamp_ms()
        query = build_query(params)

        data = await self._make_request(
            "GET",
            f"{self._base_url}{path}?{query}",
            headers={
                "X-BAPI-API-KEY": self._credentials.api_key,
                "X-BAPI-SIGN": self._sign_request(timestamp, query),
                "X-BAPI-TIMESTAMP": timestamp,
                "X-BAPI-RECV-WINDOW": str(self.RECV_WINDOW),
                "Content-Type": "application/json",
            },
        )

        if not isinstance(data, dict):
            raise ApiError("Unexpected response shape", source_name=self.name)
        if data.get("retCode") != 0:
            raise ApiError(
                f"API error: {data.get('retMsg')}",
                source_name=self.name,
                api_code=str(data.get("retCode")),
            )
        return data.get("result") or {}

    def _window(self, since: datetime) -> dict[str, Any]:
        return {
            "limit": self.PAGE_LIMIT,
            "startTime": to_epoch_ms(since),
            "endTime": self._timestamp_ms(),
        }

    async def verify_connection(self) -> None:
        try:
            await self._signed_request("/v5/account/wallet-balance", {"accountType": UNIFIED_ACCOUNT})
        except FetchError as e:
            self._raise_auth_failure(e, "ByBit V5 auth failed")
        except ApiError as e:
            raise AuthenticationError(
                f"ByBit V5 auth failed: {e.message}",
                source_name=self.name,
                api_code=e.api_code,
            )

    # ─────────────────────────────────────────────────────────────
    # Sub-fetches
    # ─────────────────────────────────────────────────────────────

    async def fetch_deposits(self, since: datetime) -> list[Transaction]:
        result = await self._signed_request("/v5/asset/deposit/query-record", self._window(since))
        return self._parse_records(result.get("rows"), self._parse_deposit, "deposits")

    async def fetch_internal_deposits(self, since: datetime) -> list[Transaction]:
        result = await self._signed_request(
            "/v5/asset/deposit/query-internal-record", self._window(since)
        )
        return self._parse_records(result.get("rows"), self._parse_internal_deposit, "internal_deposits")

    async def fetch_withdrawals(self, since: datetime) -> list[Transaction]:
        params = {"limit": self.PAGE_LIMIT, "startTime": to_epoch_ms(since)}
        result = await self._signed_request("/v5/asset/withdraw/query-record", params)
        return self._parse_records(result.get("rows"), self._parse_withdrawal, "withdrawals")

    async def fetch_internal_transfers(self, since: datetime) -> list[Transaction]:
        result = await self._signed_request("/v5/asset/inter-transfer-list", self._window(since))
        return self._parse_records(result.get("list"), self._parse_transfer, "internal_transfers")

    # ─────────────────────────────────────────────────────────────
    # Record Mapping
    # ─────────────────────────────────────────────────────────────

    def _parse_deposit(self, raw: dict[str, Any]) -> Transaction:
        return self._transaction(
            TransactionType.DEPOSIT,
            raw["coin"],
            raw["amount"],
            from_epoch(raw.get("successAt")),
            from_address=raw.get("fromAddress") or EXTERNAL_ADDRESS,
            to_address=raw.get("toAddress") or self.name,
            tx_id=str(raw.get("txID") or raw.get("id") or ""),
            status=_status(int(raw.get("status", -1)) == DEPOSIT_SUCCESS),
            network=raw.get("chain") or "",
        )

    def _parse_internal_deposit(self, raw: dict[str, Any]) -> Transaction:
        return self._transaction(
            TransactionType.DEPOSIT,
            raw["coin"],
            raw["amount"],
            from_epoch(raw.get("createdTime")),
            from_address=raw.get("address") or INTERNAL_ADDRESS,
            to_address=self.name,
            tx_id=str(raw.get("txID") or raw.get("id") or ""),
            status=_status(int(raw.get("status", -1)) == INTERNAL_DEPOSIT_SUCCESS),
            network=INTERNAL_ADDRESS,
        )

    def _parse_withdrawal(self, raw: dict[str, Any]) -> Transaction:
        return self._transaction(
            TransactionType.WITHDRAWAL,
            raw["coin"],
            raw["amount"],
            from_epoch(raw.get("updateTime")) or from_epoch(raw.get("createTime")),
            from_address=self.name,
            to_address=raw.get("toAddress") or EXTERNAL_ADDRESS,
            tx_id=str(raw.get("txID") or raw.get("withdrawId") or raw.get("id") or ""),
            status=_status(str(raw.get("status", "")).lower() == "success"),
            network=raw.get("chain") or "",
        )

    def _parse_transfer(self, raw: dict[str, Any]) -> Optional[Transaction]:
        tx_type = self.classify_transfer(raw)
        if tx_type is None:
            return None
        return self._transaction(
            tx_type,
            raw.get("coin") or "USDT",
            raw["amount"],
            from_epoch(raw.get("timestamp")),
            from_address=raw.get("fromAccountType") or INTERNAL_ADDRESS,
            to_address=raw.get("toAccountType") or INTERNAL_ADDRESS,
            tx_id=str(raw.get("transferId") or raw.get("id") or ""),
            status=_status(raw.get("status") == "SUCCESS"),
            network=INTERNAL_ADDRESS,
        )

    @staticmethod
    def classify_transfer(raw: dict[str, Any]) -> Optional[TransactionType]:
        """
        Direction of an inter-account transfer relative to the unified account.

        Transfers that touch neither side of the unified account are skipped.
        """
        if raw.get("toAccountType") == UNIFIED_ACCOUNT:
            return TransactionType.DEPOSIT
        if raw.get("fromAccountType") == UNIFIED_ACCOUNT:
            return TransactionType.WITHDRAWAL
        return None


def _status(settled: bool) -> TransactionStatus:
    return TransactionStatus.COMPLETED if settled else TransactionStatus.PENDING


__all__ = ["BybitAdapter"]
