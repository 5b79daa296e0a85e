"""
Binance Adapter - Deposits, withdrawals, P2P orders and Binance Pay.

API Documentation: https://developers.binance.com/docs/

Endpoints used (all signed, HMAC-SHA256 over the query string):
- /api/v3/account - connection and key check
- /sapi/v1/capital/deposit/hisrec - on-chain deposits
- /sapi/v1/capital/withdraw/history - on-chain withdrawals
- /sapi/v1/c2c/orderMatch/listUserOrderHistory - P2P orders
- /sapi/v1/pay/transactions - Binance Pay transfers
"""

import logging
from datetime import datetime
from typing import Any, Optional

from core.clock import parse_event_time, to_epoch_ms
from core.constants import EXTERNAL_ADDRESS
from reconciliation.models import Transaction, TransactionStatus, TransactionType
from source_adapters.base import SubFetch, to_decimal
from source_adapters.exceptions import ApiError, AuthenticationError, FetchError
from source_adapters.exchange import BaseExchangeAdapter
from source_adapters.signing import binance_signature, build_query


logger = logging.getLogger(__name__)


DEPOSIT_SUCCESS = 1
WITHDRAWAL_COMPLETED = 6
C2C_SUCCESS_CODE = "000000"

P2P_COUNTERPARTY = "P2P User"
PAY_COUNTERPARTY = "Binance Pay User"


class BinanceAdapter(BaseExchangeAdapter):
    """
    Binance spot account adapter.

    Binance Pay records carry no direction field. The tracked account
    is matched against the payer and receiver ids; when that is not
    conclusive the sign of the amount decides.
    """

    BASE_URL = "https://api.binance.com"
    PAGE_LIMIT = 100

    @property
    def source_type(self) -> str:
        return "binance"

    def sub_fetches(self) -> list[tuple[str, SubFetch]]:
        return [
            ("deposits", self.fetch_deposits),
            ("withdrawals", self.fetch_withdrawals),
            ("p2p", self.fetch_p2p),
            ("pay", self.fetch_pay),
        ]

    # ─────────────────────────────────────────────────────────────
    # Signed Requests
    # ─────────────────────────────────────────────────────────────

    async def _signed_request(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """GET a signed endpoint; raises ApiError on an error payload."""
        params = dict(params or {})
        params["timestamp"] = self._timestamp_ms()
        params["recvWindow"] = self.RECV_WINDOW

        query = build_query(params)
        signature = binance_signature(query, self._credentials.api_secret)
        url = f"{self._base_url}{path}?{query}&signature={signature}"

        data = await self._make_request(
            "GET",
            url,
            headers={"X-MBX-APIKEY": self._credentials.api_key},
        )

        if isinstance(data, dict) and "code" in data and "msg" in data and data["code"] not in (0, 200):
            raise ApiError(
                f"API error: {data.get('msg')}",
                source_name=self.name,
                api_code=str(data["code"]),
            )
        return data

    async def verify_connection(self) -> None:
        try:
            await self._signed_request("/api/v3/account")
        except FetchError as e:
            self._raise_auth_failure(e, "Binance auth failed")
        except ApiError as e:
            raise AuthenticationError(
                e.message,
                source_name=self.name,
                api_code=e.api_code,
            )

    # ─────────────────────────────────────────────────────────────
    # Sub-fetches
    # ─────────────────────────────────────────────────────────────

    async def fetch_deposits(self, since: datetime) -> list[Transaction]:
        data = await self._signed_request(
            "/sapi/v1/capital/deposit/hisrec",
            {"limit": self.PAGE_LIMIT, "startTime": to_epoch_ms(since)},
        )
        return self._parse_records(data, self._parse_deposit, "deposits")

    async def fetch_withdrawals(self, since: datetime) -> list[Transaction]:
        data = await self._signed_request(
            "/sapi/v1/capital/withdraw/history",
            {"limit": self.PAGE_LIMIT, "startTime": to_epoch_ms(since)},
        )
        return self._parse_records(data, self._parse_withdrawal, "withdrawals")

    async def fetch_p2p(self, since: datetime) -> list[Transaction]:
        data = await self._signed_request(
            "/sapi/v1/c2c/orderMatch/listUserOrderHistory",
            {"page": 1, "rows": self.PAGE_LIMIT, "startTime": to_epoch_ms(since)},
        )
        return self._parse_records(self._c2c_data(data, "P2P"), self._parse_p2p, "p2p")

    async def fetch_pay(self, since: datetime) -> list[Transaction]:
        data = await self._signed_request(
            "/sapi/v1/pay/transactions",
            {"limit": self.PAGE_LIMIT, "startTime": to_epoch_ms(since)},
        )
        return self._parse_records(self._c2c_data(data, "Pay"), self._parse_pay, "pay")

    def _c2c_data(self, data: Any, label: str) -> Any:
        """Unwrap the {code, success, data} envelope of C2C/Pay endpoints."""
        if not isinstance(data, dict):
            raise ApiError(f"{label}: unexpected response shape", source_name=self.name)
        if str(data.get("code")) != C2C_SUCCESS_CODE or not data.get("success"):
            raise ApiError(
                f"{label} API error: {data.get('message') or data.get('msg')}",
                source_name=self.name,
                api_code=str(data.get("code")),
            )
        return data.get("data") or []

    # ─────────────────────────────────────────────────────────────
    # Record Mapping
    # ─────────────────────────────────────────────────────────────

    def _parse_deposit(self, raw: dict[str, Any]) -> Transaction:
        return self._transaction(
            TransactionType.DEPOSIT,
            raw["coin"],
            raw["amount"],
            parse_event_time(raw.get("completeTime")) or parse_event_time(raw.get("insertTime")),
            from_address=raw.get("address") or EXTERNAL_ADDRESS,
            to_address=self.name,
            tx_id=str(raw.get("txId") or raw.get("id") or ""),
            status=(
                TransactionStatus.COMPLETED if raw.get("status") == DEPOSIT_SUCCESS
                else TransactionStatus.PENDING
            ),
            network=raw.get("network") or "",
        )

    def _parse_withdrawal(self, raw: dict[str, Any]) -> Transaction:
        return self._transaction(
            TransactionType.WITHDRAWAL,
            raw["coin"],
            raw["amount"],
            parse_event_time(raw.get("completeTime")) or parse_event_time(raw.get("applyTime")),
            from_address=self.name,
            to_address=raw.get("address") or EXTERNAL_ADDRESS,
            tx_id=str(raw.get("txId") or raw.get("id") or ""),
            status=(
                TransactionStatus.COMPLETED if raw.get("status") == WITHDRAWAL_COMPLETED
                else TransactionStatus.PENDING
            ),
            network=raw.get("network") or "",
        )

    def _parse_p2p(self, raw: dict[str, Any]) -> Optional[Transaction]:
        if raw.get("orderStatus") != "COMPLETED":
            return None
        is_buy = str(raw.get("tradeType", "")).upper() == "BUY"
        counterparty = raw.get("counterPartNickName") or P2P_COUNTERPARTY
        return self._transaction(
            TransactionType.DEPOSIT if is_buy else TransactionType.WITHDRAWAL,
            raw["asset"],
            raw["amount"],
            parse_event_time(raw.get("createTime")),
            from_address=counterparty if is_buy else self.name,
            to_address=self.name if is_buy else counterparty,
            tx_id=f"P2P_{raw['orderNumber']}",
            network="P2P",
        )

    def _parse_pay(self, raw: dict[str, Any]) -> Transaction:
        tx_type = self.classify_pay(raw, self._credentials.account_uid)
        payer = raw.get("payerInfo") or {}
        receiver = raw.get("receiverInfo") or {}

        if tx_type == TransactionType.WITHDRAWAL:
            counterparty = receiver.get("name") or PAY_COUNTERPARTY
            from_address, to_address = self.name, counterparty
        else:
            counterparty = payer.get("name") or PAY_COUNTERPARTY
            from_address, to_address = counterparty, self.name

        return self._transaction(
            tx_type,
            raw["currency"],
            raw["amount"],
            parse_event_time(raw.get("transactionTime")),
            from_address=from_address,
            to_address=to_address,
            tx_id=f"PAY_{raw['transactionId']}",
            network="Binance Pay",
        )

    @staticmethod
    def classify_pay(raw: dict[str, Any], account_uid: str = "") -> TransactionType:
        """
        Direction of a Binance Pay record.

        The tracked id is the configured account uid, else the
        record's own ``uid``.
        """
        tracked = str(account_uid or raw.get("uid") or "")
        payer_id = str((raw.get("payerInfo") or {}).get("binanceId") or "")
        receiver_id = str((raw.get("receiverInfo") or {}).get("binanceId") or "")

        is_payer = bool(tracked) and payer_id == tracked
        is_receiver = bool(tracked) and receiver_id == tracked

        if is_payer and not is_receiver:
            return TransactionType.WITHDRAWAL
        if is_receiver and not is_payer:
            return TransactionType.DEPOSIT
        return TransactionType.DEPOSIT if to_decimal(raw["amount"]) > 0 else TransactionType.WITHDRAWAL


__all__ = ["BinanceAdapter"]
