"""
Bitget Adapter - V2 spot wallet records and futures account bills.

API Documentation: https://www.bitget.com/api-doc/common/intro

Every request is signed with base64 HMAC-SHA256 over
timestamp + METHOD + request path (including query) + body, and
carries the account passphrase.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from core.clock import from_epoch, to_epoch_ms
from core.constants import EXTERNAL_ADDRESS, INTERNAL_ADDRESS
from reconciliation.models import Transaction, TransactionStatus, TransactionType
from source_adapters.base import SubFetch, to_decimal
from source_adapters.exceptions import ApiError, AuthenticationError, FetchError
from source_adapters.exchange import BaseExchangeAdapter
from source_adapters.signing import bitget_signature, build_query


logger = logging.getLogger(__name__)


SUCCESS_CODE = "00000"
BILL_PRODUCT_TYPE = "USDT-FUTURES"

# Bill business types that move funds into / out of the account.
_BILL_IN_MARKERS = ("trans_from", "transfer_in", "_in")
_BILL_OUT_MARKERS = ("trans_to", "transfer_out", "_out")


class BitgetAdapter(BaseExchangeAdapter):
    """Bitget account adapter."""

    BASE_URL = "https://api.bitget.com"
    REQUIRES_PASSPHRASE = True
    PAGE_LIMIT = 100
    BILL_PAGE_LIMIT = 20

    @property
    def source_type(self) -> str:
        return "bitget"

    def sub_fetches(self) -> list[tuple[str, SubFetch]]:
        return [
            ("deposits", self.fetch_deposits),
            ("withdrawals", self.fetch_withdrawals),
            ("account_bills", self.fetch_account_bills),
        ]

    # ─────────────────────────────────────────────────────────────
    # Signed Requests
    # ─────────────────────────────────────────────────────────────

    def _sign_request(self, timestamp: str, method: str, request_path: str, body: str = "") -> str:
        return bitget_signature(timestamp, method, request_path, body, self._credentials.api_secret)

    async def _signed_request(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET a signed endpoint and return its ``data`` member."""
        timestamp = self._timestamp_ms()
        query = build_query(params or {})
        request_path = f"{path}?{query}" if query else path

        data = await self._make_request(
            "GET",
            f"{self._base_url}{request_path}",
            headers={
                "ACCESS-KEY": self._credentials.api_key,
                "ACCESS-SIGN": self._sign_request(timestamp, "GET", request_path),
                "ACCESS-TIMESTAMP": timestamp,
                "ACCESS-PASSPHRASE": self._credentials.passphrase,
                "Content-Type": "application/json",
                "locale": "en-US",
            },
        )

        if not isinstance(data, dict):
            raise ApiError("Unexpected response shape", source_name=self.name)
        if str(data.get("code")) != SUCCESS_CODE:
            raise ApiError(
                f"API error: {data.get('msg')}",
                source_name=self.name,
                api_code=str(data.get("code")),
            )
        return data.get("data")

    def _window(self, since: datetime) -> dict[str, Any]:
        return {
            "startTime": to_epoch_ms(since),
            "endTime": self._timestamp_ms(),
        }

    async def verify_connection(self) -> None:
        try:
            await self._signed_request("/api/v2/spot/account/assets")
        except FetchError as e:
            self._raise_auth_failure(e, "Bitget auth failed")
        except ApiError as e:
            raise AuthenticationError(
                f"Bitget auth failed: {e.message}",
                source_name=self.name,
                api_code=e.api_code,
            )

    # ─────────────────────────────────────────────────────────────
    # Sub-fetches
    # ─────────────────────────────────────────────────────────────

    async def fetch_deposits(self, since: datetime) -> list[Transaction]:
        params = {**self._window(since), "limit": self.PAGE_LIMIT}
        data = await self._signed_request("/api/v2/spot/wallet/deposit-records", params)
        return self._parse_records(data, self._parse_deposit, "deposits")

    async def fetch_withdrawals(self, since: datetime) -> list[Transaction]:
        params = {**self._window(since), "limit": self.PAGE_LIMIT}
        data = await self._signed_request("/api/v2/spot/wallet/withdrawal-records", params)
        return self._parse_records(data, self._parse_withdrawal, "withdrawals")

    async def fetch_account_bills(self, since: datetime) -> list[Transaction]:
        params = {
            **self._window(since),
            "productType": BILL_PRODUCT_TYPE,
            "limit": self.BILL_PAGE_LIMIT,
        }
        data = await self._signed_request("/api/v2/mix/account/account-bill", params)
        bills = None
        if isinstance(data, dict):
            bills = data.get("bills")
            if bills is None:
                bills = data.get("result")
        return self._parse_records(bills, self._parse_bill, "account_bills")

    # ─────────────────────────────────────────────────────────────
    # Record Mapping
    # ─────────────────────────────────────────────────────────────

    def _parse_deposit(self, raw: dict[str, Any]) -> Transaction:
        return self._transaction(
            TransactionType.DEPOSIT,
            raw["coin"],
            _amount(raw),
            from_epoch(raw.get("uTime")) or from_epoch(raw.get("cTime")),
            from_address=raw.get("fromAddress") or EXTERNAL_ADDRESS,
            to_address=raw.get("toAddress") or self.name,
            tx_id=str(raw.get("tradeId") or raw.get("txId") or raw.get("orderId") or raw.get("id") or ""),
            status=_status(raw),
            network=raw.get("chain") or "",
        )

    def _parse_withdrawal(self, raw: dict[str, Any]) -> Transaction:
        return self._transaction(
            TransactionType.WITHDRAWAL,
            raw["coin"],
            _amount(raw),
            from_epoch(raw.get("uTime")) or from_epoch(raw.get("cTime")),
            from_address=self.name,
            to_address=raw.get("toAddress") or EXTERNAL_ADDRESS,
            tx_id=str(raw.get("tradeId") or raw.get("txId") or raw.get("orderId") or raw.get("id") or ""),
            status=_status(raw),
            network=raw.get("chain") or "",
        )

    def _parse_bill(self, raw: dict[str, Any]) -> Optional[Transaction]:
        amount = to_decimal(raw["amount"])
        if amount == 0:
            return None
        tx_type = self.classify_bill(raw.get("businessType") or raw.get("business"), amount)
        if tx_type is None:
            return None
        is_deposit = tx_type == TransactionType.DEPOSIT
        return self._transaction(
            tx_type,
            raw.get("coin") or raw.get("marginCoin") or "USDT",
            amount,
            from_epoch(raw.get("cTime") or raw.get("ctime")),
            from_address=INTERNAL_ADDRESS if is_deposit else self.name,
            to_address=self.name if is_deposit else INTERNAL_ADDRESS,
            tx_id=str(raw.get("billId") or raw.get("id") or ""),
            network=INTERNAL_ADDRESS,
        )

    @staticmethod
    def classify_bill(business: Optional[str], amount) -> Optional[TransactionType]:
        """
        Direction of an account bill.

        Explicit in/out markers win, then the sign of the amount.
        Business types that are not transfers or withdrawals are
        skipped.
        """
        business = (business or "").lower()
        if "transfer" not in business and "trans_" not in business and "withdraw" not in business:
            return None
        if any(marker in business for marker in _BILL_IN_MARKERS):
            return TransactionType.DEPOSIT
        if any(marker in business for marker in _BILL_OUT_MARKERS):
            return TransactionType.WITHDRAWAL
        if "withdraw" in business:
            return TransactionType.WITHDRAWAL
        return TransactionType.DEPOSIT if amount > 0 else TransactionType.WITHDRAWAL


def _amount(raw: dict[str, Any]) -> Any:
    return raw.get("size") if raw.get("size") not in (None, "") else raw["amount"]


def _status(raw: dict[str, Any]) -> TransactionStatus:
    status = str(raw.get("status", "")).lower()
    if status == "success":
        return TransactionStatus.COMPLETED
    if status in ("fail", "failed", "reject", "rejected", "cancel", "cancelled"):
        return TransactionStatus.FAILED
    return TransactionStatus.PENDING


__all__ = ["BitgetAdapter"]
