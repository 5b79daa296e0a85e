"""
Source Adapter Base Tests.

============================================================
PURPOSE
============================================================
Tests for the shared fetch contract every adapter inherits:
- Missing credentials short-circuit without network calls
- A failing sub-fetch contributes nothing; the rest still run
- All sub-fetches failing turns into a source failure
- Time budget exhaustion
- Settled-only and since-bound filtering
- Status notes for exchanges and wallets

============================================================
"""

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from core.wallets import Chain, WalletConfig
from reconciliation.models import Transaction, TransactionStatus, TransactionType
from source_adapters.base import (
    BaseSourceAdapter,
    classify_direction,
    format_amount,
    scale_units,
    to_decimal,
)
from source_adapters.exceptions import (
    AuthenticationError,
    FetchError,
    MissingCredentialsError,
    NormalizationError,
)
from source_adapters.models import SourceKind, SourceState
from source_adapters.wallet import BaseWalletAdapter


SINCE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def tx(tx_id: str, tx_type=TransactionType.DEPOSIT, status=TransactionStatus.COMPLETED, offset_minutes=5):
    return Transaction(
        platform="Fake",
        type=tx_type,
        asset="USDT",
        amount="10",
        timestamp=SINCE + timedelta(minutes=offset_minutes),
        tx_id=tx_id,
        status=status,
    )


class FakeExchange(BaseSourceAdapter):
    """Exchange-kind adapter driven by canned sub-fetch results."""

    def __init__(self, name="Fake", results=None, credentials=True, verify=None):
        super().__init__(name)
        self.results = results or {}
        self.credentials = credentials
        self.verify = verify
        self.calls = []

    @property
    def source_type(self) -> str:
        return "fake"

    def has_credentials(self) -> bool:
        return self.credentials

    async def verify_connection(self) -> None:
        if self.verify:
            raise self.verify

    def sub_fetches(self):
        return [(label, self._fetcher(label)) for label in self.results]

    def _fetcher(self, label):
        async def fetch(since):
            self.calls.append(label)
            result = self.results[label]
            if isinstance(result, Exception):
                raise result
            return result
        return fetch


class FakeWallet(BaseWalletAdapter):
    """Wallet-kind adapter with one sub-fetch."""

    chain = Chain.TRON

    def __init__(self, fetcher):
        super().__init__(WalletConfig("Tron Hot", "TXYZ", Chain.TRON))
        self._fetcher = fetcher

    @property
    def source_type(self) -> str:
        return "fake_wallet"

    def sub_fetches(self):
        return [("transactions", self._fetcher)]


# ============================================================
# FETCH CONTRACT TESTS
# ============================================================

class TestFetchContract:
    """Tests for BaseSourceAdapter.fetch."""

    @pytest.mark.asyncio
    async def test_missing_credentials_short_circuits(self):
        adapter = FakeExchange(results={"deposits": [tx("A")]}, credentials=False)

        result = await adapter.fetch(SINCE)

        assert result == []
        assert adapter.calls == []
        assert adapter.status.state == SourceState.ERROR
        assert adapter.status.notes == "Missing credentials"

    def test_require_credentials_raises(self):
        adapter = FakeExchange(name="ByBit", credentials=False)

        with pytest.raises(MissingCredentialsError) as exc:
            adapter.require_credentials()

        assert exc.value.source_name == "ByBit"
        assert exc.value.message == "Missing credentials"
        FakeExchange(credentials=True).require_credentials()

    @pytest.mark.asyncio
    async def test_exchange_notes_breakdown(self):
        adapter = FakeExchange(results={
            "deposits": [tx("A"), tx("B")],
            "withdrawals": [tx("C", TransactionType.WITHDRAWAL)],
        })

        result = await adapter.fetch(SINCE)

        assert [t.tx_id for t in result] == ["A", "B", "C"]
        assert adapter.status.state == SourceState.ACTIVE
        assert adapter.status.notes == "2 deposits + 1 withdrawals = 3 total"
        assert adapter.status.transaction_count == 3

    @pytest.mark.asyncio
    async def test_partial_sub_fetch_failure(self):
        adapter = FakeExchange(results={
            "deposits": [tx("A")],
            "p2p": FetchError("HTTP 500: boom", source_name="Fake"),
        })

        result = await adapter.fetch(SINCE)

        assert [t.tx_id for t in result] == ["A"]
        assert adapter.status.state == SourceState.ACTIVE
        assert adapter.status.failed_sub_fetches == ["p2p"]
        assert "(failed: p2p)" in adapter.status.notes
        assert any("p2p failed" in line for line in adapter.diagnostics)

    @pytest.mark.asyncio
    async def test_all_sub_fetches_failing(self):
        adapter = FakeExchange(results={
            "deposits": FetchError("down"),
            "withdrawals": FetchError("down"),
        })

        result = await adapter.fetch(SINCE)

        assert result == []
        assert adapter.status.state == SourceState.ERROR
        assert "All requests failed" in adapter.status.notes

    @pytest.mark.asyncio
    async def test_malformed_response_counts_as_sub_fetch_failure(self):
        adapter = FakeExchange(results={
            "deposits": KeyError("rows"),
            "withdrawals": [tx("W", TransactionType.WITHDRAWAL)],
        })

        result = await adapter.fetch(SINCE)

        assert len(result) == 1
        assert adapter.status.failed_sub_fetches == ["deposits"]

    @pytest.mark.asyncio
    async def test_authentication_failure_is_error(self):
        adapter = FakeExchange(
            results={"deposits": [tx("A")]},
            verify=AuthenticationError("Binance auth failed: HTTP 401"),
        )

        result = await adapter.fetch(SINCE)

        assert result == []
        assert adapter.calls == []
        assert adapter.status.state == SourceState.ERROR
        assert adapter.status.notes == "Binance auth failed: HTTP 401"

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_contained(self):
        adapter = FakeExchange(results={"deposits": [tx("A")]}, verify=RuntimeError("bug"))

        result = await adapter.fetch(SINCE)

        assert result == []
        assert adapter.status.notes == "Unexpected error: bug"

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow(since):
            await asyncio.sleep(5)
            return []

        adapter = FakeWallet(slow)

        result = await adapter.fetch(SINCE, timeout=0.01)

        assert result == []
        assert adapter.status.state == SourceState.NOT_WORKING
        assert adapter.status.notes.startswith("Timed out")

    @pytest.mark.asyncio
    async def test_only_settled_records_since_bound(self):
        adapter = FakeExchange(results={"deposits": [
            tx("ok"),
            tx("pending", status=TransactionStatus.PENDING),
            tx("failed", status=TransactionStatus.FAILED),
            tx("old", offset_minutes=-1),
            tx("edge", offset_minutes=0),
        ]})

        result = await adapter.fetch(SINCE)

        assert [t.tx_id for t in result] == ["ok", "edge"]

    @pytest.mark.asyncio
    async def test_api_source_defaulted_from_label(self):
        adapter = FakeExchange(results={"deposits": [tx("A")]})

        [record] = await adapter.fetch(SINCE)

        assert record.api_source == "fake_deposits"

    @pytest.mark.asyncio
    async def test_status_reset_between_runs(self):
        adapter = FakeExchange(results={"deposits": FetchError("down")})
        await adapter.fetch(SINCE)
        assert adapter.status.state == SourceState.ERROR

        adapter.results = {"deposits": [tx("A")]}
        await adapter.fetch(SINCE)

        assert adapter.status.state == SourceState.ACTIVE
        assert adapter.status.failed_sub_fetches == []


class TestWalletStatus:
    """Tests for wallet-kind status labels."""

    @pytest.mark.asyncio
    async def test_wallet_success_notes(self):
        adapter = FakeWallet(AsyncMock(return_value=[tx("A"), tx("B")]))

        await adapter.fetch(SINCE)

        assert adapter.kind == SourceKind.WALLET
        assert adapter.status.state == SourceState.WORKING
        assert adapter.status.notes == "2 transactions found"

    @pytest.mark.asyncio
    async def test_wallet_failure_is_not_working(self):
        adapter = FakeWallet(AsyncMock(side_effect=FetchError("HTTP 503")))

        await adapter.fetch(SINCE)

        assert adapter.status.state == SourceState.NOT_WORKING


# ============================================================
# RECORD HELPER TESTS
# ============================================================

class TestParseRecords:
    """Tests for per-record parsing."""

    def test_bad_records_skipped(self):
        adapter = FakeExchange()

        def parser(raw):
            if raw.get("skip"):
                return None
            return adapter._transaction(
                TransactionType.DEPOSIT, raw["coin"], raw["amount"], SINCE, tx_id=raw["id"],
            )

        records = [
            {"coin": "usdt", "amount": "1.50", "id": "1"},
            {"amount": "1"},
            {"skip": True},
            {"coin": "btc", "amount": "abc", "id": "3"},
        ]

        parsed = adapter._parse_records(records, parser, "deposits")

        assert len(parsed) == 1
        assert parsed[0].asset == "USDT"
        assert parsed[0].amount == "1.5"

    def test_none_is_empty(self):
        assert FakeExchange()._parse_records(None, lambda r: None, "x") == []

    def test_non_list_raises(self):
        with pytest.raises(NormalizationError):
            FakeExchange()._parse_records({"rows": []}, lambda r: None, "x")


class TestHelpers:
    """Tests for module-level helpers."""

    @pytest.mark.parametrize("value,expected", [
        ("1.500", "1.5"),
        ("-2", "2"),
        ("100", "100"),
        ("0.00000001", "0.00000001"),
        ("0", "0"),
    ])
    def test_format_amount(self, value, expected):
        assert format_amount(value) == expected

    def test_to_decimal_rejects_missing(self):
        with pytest.raises(ValueError):
            to_decimal("")
        with pytest.raises(ValueError):
            to_decimal("x")

    def test_scale_units(self):
        assert scale_units("1500000", 6) == to_decimal("1.5")

    def test_classify_direction(self):
        assert classify_direction("0xAbC", "0xdef", "0xabc") == TransactionType.DEPOSIT
        assert classify_direction("0xabc", "0xABC", "0xdef") == TransactionType.WITHDRAWAL
        assert classify_direction("0xabc", "0x1", "0x2") is None
        assert classify_direction("", "0x1", "") is None
