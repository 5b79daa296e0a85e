"""
Sync Pipeline Tests.

============================================================
PURPOSE
============================================================
End-to-end tests for SyncOrchestrator with fake sources and the
in-memory ledger:
- Value filter routes dust to the recycle bin
- Second run over the same data adds nothing
- Failing sources do not block the others
- Default window from the injected clock
- Unexpected failures become an error report

============================================================
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from core.clock import MockClock
from core.config import SyncConfig
from core.constants import PARTITION_DEPOSITS, PARTITION_WITHDRAWALS
from core.wallets import Chain, WalletConfig
from ledger.exceptions import LedgerReadError
from ledger.memory import InMemoryLedgerStore
from orchestrator.models import RunLog, RunSummary, SyncReport
from orchestrator.pipeline import SyncOrchestrator
from reconciliation.models import Transaction, TransactionType
from source_adapters.base import BaseSourceAdapter
from source_adapters.exceptions import FetchError
from source_adapters.models import SourceKind, SourceState, SourceStatus


SINCE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def usdt(tx_id, amount, timestamp, platform="ByBit", tx_type=TransactionType.DEPOSIT):
    return Transaction(
        platform=platform,
        type=tx_type,
        asset="USDT",
        amount=amount,
        timestamp=timestamp,
        tx_id=tx_id,
    )


class FakeSource(BaseSourceAdapter):
    """Source returning canned transactions and recording its window."""

    def __init__(self, name, transactions=None, error=None, kind=SourceKind.EXCHANGE, delay=0.0, tracker=None):
        super().__init__(name)
        self.kind = kind
        self.status = self._new_status()
        self.transactions = transactions or []
        self.error = error
        self.delay = delay
        self.tracker = tracker
        self.seen_since = []

    @property
    def source_type(self) -> str:
        return "fake"

    def sub_fetches(self):
        return [("deposits", self._fetch)]

    async def _fetch(self, since):
        self.seen_since.append(since)
        if self.tracker is not None:
            self.tracker["active"] += 1
            self.tracker["peak"] = max(self.tracker["peak"], self.tracker["active"])
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error:
                raise self.error
            return list(self.transactions)
        finally:
            if self.tracker is not None:
                self.tracker["active"] -= 1


class ExplodingSource(FakeSource):
    """Custom adapter that breaks the never-raise contract."""

    async def fetch(self, since, timeout=None):
        raise RuntimeError("adapter bug")


@pytest.fixture
def config():
    return SyncConfig(accounts=[])


@pytest.fixture
def store():
    return InMemoryLedgerStore()


# ============================================================
# PIPELINE TESTS
# ============================================================

class TestSyncOrchestrator:
    """Tests for SyncOrchestrator.run."""

    @pytest.mark.asyncio
    async def test_value_filter_scenario(self, store, config):
        source = FakeSource("ByBit", [
            usdt("A1", "50", "2024-01-01T00:00:00Z"),
            usdt("A2", "0.01", "2024-01-01T00:05:00Z"),
        ])

        report = await SyncOrchestrator(store, config, wallets=[], adapters=[source]).run(start_time=SINCE)

        assert report.success
        assert report.message == "Sync completed: 1 new transactions added"
        assert report.total_found == 2
        assert [row[6] for row in store.read_rows(PARTITION_DEPOSITS)] == ["A1"]
        [recycled] = store.read_recycle_bin()
        assert recycled[10] == "A2"
        assert "< 1.0" in recycled[7]
        assert report.write.value_filtered == 1
        assert report.statuses["ByBit"].state == SourceState.ACTIVE
        assert store.read_status()[0]["platform"] == "ByBit"

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, store, config):
        source = FakeSource("ByBit", [
            usdt("A1", "50", "2024-01-01T00:00:00Z"),
            usdt("A2", "0.01", "2024-01-01T00:05:00Z"),
            usdt("W1", "20", "2024-01-01T00:10:00Z", tx_type=TransactionType.WITHDRAWAL),
        ])
        orchestrator = SyncOrchestrator(store, config, wallets=[], adapters=[source])

        first = await orchestrator.run(start_time=SINCE)
        second = await orchestrator.run(start_time=SINCE)

        assert first.new_transactions == 2
        assert second.new_transactions == 0
        assert second.write.duplicates_removed == 2
        assert second.write.recycle_bin_saved == 0
        assert len(store.read_rows(PARTITION_DEPOSITS)) == 1
        assert len(store.read_rows(PARTITION_WITHDRAWALS)) == 1
        assert len(store.read_recycle_bin()) == 1

    @pytest.mark.asyncio
    async def test_ledger_rows_in_time_order_across_sources(self, store, config):
        late = FakeSource("Binance (Main)", [usdt("L", "10", "2024-01-01T02:00:00Z", platform="Binance (Main)")])
        early = FakeSource("ByBit", [usdt("E", "10", "2024-01-01T01:00:00Z")])

        await SyncOrchestrator(store, config, wallets=[], adapters=[late, early]).run(start_time=SINCE)

        assert [row[6] for row in store.read_rows(PARTITION_DEPOSITS)] == ["E", "L"]

    @pytest.mark.asyncio
    async def test_friendly_wallet_name(self, store, config):
        wallet = WalletConfig("Tron Hot", "TXYZ", Chain.TRON)
        source = FakeSource("TXYZ", [usdt("T1", "10", "2024-01-01T00:00:00Z", platform="TXYZ")], kind=SourceKind.WALLET)

        await SyncOrchestrator(store, config, wallets=[wallet], adapters=[source]).run(start_time=SINCE)

        assert store.read_rows(PARTITION_DEPOSITS)[0][0] == "Tron Hot"

    @pytest.mark.asyncio
    async def test_failing_source_does_not_block_others(self, store, config):
        broken = FakeSource("Tron Hot", error=FetchError("HTTP 503"), kind=SourceKind.WALLET)
        healthy = FakeSource("ByBit", [usdt("A1", "50", "2024-01-01T00:00:00Z")])

        report = await SyncOrchestrator(store, config, wallets=[], adapters=[broken, healthy]).run(start_time=SINCE)

        assert report.success
        assert report.statuses["Tron Hot"].state == SourceState.NOT_WORKING
        assert report.summary.errors == 1
        assert report.summary.active == 1
        assert store.read_tx_ids(PARTITION_DEPOSITS) == {"A1"}

    @pytest.mark.asyncio
    async def test_raising_adapter_contained(self, store, config):
        report = await SyncOrchestrator(
            store, config, wallets=[], adapters=[ExplodingSource("Custom")],
        ).run(start_time=SINCE)

        assert report.success
        assert report.statuses["Custom"].state == SourceState.ERROR
        assert "adapter bug" in report.statuses["Custom"].notes

    @pytest.mark.asyncio
    async def test_default_window_uses_clock(self, store, config):
        config.lookback_days = 7
        source = FakeSource("ByBit")
        clock = MockClock(datetime(2024, 1, 8, 12, 0, tzinfo=timezone.utc))

        report = await SyncOrchestrator(
            store, config, wallets=[], adapters=[source], clock=clock,
        ).run()

        expected = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert report.start_time == expected
        assert source.seen_since == [expected]

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, store, config):
        config.fetch_concurrency = 2
        tracker = {"active": 0, "peak": 0}
        sources = [FakeSource(f"S{i}", delay=0.02, tracker=tracker) for i in range(5)]

        report = await SyncOrchestrator(store, config, wallets=[], adapters=sources).run(start_time=SINCE)

        assert report.success
        assert tracker["peak"] == 2
        assert len(report.statuses) == 5

    @pytest.mark.asyncio
    async def test_existing_id_read_failure_is_error_report(self, config):
        store = InMemoryLedgerStore()
        store.existing_ids = MagicMock(
            side_effect=LedgerReadError("unreachable", store_name="memory", operation="read_tx_ids"),
        )
        source = FakeSource("ByBit", [usdt("A1", "50", "2024-01-01T00:00:00Z")])

        report = await SyncOrchestrator(store, config, wallets=[], adapters=[source]).run(start_time=SINCE)

        assert not report.success
        assert report.error.startswith("LedgerReadError")
        assert report.statuses["ByBit"].state == SourceState.ACTIVE
        assert store.read_rows(PARTITION_DEPOSITS) == []
        assert report.debug_log[0].startswith("Starting sync from")

    @pytest.mark.asyncio
    async def test_wallet_registry_loaded_from_path(self, store, config, tmp_path):
        path = tmp_path / "wallets.csv"
        path.write_text("name,address,chain\nTron Hot,TXYZ,tron\n", encoding="utf-8")
        config.wallets_path = str(path)
        source = FakeSource("TXYZ", [usdt("T1", "10", "2024-01-01T00:00:00Z", platform="TXYZ")])

        report = await SyncOrchestrator(store, config, adapters=[source]).run(start_time=SINCE)

        assert any("Loaded 1 wallets" in line for line in report.debug_log)
        assert store.read_rows(PARTITION_DEPOSITS)[0][0] == "Tron Hot"

    @pytest.mark.asyncio
    async def test_missing_wallet_registry_is_error_report(self, store, config, tmp_path):
        config.wallets_path = str(tmp_path / "missing.csv")

        report = await SyncOrchestrator(store, config, adapters=[]).run(start_time=SINCE)

        assert not report.success
        assert report.error.startswith("WalletRegistryError")


# ============================================================
# REPORT MODEL TESTS
# ============================================================

class TestReportModels:
    """Tests for RunLog, RunSummary and SyncReport."""

    def test_run_log(self):
        log = RunLog()
        log.add("one")
        log.extend(["two", "three"])

        assert log.entries == ["one", "two", "three"]
        assert len(log) == 3

    def test_summary_counts(self):
        statuses = [
            SourceStatus("Binance (Main)", SourceKind.EXCHANGE, SourceState.ACTIVE),
            SourceStatus("ByBit", SourceKind.EXCHANGE, SourceState.ERROR),
            SourceStatus("Tron Hot", SourceKind.WALLET, SourceState.WORKING),
            SourceStatus("BTC Cold", SourceKind.WALLET, SourceState.NOT_WORKING),
        ]

        summary = RunSummary.from_statuses(statuses)

        assert summary.to_dict() == {"exchange_accounts": 2, "wallets": 2, "active": 2, "errors": 2}

    def test_failure_report(self):
        log = RunLog()
        log.add("Starting sync")

        report = SyncReport.failure(ValueError("boom"), log, start_time=SINCE)
        data = report.to_dict()

        assert data["success"] is False
        assert data["message"] == "Sync failed: boom"
        assert data["error"] == "ValueError: boom"
        assert data["debug_log"] == ["Starting sync"]
        assert data["start_time"] == "2024-01-01T00:00:00+00:00"
        assert data["deduplication_stats"]["final_added"] == 0
