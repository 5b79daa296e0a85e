"""
Ledger API Tests.

============================================================
PURPOSE
============================================================
Tests for the FastAPI routers with the store dependency replaced
by an in-memory ledger and the orchestrator mocked.

============================================================
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from core.config import SyncConfig
from core.constants import PARTITION_DEPOSITS, PARTITION_WITHDRAWALS
from dashboard.main import app
from dashboard.services import get_store, get_sync_config
from ledger.exceptions import LedgerReadError
from ledger.memory import InMemoryLedgerStore
from orchestrator.models import SyncReport
from source_adapters.models import SourceKind, SourceState, SourceStatus


def ledger_row(tx_id, asset="USDT", amount="50"):
    return ["ByBit", asset, amount, "2024-01-01 00:00", "External", "ByBit", tx_id]


@pytest.fixture
def store():
    store = InMemoryLedgerStore()
    store.append_rows(PARTITION_DEPOSITS, [ledger_row("A1"), ledger_row("A3", "BTC", "0.1")])
    store.append_rows(PARTITION_WITHDRAWALS, [ledger_row("W1", amount="20")])
    store.append_recycle([[
        "2024-01-01 00:05", "ByBit", "deposit", "USDT", "0.01000000", "0.04", "NO",
        "Value 0.04 AED < 1.0 AED minimum", "External", "ByBit", "A2", "Completed", "TRX",
    ]])
    store.overwrite_status([
        SourceStatus("ByBit", SourceKind.EXCHANGE, SourceState.ACTIVE, notes="1 deposits = 1 total"),
    ])
    return store


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_sync_config] = lambda: SyncConfig(accounts=[])
    yield TestClient(app)
    app.dependency_overrides.clear()


# ============================================================
# READ ENDPOINTS
# ============================================================

class TestLedgerEndpoints:
    """Tests for /ledger routes."""

    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"

    def test_deposits(self, client):
        response = client.get("/ledger/deposits")

        assert response.status_code == 200
        body = response.json()
        assert body["partition"] == "Deposits"
        assert body["count"] == 2
        assert body["data"][0]["tx_id"] == "A1"
        assert body["data"][0]["timestamp"] == "2024-01-01 00:00"

    def test_withdrawals_with_limit(self, client):
        body = client.get("/ledger/withdrawals", params={"limit": 1}).json()

        assert body["count"] == 1
        assert body["data"][0]["amount"] == "20"

    def test_limit_must_be_positive(self, client):
        assert client.get("/ledger/deposits", params={"limit": 0}).status_code == 422

    def test_recycle_bin(self, client):
        body = client.get("/ledger/recycle-bin").json()

        [row] = body["data"]
        assert row["tx_id"] == "A2"
        assert row["used_default_rate"] == "NO"
        assert "< 1.0" in row["filter_reason"]

    def test_status(self, client):
        [entry] = client.get("/ledger/status").json()["data"]

        assert entry["platform"] == "ByBit"
        assert entry["status"] == "Active"

    def test_summary(self, client):
        data = client.get("/ledger/summary").json()["data"]

        assert data["partitions"]["Deposits"] == {"rows": 2, "totals": {"BTC": "0.1", "USDT": "50"}}
        assert data["recycle_bin_rows"] == 1
        assert data["sources"] == 1

    def test_store_error_is_500(self, client, store):
        store.read_rows = MagicMock(
            side_effect=LedgerReadError("database is locked", store_name="sql", operation="read_rows"),
        )

        response = client.get("/ledger/deposits")

        assert response.status_code == 500
        assert response.json()["detail"] == "database is locked"


# ============================================================
# SYNC ENDPOINT
# ============================================================

class TestSyncEndpoint:
    """Tests for POST /sync."""

    def _patched(self, report):
        orchestrator_cls = MagicMock()
        orchestrator_cls.return_value.run = AsyncMock(return_value=report)
        return patch("dashboard.routers.sync.SyncOrchestrator", orchestrator_cls)

    def test_sync_without_body(self, client):
        report = SyncReport(success=True, message="Sync completed: 0 new transactions added")

        with self._patched(report) as orchestrator_cls:
            response = client.post("/sync")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["message"] == report.message
        orchestrator_cls.return_value.run.assert_awaited_once_with(start_time=None, credentials=None)

    def test_sync_with_start_date_and_credentials(self, client):
        report = SyncReport(success=True, message="ok")
        payload = {
            "start_date": "2024-01-01",
            "credentials": {"BYBIT_API": {"apiKey": "k", "apiSecret": "s"}},
        }

        with self._patched(report) as orchestrator_cls:
            client.post("/sync", json=payload)

        kwargs = orchestrator_cls.return_value.run.call_args.kwargs
        assert kwargs["start_time"].isoformat() == "2024-01-01T00:00:00+00:00"
        assert kwargs["credentials"] == payload["credentials"]

    def test_invalid_start_date(self, client):
        with self._patched(SyncReport(success=True, message="ok")) as orchestrator_cls:
            response = client.post("/sync", json={"start_date": "01/01/2024"})

        assert response.status_code == 422
        orchestrator_cls.assert_not_called()

    def test_failed_run_reported(self, client):
        report = SyncReport(success=False, message="Sync failed: boom", error="ValueError: boom")

        with self._patched(report):
            body = client.post("/sync").json()

        assert body["success"] is False
        assert body["data"]["error"] == "ValueError: boom"
