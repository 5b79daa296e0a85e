"""
CLI Tests.
"""

import json
import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.config import SyncConfig
from core.exceptions import ConfigurationError
from ledger.memory import InMemoryLedgerStore
from ledger.sql import SqlLedgerStore
from orchestrator.cli import (
    build_config,
    build_store,
    create_parser,
    format_status_table,
    main,
    setup_logging,
    validate_args,
)
from orchestrator.models import SyncReport
from source_adapters.models import SourceKind, SourceState, SourceStatus


# ============================================================
# PARSER / VALIDATION
# ============================================================

class TestParser:
    """Tests for argument parsing and validation."""

    def test_defaults(self):
        args = create_parser().parse_args([])

        assert args.start_date is None
        assert not args.dry_run
        assert args.log_level == "INFO"
        assert args.log_format == "json"
        assert validate_args(args) == []

    def test_invalid_start_date(self):
        args = create_parser().parse_args(["--start-date", "01/02/2024"])

        [error] = validate_args(args)

        assert error.startswith("Invalid --start-date")

    def test_dry_run_excludes_database_url(self):
        args = create_parser().parse_args(["--dry-run", "--database-url", "sqlite://"])
        assert validate_args(args) == ["--dry-run and --database-url are mutually exclusive"]

    def test_overrides_applied(self):
        args = create_parser().parse_args(["--database-url", "sqlite://", "--wallets", "w.csv"])

        with patch("orchestrator.cli.load_config_from_env", return_value=SyncConfig()):
            config = build_config(args)

        assert config.database_url == "sqlite://"
        assert config.wallets_path == "w.csv"

    def test_store_selection(self):
        config = SyncConfig(database_url="sqlite://")

        dry = build_store(create_parser().parse_args(["--dry-run"]), config)
        sql = build_store(create_parser().parse_args([]), config)

        assert isinstance(dry, InMemoryLedgerStore)
        assert isinstance(sql, SqlLedgerStore)
        sql.close()


# ============================================================
# LOGGING
# ============================================================

class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = list(root.handlers), root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        setup_logging("DEBUG", "json", correlation_id="run-1")
        root = logging.getLogger()

        assert root.level == logging.DEBUG
        [handler] = root.handlers
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "hello", None, None)
        payload = json.loads(handler.formatter.format(record))
        assert payload["message"] == "hello"
        assert payload["correlation_id"] == "run-1"

    def test_unknown_level_falls_back_to_info(self):
        setup_logging("NOPE", "text")
        assert logging.getLogger().level == logging.INFO


# ============================================================
# OUTPUT
# ============================================================

class TestStatusTable:
    """Tests for format_status_table."""

    def test_header_then_rows(self):
        last_sync = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        statuses = [
            SourceStatus("ByBit", SourceKind.EXCHANGE, SourceState.ACTIVE, last_sync=last_sync, notes="3 total"),
            SourceStatus("Tron Hot", SourceKind.WALLET, SourceState.NOT_WORKING, last_sync=last_sync),
        ]

        header, bybit, tron = format_status_table(statuses)

        assert header.split()[:2] == ["Platform", "API"]
        assert header.index("API Status") == bybit.index("Active") == tron.index("Not Working")
        assert bybit.endswith("3 total")
        assert "2024-01-01T12:00:00+00:00" in tron

    def test_empty(self):
        assert len(format_status_table([])) == 1


# ============================================================
# MAIN
# ============================================================

class TestMain:
    """Tests for the main entry point."""

    @pytest.fixture(autouse=True)
    def logging_setup(self):
        with patch("orchestrator.cli.setup_logging") as mock:
            yield mock

    @pytest.fixture
    def env_config(self):
        with patch("orchestrator.cli.load_config_from_env", return_value=SyncConfig(accounts=[])):
            yield

    def _patched_orchestrator(self, report):
        orchestrator_cls = MagicMock()
        orchestrator_cls.return_value.run = AsyncMock(return_value=report)
        return patch("orchestrator.cli.SyncOrchestrator", orchestrator_cls)

    def test_invalid_args_exit_code(self, capsys):
        assert main(["--start-date", "yesterday"]) == 1
        assert "Invalid --start-date" in capsys.readouterr().err

    def test_dry_run_json(self, env_config, capsys):
        report = SyncReport(success=True, message="Sync completed: 0 new transactions added")

        with self._patched_orchestrator(report) as orchestrator_cls:
            code = main(["--dry-run", "--json", "--start-date", "2024-01-01"])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["success"] is True
        store = orchestrator_cls.call_args.args[0]
        assert isinstance(store, InMemoryLedgerStore)
        orchestrator_cls.return_value.run.assert_awaited_once_with(
            start_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

    def test_failed_run_exit_code(self, env_config, capsys):
        report = SyncReport(success=False, message="Sync failed: boom", error="ValueError: boom")

        with self._patched_orchestrator(report):
            code = main(["--dry-run"])

        assert code == 1
        assert "Sync failed: boom" in capsys.readouterr().out

    def test_startup_failure(self):
        error = ConfigurationError("bad value", config_key="LEDGER_LOOKBACK_DAYS")

        with patch("orchestrator.cli.load_config_from_env", side_effect=error):
            assert main(["--dry-run"]) == 1

    def test_run_correlation_id_passed_to_logging(self, env_config, logging_setup):
        with self._patched_orchestrator(SyncReport(success=True, message="ok")):
            main(["--dry-run", "--log-format", "text"])

        args, kwargs = logging_setup.call_args
        assert args == ("INFO", "text")
        assert kwargs["correlation_id"].startswith("sync_")
