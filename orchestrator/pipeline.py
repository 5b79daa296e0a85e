"""
Orchestrator - Sync Pipeline.

============================================================
RESPONSIBILITY
============================================================
Drives one sync run end to end.

1. Resolve the start time (default: lookback_days before now)
2. Build adapters from accounts, credentials and wallets
3. Fetch every source concurrently (bounded, with timeouts)
4. Normalize -> Deduplicate -> Value filter -> Sequence
5. Write the ledger, recycle bin and status table
6. Return a SyncReport

============================================================
FAILURE MODEL
============================================================
- A failing source contributes nothing and reports a status
- Ledger partitions fail independently (see LedgerWriter)
- Anything unexpected becomes an error report that still
  carries the debug log accumulated so far

============================================================
"""

import asyncio
import logging
import os
from contextlib import AsyncExitStack
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import aiohttp

from core.clock import ClockFactory, ClockProtocol, ensure_utc
from core.config import SyncConfig, get_config
from core.constants import PARTITION_DEPOSITS, PARTITION_WITHDRAWALS
from core.credentials import resolve_all
from core.wallets import WalletConfig, load_wallet_registry
from ledger.base import LedgerStore
from ledger.writer import LedgerWriter
from orchestrator.models import RunLog, RunSummary, SyncReport
from reconciliation.address_map import AddressMap
from reconciliation.deduplicator import Deduplicator
from reconciliation.models import Transaction
from reconciliation.normalizer import Normalizer
from reconciliation.sequencer import Sequencer
from reconciliation.value_filter import ValueFilter
from source_adapters.base import BaseSourceAdapter
from source_adapters.models import SourceStatus
from source_adapters.registry import AdapterRegistry


logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    Runs the ingestion-reconciliation pipeline.

    Usage:
        orchestrator = SyncOrchestrator(store, config)
        report = await orchestrator.run()

    ``adapters`` bypasses the registry (used for tests and for
    callers that assemble sources themselves); ``wallets`` bypasses
    the CSV wallet registry.
    """

    def __init__(
        self,
        store: LedgerStore,
        config: Optional[SyncConfig] = None,
        wallets: Optional[List[WalletConfig]] = None,
        registry: Optional[AdapterRegistry] = None,
        adapters: Optional[List[BaseSourceAdapter]] = None,
        clock: Optional[ClockProtocol] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.store = store
        self.config = config or get_config()
        self._wallets = wallets
        self._registry = registry or AdapterRegistry.default()
        self._adapters = adapters
        self._clock = clock
        self._environ = environ

    @property
    def clock(self) -> ClockProtocol:
        return self._clock or ClockFactory.get_clock()

    # ─────────────────────────────────────────────────────────────
    # Entry point
    # ─────────────────────────────────────────────────────────────

    async def run(
        self,
        start_time: Optional[datetime] = None,
        credentials: Optional[Mapping[str, Any]] = None,
    ) -> SyncReport:
        """
        Execute one sync run. Never raises.

        Args:
            start_time: Inclusive lower bound on event time
            credentials: Per-account overrides keyed by credential key
                (e.g. "BINANCE_MAIN_API"); others come from the environment
        """
        log = RunLog()
        since: Optional[datetime] = None
        statuses: Dict[str, SourceStatus] = {}

        try:
            since = ensure_utc(start_time) if start_time else self.clock.days_ago(self.config.lookback_days)
            log.add(f"Starting sync from {since.isoformat()}")
            return await self._run(since, credentials, log, statuses)
        except Exception as e:
            logger.exception("Sync run failed")
            log.add(f"Sync failed: {e}", logging.ERROR)
            return SyncReport.failure(e, log, start_time=since, statuses=statuses)

    async def _run(
        self,
        since: datetime,
        credentials: Optional[Mapping[str, Any]],
        log: RunLog,
        statuses: Dict[str, SourceStatus],
    ) -> SyncReport:
        wallets = self._load_wallets(log)
        address_map = AddressMap.from_wallets(wallets, self.config.address_match)
        log.add(f"Address map built with {len(address_map)} entries")

        async with AsyncExitStack() as stack:
            adapters = self._adapters
            if adapters is None:
                session = await stack.enter_async_context(aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.config.request_timeout_seconds),
                ))
                resolved = resolve_all(self.config.accounts, credentials, self._environ)
                adapters = self._registry.build(
                    self.config,
                    resolved,
                    wallets,
                    session=session,
                    environ=self._environ if self._environ is not None else os.environ,
                )
            log.add(f"Fetching from {len(adapters)} sources")
            raw = await self.fetch_all(adapters, since, log, statuses)

        total_found = len(raw)
        log.add(f"Total transactions found: {total_found}")

        normalizer = Normalizer(address_map)
        candidates = normalizer.normalize(raw)
        if normalizer.rejected:
            log.add(f"Normalizer dropped {normalizer.rejected} unrepresentable records", logging.WARNING)

        existing = self.store.existing_ids()
        dedup = Deduplicator().dedupe(
            candidates,
            existing[PARTITION_DEPOSITS],
            existing[PARTITION_WITHDRAWALS],
        )
        log.add(
            f"Deduplication: {dedup.total_in} -> {dedup.total_out} "
            f"({dedup.duplicates_removed} duplicates removed)"
        )

        filtered = ValueFilter(self.config.value_filter).filter(dedup.unique)
        log.add(f"Value filter: {len(filtered.kept)} kept, {filtered.filtered_count} filtered")
        if filtered.unknown_assets:
            log.add(f"Unknown currencies: {', '.join(filtered.unknown_assets)}", logging.WARNING)

        ordered = Sequencer().sort(filtered.kept)

        write = LedgerWriter(self.store, log=log.add).write(
            ordered,
            list(statuses.values()),
            dedup=dedup,
            filtered=filtered,
        )

        summary = RunSummary.from_statuses(list(statuses.values()))
        if write.success:
            message = f"Sync completed: {write.total_added} new transactions added"
        else:
            message = "Sync completed with ledger write failures"
        log.add(message, logging.INFO if write.success else logging.ERROR)

        return SyncReport(
            success=write.success,
            message=message,
            start_time=since,
            total_found=total_found,
            statuses=dict(statuses),
            write=write,
            summary=summary,
            debug_log=log.entries,
        )

    # ─────────────────────────────────────────────────────────────
    # Stages
    # ─────────────────────────────────────────────────────────────

    def _load_wallets(self, log: RunLog) -> List[WalletConfig]:
        if self._wallets is not None:
            return list(self._wallets)
        if not self.config.wallets_path:
            log.add("No wallet registry configured")
            return []
        wallets = load_wallet_registry(self.config.wallets_path)
        log.add(f"Loaded {len(wallets)} wallets from {self.config.wallets_path}")
        return wallets

    async def fetch_all(
        self,
        adapters: List[BaseSourceAdapter],
        since: datetime,
        log: RunLog,
        statuses: Dict[str, SourceStatus],
    ) -> List[Transaction]:
        """
        Fetch every source with bounded concurrency.

        Results are merged in adapter order; completion order does not
        matter since the Sequencer fixes the final order.
        """
        semaphore = asyncio.Semaphore(self.config.fetch_concurrency)
        timeout = self.config.adapter_timeout_seconds

        async def fetch_one(adapter: BaseSourceAdapter) -> List[Transaction]:
            async with semaphore:
                return await adapter.fetch(since, timeout=timeout)

        results = await asyncio.gather(
            *(fetch_one(adapter) for adapter in adapters),
            return_exceptions=True,
        )

        merged: List[Transaction] = []
        for adapter, result in zip(adapters, results):
            status = adapter.status
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                # fetch() does not raise; this guards custom adapters
                logger.error(f"[{adapter.name}] fetch raised {type(result).__name__}: {result}")
                status = SourceStatus.error(
                    adapter.name,
                    adapter.kind,
                    f"Unexpected error: {result}",
                    auto_update=self.config.update_cadence,
                )
                result = []

            log.extend(adapter.diagnostics)
            statuses[adapter.name] = status
            merged.extend(result)

        return merged


__all__ = ["SyncOrchestrator"]
