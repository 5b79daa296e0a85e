"""
Base Source Adapter - Abstract interface for every exchange and chain source.

All adapters MUST:
- Never raise out of fetch() - failures become a status and []
- Apply the since lower bound on the record's own event time
- Emit only settled (Completed) transactions
- Short-circuit on missing credentials without any network call
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Iterable, Optional

import aiohttp

from core.clock import ensure_utc, now_utc
from core.constants import DEFAULT_UPDATE_CADENCE
from reconciliation.models import Transaction, TransactionStatus, TransactionType
from source_adapters.exceptions import (
    AuthenticationError,
    FetchError,
    MissingCredentialsError,
    NormalizationError,
    RateLimitError,
    SourceAdapterError,
)
from source_adapters.models import SourceKind, SourceState, SourceStatus


logger = logging.getLogger(__name__)


SubFetch = Callable[[datetime], Awaitable[list[Transaction]]]
RecordParser = Callable[[dict[str, Any]], Optional[Transaction]]


class BaseSourceAdapter(ABC):
    """
    Abstract base class for all source adapters.

    Each adapter must:
    1. Implement source_type - provider identifier
    2. Implement sub_fetches() - labelled fetchers merged into one result
    3. Optionally override has_credentials() and verify_connection()

    A failing sub-fetch contributes nothing and is noted in the
    status; the remaining sub-fetches still run.
    """

    DEFAULT_TIMEOUT = 30.0
    kind: SourceKind = SourceKind.EXCHANGE

    def __init__(
        self,
        name: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
        update_cadence: str = DEFAULT_UPDATE_CADENCE,
    ) -> None:
        self._name = name
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None
        self._update_cadence = update_cadence

        self.status = self._new_status()
        self.diagnostics: list[str] = []
        self._breakdown: dict[str, int] = {}

    @property
    def name(self) -> str:
        """Platform label of this account or wallet."""
        return self._name

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Provider identifier, e.g. "binance" or "tron"."""
        pass

    @abstractmethod
    def sub_fetches(self) -> list[tuple[str, SubFetch]]:
        """
        Labelled fetchers for this source.

        Returns:
            List of (label, coroutine function taking ``since``)
        """
        pass

    def has_credentials(self) -> bool:
        """Whether the credentials this source needs are present."""
        return True

    def require_credentials(self) -> None:
        """
        Raises:
            MissingCredentialsError: If has_credentials() is False
        """
        if not self.has_credentials():
            raise MissingCredentialsError("Missing credentials", source_name=self.name)

    async def verify_connection(self) -> None:
        """
        Check connectivity and authentication before fetching.

        Raises:
            AuthenticationError: If the source rejects the caller
            FetchError: If the source is unreachable
        """
        return None

    async def fetch(
        self,
        since: datetime,
        timeout: Optional[float] = None,
    ) -> list[Transaction]:
        """
        Fetch settled transactions at or after ``since`` (main entry point).

        NEVER raises - returns [] on failure and records why in
        ``status`` and ``diagnostics``.

        Args:
            since: Inclusive lower bound on event time
            timeout: Total time budget for this source
        """
        since = ensure_utc(since)
        self.status = self._new_status()
        self.diagnostics = []
        self._breakdown = {}

        try:
            self.require_credentials()
        except MissingCredentialsError as e:
            self._on_failure(SourceState.ERROR, e.message)
            return []

        try:
            if timeout:
                records = await asyncio.wait_for(self._collect(since), timeout=timeout)
            else:
                records = await self._collect(since)

        except asyncio.TimeoutError:
            self._on_failure(self._failure_state, f"Timed out after {timeout:.0f}s")
            return []
        except AuthenticationError as e:
            self._on_failure(SourceState.ERROR, e.message)
            return []
        except SourceAdapterError as e:
            self._on_failure(self._failure_state, e.message)
            return []
        except Exception as e:
            logger.exception(f"[{self.name}] Unexpected error")
            self._on_failure(self._failure_state, f"Unexpected error: {e}")
            return []

        self._on_success(records)
        return records

    async def _collect(self, since: datetime) -> list[Transaction]:
        """Run the connection check then every sub-fetch."""
        await self.verify_connection()

        subs = self.sub_fetches()
        results: list[Transaction] = []
        failures: list[str] = []

        for label, fetcher in subs:
            try:
                batch = await fetcher(since)
            except SourceAdapterError as e:
                failures.append(label)
                self._diag(f"{label} failed: {e.message}", logging.WARNING)
                continue
            except (KeyError, TypeError, ValueError, InvalidOperation) as e:
                failures.append(label)
                self._diag(f"{label} returned a malformed response: {e}", logging.WARNING)
                continue

            kept = self._settled_since(batch, since, label)
            self._breakdown[label] = len(kept)
            results.extend(kept)

        self.status.failed_sub_fetches = failures
        if subs and len(failures) == len(subs):
            raise FetchError(
                f"All requests failed ({', '.join(failures)})",
                source_name=self.name,
            )
        return results

    def _settled_since(
        self,
        batch: Iterable[Transaction],
        since: datetime,
        label: str,
    ) -> list[Transaction]:
        kept = []
        for tx in batch:
            if tx.status != TransactionStatus.COMPLETED:
                continue
            if tx.timestamp < since:
                continue
            if not tx.api_source:
                tx = tx.with_changes(api_source=f"{self.source_type}_{label}")
            kept.append(tx)
        return kept

    # ─────────────────────────────────────────────────────────────
    # Record Helpers
    # ─────────────────────────────────────────────────────────────

    def _parse_records(
        self,
        records: Any,
        parser: RecordParser,
        label: str,
    ) -> list[Transaction]:
        """
        Apply ``parser`` to each raw record.

        A record that cannot be parsed is skipped with a diagnostic;
        a parser returning None means the record is not relevant.
        """
        if records is None:
            return []
        if not isinstance(records, list):
            raise NormalizationError(
                f"{label}: expected a list, got {type(records).__name__}",
                source_name=self.name,
                raw_data=records,
            )

        parsed: list[Transaction] = []
        for raw in records:
            try:
                tx = parser(raw)
            except (KeyError, TypeError, ValueError, AttributeError, InvalidOperation) as e:
                self._diag(f"{label}: skipped unparseable record ({e})", logging.DEBUG)
                continue
            if tx is not None:
                parsed.append(tx)
        return parsed

    def _transaction(
        self,
        tx_type: TransactionType,
        asset: str,
        amount: Any,
        timestamp: Optional[datetime],
        **fields: Any,
    ) -> Transaction:
        """Build a Transaction labelled with this source's platform name."""
        if timestamp is None:
            raise ValueError("missing event time")
        return Transaction(
            platform=self.name,
            type=tx_type,
            asset=str(asset or "").upper(),
            amount=format_amount(amount),
            timestamp=timestamp,
            **fields,
        )

    # ─────────────────────────────────────────────────────────────
    # HTTP Helpers
    # ─────────────────────────────────────────────────────────────

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": "crypto-ledger-sync/1.0",
        }

    async def _make_request(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json_body: Optional[Any] = None,
        data: Optional[str] = None,
    ) -> Any:
        """
        Make an HTTP request and decode the JSON body.

        Raises:
            RateLimitError: On HTTP 429
            FetchError: On any other HTTP error or transport failure
        """
        session = await self._get_session()

        start_time = time.time()
        try:
            async with session.request(
                method,
                url,
                params=params,
                headers=headers,
                json=json_body,
                data=data,
            ) as response:
                latency_ms = (time.time() - start_time) * 1000
                logger.debug(f"[{self.name}] {method} {url} -> {response.status} ({latency_ms:.0f}ms)")

                if response.status == 429:
                    retry_after = response.headers.get("Retry-After")
                    raise RateLimitError(
                        message="Rate limit exceeded",
                        source_name=self.name,
                        retry_after_seconds=int(retry_after) if retry_after and retry_after.isdigit() else None,
                        request_url=url,
                    )

                if response.status >= 400:
                    body = await response.text()
                    raise FetchError(
                        message=f"HTTP {response.status}: {body[:100]}",
                        source_name=self.name,
                        status_code=response.status,
                        response_body=body[:500],
                        request_url=url,
                    )

                return await response.json(content_type=None)

        except aiohttp.ClientError as e:
            raise FetchError(
                message=f"Connection error: {e}",
                source_name=self.name,
                request_url=url,
                original_error=e,
            )
        except ValueError as e:
            raise FetchError(
                message="Response is not valid JSON",
                source_name=self.name,
                request_url=url,
                original_error=e,
            )

    # ─────────────────────────────────────────────────────────────
    # Status Tracking
    # ─────────────────────────────────────────────────────────────

    @property
    def _failure_state(self) -> SourceState:
        if self.kind == SourceKind.WALLET:
            return SourceState.NOT_WORKING
        return SourceState.ERROR

    @property
    def _success_state(self) -> SourceState:
        if self.kind == SourceKind.WALLET:
            return SourceState.WORKING
        return SourceState.ACTIVE

    def _new_status(self) -> SourceStatus:
        return SourceStatus(
            platform=self.name,
            kind=self.kind,
            auto_update=self._update_cadence,
        )

    def _diag(self, message: str, level: int = logging.INFO) -> None:
        self.diagnostics.append(f"{self.name}: {message}")
        logger.log(level, f"[{self.name}] {message}")

    def _on_success(self, records: list[Transaction]) -> None:
        self.status.state = self._success_state
        self.status.last_sync = now_utc()
        self.status.transaction_count = len(records)
        self.status.notes = self._success_notes(records)
        self._diag(f"{len(records)} transactions - status {self.status.state.value}")

    def _success_notes(self, records: list[Transaction]) -> str:
        if self.kind == SourceKind.WALLET:
            notes = f"{len(records)} transactions found"
        else:
            parts = " + ".join(f"{count} {label}" for label, count in self._breakdown.items())
            notes = f"{parts} = {len(records)} total" if parts else f"{len(records)} total"
        if self.status.failed_sub_fetches:
            notes += f" (failed: {', '.join(self.status.failed_sub_fetches)})"
        return notes

    def _on_failure(self, state: SourceState, message: str) -> None:
        self.status.state = state
        self.status.last_sync = now_utc()
        self.status.transaction_count = 0
        self.status.notes = message
        self._diag(f"{state.value}: {message}", logging.WARNING)

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseSourceAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, status={self.status.state.value})>"


# ─────────────────────────────────────────────────────────────
# Shared helpers
# ─────────────────────────────────────────────────────────────

def to_decimal(value: Any) -> Decimal:
    """
    Parse a numeric field.

    Raises:
        ValueError: If the value is missing or not numeric
    """
    if value is None or value == "":
        raise ValueError("missing numeric value")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"not a number: {value!r}")


def format_amount(value: Any) -> str:
    """Render an amount as a plain non-negative decimal string."""
    amount = to_decimal(value) if not isinstance(value, Decimal) else value
    amount = abs(amount)
    text = format(amount, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def scale_units(raw: Any, decimals: Any) -> Decimal:
    """Convert an integer base-unit amount using the given decimals."""
    return to_decimal(raw) / (Decimal(10) ** int(decimals))


def classify_direction(
    tracked: str,
    sender: Optional[str],
    receiver: Optional[str],
) -> Optional[TransactionType]:
    """
    Direction of a transfer relative to a tracked address.

    Comparison is case-insensitive. Returns None when the tracked
    address is neither party.
    """
    tracked = (tracked or "").strip().lower()
    if not tracked:
        return None
    if (receiver or "").strip().lower() == tracked:
        return TransactionType.DEPOSIT
    if (sender or "").strip().lower() == tracked:
        return TransactionType.WITHDRAWAL
    return None


__all__ = [
    "BaseSourceAdapter",
    "SubFetch",
    "to_decimal",
    "format_amount",
    "scale_units",
    "classify_direction",
]
