"""
Core Module - Configuration.

============================================================
PURPOSE
============================================================
All configuration for a sync run.

- Value filter thresholds and the price table
- Address matching strictness
- Exchange account definitions and the env vars holding their keys
- Run limits (lookback window, concurrency, per-source timeout)

Values come from dataclass defaults, overridden by environment
variables (a .env file is loaded first when present).

============================================================
"""

import json
import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from dotenv import load_dotenv

from core.constants import (
    DEFAULT_ADAPTER_TIMEOUT_SECONDS,
    DEFAULT_DATABASE_URL,
    DEFAULT_FETCH_CONCURRENCY,
    DEFAULT_FIAT_CURRENCY,
    DEFAULT_LOOKBACK_DAYS,
    DEFAULT_MINIMUM_VALUE,
    DEFAULT_PRICE_TABLE,
    DEFAULT_UNKNOWN_ASSET_RATE,
    DEFAULT_UPDATE_CADENCE,
)
from core.exceptions import ConfigurationError, MissingConfigError


logger = logging.getLogger(__name__)


class UnknownAssetPolicy(Enum):
    """What the value filter does with assets missing from the price table."""

    DEFAULT_RATE = "default_rate"
    """Value the asset at ``default_rate`` per unit."""

    KEEP = "keep"
    """Never filter the asset; its value is reported as zero."""


class ExchangeKind(Enum):
    """Supported exchanges."""
    BINANCE = "binance"
    BYBIT = "bybit"
    BITGET = "bitget"


# ============================================================
# VALUE FILTER CONFIGURATION
# ============================================================

@dataclass
class ValueFilterConfig:
    """
    Value filter configuration.

    Transactions worth less than ``minimum_value`` units of
    ``fiat_currency`` are routed to the recycle bin.
    """

    price_table: Dict[str, Decimal] = field(
        default_factory=lambda: {k: Decimal(v) for k, v in DEFAULT_PRICE_TABLE.items()}
    )
    """Approximate fiat price per asset symbol (uppercase)."""

    minimum_value: Decimal = Decimal(DEFAULT_MINIMUM_VALUE)
    """Inclusive lower bound of kept transaction value."""

    fiat_currency: str = DEFAULT_FIAT_CURRENCY
    """Label used in filter reasons."""

    unknown_asset_policy: UnknownAssetPolicy = UnknownAssetPolicy.DEFAULT_RATE
    """Treatment of assets missing from the price table."""

    default_rate: Decimal = Decimal(DEFAULT_UNKNOWN_ASSET_RATE)
    """Rate applied under the DEFAULT_RATE policy."""

    exempt_assets: List[str] = field(default_factory=list)
    """Assets never filtered regardless of value."""

    def __post_init__(self) -> None:
        self.price_table = {
            symbol.strip().upper(): Decimal(str(rate))
            for symbol, rate in self.price_table.items()
        }
        self.minimum_value = Decimal(str(self.minimum_value))
        self.default_rate = Decimal(str(self.default_rate))
        self.exempt_assets = [a.strip().upper() for a in self.exempt_assets if a.strip()]


@dataclass
class AddressMatchConfig:
    """Address-to-friendly-name matching strictness."""

    allow_prefix_match: bool = False
    """Fall back to prefix comparison when exact matching fails."""

    prefix_length: int = 10
    """Number of leading characters compared by the prefix fallback."""


# ============================================================
# EXCHANGE ACCOUNT CONFIGURATION
# ============================================================

@dataclass
class ExchangeAccountConfig:
    """
    One exchange account to sync.

    Credentials are looked up under ``credential_key``: from run-time
    overrides first, then from the environment variables
    ``{credential_key}_KEY``, ``_SECRET``, ``_PASSPHRASE`` and ``_UID``.
    """

    name: str
    """Display name, also the platform label of its transactions."""

    exchange: ExchangeKind
    """Exchange this account lives on."""

    credential_key: str
    """Key identifying the account's credentials."""

    requires_passphrase: bool = False
    """Whether credentials are incomplete without a passphrase."""

    enabled: bool = True

    @property
    def api_key_env(self) -> str:
        return f"{self.credential_key}_KEY"

    @property
    def api_secret_env(self) -> str:
        return f"{self.credential_key}_SECRET"

    @property
    def passphrase_env(self) -> str:
        return f"{self.credential_key}_PASSPHRASE"

    @property
    def account_uid_env(self) -> str:
        return f"{self.credential_key}_UID"


def default_exchange_accounts() -> List[ExchangeAccountConfig]:
    """The six accounts the ledger tracks out of the box."""
    return [
        ExchangeAccountConfig("Binance (GC)", ExchangeKind.BINANCE, "BINANCE_GC_API"),
        ExchangeAccountConfig("Binance (Main)", ExchangeKind.BINANCE, "BINANCE_MAIN_API"),
        ExchangeAccountConfig("Binance (CV)", ExchangeKind.BINANCE, "BINANCE_CV"),
        ExchangeAccountConfig("ByBit", ExchangeKind.BYBIT, "BYBIT_API"),
        ExchangeAccountConfig(
            "Bitget Account 1", ExchangeKind.BITGET, "BITGET_API", requires_passphrase=True,
        ),
        ExchangeAccountConfig(
            "Bitget Account 2", ExchangeKind.BITGET, "BITGET_API_2", requires_passphrase=True,
        ),
    ]


# ============================================================
# SYNC CONFIGURATION
# ============================================================

@dataclass
class SyncConfig:
    """Complete configuration of a sync run."""

    lookback_days: int = DEFAULT_LOOKBACK_DAYS
    """Default window when no start time is given."""

    fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY
    """Maximum number of sources fetched at once."""

    adapter_timeout_seconds: float = DEFAULT_ADAPTER_TIMEOUT_SECONDS
    """Per-source time budget; a source exceeding it contributes nothing."""

    request_timeout_seconds: float = 30.0
    """Per-HTTP-request timeout."""

    update_cadence: str = DEFAULT_UPDATE_CADENCE
    """Label written to the status table's Auto-Update column."""

    database_url: str = DEFAULT_DATABASE_URL

    wallets_path: Optional[str] = None
    """CSV wallet registry (name, address, chain, api key, status)."""

    price_table_path: Optional[str] = None
    """JSON price table replacing the built-in one."""

    etherscan_api_key_env: str = "ETHERSCAN_API_KEY"
    """Fallback Etherscan key for wallets whose registry row has none."""

    accounts: List[ExchangeAccountConfig] = field(default_factory=default_exchange_accounts)

    value_filter: ValueFilterConfig = field(default_factory=ValueFilterConfig)

    address_match: AddressMatchConfig = field(default_factory=AddressMatchConfig)

    def validate(self) -> None:
        """Raise ConfigurationError on values the pipeline cannot run with."""
        if self.lookback_days <= 0:
            raise ConfigurationError(
                "lookback_days must be positive",
                config_key="lookback_days",
                actual_value=self.lookback_days,
            )
        if self.fetch_concurrency <= 0:
            raise ConfigurationError(
                "fetch_concurrency must be positive",
                config_key="fetch_concurrency",
                actual_value=self.fetch_concurrency,
            )
        if self.adapter_timeout_seconds <= 0:
            raise ConfigurationError(
                "adapter_timeout_seconds must be positive",
                config_key="adapter_timeout_seconds",
                actual_value=self.adapter_timeout_seconds,
            )
        if self.value_filter.minimum_value < 0:
            raise ConfigurationError(
                "minimum_value cannot be negative",
                config_key="minimum_value",
                actual_value=self.value_filter.minimum_value,
            )
        names = [a.name for a in self.accounts]
        if len(names) != len(set(names)):
            raise ConfigurationError("Exchange account names must be unique", config_key="accounts")


# ============================================================
# LOADERS
# ============================================================

def load_price_table(path: str) -> Dict[str, Decimal]:
    """
    Load a price table from a JSON object of ``{"SYMBOL": price}``.

    Raises:
        MissingConfigError: If the file does not exist
        ConfigurationError: If the file is unreadable or malformed
    """
    price_file = Path(path)
    if not price_file.is_file():
        raise MissingConfigError(
            f"Price table not found: {path}",
            config_key="price_table_path",
            actual_value=path,
        )

    try:
        raw = json.loads(price_file.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(
            f"Cannot read price table: {e}",
            config_key="price_table_path",
            actual_value=path,
            cause=e,
        )

    if not isinstance(raw, dict):
        raise ConfigurationError(
            "Price table must be a JSON object",
            config_key="price_table_path",
            actual_value=path,
        )

    table: Dict[str, Decimal] = {}
    for symbol, price in raw.items():
        try:
            table[str(symbol).strip().upper()] = Decimal(str(price))
        except InvalidOperation as e:
            raise ConfigurationError(
                f"Invalid price for {symbol}",
                config_key="price_table_path",
                actual_value=price,
                cause=e,
            )
    return table


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config_from_env(
    environ: Optional[Mapping[str, str]] = None,
    env_file: Optional[str] = None,
) -> SyncConfig:
    """
    Build a SyncConfig from environment variables.

    Args:
        environ: Mapping to read instead of os.environ (dotenv is skipped)
        env_file: Explicit .env path; defaults to dotenv's lookup

    Raises:
        ConfigurationError: If a variable holds an invalid value
    """
    if environ is None:
        load_dotenv(env_file)
        environ = os.environ

    config = SyncConfig()

    def read(key: str, cast, attr_target, attr: str) -> None:
        value = environ.get(key)
        if value is None or value.strip() == "":
            return
        try:
            setattr(attr_target, attr, cast(value.strip()))
        except (ValueError, InvalidOperation) as e:
            raise ConfigurationError(
                f"Invalid value for {key}",
                config_key=key,
                actual_value=value,
                cause=e,
            )

    read("LEDGER_DATABASE_URL", str, config, "database_url")
    read("LEDGER_LOOKBACK_DAYS", int, config, "lookback_days")
    read("LEDGER_FETCH_CONCURRENCY", int, config, "fetch_concurrency")
    read("LEDGER_ADAPTER_TIMEOUT", float, config, "adapter_timeout_seconds")
    read("LEDGER_REQUEST_TIMEOUT", float, config, "request_timeout_seconds")
    read("LEDGER_WALLETS_PATH", str, config, "wallets_path")
    read("LEDGER_UPDATE_CADENCE", str, config, "update_cadence")

    vf = config.value_filter
    read("LEDGER_MIN_VALUE", Decimal, vf, "minimum_value")
    read("LEDGER_DEFAULT_RATE", Decimal, vf, "default_rate")
    read("LEDGER_FIAT_CURRENCY", str, vf, "fiat_currency")
    read("LEDGER_UNKNOWN_ASSET_POLICY", UnknownAssetPolicy, vf, "unknown_asset_policy")
    read(
        "LEDGER_EXEMPT_ASSETS",
        lambda v: [a.strip().upper() for a in v.split(",") if a.strip()],
        vf,
        "exempt_assets",
    )

    read("LEDGER_PRICE_TABLE_PATH", str, config, "price_table_path")
    if config.price_table_path:
        vf.price_table = load_price_table(config.price_table_path)
        logger.info(f"Loaded {len(vf.price_table)} prices from {config.price_table_path}")

    read("LEDGER_ALLOW_PREFIX_MATCH", _env_bool, config.address_match, "allow_prefix_match")

    config.validate()
    return config


# ============================================================
# DEFAULT CONFIG ACCESS
# ============================================================

_config: Optional[SyncConfig] = None


def get_config() -> SyncConfig:
    """Get the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config_from_env()
    return _config


def set_config(config: Optional[SyncConfig]) -> None:
    """Replace the process-wide configuration (None forces a reload)."""
    global _config
    _config = config


__all__ = [
    "UnknownAssetPolicy",
    "ExchangeKind",
    "ValueFilterConfig",
    "AddressMatchConfig",
    "ExchangeAccountConfig",
    "default_exchange_accounts",
    "SyncConfig",
    "load_price_table",
    "load_config_from_env",
    "get_config",
    "set_config",
]
