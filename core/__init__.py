"""
Core Module Package.

Infrastructure shared by every stage of the sync pipeline.

Components:
- clock: Testable time abstraction and timestamp helpers
- config: Dataclass configuration loaded from the environment
- constants: Price table, ledger headers, defaults
- credentials: Exchange credential resolution
- wallets: Wallet registry parsing
- exceptions: Configuration and registry errors
"""

from core.clock import ClockFactory, MockClock, SystemClock, now_utc
from core.config import (
    AddressMatchConfig,
    ExchangeAccountConfig,
    ExchangeKind,
    SyncConfig,
    UnknownAssetPolicy,
    ValueFilterConfig,
    get_config,
    load_config_from_env,
    set_config,
)
from core.credentials import ApiCredentials, resolve_credentials
from core.exceptions import (
    ConfigurationError,
    MissingConfigError,
    SyncError,
    WalletRegistryError,
)
from core.wallets import Chain, WalletConfig, load_wallet_registry, parse_wallet_rows


__all__ = [
    "ClockFactory",
    "MockClock",
    "SystemClock",
    "now_utc",
    "AddressMatchConfig",
    "ExchangeAccountConfig",
    "ExchangeKind",
    "SyncConfig",
    "UnknownAssetPolicy",
    "ValueFilterConfig",
    "get_config",
    "load_config_from_env",
    "set_config",
    "ApiCredentials",
    "resolve_credentials",
    "ConfigurationError",
    "MissingConfigError",
    "SyncError",
    "WalletRegistryError",
    "Chain",
    "WalletConfig",
    "load_wallet_registry",
    "parse_wallet_rows",
]
