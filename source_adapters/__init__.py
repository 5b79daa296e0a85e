"""
Source Adapters Package - One adapter per exchange account or wallet.

Every adapter answers the same question: which settled deposits and
withdrawals happened at or after a given time? The answer is a list of
Transaction records plus a SourceStatus describing how the fetch went.

Quick Start:
    from core.credentials import resolve_all
    from source_adapters import AdapterRegistry

    credentials = resolve_all(config.accounts)
    adapters = AdapterRegistry.default().build(config, credentials, wallets, session=session)
    for adapter in adapters:
        records = await adapter.fetch(since)   # never raises
        print(adapter.status.to_row())

Adding New Adapters:
    class NewChainAdapter(BaseWalletAdapter):
        chain = Chain.NEW

        @property
        def source_type(self) -> str:
            return "newchain"

        def sub_fetches(self):
            return [("transactions", self.fetch_transactions)]

    registry.register_chain(Chain.NEW, NewChainAdapter)
"""

from source_adapters.base import BaseSourceAdapter, classify_direction, format_amount
from source_adapters.exceptions import (
    ApiError,
    AuthenticationError,
    ConfigurationError,
    FetchError,
    MissingCredentialsError,
    NormalizationError,
    RateLimitError,
    SourceAdapterError,
)
from source_adapters.exchange import BaseExchangeAdapter
from source_adapters.models import SourceKind, SourceState, SourceStatus
from source_adapters.providers import (
    BinanceAdapter,
    BitcoinAdapter,
    BitgetAdapter,
    BybitAdapter,
    EtherscanAdapter,
    SolanaAdapter,
    TronAdapter,
)
from source_adapters.registry import AdapterRegistry
from source_adapters.wallet import BaseWalletAdapter


__all__ = [
    # Base
    "BaseSourceAdapter",
    "BaseExchangeAdapter",
    "BaseWalletAdapter",
    "classify_direction",
    "format_amount",
    # Models
    "SourceKind",
    "SourceState",
    "SourceStatus",
    # Exceptions
    "SourceAdapterError",
    "FetchError",
    "RateLimitError",
    "AuthenticationError",
    "ApiError",
    "MissingCredentialsError",
    "NormalizationError",
    "ConfigurationError",
    # Adapters
    "BinanceAdapter",
    "BybitAdapter",
    "BitgetAdapter",
    "BitcoinAdapter",
    "EtherscanAdapter",
    "TronAdapter",
    "SolanaAdapter",
    # Registry
    "AdapterRegistry",
]
