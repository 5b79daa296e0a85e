"""
Source Adapter Registry - Maps configured accounts and wallets to adapters.

Features:
- Exchange kind -> adapter class, chain -> adapter class
- One adapter instance per configured exchange account and wallet
- Unsupported chains are skipped with a warning, never raised
- Registering a class of the wrong adapter family raises ConfigurationError
"""

import logging
import os
from typing import Mapping, Optional

import aiohttp

from core.config import ExchangeKind, SyncConfig
from core.credentials import ApiCredentials
from core.wallets import Chain, WalletConfig
from source_adapters.base import BaseSourceAdapter
from source_adapters.exceptions import ConfigurationError
from source_adapters.exchange import BaseExchangeAdapter
from source_adapters.providers.binance import BinanceAdapter
from source_adapters.providers.bitcoin import BitcoinAdapter
from source_adapters.providers.bitget import BitgetAdapter
from source_adapters.providers.bybit import BybitAdapter
from source_adapters.providers.etherscan import EtherscanAdapter
from source_adapters.providers.solana import SolanaAdapter
from source_adapters.providers.tron import TronAdapter
from source_adapters.wallet import BaseWalletAdapter


logger = logging.getLogger(__name__)


class AdapterRegistry:
    """
    Registry of adapter classes.

    Usage:
        registry = AdapterRegistry.default()
        adapters = registry.build(config, credentials, wallets, session=session)
    """

    def __init__(self) -> None:
        self._exchanges: dict[ExchangeKind, type[BaseExchangeAdapter]] = {}
        self._chains: dict[Chain, type[BaseWalletAdapter]] = {}

    @classmethod
    def default(cls) -> "AdapterRegistry":
        """Registry with every built-in adapter."""
        registry = cls()
        registry.register_exchange(ExchangeKind.BINANCE, BinanceAdapter)
        registry.register_exchange(ExchangeKind.BYBIT, BybitAdapter)
        registry.register_exchange(ExchangeKind.BITGET, BitgetAdapter)
        registry.register_chain(Chain.BITCOIN, BitcoinAdapter)
        registry.register_chain(Chain.ETHEREUM, EtherscanAdapter)
        registry.register_chain(Chain.BSC, EtherscanAdapter)
        registry.register_chain(Chain.TRON, TronAdapter)
        registry.register_chain(Chain.SOLANA, SolanaAdapter)
        return registry

    def register_exchange(self, kind: ExchangeKind, adapter_cls: type[BaseExchangeAdapter]) -> None:
        """
        Raises:
            ConfigurationError: If adapter_cls is not an exchange adapter
        """
        if not (isinstance(adapter_cls, type) and issubclass(adapter_cls, BaseExchangeAdapter)):
            raise ConfigurationError(
                f"{adapter_cls!r} is not a BaseExchangeAdapter subclass",
                source_name=kind.value,
                config_key="exchange",
            )
        if kind in self._exchanges:
            logger.warning(f"Exchange adapter for '{kind.value}' already registered, replacing")
        self._exchanges[kind] = adapter_cls

    def register_chain(self, chain: Chain, adapter_cls: type[BaseWalletAdapter]) -> None:
        """
        Raises:
            ConfigurationError: If adapter_cls is not a wallet adapter
        """
        if not (isinstance(adapter_cls, type) and issubclass(adapter_cls, BaseWalletAdapter)):
            raise ConfigurationError(
                f"{adapter_cls!r} is not a BaseWalletAdapter subclass",
                source_name=chain.value,
                config_key="chain",
            )
        if chain in self._chains:
            logger.warning(f"Wallet adapter for '{chain.value}' already registered, replacing")
        self._chains[chain] = adapter_cls

    def exchange_adapter(self, kind: ExchangeKind) -> Optional[type[BaseExchangeAdapter]]:
        return self._exchanges.get(kind)

    def wallet_adapter(self, chain: Chain) -> Optional[type[BaseWalletAdapter]]:
        return self._chains.get(chain)

    def supported_chains(self) -> list[Chain]:
        return list(self._chains)

    def build(
        self,
        config: SyncConfig,
        credentials: Mapping[str, ApiCredentials],
        wallets: list[WalletConfig],
        session: Optional[aiohttp.ClientSession] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> list[BaseSourceAdapter]:
        """
        Instantiate one adapter per enabled account and per wallet.

        Args:
            config: Sync configuration (accounts, timeouts, cadence)
            credentials: Resolved credentials keyed by account name
            wallets: Wallet registry entries
            session: Shared HTTP session for every adapter
            environ: Mapping for the shared Etherscan key lookup
        """
        environ = os.environ if environ is None else environ
        adapters: list[BaseSourceAdapter] = []

        for account in config.accounts:
            if not account.enabled:
                logger.info(f"Skipping disabled account {account.name}")
                continue
            adapter_cls = self.exchange_adapter(account.exchange)
            if adapter_cls is None:
                logger.warning(f"No adapter registered for exchange '{account.exchange.value}'")
                continue
            adapters.append(adapter_cls(
                account.name,
                credentials=credentials.get(account.name),
                timeout=config.request_timeout_seconds,
                session=session,
                update_cadence=config.update_cadence,
            ))

        shared_etherscan_key = environ.get(config.etherscan_api_key_env, "")
        supported = self.supported_chains()
        for wallet in wallets:
            if wallet.chain not in supported:
                logger.warning(
                    f"No adapter for chain '{wallet.chain.value}' ({wallet.name}), skipping; "
                    f"supported: {', '.join(c.value for c in supported)}"
                )
                continue
            adapter_cls = self.wallet_adapter(wallet.chain)
            api_key = shared_etherscan_key if adapter_cls is EtherscanAdapter else None
            adapters.append(adapter_cls(
                wallet,
                api_key=api_key,
                timeout=config.request_timeout_seconds,
                session=session,
                update_cadence=config.update_cadence,
            ))

        logger.info(f"Built {len(adapters)} source adapters")
        return adapters


__all__ = ["AdapterRegistry"]
