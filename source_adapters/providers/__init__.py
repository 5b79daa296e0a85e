"""
Source adapter implementations.

Exchanges:
- BinanceAdapter: deposits, withdrawals, P2P, Binance Pay
- BybitAdapter: deposits, internal deposits, withdrawals, transfers
- BitgetAdapter: deposits, withdrawals, futures account bills

Wallets:
- BitcoinAdapter: blockchain.info with Blockstream fallback
- EtherscanAdapter: Ethereum and BSC (native + tokens)
- TronAdapter: TRX and TRC-20 via TronGrid
- SolanaAdapter: native SOL via JSON-RPC
"""

from source_adapters.providers.binance import BinanceAdapter
from source_adapters.providers.bitcoin import BitcoinAdapter
from source_adapters.providers.bitget import BitgetAdapter
from source_adapters.providers.bybit import BybitAdapter
from source_adapters.providers.etherscan import EtherscanAdapter
from source_adapters.providers.solana import SolanaAdapter
from source_adapters.providers.tron import TronAdapter


__all__ = [
    "BinanceAdapter",
    "BitcoinAdapter",
    "BitgetAdapter",
    "BybitAdapter",
    "EtherscanAdapter",
    "SolanaAdapter",
    "TronAdapter",
]
