"""
Core Module - Wallet registry.

The registry is a CSV with one wallet per row:

    name, address, chain type, api key, status

Rows without an address are skipped. A blank chain type is inferred
from the wallet name; rows whose chain cannot be inferred are skipped
with a warning.
"""

import csv
import logging
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from core.exceptions import WalletRegistryError


logger = logging.getLogger(__name__)


class Chain(Enum):
    """Blockchains with a wallet adapter."""
    BITCOIN = "bitcoin"
    ETHEREUM = "ethereum"
    BSC = "bsc"
    TRON = "tron"
    SOLANA = "solana"


# Checked in order; first keyword contained in the text wins.
_CHAIN_KEYWORDS = (
    ("bitcoin", Chain.BITCOIN),
    ("bep20", Chain.BSC),
    ("binance smart chain", Chain.BSC),
    ("ethereum", Chain.ETHEREUM),
    ("erc20", Chain.ETHEREUM),
    ("tron", Chain.TRON),
    ("trc20", Chain.TRON),
    ("solana", Chain.SOLANA),
)

# Short tickers only match as whole words ("sol" must not match "console").
_CHAIN_TICKERS = {
    "btc": Chain.BITCOIN,
    "bsc": Chain.BSC,
    "bnb": Chain.BSC,
    "eth": Chain.ETHEREUM,
    "trx": Chain.TRON,
    "sol": Chain.SOLANA,
}

_HEADER_NAMES = {"name", "wallet", "wallet name"}


@dataclass(frozen=True)
class WalletConfig:
    """A tracked wallet from the registry."""

    name: str
    address: str
    chain: Chain
    api_key: str = ""
    status: str = ""


def infer_chain(text: str) -> Optional[Chain]:
    """Map a chain label or wallet name to a Chain, or None."""
    lowered = (text or "").strip().lower()
    if not lowered:
        return None
    for member in Chain:
        if lowered == member.value:
            return member
    for keyword, chain in _CHAIN_KEYWORDS:
        if keyword in lowered:
            return chain
    for token in re.split(r"[^a-z0-9]+", lowered):
        if token in _CHAIN_TICKERS:
            return _CHAIN_TICKERS[token]
    return None


def parse_wallet_rows(rows: Iterable[Sequence[str]]) -> List[WalletConfig]:
    """
    Turn registry rows into wallet configs.

    Later rows with the same name replace earlier ones.
    """
    wallets: dict = {}

    for index, row in enumerate(rows, start=1):
        cells = [str(c).strip() if c is not None else "" for c in row]
        if not cells or not any(cells):
            continue
        cells += [""] * (5 - len(cells))
        name, address, chain_type, api_key, status = cells[:5]

        if index == 1 and name.lower() in _HEADER_NAMES:
            continue

        if not address:
            logger.debug(f"Skipping registry row {index} ({name!r}): no address")
            continue

        chain = infer_chain(chain_type) if chain_type else None
        if chain is None:
            chain = infer_chain(name)
            if chain is None:
                logger.warning(
                    f"Skipping wallet {name!r}: cannot infer blockchain type "
                    f"from {chain_type or name!r}"
                )
                continue
            if not chain_type:
                logger.info(f"Inferred chain {chain.value} for wallet {name!r}")

        wallets[name] = WalletConfig(
            name=name,
            address=address,
            chain=chain,
            api_key=api_key,
            status=status,
        )

    logger.info(f"Loaded {len(wallets)} wallets from registry")
    return list(wallets.values())


def load_wallet_registry(path: str) -> List[WalletConfig]:
    """
    Load wallets from a CSV file.

    Raises:
        WalletRegistryError: If the file cannot be read
    """
    try:
        with Path(path).open(newline="", encoding="utf-8") as handle:
            rows = list(csv.reader(handle))
    except OSError as e:
        raise WalletRegistryError(f"Cannot read wallet registry: {e}", path=path, cause=e)
    return parse_wallet_rows(rows)


__all__ = [
    "Chain",
    "WalletConfig",
    "infer_chain",
    "parse_wallet_rows",
    "load_wallet_registry",
]
