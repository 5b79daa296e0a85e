"""
Address Map - Wallet address to friendly name lookup.

Built once per run from the wallet registry. Only the ``platform``
display label is ever rewritten with it.
"""

import logging
from typing import Dict, Iterable, Iterator, Optional, Tuple

from core.config import AddressMatchConfig
from core.wallets import WalletConfig


logger = logging.getLogger(__name__)


class AddressMap:
    """
    Read-only mapping of address variants to wallet names.

    Lookup order:
    1. Exact match
    2. Case-insensitive match
    3. Leading-prefix match (only with ``allow_prefix_match``)
    """

    def __init__(
        self,
        entries: Optional[Dict[str, str]] = None,
        config: Optional[AddressMatchConfig] = None,
    ) -> None:
        self._config = config or AddressMatchConfig()
        self._exact: Dict[str, str] = {}
        self._lower: Dict[str, str] = {}
        for address, name in (entries or {}).items():
            self._add(address, name)

    @classmethod
    def from_wallets(
        cls,
        wallets: Iterable[WalletConfig],
        config: Optional[AddressMatchConfig] = None,
    ) -> "AddressMap":
        address_map = cls(config=config)
        for wallet in wallets:
            address_map._add(wallet.address, wallet.name)
        logger.debug(f"Address map built with {len(address_map)} addresses")
        return address_map

    def _add(self, address: str, name: str) -> None:
        address = (address or "").strip()
        if not address or not name:
            return
        self._exact[address] = name
        self._lower[address.lower()] = name

    def lookup(self, value: str) -> Optional[str]:
        """Return the friendly name for ``value`` or None."""
        value = (value or "").strip()
        if not value:
            return None

        if value in self._exact:
            return self._exact[value]

        lowered = value.lower()
        if lowered in self._lower:
            return self._lower[lowered]

        if self._config.allow_prefix_match:
            return self._lookup_prefix(lowered)

        return None

    def _lookup_prefix(self, lowered: str) -> Optional[str]:
        size = self._config.prefix_length
        if len(lowered) <= size:
            return None
        prefix = lowered[:size]
        for address, name in self._lower.items():
            if len(address) > size and address[:size] == prefix:
                logger.debug(f"Prefix match {prefix}... -> {name}")
                return name
        return None

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(self._exact.items())

    def __contains__(self, value: object) -> bool:
        return isinstance(value, str) and self.lookup(value) is not None

    def __len__(self) -> int:
        return len(self._exact)

    def __repr__(self) -> str:
        return (
            f"<AddressMap(addresses={len(self)}, "
            f"prefix_match={self._config.allow_prefix_match})>"
        )
