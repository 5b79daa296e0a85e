"""
Base Wallet Adapter - Shared plumbing for on-chain wallet sources.
"""

from typing import Optional

import aiohttp

from core.constants import DEFAULT_UPDATE_CADENCE
from core.wallets import Chain, WalletConfig
from source_adapters.base import BaseSourceAdapter
from source_adapters.models import SourceKind


class BaseWalletAdapter(BaseSourceAdapter):
    """
    One tracked blockchain address.

    The platform label is the wallet's registry name; addresses are
    kept verbatim in from/to fields.
    """

    kind = SourceKind.WALLET
    chain: Chain
    NATIVE_ASSET = ""
    REQUIRES_API_KEY = False

    def __init__(
        self,
        wallet: WalletConfig,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = BaseSourceAdapter.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
        update_cadence: str = DEFAULT_UPDATE_CADENCE,
    ) -> None:
        super().__init__(wallet.name, timeout=timeout, session=session, update_cadence=update_cadence)
        self.wallet = wallet
        self.address = wallet.address.strip()
        self._api_key = (wallet.api_key or api_key or "").strip()
        self._base_url = base_url

    def has_credentials(self) -> bool:
        if self.REQUIRES_API_KEY:
            return bool(self._api_key)
        return True


__all__ = ["BaseWalletAdapter"]
