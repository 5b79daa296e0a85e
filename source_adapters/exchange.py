"""
Base Exchange Adapter - Shared plumbing for signed exchange accounts.
"""

import logging
import time
from typing import Any, Optional

import aiohttp

from core.constants import DEFAULT_UPDATE_CADENCE
from core.credentials import ApiCredentials
from source_adapters.base import BaseSourceAdapter
from source_adapters.exceptions import AuthenticationError, FetchError
from source_adapters.models import SourceKind


logger = logging.getLogger(__name__)


class BaseExchangeAdapter(BaseSourceAdapter):
    """
    One exchange account.

    Subclasses implement ``_signed_request`` and ``verify_connection``.
    """

    kind = SourceKind.EXCHANGE
    BASE_URL = ""
    REQUIRES_PASSPHRASE = False
    RECV_WINDOW = 5000

    def __init__(
        self,
        name: str,
        credentials: Optional[ApiCredentials] = None,
        base_url: Optional[str] = None,
        timeout: float = BaseSourceAdapter.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
        update_cadence: str = DEFAULT_UPDATE_CADENCE,
    ) -> None:
        super().__init__(name, timeout=timeout, session=session, update_cadence=update_cadence)
        self._credentials = credentials or ApiCredentials()
        self._base_url = (base_url or self.BASE_URL).rstrip("/")

    def has_credentials(self) -> bool:
        return self._credentials.is_complete(self.REQUIRES_PASSPHRASE)

    @staticmethod
    def _timestamp_ms() -> str:
        return str(int(time.time() * 1000))

    def _raise_auth_failure(self, error: FetchError, prefix: str) -> None:
        """Convert an HTTP error from the connection check."""
        if error.status_code in (401, 403, 451):
            detail = "Geo-blocked (451)" if error.status_code == 451 else f"HTTP {error.status_code}"
            raise AuthenticationError(
                f"{prefix}: {detail}",
                source_name=self.name,
                status_code=error.status_code,
                original_error=error,
            )
        raise error

    def _extract(self, payload: Any, *path: str) -> Any:
        """Walk nested dict keys; missing levels yield None."""
        current = payload
        for key in path:
            if not isinstance(current, dict):
                return None
            current = current.get(key)
        return current


__all__ = ["BaseExchangeAdapter"]
