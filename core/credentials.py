"""
Core Module - Exchange credentials.

Credentials are resolved per account from two places, in order:

1. Run-time overrides passed with the sync request, keyed by the
   account's credential key and shaped either ``{"apiKey": ..,
   "apiSecret": .., "passphrase": ..}`` or with snake_case names.
2. Environment variables named after the credential key.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from core.config import ExchangeAccountConfig


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiCredentials:
    """API key material for one exchange account."""

    api_key: str = ""
    api_secret: str = ""
    passphrase: str = ""
    account_uid: str = ""

    def is_complete(self, require_passphrase: bool = False) -> bool:
        if not self.api_key or not self.api_secret:
            return False
        if require_passphrase and not self.passphrase:
            return False
        return True

    @property
    def masked_key(self) -> str:
        """API key safe for logs."""
        if len(self.api_key) <= 6:
            return "***"
        return f"{self.api_key[:6]}..."

    def __repr__(self) -> str:
        return f"ApiCredentials(api_key={self.masked_key}, has_passphrase={bool(self.passphrase)})"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ApiCredentials":
        """Build from either camelCase or snake_case keys."""

        def pick(*keys: str) -> str:
            for key in keys:
                value = data.get(key)
                if value:
                    return str(value).strip()
            return ""

        return cls(
            api_key=pick("apiKey", "api_key", "key"),
            api_secret=pick("apiSecret", "api_secret", "secret"),
            passphrase=pick("passphrase", "apiPassphrase", "api_passphrase"),
            account_uid=pick("uid", "accountUid", "account_uid"),
        )


def _from_env(account: ExchangeAccountConfig, environ: Mapping[str, str]) -> ApiCredentials:
    return ApiCredentials(
        api_key=environ.get(account.api_key_env, "").strip(),
        api_secret=environ.get(account.api_secret_env, "").strip(),
        passphrase=environ.get(account.passphrase_env, "").strip(),
        account_uid=environ.get(account.account_uid_env, "").strip(),
    )


def resolve_credentials(
    account: ExchangeAccountConfig,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ApiCredentials:
    """
    Resolve credentials for one account.

    An override entry replaces the environment entirely for that
    account so a partially filled request cannot mix key material
    from two sources.
    """
    if overrides and account.credential_key in overrides:
        entry = overrides[account.credential_key]
        if isinstance(entry, ApiCredentials):
            return entry
        if isinstance(entry, Mapping):
            return ApiCredentials.from_mapping(entry)
        logger.warning(
            f"Ignoring malformed credential override for {account.name} "
            f"({type(entry).__name__})"
        )

    return _from_env(account, os.environ if environ is None else environ)


def resolve_all(
    accounts: list,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, ApiCredentials]:
    """Resolve credentials for every account, keyed by account name."""
    return {
        account.name: resolve_credentials(account, overrides, environ)
        for account in accounts
    }


__all__ = [
    "ApiCredentials",
    "resolve_credentials",
    "resolve_all",
]
