"""
Core Module - Exceptions.

============================================================
EXCEPTION HIERARCHY
============================================================
SyncError (base)
├── ConfigurationError
│   └── MissingConfigError
└── WalletRegistryError

Adapter and ledger errors live in their own packages and
never reach the orchestrator's caller.
============================================================
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class SyncError(Exception):
    """
    Base exception for the sync system.

    Carries a context dict for debugging and the time it was raised.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(SyncError):
    """Error in configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]
        super().__init__(message, context=context, **kwargs)
        self.config_key = config_key


class MissingConfigError(ConfigurationError):
    """A required configuration value is absent."""
    pass


class WalletRegistryError(SyncError):
    """The wallet registry could not be read."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if path:
            context["path"] = path
        super().__init__(message, context=context, **kwargs)
        self.path = path


__all__ = [
    "SyncError",
    "ConfigurationError",
    "MissingConfigError",
    "WalletRegistryError",
]
