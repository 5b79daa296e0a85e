"""
Source Adapter Exceptions - Custom exception hierarchy.

Raised inside adapters only. ``BaseSourceAdapter.fetch`` converts every
one of them into a source status and an empty result.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class SourceAdapterError(Exception):
    """Base exception for all source adapter errors."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source_name = source_name
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source_name": self.source_name,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.source_name:
            parts.append(f"[source={self.source_name}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class FetchError(SourceAdapterError):
    """HTTP or transport failure talking to a source API."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, original_error, context)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
            "request_url": self.request_url,
        })
        return data


class RateLimitError(FetchError):
    """Rate limit exceeded. Treated as an empty result, never retried."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        retry_after_seconds: Optional[int] = None,
        request_url: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            source_name,
            status_code=429,
            request_url=request_url,
            context=context,
        )
        self.retry_after_seconds = retry_after_seconds


class AuthenticationError(SourceAdapterError):
    """The source rejected the credentials or the caller's region."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        status_code: Optional[int] = None,
        api_code: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, original_error, context)
        self.status_code = status_code
        self.api_code = api_code


class ApiError(SourceAdapterError):
    """HTTP 200 response carrying an API-level error code."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        api_code: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, None, context)
        self.api_code = api_code


class MissingCredentialsError(SourceAdapterError):
    """Credentials required by the source are absent."""
    pass


class NormalizationError(SourceAdapterError):
    """A raw record could not be mapped to a Transaction."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        raw_data: Optional[Any] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, source_name, original_error)
        self.raw_data = raw_data


class ConfigurationError(SourceAdapterError):
    """Adapter configuration is invalid."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        config_key: Optional[str] = None,
    ) -> None:
        super().__init__(message, source_name)
        self.config_key = config_key


__all__ = [
    "SourceAdapterError",
    "FetchError",
    "RateLimitError",
    "AuthenticationError",
    "ApiError",
    "MissingCredentialsError",
    "NormalizationError",
    "ConfigurationError",
]
