"""
Request signing for exchange APIs.

Each exchange signs a different canonical string with HMAC-SHA256:

- Binance: the urlencoded query string, hex digest
- ByBit V5: timestamp + api_key + recv_window + query/body, hex digest
- Bitget: timestamp + METHOD + request_path(+?query) + body, base64 digest
"""

import base64
import hashlib
import hmac
from typing import Any, Mapping
from urllib.parse import urlencode


def build_query(params: Mapping[str, Any]) -> str:
    """Urlencode params in sorted key order, skipping None values."""
    return urlencode(sorted((k, v) for k, v in params.items() if v is not None))


def binance_signature(query_string: str, api_secret: str) -> str:
    return hmac.new(
        api_secret.encode(),
        query_string.encode(),
        hashlib.sha256,
    ).hexdigest()


def bybit_signature(
    timestamp: str,
    api_key: str,
    recv_window: str,
    payload: str,
    api_secret: str,
) -> str:
    message = f"{timestamp}{api_key}{recv_window}{payload}"
    return hmac.new(
        api_secret.encode(),
        message.encode(),
        hashlib.sha256,
    ).hexdigest()


def bitget_signature(
    timestamp: str,
    method: str,
    request_path: str,
    body: str,
    api_secret: str,
) -> str:
    message = f"{timestamp}{method.upper()}{request_path}{body}"
    digest = hmac.new(
        api_secret.encode(),
        message.encode(),
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode()


__all__ = [
    "build_query",
    "binance_signature",
    "bybit_signature",
    "bitget_signature",
]
