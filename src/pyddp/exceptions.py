"""Custom exception hierarchy for pyddp."""

from __future__ import annotations

from typing import Any


class DdpError(Exception):
    """Base exception for all pyddp errors."""


class DdpConfigError(DdpError):
    """Invalid or missing configuration."""


class DdpTimeoutError(DdpError):
    """Maximum wait elapsed before the awaited event arrived."""

    code: str = "TIMEOUT"

    def __init__(self, message: str, *, timeout: float | None = None) -> None:
        self.timeout = timeout
        super().__init__(message)


class DdpConnectTimeoutError(DdpTimeoutError):
    """No ``connected`` event within ``max_timeout``."""

    code = "CONNECT_TIMEOUT"


class DdpMethodTimeoutError(DdpTimeoutError):
    """No matching ``result`` message within ``max_timeout``."""

    code = "METHOD_TIMEOUT"


class DdpRemoteMethodError(DdpError):
    """The server answered a method call with an error payload.

    The payload is kept verbatim in :attr:`error` so callers can inspect
    the server-side ``error``/``reason``/``details`` keys themselves.
    """

    code = "REMOTE_METHOD_ERROR"

    def __init__(self, error: Any, *, method: str = "") -> None:
        self.error = error
        self.method = method
        reason = (error.get("reason") or error.get("message")) if isinstance(error, dict) else None
        super().__init__(f"Method {method!r} failed: {reason or error!r}")


class DdpCodecError(DdpError):
    """Malformed extended-JSON text passed to decode/import."""

    code = "CODEC_DECODE_ERROR"


class DdpSubscriptionError(DdpError):
    """The server refused or terminated a subscription (``nosub``)."""

    def __init__(self, message: str, *, name: str = "", error: Any = None) -> None:
        self.name = name
        self.error = error
        super().__init__(message)
