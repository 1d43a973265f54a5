"""Masking of method params for DEBUG logs.

``login`` calls carry a password digest or a resume token, and the account
methods ``changePassword`` / ``resetPassword`` take credentials as bare
positional strings. Values under credential keys are masked wherever they
appear; positional strings of the account methods are masked outright.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

MASK = "<redacted>"

_CREDENTIAL_KEYS: frozenset[str] = frozenset(
    {"password", "digest", "resume", "secret", "authorization", "cookie", "hashedtoken"}
)

# Methods whose positional string params are themselves credentials.
_CREDENTIAL_METHODS: frozenset[str] = frozenset({"changePassword", "resetPassword", "setPassword"})

_MAX_DEPTH = 20


def _is_credential_key(key: Any) -> bool:
    name = str(key).lower()
    return name in _CREDENTIAL_KEYS or name.endswith("token")


def _mask(value: Any, max_string: int, depth: int) -> Any:
    if depth > _MAX_DEPTH:
        return "<max-depth>"
    if isinstance(value, str):
        return value if len(value) <= max_string else f"{value[:max_string]}…<truncated>"
    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        if set(value) == {"$binary"}:
            return "<binary>"
        return {
            str(key): MASK if _is_credential_key(key) else _mask(item, max_string, depth + 1)
            for key, item in value.items()
        }
    if isinstance(value, Sequence):
        return [_mask(item, max_string, depth + 1) for item in value]
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return repr(value)


def redact_params(method: str, params: Sequence[Any], *, max_string: int = 256) -> list[Any]:
    """Return a copy of *params* for a call to *method* that is safe to log."""
    if method in _CREDENTIAL_METHODS:
        return [MASK if isinstance(param, str) else _mask(param, max_string, 0) for param in params]
    return [_mask(param, max_string, 0) for param in params]
