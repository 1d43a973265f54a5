"""Extended JSON codec used by textual import/export.

Plain JSON plus two tagged forms:

* ``datetime`` <-> ``{"$date": <epoch milliseconds>}``
* ``bytes`` <-> ``{"$binary": "<base64>"}``
"""

from __future__ import annotations

import base64
import binascii
import json
from datetime import UTC, datetime
from typing import Any

from pyddp.exceptions import DdpCodecError


def _default(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return {"$date": int(value.timestamp() * 1000)}
    if isinstance(value, (bytes, bytearray)):
        return {"$binary": base64.b64encode(bytes(value)).decode("ascii")}
    raise TypeError(f"Object of type {type(value).__name__} is not EJSON serializable")


def _object_hook(obj: dict[str, Any]) -> Any:
    if len(obj) != 1:
        return obj
    if "$date" in obj and isinstance(obj["$date"], (int, float)):
        try:
            return datetime.fromtimestamp(obj["$date"] / 1000.0, tz=UTC)
        except (OverflowError, OSError, ValueError) as exc:
            raise DdpCodecError(f"Invalid $date value {obj['$date']!r}: {exc}") from exc
    if "$binary" in obj and isinstance(obj["$binary"], str):
        try:
            return base64.b64decode(obj["$binary"], validate=True)
        except binascii.Error as exc:
            raise DdpCodecError(f"Invalid $binary payload: {exc}") from exc
    return obj


def encode(value: Any) -> str:
    """Serialize *value* to extended-JSON text."""
    return json.dumps(value, default=_default, separators=(",", ":"))


def decode(text: str | bytes) -> Any:
    """Parse extended-JSON text.

    Raises
    ------
    DdpCodecError
        If *text* is not valid UTF-8 JSON or carries an invalid tagged value.
    """
    try:
        return json.loads(text, object_hook=_object_hook)
    except json.JSONDecodeError as exc:
        raise DdpCodecError(f"Invalid EJSON text: {exc.msg} at position {exc.pos}") from exc
    except UnicodeDecodeError as exc:
        raise DdpCodecError(f"Invalid EJSON bytes: {exc.reason} at position {exc.start}") from exc
