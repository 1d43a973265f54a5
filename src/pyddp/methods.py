"""Remote method calls correlated with their ``result`` messages."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from pyddp._emitter import Transport
from pyddp._redact import redact_params
from pyddp.exceptions import DdpMethodTimeoutError, DdpRemoteMethodError
from pyddp.models.messages import ResultMessage

_logger = logging.getLogger(__name__)


class MethodCorrelator:
    """Settles each outgoing call exactly once: result, server error or timeout.

    In-flight calls are not failed on disconnection; a result that arrives
    after reconnection still settles them.
    """

    def __init__(self, transport: Transport, *, max_timeout: float | None = None) -> None:
        self._transport = transport
        self._max_timeout = max_timeout

    async def apply(self, method: str, args: Sequence[Any] | None = None, at_beginning: bool = False) -> Any:
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[Any] = loop.create_future()
        params = list(args) if args else []

        _logger.debug("Calling method=%s params=%s", method, redact_params(method, params))
        method_id = self._transport.call(method, params, at_beginning)

        def on_result(message: Any, _tag: Any) -> None:
            try:
                parsed = ResultMessage.model_validate(message)
            except ValidationError:
                _logger.debug("Ignoring malformed result message", exc_info=True)
                return
            if parsed.id != method_id or waiter.done():
                return
            handle.stop()
            if parsed.error is not None:
                waiter.set_exception(DdpRemoteMethodError(parsed.error, method=method))
            else:
                waiter.set_result(parsed.result)

        handle = self._transport.on("result", on_result)
        try:
            if self._max_timeout is None:
                return await waiter
            try:
                return await asyncio.wait_for(waiter, self._max_timeout)
            except TimeoutError as exc:
                raise DdpMethodTimeoutError(
                    f"No result for method {method!r} within {self._max_timeout}s",
                    timeout=self._max_timeout,
                ) from exc
        finally:
            handle.stop()
