"""Idempotent bulk operations built from synthetic, tagged diff messages.

Each operation emits its messages through the transport tagged with a
fresh operation id, then waits until the same number of tagged messages
has come back through the event stream. Because the store's own listeners
were registered first, by then every message has been applied and
dispatched.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import secrets
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from pyddp import _codec
from pyddp._emitter import Transport
from pyddp.store import ID_KEY, LocalStore

if TYPE_CHECKING:
    from pyddp.subscription import Subscription

_logger = logging.getLogger(__name__)


class BulkCoordinator:
    def __init__(self, transport: Transport, store: LocalStore) -> None:
        self._transport = transport
        self._store = store
        self._instance_token = secrets.token_hex(4)
        self._op_counter = itertools.count()

    def next_operation_id(self) -> str:
        return f"{self._instance_token}-{next(self._op_counter)}"

    async def _emit_and_count(self, event: str, messages: list[dict[str, Any]]) -> None:
        expected = len(messages)
        if expected == 0:
            return

        operation_id = self.next_operation_id()
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        seen = 0

        def on_ack(_message: Any, tag: Any) -> None:
            nonlocal seen
            if tag != operation_id or done.done():
                return
            seen += 1
            if seen == expected:
                handle.stop()
                done.set_result(None)

        handle = self._transport.on(event, on_ack)
        _logger.debug("Bulk %s op=%s messages=%d", event, operation_id, expected)
        try:
            for message in messages:
                self._transport.emit(event, message, operation_id)
            await done
        finally:
            handle.stop()

    async def clear_data(self) -> None:
        """Remove every mirrored document as if the server had removed it."""
        messages = [
            {"msg": "removed", "id": doc[ID_KEY], "collection": collection}
            for collection, documents in self._store.collections.items()
            for doc in documents
        ]
        await self._emit_and_count("removed", messages)

    async def import_data(self, data: str | bytes | Mapping[str, Iterable[Mapping[str, Any]]]) -> None:
        """Load documents as if the server had published them.

        *data* maps collection names to document lists, either as a mapping
        or as extended-JSON text.
        """
        decoded = _codec.decode(data) if isinstance(data, (str, bytes)) else data
        if not isinstance(decoded, Mapping):
            raise TypeError("import data must map collection names to document lists")

        messages: list[dict[str, Any]] = []
        for collection, documents in decoded.items():
            for doc in documents or ():
                fields = {key: value for key, value in doc.items() if key != ID_KEY}
                messages.append({"msg": "added", "id": doc.get(ID_KEY), "collection": collection, "fields": fields})
        await self._emit_and_count("added", messages)

    async def mark_as_ready(self, subs: Iterable[Subscription]) -> None:
        """Mark subscriptions ready as if the server had sent ``ready``."""
        message = {"msg": "ready", "subs": [sub.subscription_id for sub in subs]}
        await self._emit_and_count("ready", [message])
