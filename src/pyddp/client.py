"""High-level async client that mirrors server-published collections."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping, Sequence
from enum import StrEnum
from typing import Any

from pydantic import ValidationError

from pyddp import _codec
from pyddp._emitter import Handler, ListenerHandle, Transport
from pyddp.bulk import BulkCoordinator
from pyddp.collection import Collection
from pyddp.config import DdpConfig
from pyddp.dispatch import ChangeDispatcher
from pyddp.exceptions import DdpConnectTimeoutError
from pyddp.methods import MethodCorrelator
from pyddp.models.changes import Document
from pyddp.models.messages import AddedMessage, ChangedMessage, RemovedMessage
from pyddp.plugins import connect_plugins
from pyddp.store import LocalStore
from pyddp.subscription import Subscription, SubscriptionRegistry

_logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class DdpClient:
    """Async client keeping a local mirror of subscribed collections.

    Usage::

        async with DdpClient(config) as client:
            sub = client.subscribe("tasks", "open")
            await sub.ready()
            tasks = client.collection("tasks").fetch()

    The transport must deliver its events on the client's event loop.
    """

    def __init__(self, config: DdpConfig) -> None:
        self._config = config
        self._transport: Transport = config.transport_factory(config)
        self._store = LocalStore()
        self._dispatcher = ChangeDispatcher()
        self._subs = SubscriptionRegistry(self._transport)
        self._methods = MethodCorrelator(self._transport, max_timeout=config.max_timeout)
        self._bulk = BulkCoordinator(self._transport, self._store)
        self.state = ConnectionState.DISCONNECTED
        self._will_try_to_reconnect = config.auto_reconnect
        self.ready_task: asyncio.Task[None] | None = None

        plugins = config.plugins
        connect_plugins(plugins, self, "init", "before_connected")
        self._connected_handle = self.on("connected", self._on_connected)
        connect_plugins(plugins, self, "after_connected", "before_subs_restart")
        self._restart_subs_handle = self.on("connected", self._on_connected_restart_subs)
        connect_plugins(plugins, self, "after_subs_restart", "before_disconnected")
        self._disconnected_handle = self.on("disconnected", self._on_disconnected)
        connect_plugins(plugins, self, "after_disconnected", "before_added")
        self._added_handle = self.on("added", self._on_added)
        connect_plugins(plugins, self, "after_added", "before_changed")
        self._changed_handle = self.on("changed", self._on_changed)
        connect_plugins(plugins, self, "after_changed", "before_removed")
        self._removed_handle = self.on("removed", self._on_removed)
        connect_plugins(plugins, self, "after_removed", "after")

        if config.auto_connect:
            self.state = ConnectionState.CONNECTING
            self._transport.connect()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DdpClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.disconnect()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> DdpConfig:
        return self._config

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def will_try_to_reconnect(self) -> bool:
        return self._will_try_to_reconnect

    @property
    def collections(self) -> dict[str, list[Document]]:
        """Live mirrored data. Treat as read-only; use ``export_data`` for a copy."""
        return self._store.collections

    @property
    def subscriptions(self) -> SubscriptionRegistry:
        return self._subs

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect, waiting for the ``connected`` event.

        Raises
        ------
        DdpConnectTimeoutError
            If ``max_timeout`` elapses first.
        """
        self._will_try_to_reconnect = self._config.auto_reconnect
        if self.state == ConnectionState.CONNECTED:
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def on_connected(_message: Any, _tag: Any) -> None:
            if not waiter.done():
                waiter.set_result(None)

        handle = self.on("connected", on_connected)
        try:
            if self.state != ConnectionState.CONNECTING:
                self.state = ConnectionState.CONNECTING
                _logger.debug("Connecting to %s", self._config.endpoint)
                self._transport.connect()
            timeout = self._config.max_timeout
            if timeout is None:
                await waiter
                return
            try:
                await asyncio.wait_for(waiter, timeout)
            except TimeoutError as exc:
                if self.state == ConnectionState.CONNECTING:
                    self.state = ConnectionState.DISCONNECTED
                raise DdpConnectTimeoutError(
                    f"Not connected to {self._config.endpoint} within {timeout}s",
                    timeout=timeout,
                ) from exc
        finally:
            handle.stop()

    async def disconnect(self) -> None:
        """Close the connection and stop automatic reconnection."""
        self._will_try_to_reconnect = False
        if self.state == ConnectionState.DISCONNECTED:
            return
        if self.state == ConnectionState.CONNECTING:
            self._transport.disconnect()
            self.state = ConnectionState.DISCONNECTED
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def on_disconnected(_message: Any, _tag: Any) -> None:
            if not waiter.done():
                waiter.set_result(None)

        handle = self.on("disconnected", on_disconnected)
        try:
            if self.state != ConnectionState.DISCONNECTING:
                self.state = ConnectionState.DISCONNECTING
                _logger.debug("Disconnecting from %s", self._config.endpoint)
                self._transport.disconnect()
            await waiter
        finally:
            handle.stop()

    def _on_connected(self, _message: Any, _tag: Any) -> None:
        self.state = ConnectionState.CONNECTED
        _logger.info("Connected to %s", self._config.endpoint)

    def _on_connected_restart_subs(self, _message: Any, _tag: Any) -> None:
        if self._config.clear_data_on_reconnection and self._store.document_count() > 0:
            self.ready_task = asyncio.get_running_loop().create_task(self._clear_then_ready())
        else:
            self._client_ready()

    async def _clear_then_ready(self) -> None:
        # A failing change listener aborts one clear pass after its removal
        # was applied, so keep clearing while each pass makes progress.
        remaining = self._store.document_count()
        try:
            while remaining:
                try:
                    await self._bulk.clear_data()
                except Exception as exc:
                    _logger.warning("Clearing data on reconnection failed", exc_info=True)
                    self._transport.emit(
                        "error", {"msg": "error", "reason": "clear on reconnection failed", "error": exc}
                    )
                left = self._store.document_count()
                if left >= remaining:
                    break
                remaining = left
        finally:
            self._client_ready()

    def _client_ready(self) -> None:
        self._transport.emit("clientReady")
        self._subs.restart_all_active()

    def _on_disconnected(self, _message: Any, _tag: Any) -> None:
        if self._will_try_to_reconnect:
            self.state = ConnectionState.CONNECTING
            _logger.info("Disconnected from %s, transport will reconnect", self._config.endpoint)
        else:
            self.state = ConnectionState.DISCONNECTED
            _logger.info("Disconnected from %s", self._config.endpoint)

    # ------------------------------------------------------------------
    # Diff application
    # ------------------------------------------------------------------

    def _report_invalid(self, message: Any, exc: ValidationError) -> None:
        kind = message.get("msg") if isinstance(message, Mapping) else type(message).__name__
        _logger.warning("Dropping malformed %s message: %s", kind, exc)
        self._transport.emit("error", {"msg": "error", "reason": "invalid message", "offendingMessage": message})

    def _on_added(self, message: Any, _tag: Any) -> None:
        try:
            parsed = AddedMessage.model_validate(message)
        except ValidationError as exc:
            self._report_invalid(message, exc)
            return
        self._dispatcher.dispatch(self._store.apply_added(parsed))

    def _on_changed(self, message: Any, _tag: Any) -> None:
        try:
            parsed = ChangedMessage.model_validate(message)
        except ValidationError as exc:
            self._report_invalid(message, exc)
            return
        self._dispatcher.dispatch(self._store.apply_changed(parsed))

    def _on_removed(self, message: Any, _tag: Any) -> None:
        try:
            parsed = RemovedMessage.model_validate(message)
        except ValidationError as exc:
            self._report_invalid(message, exc)
            return
        self._dispatcher.dispatch(self._store.apply_removed(parsed))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def on(self, event: str, handler: Handler) -> ListenerHandle:
        """Listen to a raw transport event; *handler* gets ``(message, tag)``."""
        return self._transport.on(event, handler)

    async def apply(self, method: str, args: Sequence[Any] | None = None, at_beginning: bool = False) -> Any:
        """Call a remote method with a list of arguments.

        Raises
        ------
        DdpRemoteMethodError
            The server answered with an error.
        DdpMethodTimeoutError
            No answer within ``max_timeout``.
        """
        return await self._methods.apply(method, args, at_beginning)

    async def call(self, method: str, *args: Any) -> Any:
        return await self.apply(method, args)

    def sub(self, name: str, args: Sequence[Any] | None = None) -> Subscription:
        """Subscribe, reusing (and resuming) an identical existing subscription."""
        return self._subs.subscribe(name, args)

    def subscribe(self, name: str, *args: Any) -> Subscription:
        return self.sub(name, args)

    def collection(self, name: str) -> Collection:
        return Collection(name, self._store, self._dispatcher, self._transport)

    def stop_change_listeners(self) -> None:
        """Drop every change listener, including those of reactive views."""
        self._dispatcher.clear()

    async def clear_data(self) -> None:
        await self._bulk.clear_data()

    async def import_data(self, data: str | bytes | Mapping[str, Any]) -> None:
        await self._bulk.import_data(data)

    def export_data(self, format: str = "string") -> str | dict[str, list[Document]]:
        """Return all mirrored data as extended-JSON text or a deep-copied mapping."""
        if format == "string":
            return _codec.encode(self._store.collections)
        if format == "raw":
            return self._store.snapshot()
        raise ValueError(f"Unknown export format {format!r}; expected 'string' or 'raw'")

    async def mark_as_ready(self, subs: Iterable[Subscription]) -> None:
        await self._bulk.mark_as_ready(subs)
