"""Transport interface and the handle-keyed event emitter transports build on."""

from __future__ import annotations

import itertools
from collections.abc import Callable, Sequence
from typing import Any, Protocol

Handler = Callable[[Any, Any], None]
"""Event handler: called with ``(message, tag)``. ``tag`` is ``None`` for server messages."""


class ListenerHandle:
    """Registration of one handler on one event.

    ``stop()`` removes the handler immediately; ``start()`` puts it back
    (at the end of the dispatch order).
    """

    def __init__(self, emitter: EventEmitter, event: str, handler: Handler) -> None:
        self._emitter = emitter
        self.event = event
        self.handler = handler
        self.handle_id: int | None = None
        self.start()

    @property
    def is_active(self) -> bool:
        return self.handle_id is not None

    def start(self) -> None:
        if self.handle_id is None:
            self.handle_id = self._emitter._add(self.event, self.handler)

    def stop(self) -> None:
        if self.handle_id is not None:
            self._emitter._remove(self.event, self.handle_id)
            self.handle_id = None


class Transport(Protocol):
    """Structural interface of the persistent message connection.

    Implementations own socket framing, heartbeats, reconnection timers and
    message serialization. They must emit ``connected``, ``disconnected``,
    ``added``, ``changed``, ``removed``, ``ready``, ``nosub``, ``result``,
    ``error``, ``ping`` and ``pong`` events with the decoded message as the
    first handler argument.
    """

    def connect(self) -> None:
        ...

    def disconnect(self) -> None:
        ...

    def call(self, method: str, params: Sequence[Any], at_beginning: bool = False) -> str:
        ...

    def sub(self, name: str, params: Sequence[Any]) -> str:
        ...

    def unsub(self, subscription_id: str) -> None:
        ...

    def emit(self, event: str, message: Any = None, tag: Any = None) -> None:
        ...

    def on(self, event: str, handler: Handler) -> ListenerHandle:
        ...


class EventEmitter:
    """Ordered, synchronous event emitter keyed by integer handle ids.

    Handlers for one event run in registration order. A handler stopped
    while an emit is in progress is not called for that emit.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, dict[int, Handler]] = {}
        self._next_id = itertools.count(1)

    def on(self, event: str, handler: Handler) -> ListenerHandle:
        return ListenerHandle(self, event, handler)

    def emit(self, event: str, message: Any = None, tag: Any = None) -> None:
        handlers = self._handlers.get(event)
        if not handlers:
            return
        for handle_id, handler in list(handlers.items()):
            if handle_id not in handlers:
                continue
            handler(message, tag)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    def _add(self, event: str, handler: Handler) -> int:
        handle_id = next(self._next_id)
        self._handlers.setdefault(event, {})[handle_id] = handler
        return handle_id

    def _remove(self, event: str, handle_id: int) -> None:
        handlers = self._handlers.get(event)
        if handlers is None:
            return
        handlers.pop(handle_id, None)
        if not handlers:
            self._handlers.pop(event, None)
