"""Subscriptions and the registry that interns them by ``(name, args)``."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Sequence
from enum import StrEnum
from typing import Any

from pydantic import ValidationError

from pyddp._emitter import Transport
from pyddp.exceptions import DdpSubscriptionError
from pyddp.models.messages import NosubMessage, ReadyMessage

_logger = logging.getLogger(__name__)


class SubscriptionState(StrEnum):
    ACTIVE = "active"
    STOPPED = "stopped"


def normalize_args(args: Sequence[Any] | None) -> list[Any]:
    if args is None:
        return []
    if isinstance(args, (list, tuple)):
        return list(args)
    raise TypeError(f"Subscription arguments must be a list or tuple, got {type(args).__name__}")


class Subscription:
    """A live request for the documents a server publication sends.

    Created started. The server correlation id changes on every
    (re)start, so always read :attr:`subscription_id` fresh.
    """

    def __init__(
        self,
        name: str,
        args: Sequence[Any] | None,
        transport: Transport,
        *,
        registry: SubscriptionRegistry | None = None,
    ) -> None:
        self.name = name
        self.args = normalize_args(args)
        self._transport = transport
        self._registry = registry
        self.state = SubscriptionState.STOPPED
        self.subscription_id: str | None = None
        self.is_ready = False
        self._ready_waiters: list[asyncio.Future[None]] = []
        self._ready_handle = transport.on("ready", self._on_ready)
        self._nosub_handle = transport.on("nosub", self._on_nosub)
        self.start()

    def __repr__(self) -> str:
        return f"Subscription(name={self.name!r}, args={self.args!r}, state={self.state.value})"

    def is_on(self) -> bool:
        return self.state == SubscriptionState.ACTIVE

    def is_stopped(self) -> bool:
        return self.state == SubscriptionState.STOPPED

    def _send_sub(self) -> None:
        self.is_ready = False
        self.subscription_id = self._transport.sub(self.name, list(self.args))
        self.state = SubscriptionState.ACTIVE
        _logger.debug("Subscribed name=%s id=%s", self.name, self.subscription_id)

    def start(self) -> None:
        """Start the subscription if it is stopped."""
        if self.is_on():
            return
        self._send_sub()

    def restart(self) -> None:
        """Send the subscription again, e.g. after the server forgot it on reconnect."""
        self._send_sub()

    def stop(self) -> None:
        """Stop the subscription; it stays registered and can be resumed."""
        if self.is_stopped():
            return
        if self.subscription_id is not None:
            self._transport.unsub(self.subscription_id)
        self.state = SubscriptionState.STOPPED
        self.is_ready = False
        _logger.debug("Unsubscribed name=%s id=%s", self.name, self.subscription_id)

    def remove(self) -> None:
        """Stop and forget the subscription."""
        self.stop()
        self._ready_handle.stop()
        self._nosub_handle.stop()
        for waiter in self._ready_waiters:
            if not waiter.done():
                waiter.cancel()
        self._ready_waiters.clear()
        if self._registry is not None:
            self._registry.remove(self)

    async def ready(self) -> None:
        """Wait until the server marks the current subscription as ready.

        Raises
        ------
        DdpSubscriptionError
            If the server answers with ``nosub`` instead.
        """
        if self.is_ready:
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._ready_waiters.append(waiter)
        try:
            await waiter
        finally:
            self._ready_waiters = [cand for cand in self._ready_waiters if cand is not waiter]

    def _on_ready(self, message: Any, _tag: Any) -> None:
        try:
            parsed = ReadyMessage.model_validate(message)
        except ValidationError:
            _logger.debug("Ignoring malformed ready message", exc_info=True)
            return
        if self.subscription_id is None or self.subscription_id not in parsed.subs:
            return
        self.is_ready = True
        for waiter in self._ready_waiters:
            if not waiter.done():
                waiter.set_result(None)

    def _on_nosub(self, message: Any, _tag: Any) -> None:
        try:
            parsed = NosubMessage.model_validate(message)
        except ValidationError:
            _logger.debug("Ignoring malformed nosub message", exc_info=True)
            return
        if self.subscription_id is None or parsed.id != self.subscription_id:
            return
        self.state = SubscriptionState.STOPPED
        self.is_ready = False
        _logger.debug("nosub for name=%s id=%s error=%s", self.name, parsed.id, parsed.error)
        for waiter in self._ready_waiters:
            if not waiter.done():
                waiter.set_exception(
                    DdpSubscriptionError(
                        f"Subscription {self.name!r} was refused or terminated by the server",
                        name=self.name,
                        error=parsed.error,
                    )
                )


class SubscriptionRegistry:
    """Interns subscriptions so identical ``(name, args)`` share one instance."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._subs: list[Subscription] = []

    def __iter__(self) -> Iterator[Subscription]:
        return iter(list(self._subs))

    def __len__(self) -> int:
        return len(self._subs)

    def find(self, name: str, args: Sequence[Any] | None = None) -> Subscription | None:
        normalized = normalize_args(args)
        for sub in self._subs:
            if sub.name == name and sub.args == normalized:
                return sub
        return None

    def subscribe(self, name: str, args: Sequence[Any] | None = None) -> Subscription:
        existing = self.find(name, args)
        if existing is None:
            sub = Subscription(name, args, self._transport, registry=self)
            self._subs.append(sub)
            return sub
        if existing.is_stopped():
            existing.start()
        return existing

    def restart_all_active(self) -> None:
        for sub in list(self._subs):
            if sub.is_on():
                sub.restart()

    def remove(self, sub: Subscription) -> None:
        self._subs = [cand for cand in self._subs if cand is not sub]
