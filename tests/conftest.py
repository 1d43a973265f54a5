from __future__ import annotations

import itertools
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import pytest

from pyddp import DdpClient, DdpConfig, EventEmitter


@dataclass
class SentCall:
    id: str
    method: str
    params: list[Any]
    at_beginning: bool


class FakeTransport(EventEmitter):
    """In-memory transport: records outgoing traffic, lets tests play the server."""

    def __init__(self, config: DdpConfig | None = None) -> None:
        super().__init__()
        self.config = config
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.calls: list[SentCall] = []
        self.subs: list[tuple[str, str, list[Any]]] = []
        self.unsubs: list[str] = []
        self._ids = itertools.count(1)

    def connect(self) -> None:
        self.connect_calls += 1

    def disconnect(self) -> None:
        self.disconnect_calls += 1

    def call(self, method: str, params: Sequence[Any], at_beginning: bool = False) -> str:
        call = SentCall(id=f"m{next(self._ids)}", method=method, params=list(params), at_beginning=at_beginning)
        self.calls.append(call)
        return call.id

    def sub(self, name: str, params: Sequence[Any]) -> str:
        sub_id = f"s{next(self._ids)}"
        self.subs.append((sub_id, name, list(params)))
        return sub_id

    def unsub(self, subscription_id: str) -> None:
        self.unsubs.append(subscription_id)

    # Server side helpers

    def server_connected(self) -> None:
        self.emit("connected", {"msg": "connected", "session": "abc"})

    def server_disconnected(self) -> None:
        self.emit("disconnected", None)

    def added(self, collection: str, doc_id: Any, **fields: Any) -> None:
        self.emit("added", {"msg": "added", "collection": collection, "id": doc_id, "fields": fields})

    def changed(
        self,
        collection: str,
        doc_id: Any,
        fields: dict[str, Any] | None = None,
        cleared: list[str] | None = None,
    ) -> None:
        message: dict[str, Any] = {"msg": "changed", "collection": collection, "id": doc_id}
        if fields is not None:
            message["fields"] = fields
        if cleared is not None:
            message["cleared"] = cleared
        self.emit("changed", message)

    def removed(self, collection: str, doc_id: Any) -> None:
        self.emit("removed", {"msg": "removed", "collection": collection, "id": doc_id})

    def result(self, method_id: str, result: Any = None, error: Any = None) -> None:
        message: dict[str, Any] = {"msg": "result", "id": method_id}
        if error is not None:
            message["error"] = error
        else:
            message["result"] = result
        self.emit("result", message)


class Recorder:
    """Collects listener payloads."""

    def __init__(self) -> None:
        self.events: list[Any] = []

    def __call__(self, payload: Any, *rest: Any) -> None:
        self.events.append(payload)


MakeClient = Callable[..., tuple[DdpClient, FakeTransport]]


@pytest.fixture
def make_client() -> MakeClient:
    def _make(**overrides: Any) -> tuple[DdpClient, FakeTransport]:
        overrides.setdefault("auto_connect", False)
        config = DdpConfig(endpoint="ws://localhost:3000/websocket", transport_factory=FakeTransport, **overrides)
        client = DdpClient(config)
        transport = client.transport
        assert isinstance(transport, FakeTransport)
        return client, transport

    return _make


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
