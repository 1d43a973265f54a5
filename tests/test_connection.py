from __future__ import annotations

import asyncio
from typing import Any

import pytest

from pyddp import ConnectionState, DdpConfig, DdpConnectTimeoutError


def test_auto_connect_contacts_transport_on_construction(make_client: Any) -> None:
    client, transport = make_client(auto_connect=True)

    assert transport.connect_calls == 1
    assert client.state == ConnectionState.CONNECTING


def test_transport_factory_receives_config(make_client: Any) -> None:
    client, transport = make_client(reconnect_interval=5.0, clean_queue=True)

    assert isinstance(transport.config, DdpConfig)
    assert transport.config.reconnect_interval == 5.0
    assert transport.config.clean_queue is True
    assert client.config is transport.config


@pytest.mark.asyncio
async def test_connect_resolves_on_connected_event(make_client: Any) -> None:
    client, transport = make_client()

    task = asyncio.create_task(client.connect())
    await asyncio.sleep(0)
    assert transport.connect_calls == 1
    assert client.state == ConnectionState.CONNECTING
    assert not task.done()

    transport.server_connected()
    await task

    assert client.connected
    assert client.state == ConnectionState.CONNECTED


@pytest.mark.asyncio
async def test_connect_while_connecting_does_not_reconnect(make_client: Any) -> None:
    client, transport = make_client(auto_connect=True)

    task = asyncio.create_task(client.connect())
    await asyncio.sleep(0)
    transport.server_connected()
    await task

    assert transport.connect_calls == 1


@pytest.mark.asyncio
async def test_connect_when_connected_is_immediate(make_client: Any) -> None:
    client, transport = make_client()
    transport.server_connected()

    await client.connect()

    assert transport.connect_calls == 0


@pytest.mark.asyncio
async def test_connect_timeout(make_client: Any) -> None:
    client, transport = make_client(max_timeout=0.05)
    baseline = transport.listener_count("connected")

    with pytest.raises(DdpConnectTimeoutError) as excinfo:
        await client.connect()

    assert excinfo.value.code == "CONNECT_TIMEOUT"
    assert excinfo.value.timeout == 0.05
    assert client.state == ConnectionState.DISCONNECTED
    assert transport.listener_count("connected") == baseline


@pytest.mark.asyncio
async def test_disconnect_resolves_on_disconnected_event(make_client: Any) -> None:
    client, transport = make_client()
    transport.server_connected()

    task = asyncio.create_task(client.disconnect())
    await asyncio.sleep(0)
    assert transport.disconnect_calls == 1
    assert client.state == ConnectionState.DISCONNECTING
    assert not client.will_try_to_reconnect

    transport.server_disconnected()
    await task

    assert client.state == ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_disconnect_when_disconnected_is_immediate(make_client: Any) -> None:
    client, transport = make_client()

    await client.disconnect()

    assert transport.disconnect_calls == 0


@pytest.mark.asyncio
async def test_disconnect_while_connecting_cancels_attempt(make_client: Any) -> None:
    client, transport = make_client(auto_connect=True)

    await client.disconnect()

    assert transport.disconnect_calls == 1
    assert client.state == ConnectionState.DISCONNECTED


def test_unsolicited_drop_keeps_reconnecting(make_client: Any) -> None:
    client, transport = make_client()
    transport.server_connected()

    transport.server_disconnected()

    assert not client.connected
    assert client.state == ConnectionState.CONNECTING


def test_drop_without_auto_reconnect(make_client: Any) -> None:
    client, transport = make_client(auto_reconnect=False)
    transport.server_connected()

    transport.server_disconnected()

    assert client.state == ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_connect_rearms_auto_reconnect(make_client: Any) -> None:
    client, transport = make_client()
    transport.server_connected()
    task = asyncio.create_task(client.disconnect())
    await asyncio.sleep(0)
    transport.server_disconnected()
    await task
    assert not client.will_try_to_reconnect

    task = asyncio.create_task(client.connect())
    await asyncio.sleep(0)
    transport.server_connected()
    await task

    assert client.will_try_to_reconnect


@pytest.mark.asyncio
async def test_context_manager_connects_and_disconnects(make_client: Any) -> None:
    client, transport = make_client()

    async def play_server() -> None:
        await asyncio.sleep(0)
        transport.server_connected()

    asyncio.get_running_loop().create_task(play_server())
    async with client as entered:
        assert entered is client
        assert client.connected
        asyncio.get_running_loop().call_soon(transport.server_disconnected)

    assert client.state == ConnectionState.DISCONNECTED


# ------------------------------------------------------------------
# Reconnection handling
# ------------------------------------------------------------------


def test_first_connection_emits_client_ready_and_restarts_subs(make_client: Any, recorder: Any) -> None:
    client, transport = make_client()
    client.on("clientReady", recorder)
    sub = client.subscribe("tasks")
    first_id = sub.subscription_id

    transport.server_connected()

    assert len(recorder.events) == 1
    assert client.ready_task is None
    assert sub.subscription_id != first_id
    assert [name for _id, name, _params in transport.subs] == ["tasks", "tasks"]


@pytest.mark.asyncio
async def test_reconnection_clears_data_before_restarting_subs(make_client: Any) -> None:
    client, transport = make_client()
    transport.server_connected()
    active = client.subscribe("tasks", "open")
    stopped = client.subscribe("users")
    stopped.stop()
    transport.added("tasks", 1, title="a")
    transport.added("tasks", 2, title="b")
    transport.added("users", "u", name="n")

    removed: list[Any] = []
    client.collection("tasks").on_change(lambda event: removed.append(event.removed))
    counts_at_ready: list[int] = []
    client.on("clientReady", lambda _m, _t: counts_at_ready.append(len(transport.subs)))
    subs_before = len(transport.subs)

    transport.server_disconnected()
    transport.server_connected()
    assert client.ready_task is not None
    await client.ready_task

    assert client.collections == {"tasks": [], "users": []}
    assert [doc["id"] for doc in removed] == [1, 2]
    assert counts_at_ready == [subs_before]
    assert transport.subs[-1][1:] == ("tasks", ["open"])
    assert len(transport.subs) == subs_before + 1
    assert active.subscription_id == transport.subs[-1][0]
    assert stopped.is_stopped()


@pytest.mark.asyncio
async def test_reconnection_clear_survives_failing_listener(make_client: Any, recorder: Any) -> None:
    client, transport = make_client()
    transport.server_connected()
    client.subscribe("tasks")
    transport.added("tasks", 1)
    transport.added("tasks", 2)
    transport.added("users", "u")

    def explode(_event: Any) -> None:
        raise RuntimeError("listener failed")

    client.collection("tasks").on_change(explode)
    client.on("error", recorder)
    ready: list[Any] = []
    client.on("clientReady", lambda _m, _t: ready.append(True))
    subs_before = len(transport.subs)

    transport.server_disconnected()
    transport.server_connected()
    await client.ready_task

    assert client.collections == {"tasks": [], "users": []}
    assert [event["reason"] for event in recorder.events] == ["clear on reconnection failed"] * 2
    assert isinstance(recorder.events[0]["error"], RuntimeError)
    assert ready == [True]
    assert len(transport.subs) == subs_before + 1


def test_reconnection_keeps_data_when_configured(make_client: Any, recorder: Any) -> None:
    client, transport = make_client(clear_data_on_reconnection=False)
    client.on("clientReady", recorder)
    transport.server_connected()
    transport.added("tasks", 1)

    transport.server_disconnected()
    transport.server_connected()

    assert client.collections["tasks"] == [{"id": 1}]
    assert len(recorder.events) == 2
