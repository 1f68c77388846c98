"""Relay dispatcher tests.

Learn: The dispatcher is exercised with a real Hub and Registry and plain
Connection objects, so assertions look at what landed in each outbox.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from discord_relay.realtime.hub import Connection, channel_group
from discord_relay.relay.normalizer import normalize_created
from helpers import drain


def _join(hub, registry, user_id, channel_id):
    connection = Connection()
    hub.attach(connection)
    hub.join(connection, channel_group(channel_id))
    registry.subscribe(channel_id, user_id)
    return connection


@pytest.mark.asyncio
async def test_message_reaches_joined_session(dispatcher, hub, registry, make_message):
    """U1 joined C1; A1 says "hi" in C1 → exactly one message frame to U1."""
    u1 = _join(hub, registry, "U1", "C1")

    delivered = dispatcher.dispatch(normalize_created(make_message(content="hi")))

    assert delivered == 1
    frames = drain(u1)
    assert len(frames) == 1
    assert frames[0].event == "message"
    assert frames[0].data["content"] == "hi"
    assert frames[0].data["edited"] is False
    assert frames[0].data["author"]["id"] == "A1"


@pytest.mark.asyncio
async def test_no_subscribers_means_no_transport_call(dispatcher, hub, make_message):
    """U1 never joined → zero dispatches, hub untouched."""
    bystander = Connection()
    hub.attach(bystander)
    hub.broadcast = MagicMock(wraps=hub.broadcast)

    delivered = dispatcher.dispatch(normalize_created(make_message()))

    assert delivered == 0
    hub.broadcast.assert_not_called()
    assert drain(bystander) == []


@pytest.mark.asyncio
async def test_only_the_event_channel_group_receives(dispatcher, hub, registry, make_message):
    in_c1 = _join(hub, registry, "U1", "C1")
    in_c2 = _join(hub, registry, "U2", "C2")

    dispatcher.dispatch(normalize_created(make_message(channel_id="C2")))

    assert drain(in_c1) == []
    assert [f.event for f in drain(in_c2)] == ["message"]


@pytest.mark.asyncio
async def test_bot_message_is_never_submitted(dispatcher, hub, registry, make_message):
    _join(hub, registry, "U1", "C1")

    dispatcher.on_message_created(make_message(bot=True))
    dispatcher.on_message_updated(make_message(bot=True))

    assert dispatcher.queue.empty()


@pytest.mark.asyncio
async def test_malformed_event_is_dropped_without_raising(dispatcher, make_message):
    dispatcher.on_message_created(make_message(channel=None))
    dispatcher.on_message_deleted(SimpleNamespace())

    assert dispatcher.queue.empty()


@pytest.mark.asyncio
async def test_update_and_delete_events(dispatcher, hub, registry, make_message):
    u1 = _join(hub, registry, "U1", "C1")

    dispatcher.on_message_updated(make_message(content="edited"))
    dispatcher.on_message_deleted(SimpleNamespace(message_id="M1", channel_id="C1"))
    while not dispatcher.queue.empty():
        dispatcher.dispatch(dispatcher.queue.get_nowait())

    update, delete = drain(u1)
    assert update.event == "message_update"
    assert update.data["edited"] is True
    assert update.data["content"] == "edited"
    assert delete.event == "message_delete"
    assert delete.data == {"messageId": "M1", "channelId": "C1"}


@pytest.mark.asyncio
async def test_run_loop_drains_queue(dispatcher, hub, registry, make_message):
    u1 = _join(hub, registry, "U1", "C1")
    task = asyncio.create_task(dispatcher.run_loop())

    dispatcher.on_message_created(make_message(message_id="M1"))
    dispatcher.on_message_created(make_message(message_id="M2"))
    await asyncio.wait_for(dispatcher.queue.join(), timeout=1)

    assert [f.data["id"] for f in drain(u1)] == ["M1", "M2"]
    assert dispatcher.dispatched == 2

    dispatcher.stop()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_run_loop_survives_a_failing_dispatch(dispatcher, hub, registry, make_message):
    u1 = _join(hub, registry, "U1", "C1")
    real_broadcast = hub.broadcast
    calls = []

    def flaky_broadcast(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            raise RuntimeError("boom")
        return real_broadcast(*args, **kwargs)

    hub.broadcast = flaky_broadcast
    task = asyncio.create_task(dispatcher.run_loop())

    dispatcher.on_message_created(make_message(message_id="M1"))
    dispatcher.on_message_created(make_message(message_id="M2"))
    await asyncio.wait_for(dispatcher.queue.join(), timeout=1)

    assert [f.data["id"] for f in drain(u1)] == ["M2"]

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_full_queue_drops_and_counts(registry, hub, make_message):
    from discord_relay.relay.dispatcher import RelayDispatcher

    small = RelayDispatcher(registry, hub, queue_size=1)
    small.on_message_created(make_message(message_id="M1"))
    small.on_message_created(make_message(message_id="M2"))

    assert small.queue.qsize() == 1
    assert small.dropped == 1


@pytest.mark.asyncio
async def test_full_outbox_drops_frame_for_that_client_only(dispatcher, hub, registry, make_message):
    slow = Connection(outbox_size=1)
    hub.attach(slow)
    hub.join(slow, channel_group("C1"))
    fast = _join(hub, registry, "U2", "C1")
    registry.subscribe("C1", "U1")

    dispatcher.dispatch(normalize_created(make_message(message_id="M1")))
    delivered = dispatcher.dispatch(normalize_created(make_message(message_id="M2")))

    assert delivered == 1
    assert slow.dropped == 1
    assert [f.data["id"] for f in drain(fast)] == ["M1", "M2"]


@pytest.mark.asyncio
async def test_run_loop_keeps_delivering_after_idle_gap(dispatcher, hub, registry, make_message):
    """M1, queue goes idle, then M2 → both reach U1 and the loop is still alive."""
    u1 = _join(hub, registry, "U1", "C1")
    task = asyncio.create_task(dispatcher.run_loop())

    dispatcher.on_message_created(make_message(message_id="M1"))
    await asyncio.wait_for(dispatcher.queue.join(), timeout=1)
    await asyncio.sleep(0.01)
    assert not task.done()

    dispatcher.on_message_created(make_message(message_id="M2"))
    await asyncio.wait_for(dispatcher.queue.join(), timeout=1)

    assert [f.data["id"] for f in drain(u1)] == ["M1", "M2"]
    assert not task.done()

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
