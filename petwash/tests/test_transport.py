"""
Tests for the realtime transport client.
"""

import pytest

from petwash.app.tracking.errors import TransportError
from petwash.app.tracking.transport import RealtimeTransport, decode_message
from fakes import FakeConnector, settle


def test_decode_filters_other_walks_and_control_frames():
    assert decode_message('{"type": "gps_update", "walkId": 9}', 9).type == "gps_update"
    assert decode_message('{"type": "gps_update", "walkId": 8}', 9) is None
    assert decode_message('{"type": "welcome", "clientId": "abc"}', 9) is None
    assert decode_message('{"type": "error", "message": "Rate limit exceeded"}', 9) is None
    assert decode_message("garbage", 9) is None
    assert decode_message("[1, 2]", 9) is None


@pytest.mark.asyncio
async def test_connect_subscribes_to_walk_channel():
    connector = FakeConnector()
    transport = RealtimeTransport("ws://walks.test/realtime", connector=connector)

    assert await transport.connect(12, user_id=5)
    assert transport.live
    assert connector.urls == ["ws://walks.test/realtime"]
    assert connector.socket.sent == [{"type": "subscribe", "channel": "walk:12", "userId": 5}]
    await transport.close()


@pytest.mark.asyncio
async def test_second_connect_is_refused():
    transport = RealtimeTransport("ws://walks.test/realtime", connector=FakeConnector())
    await transport.connect(12)
    with pytest.raises(TransportError):
        await transport.connect(12)
    await transport.close()


@pytest.mark.asyncio
async def test_messages_dispatched_to_handlers():
    connector = FakeConnector()
    transport = RealtimeTransport("ws://walks.test/realtime", connector=connector)
    received = []
    transport.on_message(received.append)

    async def async_handler(event):
        received.append(("async", event.type))

    transport.on_message(async_handler)
    await transport.connect(12)

    connector.socket.push({"type": "subscribed", "subscriptions": ["walk:12"]})
    connector.socket.push({"type": "health_update", "walkId": 12})
    connector.socket.push({"type": "health_update", "walkId": 13})
    connector.socket.push({"type": "emergency_alert", "walkId": 12, "message": "Help"})
    await settle()

    kinds = [e.type for e in received if not isinstance(e, tuple)]
    assert kinds == ["health_update", "emergency_alert"]
    assert ("async", "emergency_alert") in received
    await transport.close()


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_others():
    connector = FakeConnector()
    transport = RealtimeTransport("ws://walks.test/realtime", connector=connector)
    received = []

    def broken(event):
        raise ValueError("boom")

    transport.on_message(broken)
    transport.on_message(received.append)
    await transport.connect(12)
    connector.socket.push({"type": "photo_uploaded", "walkId": 12})
    await settle()

    assert [e.type for e in received] == ["photo_uploaded"]
    await transport.close()


@pytest.mark.asyncio
async def test_connection_error_leaves_transport_offline():
    transport = RealtimeTransport(
        "ws://walks.test/realtime", connector=FakeConnector(error=OSError("connection refused"))
    )
    changes = []
    transport.on_live_change(changes.append)

    assert not await transport.connect(12)
    assert not transport.live
    assert changes == []
    # Teardown after a failed connect is a no-op
    await transport.close()


@pytest.mark.asyncio
async def test_server_drop_clears_live_flag():
    connector = FakeConnector()
    transport = RealtimeTransport("ws://walks.test/realtime", connector=connector)
    changes = []
    transport.on_live_change(changes.append)
    await transport.connect(12)

    connector.socket.drop()
    await settle()
    assert not transport.live
    assert changes == [True, False]
    await transport.close()


@pytest.mark.asyncio
async def test_close_unsubscribes_and_closes_once():
    connector = FakeConnector()
    transport = RealtimeTransport("ws://walks.test/realtime", connector=connector)
    await transport.connect(12)

    await transport.close()
    await transport.close()

    assert connector.socket.sent[-1] == {"type": "unsubscribe", "channel": "walk:12"}
    assert [m["type"] for m in connector.socket.sent].count("unsubscribe") == 1
    assert connector.socket.closed
    assert not transport.live


@pytest.mark.asyncio
async def test_removed_handler_stops_receiving():
    connector = FakeConnector()
    transport = RealtimeTransport("ws://walks.test/realtime", connector=connector)
    received = []
    remove = transport.on_message(received.append)
    await transport.connect(12)

    remove()
    connector.socket.push({"type": "health_update", "walkId": 12})
    await settle()
    assert received == []
    await transport.close()
