"""
Tests for the realtime hub and the /realtime WebSocket endpoint.
"""

import json
import pytest
from fastapi.testclient import TestClient

from petwash.app.main import app
from petwash.app.schemas.realtime import WalkEvent
from petwash.app.services.realtime_hub import RealtimeHub, is_valid_channel
from fakes import FakeServerSocket


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def subscribe(channel, user_id=7):
    return json.dumps({"type": "subscribe", "channel": channel, "userId": user_id})


@pytest.mark.asyncio
async def test_connect_sends_welcome():
    hub = RealtimeHub()
    ws = FakeServerSocket()
    client = await hub.connect(ws)

    assert ws.accepted
    welcome = ws.sent[0]
    assert welcome["type"] == "welcome"
    assert welcome["clientId"] == client.id
    assert hub.clients == {client.id: client}


@pytest.mark.asyncio
async def test_connection_limit_refuses_extra_sockets():
    hub = RealtimeHub(max_total_connections=1)
    await hub.connect(FakeServerSocket())

    refused = FakeServerSocket()
    assert await hub.connect(refused) is None
    assert refused.closed_with == 1013
    assert not refused.accepted


@pytest.mark.asyncio
async def test_subscribe_and_unsubscribe():
    hub = RealtimeHub()
    ws = FakeServerSocket()
    client = await hub.connect(ws)

    await hub.handle_message(client, subscribe("walk:12"))
    assert ws.of_type("subscribed")[-1]["subscriptions"] == ["walk:12"]
    assert client.user_id == 7
    assert hub.subscriber_count("walk:12") == 1

    await hub.handle_message(client, json.dumps({"type": "unsubscribe", "channel": "walk:12"}))
    assert ws.of_type("unsubscribed")[-1]["subscriptions"] == []
    assert hub.subscriber_count("walk:12") == 0


@pytest.mark.asyncio
async def test_invalid_messages_answer_with_errors():
    hub = RealtimeHub()
    ws = FakeServerSocket()
    client = await hub.connect(ws)

    await hub.handle_message(client, "not json")
    await hub.handle_message(client, json.dumps({"type": "dance"}))
    await hub.handle_message(client, subscribe("station:3"))

    errors = [m["message"] for m in ws.of_type("error")]
    assert errors == [
        "Invalid message format",
        "Unknown message type: dance",
        "Invalid channel: station:3",
    ]


@pytest.mark.asyncio
async def test_ping_pong():
    hub = RealtimeHub()
    ws = FakeServerSocket()
    client = await hub.connect(ws)
    await hub.handle_message(client, json.dumps({"type": "ping"}))
    assert len(ws.of_type("pong")) == 1


@pytest.mark.asyncio
async def test_rate_limit_resets_after_a_minute():
    clock = FakeClock()
    hub = RealtimeHub(max_messages_per_minute=2, clock=clock)
    ws = FakeServerSocket()
    client = await hub.connect(ws)

    for _ in range(3):
        await hub.handle_message(client, json.dumps({"type": "ping"}))
    assert len(ws.of_type("pong")) == 2
    assert "Rate limit exceeded" in ws.of_type("error")[0]["message"]

    clock.now += 60
    await hub.handle_message(client, json.dumps({"type": "ping"}))
    assert len(ws.of_type("pong")) == 3


@pytest.mark.asyncio
async def test_subscription_limit():
    hub = RealtimeHub(max_subscriptions=2)
    ws = FakeServerSocket()
    client = await hub.connect(ws)
    for walk_id in (1, 2, 3):
        await hub.handle_message(client, subscribe(f"walk:{walk_id}"))

    assert client.subscriptions == {"walk:1", "walk:2"}
    assert "Subscription limit exceeded" in ws.of_type("error")[0]["message"]


@pytest.mark.asyncio
async def test_publish_only_reaches_channel_subscribers():
    hub = RealtimeHub()
    watching, other = FakeServerSocket(), FakeServerSocket()
    await hub.handle_message(await hub.connect(watching), subscribe("walk:5"))
    await hub.handle_message(await hub.connect(other), subscribe("walk:6"))

    delivered = await hub.publish_walk_event(
        WalkEvent(type="emergency_alert", walk_id=5, message="Help")
    )
    assert delivered == 1
    assert watching.of_type("emergency_alert")[0]["walkId"] == 5
    assert other.of_type("emergency_alert") == []


@pytest.mark.asyncio
async def test_publish_drops_broken_sockets():
    hub = RealtimeHub()
    healthy, broken = FakeServerSocket(), FakeServerSocket()
    await hub.handle_message(await hub.connect(healthy), subscribe("walk:5"))
    broken_client = await hub.connect(broken)
    await hub.handle_message(broken_client, subscribe("walk:5"))
    broken.fail_send = True

    delivered = await hub.publish("walk:5", {"type": "health_update", "walkId": 5})
    assert delivered == 1
    assert broken_client.id not in hub.clients


def test_channel_names():
    assert is_valid_channel("walk:42")
    assert not is_valid_channel("walk:")
    assert not is_valid_channel("walk:abc")
    assert not is_valid_channel(None)


def test_websocket_binary_frame_gets_format_error():
    client = TestClient(app)
    with client.websocket_connect("/realtime") as ws:
        assert ws.receive_json()["type"] == "welcome"

        ws.send_bytes(b"\x00\x01")
        reply = ws.receive_json()
        assert reply["type"] == "error"
        assert reply["message"] == "Invalid message format"

        # Connection stays usable
        ws.send_text(json.dumps({"type": "ping"}))
        assert ws.receive_json()["type"] == "pong"


def test_websocket_endpoint_round_trip():
    client = TestClient(app)
    with client.websocket_connect("/realtime") as ws:
        assert ws.receive_json()["type"] == "welcome"

        ws.send_text(subscribe("walk:3"))
        reply = ws.receive_json()
        assert reply["type"] == "subscribed"
        assert reply["subscriptions"] == ["walk:3"]

        ws.send_text(json.dumps({"type": "ping"}))
        assert ws.receive_json()["type"] == "pong"
