"""
End-to-end tests for the live walk tracker with fake network edges.
"""

import asyncio
import pytest

from petwash.app.schemas.realtime import WalkEvent
from petwash.app.tracking import events
from petwash.app.tracking.errors import WalkNotFound
from petwash.app.tracking.events import EventBus
from petwash.app.tracking.map_state import MapAdapter
from petwash.app.tracking.notifications import (
    EmergencyNotifier, LoggingNotificationCenter, NotificationPermission
)
from petwash.app.tracking.tracker import LiveWalkTracker, build_tracker
from petwash.app.tracking.transport import RealtimeTransport
from fakes import FakeConnector, make_snapshot, gps_event, settle


class FakeStatusClient:
    """Returns queued results in order, repeating the last one."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = 0
        self.gate = None

    async def fetch_status(self, walk_id):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        result = self.results[0] if len(self.results) == 1 else self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def make_tracker(status_client, connector=None, permission=NotificationPermission.GRANTED, map_adapter=None):
    bus = EventBus()
    published = []
    for topic in (events.VIEW_UPDATED, events.WALK_NOT_FOUND, events.LIVE_CHANGED, events.EMERGENCY):
        bus.subscribe(topic, lambda payload, topic=topic: published.append((topic, payload)))
    center = LoggingNotificationCenter(permission=permission)
    tracker = LiveWalkTracker(
        walk_id=1,
        user_id=5,
        status_client=status_client,
        transport=RealtimeTransport("ws://walks.test/realtime", connector=connector or FakeConnector()),
        notifier=EmergencyNotifier(center),
        bus=bus,
        map_adapter=map_adapter or MapAdapter(),
        poll_interval_seconds=60,
    )
    return tracker, published, center


def topics(published):
    return [topic for topic, _ in published]


HISTORY = [(32.0853, 34.7818), (32.0860, 34.7825)]


@pytest.mark.asyncio
async def test_mount_fetches_connects_and_polls():
    connector = FakeConnector()
    tracker, published, center = make_tracker(
        FakeStatusClient(make_snapshot(history=HISTORY)), connector,
        permission=NotificationPermission.DEFAULT,
    )
    await tracker.mount()

    assert center.prompts == 1
    assert tracker.view.render().section == "active"
    assert tracker.map.path == HISTORY
    assert connector.socket.sent == [{"type": "subscribe", "channel": "walk:1", "userId": 5}]
    assert tracker.poller.running
    assert topics(published) == [events.VIEW_UPDATED, events.LIVE_CHANGED]

    await tracker.unmount()
    assert not tracker.mounted
    assert not tracker.poller.running
    assert connector.socket.sent[-1] == {"type": "unsubscribe", "channel": "walk:1"}
    assert connector.socket.closed
    assert tracker.map.renderer is None


@pytest.mark.asyncio
async def test_unknown_walk_shows_not_found_and_stays_offline():
    connector = FakeConnector()
    tracker, published, _ = make_tracker(FakeStatusClient(WalkNotFound(1)), connector)
    await tracker.mount()

    assert topics(published) == [events.WALK_NOT_FOUND]
    assert published[0][1].not_found
    assert connector.urls == []
    assert not tracker.poller.running
    await tracker.unmount()


@pytest.mark.asyncio
async def test_gps_push_moves_map_and_triggers_refetch():
    connector = FakeConnector()
    status = FakeStatusClient(make_snapshot(history=HISTORY))
    tracker, _, _ = make_tracker(status, connector)
    await tracker.mount()
    assert status.calls == 1

    status.results = [make_snapshot(history=HISTORY + [(32.0870, 34.7830)])]
    connector.socket.push(gps_event(1, 32.0870, 34.7830).model_dump(mode="json", by_alias=True))
    await settle()

    assert status.calls == 2
    assert tracker.map.marker == (32.0870, 34.7830)
    assert tracker.map.path == HISTORY + [(32.0870, 34.7830)]
    assert len(tracker.view.snapshot.route_history) == 3
    await tracker.unmount()


@pytest.mark.asyncio
async def test_map_failure_leaves_rest_of_view_working():
    def factory():
        raise RuntimeError("map container missing")

    connector = FakeConnector()
    tracker, published, _ = make_tracker(
        FakeStatusClient(make_snapshot(history=HISTORY)), connector, map_adapter=MapAdapter(factory)
    )
    await tracker.mount()

    assert tracker.map.state == "error"
    assert tracker.view.render().section == "active"
    assert topics(published) == [events.VIEW_UPDATED, events.LIVE_CHANGED]
    assert tracker.poller.running
    assert connector.socket.sent[0]["type"] == "subscribe"
    await tracker.unmount()


@pytest.mark.asyncio
async def test_emergency_with_permission_granted_notifies():
    connector = FakeConnector()
    alert = {"id": 4, "timestamp": "2026-05-01T09:20:00Z", "message": "Lost leash", "resolved": False}
    status = FakeStatusClient(make_snapshot())
    tracker, published, center = make_tracker(status, connector)
    await tracker.mount()

    status.results = [make_snapshot(emergencyAlerts=[alert])]
    event = WalkEvent(type="emergency_alert", walk_id=1, message="Lost leash")
    connector.socket.push(event.model_dump(mode="json", by_alias=True))
    await settle()

    assert center.shown[0]["body"] == "Lost leash"
    assert events.EMERGENCY in topics(published)
    assert [a.message for a in tracker.view.render().active_alerts] == ["Lost leash"]
    await tracker.unmount()


@pytest.mark.asyncio
async def test_emergency_with_permission_denied_only_shows_banner():
    connector = FakeConnector()
    alert = {"id": 4, "timestamp": "2026-05-01T09:20:00Z", "message": "Lost leash", "resolved": False}
    status = FakeStatusClient(make_snapshot())
    tracker, _, center = make_tracker(status, connector, permission=NotificationPermission.DENIED)
    await tracker.mount()

    status.results = [make_snapshot(emergencyAlerts=[alert])]
    connector.socket.push({"type": "emergency_alert", "walkId": 1, "message": "Lost leash"})
    await settle()

    assert center.shown == []
    assert center.prompts == 0
    assert len(tracker.view.render().active_alerts) == 1
    await tracker.unmount()


@pytest.mark.asyncio
async def test_transport_failure_falls_back_to_polling():
    status = FakeStatusClient(make_snapshot())
    tracker, published, _ = make_tracker(status, FakeConnector(error=OSError("refused")))
    await tracker.mount()

    assert not tracker.view.live
    assert tracker.poller.running
    assert events.LIVE_CHANGED not in topics(published)

    status.results = [make_snapshot(duration=3)]
    await tracker.poller.tick()
    assert tracker.view.render().duration_text == "3m"
    await tracker.unmount()


@pytest.mark.asyncio
async def test_repeated_snapshot_publishes_once():
    status = FakeStatusClient(make_snapshot(history=HISTORY))
    tracker, published, _ = make_tracker(status)
    await tracker.mount()
    await tracker.poller.tick()
    await tracker.poller.tick()

    assert topics(published).count(events.VIEW_UPDATED) == 1
    assert tracker.map.path == HISTORY
    await tracker.unmount()


@pytest.mark.asyncio
async def test_late_response_after_unmount_is_dropped():
    status = FakeStatusClient(make_snapshot())
    tracker, published, _ = make_tracker(status)
    await tracker.mount()
    published.clear()

    status.gate = asyncio.Event()
    status.results = [make_snapshot(status="completed", duration=45, distance=3200)]
    pending = asyncio.create_task(tracker.refresh())
    await settle()

    await tracker.unmount()
    status.gate.set()
    await pending

    assert published == []
    assert tracker.view.snapshot.status.value == "active"


@pytest.mark.asyncio
async def test_unmount_while_initial_fetch_pending():
    status = FakeStatusClient(make_snapshot())
    status.gate = asyncio.Event()
    connector = FakeConnector()
    tracker, published, _ = make_tracker(status, connector)

    mounting = asyncio.create_task(tracker.mount())
    await settle()
    await tracker.unmount()
    status.gate.set()
    await mounting

    assert published == []
    assert connector.urls == []
    assert not tracker.poller.running


@pytest.mark.asyncio
async def test_navigate_back_tears_down():
    connector = FakeConnector()
    tracker, _, _ = make_tracker(FakeStatusClient(make_snapshot()), connector)
    await tracker.mount()
    await tracker.navigate_back()

    assert tracker.view.back_requested
    assert not tracker.mounted
    assert connector.socket.closed


def test_build_tracker_wires_settings():
    from petwash.app.core.config import TrackerSettings

    settings = TrackerSettings(base_url="https://petwash.test", poll_interval_seconds=7)
    tracker = build_tracker(
        walk_id=3, user_id=9, token="t", bus=EventBus(),
        notification_center=LoggingNotificationCenter(), settings=settings,
    )
    assert tracker.transport.url == "wss://petwash.test/realtime"
    assert tracker.poller.interval_seconds == 7
    assert tracker.map.padding == (50, 50)
