"""
Live walk tracker.

Wires the realtime transport, the polling fallback, the map adapter, the
view state and the emergency notifier for one mounted tracking view, and
publishes view updates on the application's EventBus.

Three sources feed the view: the initial fetch, poll ticks and
push-triggered refetches. They share one event loop, and the newest
response to arrive wins.
"""

import logging
from typing import Callable, Optional

from petwash.app.core.config import TrackerSettings, tracker_settings
from petwash.app.schemas.realtime import WalkEvent
from petwash.app.schemas.walk import WalkSnapshot
from petwash.app.tracking import events
from petwash.app.tracking.errors import WalkNotFound
from petwash.app.tracking.events import EventBus
from petwash.app.tracking.map_state import MapAdapter, MapRenderer, GeoJSONRenderer
from petwash.app.tracking.notifications import EmergencyNotifier, NotificationCenter
from petwash.app.tracking.poller import (
    PollingFallback, WalkStatusClient, POLL_ERRORS, build_http_client
)
from petwash.app.tracking.transport import RealtimeTransport
from petwash.app.tracking.view_state import WalkViewState

logger = logging.getLogger("petwash.tracking")


class LiveWalkTracker:

    def __init__(
        self,
        walk_id,
        user_id,
        status_client: WalkStatusClient,
        transport: RealtimeTransport,
        notifier: EmergencyNotifier,
        bus: EventBus,
        map_adapter: MapAdapter = None,
        poll_interval_seconds: float = None
    ):
        self.walk_id = walk_id
        self.user_id = user_id
        self.status_client = status_client
        self.transport = transport
        self.notifier = notifier
        self.bus = bus
        self.map = map_adapter or MapAdapter()
        self.view = WalkViewState(walk_id)
        self.poller = PollingFallback(
            self._fetch,
            self._on_snapshot,
            tracker_settings.poll_interval_seconds if poll_interval_seconds is None else poll_interval_seconds,
        )
        self.mounted = False
        self._remove_handler: Optional[Callable[[], None]] = None
        self.transport.on_live_change(self._on_live_change)

    # --- lifecycle ---

    async def mount(self):
        """
        Start tracking: permission prompt, initial fetch, live channel, poll timer.

        A walk that does not exist stops here with the not-found view.
        """
        if self.mounted:
            return
        self.mounted = True
        logger.info("Tracking walk %s", self.walk_id, extra={"walk_id": self.walk_id, "user_id": self.user_id})

        await self.notifier.on_mount()
        await self.refresh()
        if not self.mounted or self.view.not_found:
            return

        self._remove_handler = self.transport.on_message(self._on_push)
        await self.transport.connect(self.walk_id, self.user_id)
        if not self.mounted:
            # Unmounted while connecting
            await self.transport.close()
            return
        self.poller.start()

    async def unmount(self):
        """
        Stop tracking. The poll timer is cleared before anything is awaited;
        responses still in flight are dropped when they land.
        """
        if not self.mounted:
            return
        self.mounted = False
        self.poller.stop()
        if self._remove_handler is not None:
            self._remove_handler()
            self._remove_handler = None
        try:
            await self.transport.close()
        finally:
            self.map.destroy()
        logger.info("Stopped tracking walk %s", self.walk_id, extra={"walk_id": self.walk_id})

    async def navigate_back(self):
        self.view.navigate_back()
        await self.unmount()

    # --- inputs ---

    async def _fetch(self) -> WalkSnapshot:
        return await self.status_client.fetch_status(self.walk_id)

    async def refresh(self):
        """Fetch the snapshot now (initial load and push-triggered refetch)."""
        try:
            snapshot = await self._fetch()
        except WalkNotFound:
            if not self.mounted:
                return
            logger.warning("Walk %s not found", self.walk_id, extra={"walk_id": self.walk_id})
            if self.view.mark_not_found():
                self.bus.publish(events.WALK_NOT_FOUND, self.view.render())
            return
        except POLL_ERRORS as e:
            logger.warning("Walk %s refetch failed: %s", self.walk_id, e)
            return
        self._on_snapshot(snapshot)

    def _on_snapshot(self, snapshot: WalkSnapshot):
        if not self.mounted:
            logger.debug("Dropping late snapshot for walk %s", self.walk_id)
            return
        changed = self.view.apply_snapshot(snapshot)
        if str(snapshot.id) == str(self.walk_id):
            self.map.load(snapshot)
        if changed:
            self.bus.publish(events.VIEW_UPDATED, self.view.render())

    async def _on_push(self, event: WalkEvent):
        if not self.mounted or not self.view.apply_push(event):
            return
        if event.type == "gps_update":
            self.map.apply_gps(event)
        elif event.type == "emergency_alert":
            self.notifier.on_event(event)
            self.bus.publish(events.EMERGENCY, event)
        await self.refresh()

    def _on_live_change(self, live: bool):
        if not self.mounted:
            return
        if self.view.set_live(live):
            self.bus.publish(events.LIVE_CHANGED, live)


def build_tracker(
    walk_id,
    user_id,
    token: str,
    bus: EventBus,
    notification_center: NotificationCenter,
    renderer_factory: Callable[[], MapRenderer] = GeoJSONRenderer,
    settings: TrackerSettings = None
) -> LiveWalkTracker:
    """Tracker wired to the walk service configured in TrackerSettings."""
    settings = settings or tracker_settings
    return LiveWalkTracker(
        walk_id=walk_id,
        user_id=user_id,
        status_client=WalkStatusClient(build_http_client(token, settings), settings),
        transport=RealtimeTransport(settings.realtime_url),
        notifier=EmergencyNotifier(notification_center, settings),
        bus=bus,
        map_adapter=MapAdapter(renderer_factory, settings.map_fit_padding, settings.map_default_zoom),
        poll_interval_seconds=settings.poll_interval_seconds,
    )
