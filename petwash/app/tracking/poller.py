"""
Walk snapshot fetching and the fixed-interval polling fallback.

Polling runs whether or not the realtime channel is live, so a view is
never more than one interval stale.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

import httpx

from petwash.app.core.config import TrackerSettings, tracker_settings
from petwash.app.schemas.walk import WalkSnapshot
from petwash.app.tracking.errors import TrackingError, WalkNotFound

logger = logging.getLogger("petwash.tracking.poller")

# Failures a poll tick absorbs; the next tick retries
POLL_ERRORS = (httpx.HTTPError, TrackingError, ValueError)


def build_http_client(token: str = None, settings: TrackerSettings = None, **kwargs) -> httpx.AsyncClient:
    """AsyncClient bound to the walk service, with bearer auth when given a token."""
    settings = settings or tracker_settings
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(base_url=settings.base_url, headers=headers, **kwargs)


class WalkStatusClient:

    def __init__(self, http_client: httpx.AsyncClient, settings: TrackerSettings = None):
        self._http = http_client
        self._settings = settings or tracker_settings

    async def fetch_status(self, walk_id) -> WalkSnapshot:
        """
        Read the full walk snapshot.

        Raises:
            WalkNotFound: the service answered 404
            httpx.HTTPError: any other transport or status failure
        """
        path = self._settings.walk_resource_path.format(walk_id=walk_id)
        response = await self._http.get(path)
        if response.status_code == 404:
            raise WalkNotFound(walk_id)
        response.raise_for_status()
        return WalkSnapshot.model_validate(response.json())

    async def aclose(self):
        await self._http.aclose()


class PollingFallback:
    """
    Calls fetch every interval and hands each snapshot to on_result.

    Failed ticks are logged and skipped; nothing is surfaced to the view.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[WalkSnapshot]],
        on_result: Callable[[WalkSnapshot], None],
        interval_seconds: float = None
    ):
        self._fetch = fetch
        self._on_result = on_result
        self.interval_seconds = (
            tracker_settings.poll_interval_seconds if interval_seconds is None else interval_seconds
        )
        self._task: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    def stop(self):
        """Clear the timer. An in-flight fetch is left to finish on its own."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            # Ticks run on their own so stop() never aborts a pending fetch
            tick = asyncio.create_task(self.tick())
            self._in_flight.add(tick)
            tick.add_done_callback(self._tick_done)

    def _tick_done(self, tick: asyncio.Task):
        self._in_flight.discard(tick)
        if tick.cancelled():
            return
        error = tick.exception()
        if error is not None:
            logger.error("Poll tick crashed", exc_info=error)

    async def tick(self) -> Optional[WalkSnapshot]:
        try:
            snapshot = await self._fetch()
        except POLL_ERRORS as e:
            self.failures += 1
            logger.warning("Poll tick failed: %s", e)
            return None
        self._on_result(snapshot)
        return snapshot
