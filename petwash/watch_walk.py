"""
Follow a walk from the terminal.

Logs in, mounts a live tracker for the given walk and prints each view
update until interrupted.

Usage:
    python -m petwash.watch_walk <walk_id> <username> <password>
"""

import asyncio
import logging
import sys

import httpx

from petwash.app.core.config import tracker_settings
from petwash.app.tracking import events
from petwash.app.tracking.events import EventBus
from petwash.app.tracking.notifications import LoggingNotificationCenter
from petwash.app.tracking.tracker import build_tracker


def print_view(view):
    if view.not_found:
        print("❌ Walk not found")
        return
    line = f"[{view.status.value}] {view.duration_text} / {view.distance_text}"
    if view.snapshot.current_location:
        loc = view.snapshot.current_location
        line += f" @ {loc.lat:.5f},{loc.lon:.5f}"
    for alert in view.active_alerts:
        line += f"\n  🚨 {alert.message}"
    print(line)


async def watch(walk_id: int, username: str, password: str):
    async with httpx.AsyncClient(base_url=tracker_settings.base_url) as http:
        response = await http.post("/api/auth/login", json={"username": username, "password": password})
        response.raise_for_status()
        login = response.json()

    bus = EventBus()
    done = asyncio.Event()
    bus.subscribe(events.VIEW_UPDATED, print_view)
    bus.subscribe(events.WALK_NOT_FOUND, lambda view: (print_view(view), done.set()))
    bus.subscribe(events.LIVE_CHANGED, lambda live: print("🟢 live" if live else "⚪ polling only"))

    tracker = build_tracker(
        walk_id, login["user_id"], login["access_token"], bus, LoggingNotificationCenter()
    )
    await tracker.mount()
    try:
        await done.wait()
    finally:
        await tracker.unmount()
        await tracker.status_client.aclose()


if __name__ == "__main__":
    if len(sys.argv) != 4:
        print(__doc__)
        sys.exit(1)
    logging.basicConfig(level=logging.INFO)
    try:
        asyncio.run(watch(int(sys.argv[1]), sys.argv[2], sys.argv[3]))
    except KeyboardInterrupt:
        pass
