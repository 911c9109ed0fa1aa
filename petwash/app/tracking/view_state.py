"""
Walk view state.

Folds the initial fetch, poll ticks, pushed events and navigation into the
one view model the tracking screen renders. Snapshots replace the model
wholesale; pushed events only ask for a refetch.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel

from petwash.app.models.enums import WalkStatus
from petwash.app.schemas.realtime import WalkEvent
from petwash.app.schemas.walk import WalkSnapshot, EmergencyAlertInfo

logger = logging.getLogger("petwash.tracking.view")

SECTION_BY_STATUS = {
    WalkStatus.PENDING: "request",
    WalkStatus.ACTIVE: "active",
    WalkStatus.COMPLETED: "completed",
    WalkStatus.CANCELLED: "completed",
}


def format_duration(minutes) -> str:
    """45 -> "45m", 65 -> "1h 5m"."""
    hours, mins = divmod(int(minutes or 0), 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def format_distance(meters) -> str:
    """3200 -> "3.20 km"."""
    return f"{(meters or 0) / 1000:.2f} km"


class WalkView(BaseModel):
    """What the tracking screen draws."""
    walk_id: int
    loading: bool
    not_found: bool
    live: bool
    section: Optional[str] = None
    status: Optional[WalkStatus] = None
    duration_text: Optional[str] = None
    distance_text: Optional[str] = None
    active_alerts: List[EmergencyAlertInfo] = []
    show_live_controls: bool = False
    show_completed_summary: bool = False
    snapshot: Optional[WalkSnapshot] = None


class WalkViewState:

    def __init__(self, walk_id):
        self.walk_id = walk_id
        self.snapshot: Optional[WalkSnapshot] = None
        self.loading = True
        self.not_found = False
        self.live = False
        self.back_requested = False

    def apply_snapshot(self, snapshot: WalkSnapshot) -> bool:
        """
        Replace the baseline with a fetched snapshot.

        Returns False when nothing changed so the view is not redrawn.
        """
        if str(snapshot.id) != str(self.walk_id):
            logger.warning("Ignoring snapshot for walk %s in view of walk %s", snapshot.id, self.walk_id)
            return False
        if not self.loading and self.snapshot == snapshot:
            return False
        self.snapshot = snapshot
        self.loading = False
        self.not_found = False
        return True

    def mark_not_found(self) -> bool:
        changed = not self.not_found or self.loading
        self.not_found = True
        self.loading = False
        self.snapshot = None
        return changed

    def apply_push(self, event: WalkEvent) -> bool:
        """Whether a pushed event should trigger a refetch."""
        return str(event.walk_id) == str(self.walk_id) and not self.not_found

    def set_live(self, live: bool) -> bool:
        changed = live != self.live
        self.live = live
        return changed

    def navigate_back(self):
        self.back_requested = True

    # --- derived ---

    @property
    def section(self) -> Optional[str]:
        if self.snapshot is None:
            return None
        return SECTION_BY_STATUS[self.snapshot.status]

    @property
    def active_alerts(self) -> List[EmergencyAlertInfo]:
        if self.snapshot is None:
            return []
        return [a for a in self.snapshot.emergency_alerts if not a.resolved]

    def render(self) -> WalkView:
        snapshot = self.snapshot
        if snapshot is None:
            return WalkView(
                walk_id=self.walk_id,
                loading=self.loading,
                not_found=self.not_found,
                live=self.live,
            )
        section = self.section
        return WalkView(
            walk_id=self.walk_id,
            loading=False,
            not_found=False,
            live=self.live,
            section=section,
            status=snapshot.status,
            duration_text=format_duration(snapshot.duration),
            distance_text=format_distance(snapshot.distance),
            active_alerts=self.active_alerts,
            show_live_controls=section == "active",
            show_completed_summary=section == "completed",
            snapshot=snapshot,
        )
