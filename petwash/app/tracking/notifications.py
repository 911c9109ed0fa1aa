"""
Emergency notification side-channel.

Raises a system notification for pushed emergency alerts when the user
has granted permission. Permission is asked for at most once.
"""

import enum
import logging
from abc import ABC, abstractmethod
from typing import List

from petwash.app.core.config import TrackerSettings, tracker_settings
from petwash.app.schemas.realtime import WalkEvent

logger = logging.getLogger("petwash.tracking.notifications")


class NotificationPermission(str, enum.Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class NotificationCenter(ABC):
    """System notification surface (browser, desktop, push gateway)."""

    permission: NotificationPermission = NotificationPermission.DEFAULT

    @abstractmethod
    async def request_permission(self) -> NotificationPermission:
        ...

    @abstractmethod
    def show(self, title: str, body: str, icon: str):
        ...


class LoggingNotificationCenter(NotificationCenter):
    """
    Notification center that writes notifications to the log.

    `answer` is what the user replies when asked for permission.
    """

    def __init__(
        self,
        permission: NotificationPermission = NotificationPermission.DEFAULT,
        answer: NotificationPermission = NotificationPermission.GRANTED
    ):
        self.permission = permission
        self.answer = answer
        self.prompts = 0
        self.shown: List[dict] = []

    async def request_permission(self) -> NotificationPermission:
        self.prompts += 1
        self.permission = self.answer
        return self.permission

    def show(self, title, body, icon):
        notification = {"title": title, "body": body, "icon": icon}
        self.shown.append(notification)
        logger.warning("%s: %s", title, body, extra={"icon": icon})


class EmergencyNotifier:

    def __init__(self, center: NotificationCenter, settings: TrackerSettings = None):
        self.center = center
        self.settings = settings or tracker_settings
        self._requested = False

    async def on_mount(self):
        """Ask for permission once, and only while undecided."""
        if self._requested or self.center.permission != NotificationPermission.DEFAULT:
            return
        self._requested = True
        try:
            result = await self.center.request_permission()
        except Exception:
            logger.exception("Notification permission request failed")
            return
        logger.info("Notification permission: %s", getattr(result, "value", result))

    def on_event(self, event: WalkEvent) -> bool:
        """Raise a notification for an emergency alert. Returns whether one was shown."""
        if event.type != "emergency_alert":
            return False
        if self.center.permission != NotificationPermission.GRANTED:
            return False
        self.center.show(
            title=self.settings.notification_title,
            body=event.message or self.settings.notification_fallback_body,
            icon=self.settings.notification_icon,
        )
        return True
