"""
Realtime transport for one tracked walk.

Opens the `/realtime` WebSocket, subscribes to `walk:{id}` and hands each
decoded walk event to the registered handlers. There is no reconnect: when
the socket drops, `live` goes False and polling carries the view until it
is mounted again.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Callable, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException
from pydantic import ValidationError

from petwash.app.core.config import tracker_settings
from petwash.app.schemas.realtime import (
    WalkEvent, SubscribeMessage, UnsubscribeMessage, walk_channel
)
from petwash.app.tracking.errors import TransportError

logger = logging.getLogger("petwash.tracking.transport")

MessageHandler = Callable[[WalkEvent], Any]


def decode_message(raw, walk_id) -> Optional[WalkEvent]:
    """
    Decode one server frame into a WalkEvent for walk_id.

    Control replies (welcome, subscribed, pong, error), unknown kinds and
    events for other walks return None.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug("Ignoring undecodable frame")
        return None
    if not isinstance(data, dict):
        return None

    if data.get("type") == "error":
        logger.warning("Realtime server error: %s", data.get("message"))
        return None

    try:
        event = WalkEvent.model_validate(data)
    except ValidationError:
        return None

    if str(event.walk_id) != str(walk_id):
        return None
    return event


class RealtimeTransport:
    """
    One live connection per mounted tracking view.
    """

    def __init__(self, url: str = None, connector=None):
        self.url = url or tracker_settings.realtime_url
        self._connector = connector or websockets.connect
        self._ws = None
        self._listener: Optional[asyncio.Task] = None
        self._handlers: List[MessageHandler] = []
        self._live_handlers: List[Callable[[bool], None]] = []
        self.walk_id = None
        self.user_id = None
        self.live = False

    # --- subscriptions ---

    def on_message(self, handler: MessageHandler) -> Callable[[], None]:
        """Register a handler for walk events. Returns its remover."""
        self._handlers.append(handler)

        def remove():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return remove

    def on_live_change(self, handler: Callable[[bool], None]):
        self._live_handlers.append(handler)

    def _set_live(self, live: bool):
        if live == self.live:
            return
        self.live = live
        for handler in list(self._live_handlers):
            try:
                handler(live)
            except Exception:
                logger.exception("Live status handler failed")

    # --- connection ---

    async def connect(self, walk_id, user_id=None) -> bool:
        """
        Open the channel and subscribe to the walk's topic.

        Connection failures are logged and leave `live` False; they never
        propagate to the view. Returns whether the channel is live.
        """
        if self._ws is not None:
            raise TransportError("Transport is already connected")

        self.walk_id = walk_id
        self.user_id = user_id
        ws = None
        try:
            ws = await self._connector(self.url)
            subscribe = SubscribeMessage(channel=walk_channel(walk_id), user_id=user_id)
            await ws.send(subscribe.model_dump_json(by_alias=True))
        except (OSError, WebSocketException, asyncio.TimeoutError) as e:
            logger.warning(
                "Realtime connection to %s failed, relying on polling: %s",
                self.url, e, extra={"walk_id": walk_id}
            )
            if ws is not None:
                await self._close_quietly(ws)
            self._set_live(False)
            return False

        self._ws = ws
        self._set_live(True)
        self._listener = asyncio.create_task(self._listen(ws))
        logger.info("Subscribed to %s", walk_channel(walk_id), extra={"walk_id": walk_id})
        return True

    async def _listen(self, ws):
        try:
            async for raw in ws:
                event = decode_message(raw, self.walk_id)
                if event is None:
                    continue
                await self._dispatch(event)
        except ConnectionClosed as e:
            logger.warning("Realtime channel closed: %s", e, extra={"walk_id": self.walk_id})
        except (OSError, WebSocketException) as e:
            logger.warning("Realtime channel failed: %s", e, extra={"walk_id": self.walk_id})
        finally:
            self._set_live(False)

    async def _dispatch(self, event: WalkEvent):
        for handler in list(self._handlers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler for %s failed", event.type)

    # --- teardown ---

    async def close(self):
        """
        Unsubscribe (best-effort) and close the channel.

        Safe to call on any exit path, including when connect failed or
        close already ran.
        """
        ws, self._ws = self._ws, None
        listener, self._listener = self._listener, None
        self._set_live(False)

        if ws is not None:
            try:
                unsubscribe = UnsubscribeMessage(channel=walk_channel(self.walk_id))
                await ws.send(unsubscribe.model_dump_json())
            except (OSError, WebSocketException) as e:
                logger.debug("Unsubscribe not delivered: %s", e)
            await self._close_quietly(ws)

        if listener is not None and listener is not asyncio.current_task():
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                pass

    @staticmethod
    async def _close_quietly(ws):
        try:
            await ws.close()
        except (OSError, WebSocketException) as e:
            logger.debug("Error while closing realtime socket: %s", e)
