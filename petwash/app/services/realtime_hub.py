"""
Realtime hub behind the /realtime WebSocket.

Tracks connected clients and their topic subscriptions, applies the
per-client limits, and fans walk events out to the subscribers of
`walk:{id}`. One hub instance lives on the application state and is handed
to endpoints through a dependency.
"""

import json
import logging
import time
import uuid
from datetime import datetime
from typing import Callable, Dict, Optional, Set

from fastapi import Request
from starlette.websockets import WebSocket

from petwash.app.core.config import settings
from petwash.app.schemas.realtime import WalkEvent, WALK_CHANNEL_PREFIX, walk_channel

logger = logging.getLogger("petwash.realtime")

# Close code for "try again later" (connection limit reached)
WS_TRY_AGAIN_LATER = 1013


def _now_iso() -> str:
    return datetime.utcnow().isoformat()


def is_valid_channel(channel) -> bool:
    if not isinstance(channel, str) or not channel.startswith(WALK_CHANNEL_PREFIX):
        return False
    return channel[len(WALK_CHANNEL_PREFIX):].isdigit()


class RealtimeClient:
    """One connected socket and its subscriptions."""

    def __init__(self, websocket: WebSocket, ip: str, now: float):
        self.id = uuid.uuid4().hex[:12]
        self.websocket = websocket
        self.ip = ip
        self.user_id = None
        self.subscriptions: Set[str] = set()
        self.message_count = 0
        self.window_started_at = now

    async def send(self, payload: dict):
        await self.websocket.send_json(payload)


class RealtimeHub:

    def __init__(
        self,
        max_total_connections: int = None,
        max_messages_per_minute: int = None,
        max_subscriptions: int = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.max_total_connections = max_total_connections or settings.realtime_max_total_connections
        self.max_messages_per_minute = max_messages_per_minute or settings.realtime_max_messages_per_minute
        self.max_subscriptions = max_subscriptions or settings.realtime_max_subscriptions
        self._clock = clock
        self.clients: Dict[str, RealtimeClient] = {}

    # --- connection lifecycle ---

    async def connect(self, websocket: WebSocket) -> Optional[RealtimeClient]:
        """
        Accept a socket and greet it, or refuse it when the hub is full.
        """
        if len(self.clients) >= self.max_total_connections:
            logger.warning(
                "Rejected connection - max total connections (%s) reached",
                self.max_total_connections
            )
            await websocket.close(code=WS_TRY_AGAIN_LATER)
            return None

        await websocket.accept()
        ip = websocket.client.host if websocket.client else "unknown"
        client = RealtimeClient(websocket, ip, self._clock())
        self.clients[client.id] = client
        logger.info("Client %s connected from %s (%s active)", client.id, ip, len(self.clients))

        await client.send({
            "type": "welcome",
            "clientId": client.id,
            "timestamp": _now_iso(),
        })
        return client

    def disconnect(self, client: RealtimeClient):
        if self.clients.pop(client.id, None) is not None:
            logger.info("Client %s disconnected. Active clients: %s", client.id, len(self.clients))

    # --- inbound control messages ---

    def _within_rate_limit(self, client: RealtimeClient) -> bool:
        now = self._clock()
        if now - client.window_started_at >= 60:
            client.message_count = 0
            client.window_started_at = now
        client.message_count += 1
        return client.message_count <= self.max_messages_per_minute

    async def _error(self, client: RealtimeClient, message: str):
        await client.send({"type": "error", "message": message, "timestamp": _now_iso()})

    async def handle_message(self, client: RealtimeClient, raw: str):
        """Dispatch one text frame received from a client."""
        if not self._within_rate_limit(client):
            logger.warning("Client %s exceeded rate limit (%s/min)", client.id, self.max_messages_per_minute)
            await self._error(
                client,
                f"Rate limit exceeded. Max {self.max_messages_per_minute} messages per minute."
            )
            return

        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            await self._error(client, "Invalid message format")
            return
        if not isinstance(message, dict):
            await self._error(client, "Invalid message format")
            return

        msg_type = message.get("type")
        if msg_type == "subscribe":
            await self._subscribe(client, message)
        elif msg_type == "unsubscribe":
            await self._unsubscribe(client, message)
        elif msg_type == "ping":
            await client.send({"type": "pong", "timestamp": _now_iso()})
        else:
            await self._error(client, f"Unknown message type: {msg_type}")

    async def _subscribe(self, client: RealtimeClient, message: dict):
        channel = message.get("channel")
        if not is_valid_channel(channel):
            await self._error(client, f"Invalid channel: {channel}")
            return

        if channel not in client.subscriptions and len(client.subscriptions) >= self.max_subscriptions:
            await self._error(
                client,
                f"Subscription limit exceeded. Max {self.max_subscriptions} channels per client."
            )
            return

        client.subscriptions.add(channel)
        if message.get("userId") is not None:
            client.user_id = message.get("userId")
        logger.info("Client %s (user %s) subscribed to %s", client.id, client.user_id, channel)

        await client.send({
            "type": "subscribed",
            "subscriptions": sorted(client.subscriptions),
            "timestamp": _now_iso(),
        })

    async def _unsubscribe(self, client: RealtimeClient, message: dict):
        channel = message.get("channel")
        client.subscriptions.discard(channel)
        await client.send({
            "type": "unsubscribed",
            "subscriptions": sorted(client.subscriptions),
            "timestamp": _now_iso(),
        })

    # --- outbound fan-out ---

    def subscriber_count(self, channel: str) -> int:
        return sum(1 for c in self.clients.values() if channel in c.subscriptions)

    async def publish(self, channel: str, payload: dict) -> int:
        """
        Send payload to every subscriber of channel.

        Sockets that fail are dropped; delivery to the rest continues.
        Returns the number of successful deliveries.
        """
        delivered = 0
        for client in list(self.clients.values()):
            if channel not in client.subscriptions:
                continue
            try:
                await client.send(payload)
                delivered += 1
            except Exception as e:
                logger.warning("Dropping client %s after send failure: %s", client.id, e)
                self.disconnect(client)
        return delivered

    async def publish_walk_event(self, event: WalkEvent) -> int:
        payload = event.model_dump(mode="json", by_alias=True, exclude_none=True)
        return await self.publish(walk_channel(event.walk_id), payload)


def get_realtime_hub(request: Request) -> RealtimeHub:
    """FastAPI dependency returning the application's hub."""
    return request.app.state.realtime_hub
