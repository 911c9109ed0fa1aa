"""
Realtime WebSocket endpoint.

Clients connect, subscribe to `walk:{id}` channels and receive the walk
events published by the walk endpoints.
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from petwash.app.core.config import settings

logger = logging.getLogger("petwash.realtime")

router = APIRouter(tags=["Realtime"])


@router.websocket(settings.realtime_path)
async def realtime_socket(websocket: WebSocket):
    hub = websocket.app.state.realtime_hub
    client = await hub.connect(websocket)
    if client is None:
        return

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            # Binary frames carry no "text" and get the format error reply
            await hub.handle_message(client, message.get("text"))
    except WebSocketDisconnect as e:
        logger.debug("Client %s closed the socket (code %s)", client.id, e.code)
    finally:
        hub.disconnect(client)
