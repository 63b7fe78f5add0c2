"""
WebSocket Router

The real-time channel. Frames are JSON objects ``{"event": ..., "data": ...}``
in both directions; each connection gets its own SessionGateway.
"""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from huddle.gateway.dispatch import dispatch
from huddle.runtime import Hub

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for chat, presence and call signaling.

    Connect with: ws://host/ws, then send
    ``{"event": "authenticate", "data": "<user id>"}``. Until then every
    event except ``ping`` is ignored.
    """
    hub: Hub = websocket.app.state.hub
    await websocket.accept()

    gateway = hub.open_session(websocket)
    logger.debug(f"Connection opened: {gateway.connection.id}")

    try:
        while True:
            data = await websocket.receive_text()

            try:
                frame = json.loads(data)
            except json.JSONDecodeError:
                logger.debug(f"Non-JSON frame on {gateway.connection.id} ignored")
                continue

            if not isinstance(frame, dict):
                continue

            await dispatch(gateway, frame.get("event"), frame.get("data"))

    except WebSocketDisconnect:
        logger.debug(f"Connection closed: {gateway.connection.id}")
    finally:
        await gateway.disconnect()
