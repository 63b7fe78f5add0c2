"""One live WebSocket connection and its per-connection state."""

import logging
import uuid
from enum import Enum
from typing import Any, Optional

from fastapi import WebSocket, WebSocketDisconnect

from huddle.models.call import CallSession

logger = logging.getLogger(__name__)


class Connection:
    """
    Outbound handle for a single transport connection.

    ``send`` is fire-and-forget: a frame that cannot be written (peer gone
    mid-send, socket already closed) is logged and dropped, never raised.
    """

    def __init__(self, websocket: WebSocket, connection_id: Optional[str] = None):
        self.websocket = websocket
        self.id = connection_id or uuid.uuid4().hex
        self.user_id: Optional[str] = None
        # None while idle
        self.call: Optional[CallSession] = None
        self.closed = False

    async def send(self, event: Any, data: Any = None) -> bool:
        name = event.value if isinstance(event, Enum) else event
        if self.closed:
            return False

        try:
            await self.websocket.send_json({"event": name, "data": data})
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.debug(f"Dropped {name} for connection {self.id}: {e}")
            self.closed = True
            return False
        return True

    def __repr__(self) -> str:
        return f"<Connection {self.id} user={self.user_id}>"
