"""
Process-scoped service container.

One Hub is built at startup (FastAPI lifespan) and torn down at shutdown. It
owns the presence registry and wires every core service to the same store and
registry; tests build a fresh Hub per test instead of sharing globals.
"""

import logging
from typing import Optional

from fastapi import WebSocket

from huddle.config import Settings, settings as default_settings
from huddle.gateway.connection import Connection
from huddle.gateway.session import SessionGateway
from huddle.services.conversation_service import ConversationManager
from huddle.services.presence import PresenceRegistry
from huddle.services.redis_service import SessionTracker
from huddle.services.relationship_service import RelationshipManager
from huddle.services.signaling import SignalingRelay
from huddle.services.user_service import UserService
from huddle.store import Store, create_store

logger = logging.getLogger(__name__)


class Hub:
    """Store, presence and the services built on them."""

    def __init__(
        self,
        store: Store,
        config: Optional[Settings] = None,
        sessions: Optional[SessionTracker] = None,
    ):
        self.settings = config or default_settings
        self.store = store
        self.presence = PresenceRegistry()
        self.relationships = RelationshipManager(store, self.presence)
        self.conversations = ConversationManager(store, self.presence)
        self.signaling = SignalingRelay(self.presence)
        self.users = UserService(store, self.settings)
        self.sessions = sessions or SessionTracker(self.settings.session_ttl_seconds)

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "Hub":
        config = config or default_settings
        return cls(create_store(config), config)

    async def start(self) -> None:
        await self.store.open()
        logger.info(f"Hub started with {type(self.store).__name__}")

    async def stop(self) -> None:
        await self.store.close()
        logger.info("Hub stopped")

    def open_session(self, websocket: WebSocket) -> SessionGateway:
        return SessionGateway(self, Connection(websocket))
