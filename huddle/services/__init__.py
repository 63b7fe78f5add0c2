"""Huddle Services Package"""

from huddle.services.presence import PresenceRegistry
from huddle.services.relationship_service import RelationshipManager
from huddle.services.conversation_service import ConversationManager
from huddle.services.signaling import SignalingRelay
from huddle.services.user_service import UserService
from huddle.services.redis_service import RedisKeys, SessionTracker

__all__ = [
    "PresenceRegistry",
    "RelationshipManager",
    "ConversationManager",
    "SignalingRelay",
    "UserService",
    "RedisKeys",
    "SessionTracker",
]
