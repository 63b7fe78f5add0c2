"""Huddle Models Package"""

from huddle.models.user import User, UserPublic, UserCreate, UsernameUpdate
from huddle.models.message import Message, Conversation
from huddle.models.friend import FriendInfo, FriendRequestInfo, PresenceStatus
from huddle.models.call import CallSession, CallType, CallDirection, CallState
from huddle.models.events import OutboundEvent

__all__ = [
    "User", "UserPublic", "UserCreate", "UsernameUpdate",
    "Message", "Conversation",
    "FriendInfo", "FriendRequestInfo", "PresenceStatus",
    "CallSession", "CallType", "CallDirection", "CallState",
    "OutboundEvent",
]
