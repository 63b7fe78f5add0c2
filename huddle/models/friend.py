"""Friend models - list views pushed to clients."""

from typing import Optional

from huddle.models.base import CamelModel


class FriendInfo(CamelModel):
    """Friend entry in ``friends-list``."""
    id: str
    email: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    conversation_id: str


class FriendRequestInfo(CamelModel):
    """Pending request entry in ``requests-list`` and ``new-request``."""
    id: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None


class PresenceStatus(CamelModel):
    """Online flag for one user."""
    user_id: str
    is_online: bool
