"""
Persistent Store Interface

Every method is one atomic logical operation: it either fully persists or
raises ``StoreError`` without changing what readers observe. Callers await the
operation before sending any notification about it.
"""

import abc
from typing import Dict, Iterable, List, Optional

from huddle.models.message import Conversation, Message
from huddle.models.user import User

CONVERSATION_ID_SEPARATOR = "_"


def conversation_id_for(user_a: str, user_b: str) -> str:
    """Deterministic id for the pair; both peers compute it without a lookup."""
    return CONVERSATION_ID_SEPARATOR.join(sorted([user_a, user_b]))


class Store(abc.ABC):
    """Users, friendships, pending requests and conversations."""

    async def open(self) -> None:
        """Acquire connections / load data. Called once at process start."""

    async def close(self) -> None:
        """Release resources. Called once at process stop."""

    # =========================================================================
    # Users
    # =========================================================================

    @abc.abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abc.abstractmethod
    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, User]:
        """Look up several users at once; unknown ids are left out."""

    @abc.abstractmethod
    async def find_user_by_username(self, username: str) -> Optional[User]:
        """Case-insensitive exact match on the username."""

    @abc.abstractmethod
    async def find_user_by_email(self, email: str) -> Optional[User]:
        """Case-insensitive exact match on the email."""

    @abc.abstractmethod
    async def create_user(self, user: User) -> User:
        ...

    @abc.abstractmethod
    async def update_user(self, user_id: str, fields: dict) -> Optional[User]:
        """Set the given model fields (snake_case names) and return the result."""

    # =========================================================================
    # Relationships
    # =========================================================================

    @abc.abstractmethod
    async def friends_of(self, user_id: str) -> Dict[str, str]:
        """friend_id -> conversation_id for every friendship edge of ``user_id``."""

    @abc.abstractmethod
    async def pending_for(self, target_id: str) -> List[str]:
        """Sender ids of pending requests addressed to ``target_id``."""

    @abc.abstractmethod
    async def add_pending(self, target_id: str, sender_id: str) -> None:
        """Record a pending request. Re-sending overwrites, never duplicates."""

    @abc.abstractmethod
    async def accept_friendship(
        self, target_id: str, sender_id: str, conversation_id: str
    ) -> bool:
        """
        Convert the pending edge sender -> target into a friendship.

        Writes both friendship edges pointing at ``conversation_id``, creates
        the empty conversation if absent and deletes the pending edge, along
        with target -> sender if both users asked. Returns False without
        writing anything if no such pending edge exists.
        """

    @abc.abstractmethod
    async def dissolve_friendship(
        self, user_a: str, user_b: str, conversation_id: str
    ) -> None:
        """Remove both edges (either may already be gone) and the conversation."""

    # =========================================================================
    # Conversations
    # =========================================================================

    @abc.abstractmethod
    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        ...

    @abc.abstractmethod
    async def append_message(self, conversation_id: str, message: Message) -> bool:
        """Append to the log. False if the conversation does not exist."""

    @abc.abstractmethod
    async def mark_read(self, conversation_id: str, reader_id: str) -> bool:
        """
        Add ``reader_id`` to ``read_by`` of every message not authored by it.

        Idempotent. False if the conversation does not exist.
        """
