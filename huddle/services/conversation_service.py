"""
Conversation Service

Owns the append-only message log of each conversation and the live delivery
channels. A connection joins a conversation's channel when it fetches that
conversation's history and leaves it when it switches to another conversation
or disconnects. Only joined connections receive ``new-message`` pushes; offline
participants see new messages on their next history fetch.
"""

import logging
from typing import Any, Dict, List, Optional

from huddle.exceptions import NoSuchConversationError
from huddle.models.events import OutboundEvent
from huddle.models.message import Conversation, Message
from huddle.services.presence import PresenceRegistry
from huddle.store.base import Store

logger = logging.getLogger(__name__)


class ConversationManager:
    """Message persistence, history, read receipts and channel fan-out."""

    def __init__(self, store: Store, presence: PresenceRegistry):
        self.store = store
        self.presence = presence
        # conversation id -> joined connections, in join order
        self._channels: Dict[str, List[Any]] = {}
        # connection -> the one conversation it is joined to
        self._joined: Dict[Any, str] = {}

    async def _require(self, conversation_id: str) -> Conversation:
        conversation = await self.store.get_conversation(conversation_id)
        if conversation is None:
            raise NoSuchConversationError()
        return conversation

    # =========================================================================
    # Messages
    # =========================================================================

    async def post_message(
        self,
        conversation_id: str,
        author_id: str,
        text: str = "",
        file_url: Optional[str] = None,
    ) -> Message:
        """
        Append a message and push it to every joined connection.

        The message is persisted before anything is broadcast, so a delivered
        ``new-message`` always survives a restart.

        Raises:
            NoSuchConversationError: the conversation was never created or the
                friendship was dissolved in the meantime.
        """
        message = Message(user_id=author_id, text=text or "", file_url=file_url)

        appended = await self.store.append_message(conversation_id, message)
        if not appended:
            raise NoSuchConversationError()

        payload = {"conversationId": conversation_id, "message": message.to_wire()}
        for connection in self.members(conversation_id):
            await connection.send(OutboundEvent.NEW_MESSAGE, payload)

        return message

    async def fetch_history(self, conversation_id: str) -> List[Message]:
        """Full history, oldest first."""
        conversation = await self._require(conversation_id)
        return conversation.messages

    async def mark_read(self, conversation_id: str, reader_id: str) -> int:
        """
        Add ``reader_id`` to the readers of every message it did not write.

        Idempotent; reader sets only grow. After persisting, the other
        participant gets ``message-read`` if online. Returns how many messages
        were newly marked.
        """
        conversation = await self._require(conversation_id)
        unread = sum(
            1 for m in conversation.messages
            if m.user_id != reader_id and reader_id not in m.read_by
        )

        if not await self.store.mark_read(conversation_id, reader_id):
            raise NoSuchConversationError()

        payload = {"conversationId": conversation_id, "readerId": reader_id}
        for participant in conversation.participants:
            if participant != reader_id:
                await self.presence.notify(participant, OutboundEvent.MESSAGE_READ, payload)

        return unread

    # =========================================================================
    # Delivery channels
    # =========================================================================

    def join(self, conversation_id: str, connection: Any) -> None:
        """Subscribe ``connection`` to one conversation, leaving any other."""
        current = self.joined_to(connection)
        if current == conversation_id:
            return
        if current is not None:
            self._leave(current, connection)

        self._channels.setdefault(conversation_id, []).append(connection)
        self._joined[connection] = conversation_id

    def _leave(self, conversation_id: str, connection: Any) -> None:
        members = self._channels.get(conversation_id)
        if members and connection in members:
            members.remove(connection)
            if not members:
                del self._channels[conversation_id]

    def leave_all(self, connection: Any) -> None:
        conversation_id = self._joined.pop(connection, None)
        if conversation_id is not None:
            self._leave(conversation_id, connection)

    def drop_channel(self, conversation_id: str) -> None:
        """Forget every subscription to a conversation that no longer exists."""
        for connection in self._channels.pop(conversation_id, []):
            if self._joined.get(connection) == conversation_id:
                del self._joined[connection]

    def members(self, conversation_id: str) -> List[Any]:
        return list(self._channels.get(conversation_id, []))

    def joined_to(self, connection: Any) -> Optional[str]:
        return self._joined.get(connection)

    async def relay_typing(
        self,
        conversation_id: str,
        user_id: str,
        is_typing: bool,
        exclude: Any = None,
    ) -> None:
        """Best-effort ``typing-status`` to everyone in the channel but the typist."""
        payload = {"conversationId": conversation_id, "userId": user_id, "isTyping": is_typing}
        for connection in self.members(conversation_id):
            if connection is exclude:
                continue
            await connection.send(OutboundEvent.TYPING_STATUS, payload)
