"""
Session Gateway

Binds one transport connection to an authenticated identity and turns inbound
events into calls on the core services. Besides the identity it tracks the
connection's call session so that an ungraceful disconnect during a call can
be reported to the peer as ``call-ended``.

Call state per connection:

    idle -> ringing -> negotiating -> active -> idle
            ringing -> idle              (declined / busy)
    any non-idle    -> idle              (call-end / disconnect)
"""

import logging
from typing import TYPE_CHECKING, Any, Optional

from huddle.exceptions import HuddleError, NoSuchConversationError
from huddle.gateway.connection import Connection
from huddle.models.call import CallDirection, CallEndReason, CallSession, CallState
from huddle.models.events import (
    AcceptRequestPayload,
    AnswerPayload,
    AuthenticatePayload,
    CallEndPayload,
    CallRequestPayload,
    CallResponsePayload,
    FriendRequestPayload,
    GetMessagesPayload,
    IceCandidatePayload,
    MessagesReadPayload,
    OfferPayload,
    OutboundEvent,
    SendMessagePayload,
    TypingPayload,
    UnfriendPayload,
)
from huddle.models.friend import PresenceStatus

if TYPE_CHECKING:
    from huddle.runtime import Hub

logger = logging.getLogger(__name__)


class SessionGateway:
    """One per connection. Handlers assume authentication was checked by dispatch."""

    def __init__(self, hub: "Hub", connection: Connection):
        self.hub = hub
        self.connection = connection

    @property
    def user_id(self) -> Optional[str]:
        return self.connection.user_id

    @property
    def is_authenticated(self) -> bool:
        return self.connection.user_id is not None

    async def send(self, event: OutboundEvent, data: Any = None) -> bool:
        return await self.connection.send(event, data)

    async def _announce(self, online: bool) -> None:
        status = PresenceStatus(user_id=self.user_id, is_online=online).to_wire()
        for friend_id in await self.hub.relationships.friend_ids(self.user_id):
            if self.hub.presence.is_online(friend_id):
                await self.hub.presence.notify(friend_id, OutboundEvent.ONLINE_STATUS, status)

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def on_authenticate(self, payload: AuthenticatePayload) -> None:
        user_id = payload.user_id
        if self.user_id and self.user_id != user_id:
            logger.warning(f"Connection {self.connection.id} tried to switch identity to {user_id}")
            return

        user = await self.hub.store.get_user(user_id)
        if not user:
            logger.debug(f"Authenticate for unknown user {user_id} ignored")
            return

        self.connection.user_id = user_id
        self.hub.presence.register(user_id, self.connection)
        await self.hub.sessions.mark_online(user_id, self.connection.id)
        logger.info(f"User authenticated: {user.email} ({user_id})")

        await self.send(OutboundEvent.AUTH_SUCCESS, user.to_public().to_wire())

        friend_ids = await self.hub.relationships.friend_ids(user_id)
        statuses = [
            PresenceStatus(user_id=friend_id, is_online=self.hub.presence.is_online(friend_id)).to_wire()
            for friend_id in friend_ids
        ]
        await self.send(OutboundEvent.FRIENDS_ONLINE_STATUS, statuses)
        await self._announce(online=True)

    async def disconnect(self) -> None:
        """
        Clean up after the transport closed.

        Never raises: a store failure while announcing offline status is
        logged and the rest of the cleanup still runs.
        """
        self.hub.conversations.leave_all(self.connection)

        call = self.connection.call
        if call is not None:
            if self._peer_call(call.peer_id) is not None:
                await self._end_call(call.peer_id, CallEndReason.DISCONNECTED.value)
            else:
                # The peer already moved on (hung up, or is in another call)
                self.connection.call = None

        self.connection.closed = True
        user_id = self.user_id
        if not user_id:
            return

        removed = self.hub.presence.unregister(user_id, self.connection)
        await self.hub.sessions.mark_offline(user_id, self.connection.id)
        if not removed:
            return

        logger.info(f"User disconnected: {user_id}")
        try:
            await self._announce(online=False)
        except HuddleError as e:
            logger.warning(f"Could not announce {user_id} offline: {e}")

    async def on_ping(self, payload) -> None:
        await self.send(OutboundEvent.PONG)

    # =========================================================================
    # Relationships
    # =========================================================================

    async def on_get_initial_data(self, payload) -> None:
        friends = await self.hub.relationships.friends_of(self.user_id)
        await self.send(OutboundEvent.FRIENDS_LIST, [f.to_wire() for f in friends])

        requests = await self.hub.relationships.pending_for(self.user_id)
        await self.send(OutboundEvent.REQUESTS_LIST, [r.to_wire() for r in requests])

    async def on_send_friend_request(self, payload: FriendRequestPayload) -> None:
        await self.hub.relationships.send_request(self.user_id, payload.username)
        await self.send(OutboundEvent.STATUS_SUCCESS, f"Request sent to @{payload.username}.")

    async def on_accept_friend_request(self, payload: AcceptRequestPayload) -> None:
        await self.hub.relationships.accept_request(self.user_id, payload.sender_id)

    async def on_unfriend(self, payload: UnfriendPayload) -> None:
        conversation_id = await self.hub.relationships.unfriend(self.user_id, payload.friend_id)
        self.hub.conversations.drop_channel(conversation_id)

    # =========================================================================
    # Conversations
    # =========================================================================

    async def on_get_messages(self, payload: GetMessagesPayload) -> None:
        messages = await self.hub.conversations.fetch_history(payload.conversation_id)
        self.hub.conversations.join(payload.conversation_id, self.connection)
        await self.send(OutboundEvent.MESSAGES_HISTORY, {
            "conversationId": payload.conversation_id,
            "messages": [m.to_wire() for m in messages],
        })

    async def on_send_message(self, payload: SendMessagePayload) -> None:
        if not payload.text and not payload.file_url:
            logger.debug(f"Empty message from {self.user_id} ignored")
            return
        await self.hub.conversations.post_message(
            payload.conversation_id, self.user_id, payload.text, payload.file_url
        )

    async def on_typing_start(self, payload: TypingPayload) -> None:
        await self.hub.conversations.relay_typing(
            payload.conversation_id, self.user_id, True, exclude=self.connection
        )

    async def on_typing_stop(self, payload: TypingPayload) -> None:
        await self.hub.conversations.relay_typing(
            payload.conversation_id, self.user_id, False, exclude=self.connection
        )

    async def on_messages_read(self, payload: MessagesReadPayload) -> None:
        try:
            await self.hub.conversations.mark_read(payload.conversation_id, self.user_id)
        except NoSuchConversationError:
            # Read receipts are best-effort; the conversation may be gone already
            logger.debug(f"Read receipt for missing {payload.conversation_id} ignored")

    # =========================================================================
    # Calls
    # =========================================================================

    def _peer_call(self, peer_id: str) -> Optional[Connection]:
        """The peer's connection, if its call session points back at us."""
        handle = self.hub.presence.handle_of(peer_id)
        if handle is not None and handle.call is not None and handle.call.peer_id == self.user_id:
            return handle
        return None

    def _set_state(self, peer_id: str, state: CallState) -> None:
        if self.connection.call is not None and self.connection.call.peer_id == peer_id:
            self.connection.call.state = state
        peer = self._peer_call(peer_id)
        if peer is not None:
            peer.call.state = state

    def _clear_call(self, peer_id: str) -> None:
        if self.connection.call is not None and self.connection.call.peer_id == peer_id:
            self.connection.call = None
        peer = self._peer_call(peer_id)
        if peer is not None:
            peer.call = None

    async def _end_call(self, peer_id: str, reason: str) -> None:
        await self.hub.signaling.call_end(self.user_id, peer_id, reason)
        self._clear_call(peer_id)

    async def on_call_request(self, payload: CallRequestPayload) -> None:
        target_id = payload.target_user_id
        if not target_id or target_id == self.user_id:
            return

        current = self.connection.call
        if current is not None and current.peer_id != target_id:
            await self.send(OutboundEvent.STATUS_ERROR, "Already in a call.")
            return

        callee = self.hub.presence.handle_of(target_id)
        if callee is None:
            # Dropped; the caller's client times out
            logger.debug(f"Call target {target_id} offline")
            return

        if callee.call is not None and callee.call.peer_id != self.user_id:
            await self.hub.signaling.reply_busy(self.connection, target_id, payload.call_type)
            return

        caller = await self.hub.store.get_user(self.user_id)
        delivered = await self.hub.signaling.call_request(
            self.user_id, target_id, payload.call_type, caller.username if caller else None
        )
        if not delivered:
            return

        self.connection.call = CallSession(
            peer_id=target_id, direction=CallDirection.CALLER, call_type=payload.call_type
        )
        callee.call = CallSession(
            peer_id=self.user_id, direction=CallDirection.RECEIVER, call_type=payload.call_type
        )

    async def on_call_response(self, payload: CallResponsePayload) -> None:
        target_id = payload.target_user_id
        await self.hub.signaling.call_response(
            self.user_id, target_id, payload.accepted, payload.call_type, payload.reason
        )
        if payload.accepted:
            self._set_state(target_id, CallState.NEGOTIATING)
        else:
            self._clear_call(target_id)

    async def on_webrtc_offer(self, payload: OfferPayload) -> None:
        await self.hub.signaling.offer(self.user_id, payload.target_user_id, payload.offer)

    async def on_webrtc_answer(self, payload: AnswerPayload) -> None:
        delivered = await self.hub.signaling.answer(
            self.user_id, payload.target_user_id, payload.answer
        )
        if delivered:
            self._set_state(payload.target_user_id, CallState.ACTIVE)

    async def on_webrtc_ice_candidate(self, payload: IceCandidatePayload) -> None:
        await self.hub.signaling.ice_candidate(
            self.user_id, payload.target_user_id, payload.candidate
        )

    async def on_call_end(self, payload: CallEndPayload) -> None:
        if not payload.target_user_id:
            return
        await self._end_call(payload.target_user_id, CallEndReason.HANGUP.value)

