"""
Inbound Event Dispatch

Explicit table from inbound event name to handler and input shape. Several
events historically carried a bare string instead of an object
(``authenticate``, ``get-messages``...); ``scalar_field`` names the field such
a bare value fills in.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from huddle.exceptions import HuddleError, StoreError
from huddle.gateway.session import SessionGateway
from huddle.models.events import (
    AcceptRequestPayload,
    AnswerPayload,
    AuthenticatePayload,
    CallEndPayload,
    CallRequestPayload,
    CallResponsePayload,
    EmptyPayload,
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

logger = logging.getLogger(__name__)

Handler = Callable[[SessionGateway, Any], Awaitable[None]]


@dataclass(frozen=True)
class EventSpec:
    handler: Handler
    model: Type[BaseModel] = EmptyPayload
    scalar_field: Optional[str] = None
    requires_auth: bool = True

    def parse(self, data: Any) -> BaseModel:
        if self.scalar_field and data is not None and not isinstance(data, dict):
            data = {self.scalar_field: data}
        return self.model.model_validate(data if data is not None else {})


EVENTS: Dict[str, EventSpec] = {
    "authenticate": EventSpec(
        SessionGateway.on_authenticate, AuthenticatePayload, "user_id", requires_auth=False
    ),
    "ping": EventSpec(SessionGateway.on_ping, requires_auth=False),
    "get-initial-data": EventSpec(SessionGateway.on_get_initial_data),
    "send-friend-request": EventSpec(
        SessionGateway.on_send_friend_request, FriendRequestPayload, "username"
    ),
    "accept-friend-request": EventSpec(
        SessionGateway.on_accept_friend_request, AcceptRequestPayload, "sender_id"
    ),
    "unfriend": EventSpec(SessionGateway.on_unfriend, UnfriendPayload, "friend_id"),
    "get-messages": EventSpec(
        SessionGateway.on_get_messages, GetMessagesPayload, "conversation_id"
    ),
    "send-message": EventSpec(SessionGateway.on_send_message, SendMessagePayload),
    "typing-start": EventSpec(SessionGateway.on_typing_start, TypingPayload),
    "typing-stop": EventSpec(SessionGateway.on_typing_stop, TypingPayload),
    "messages-read": EventSpec(SessionGateway.on_messages_read, MessagesReadPayload),
    "call-request": EventSpec(SessionGateway.on_call_request, CallRequestPayload),
    "call-response": EventSpec(SessionGateway.on_call_response, CallResponsePayload),
    "webrtc-offer": EventSpec(SessionGateway.on_webrtc_offer, OfferPayload),
    "webrtc-answer": EventSpec(SessionGateway.on_webrtc_answer, AnswerPayload),
    "webrtc-ice-candidate": EventSpec(
        SessionGateway.on_webrtc_ice_candidate, IceCandidatePayload
    ),
    "call-end": EventSpec(SessionGateway.on_call_end, CallEndPayload),
}


async def dispatch(gateway: SessionGateway, event: Any, data: Any = None) -> None:
    """
    Run the handler for one inbound frame.

    Unknown events, malformed payloads and anything but ``authenticate``/``ping``
    on an unauthenticated connection are logged and ignored. Domain errors
    become a ``status-error`` for this connection only.
    """
    spec = EVENTS.get(event) if isinstance(event, str) else None
    if spec is None:
        logger.debug(f"Unknown event {event!r} ignored")
        return

    if spec.requires_auth and not gateway.is_authenticated:
        logger.debug(f"Unauthenticated {event} on {gateway.connection.id} ignored")
        return

    try:
        payload = spec.parse(data)
    except ValidationError as e:
        logger.debug(f"Invalid {event} payload ignored: {e.error_count()} error(s)")
        return

    try:
        await spec.handler(gateway, payload)
    except StoreError as e:
        logger.exception(f"Store failure during {event}: {e}")
        await gateway.send(OutboundEvent.STATUS_ERROR, StoreError.user_message)
    except HuddleError as e:
        await gateway.send(OutboundEvent.STATUS_ERROR, e.message)
