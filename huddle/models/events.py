"""
Event Models

Inbound payload shapes accepted on the WebSocket and the names of every
outbound event. Frames on the wire look like ``{"event": ..., "data": ...}``.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import Field

from huddle.models.base import CamelModel
from huddle.models.call import CallType


class OutboundEvent(str, Enum):
    """Events pushed to connections."""
    AUTH_SUCCESS = "auth-success"
    FRIENDS_LIST = "friends-list"
    REQUESTS_LIST = "requests-list"
    MESSAGES_HISTORY = "messages-history"
    NEW_MESSAGE = "new-message"
    NEW_REQUEST = "new-request"
    RELOAD_DATA = "reload-data"
    STATUS_ERROR = "status-error"
    STATUS_SUCCESS = "status-success"
    UNFRIENDED = "unfriended"
    ONLINE_STATUS = "online-status"
    FRIENDS_ONLINE_STATUS = "friends-online-status"
    TYPING_STATUS = "typing-status"
    MESSAGE_READ = "message-read"
    INCOMING_CALL = "incoming-call"
    CALL_RESPONSE = "call-response"
    WEBRTC_OFFER = "webrtc-offer"
    WEBRTC_ANSWER = "webrtc-answer"
    WEBRTC_ICE_CANDIDATE = "webrtc-ice-candidate"
    CALL_ENDED = "call-ended"
    PONG = "pong"


# =============================================================================
# Inbound payloads
# =============================================================================


class EmptyPayload(CamelModel):
    pass


class AuthenticatePayload(CamelModel):
    user_id: str = Field(..., min_length=1)


class FriendRequestPayload(CamelModel):
    username: str = Field(..., min_length=1)


class AcceptRequestPayload(CamelModel):
    sender_id: str = Field(..., min_length=1)


class UnfriendPayload(CamelModel):
    friend_id: str = Field(..., min_length=1)


class GetMessagesPayload(CamelModel):
    conversation_id: str = Field(..., min_length=1)


class SendMessagePayload(CamelModel):
    conversation_id: str = Field(..., min_length=1)
    text: str = ""
    file_url: Optional[str] = None


class TypingPayload(CamelModel):
    conversation_id: str = Field(..., min_length=1)
    user_id: Optional[str] = None


class MessagesReadPayload(CamelModel):
    conversation_id: str = Field(..., min_length=1)
    reader_id: Optional[str] = None


class CallRequestPayload(CamelModel):
    target_user_id: str = ""
    call_type: CallType = CallType.AUDIO


class CallResponsePayload(CamelModel):
    target_user_id: str = ""
    accepted: bool = False
    call_type: CallType = CallType.AUDIO
    reason: Optional[str] = None


class OfferPayload(CamelModel):
    target_user_id: str = ""
    offer: Any = None


class AnswerPayload(CamelModel):
    target_user_id: str = ""
    answer: Any = None


class IceCandidatePayload(CamelModel):
    target_user_id: str = ""
    candidate: Any = None


class CallEndPayload(CamelModel):
    target_user_id: str = ""
