"""Call models - ephemeral per-connection call state."""

from enum import Enum

from pydantic import BaseModel


class CallType(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"


class CallDirection(str, Enum):
    CALLER = "caller"
    RECEIVER = "receiver"


class CallState(str, Enum):
    RINGING = "ringing"
    NEGOTIATING = "negotiating"
    ACTIVE = "active"


class CallEndReason(str, Enum):
    HANGUP = "hangup"
    DISCONNECTED = "disconnected"


class CallRejectReason(str, Enum):
    DECLINED = "declined"
    BUSY = "busy"


class CallSession(BaseModel):
    """At most one per connection; absent means idle."""
    peer_id: str
    direction: CallDirection
    call_type: CallType = CallType.AUDIO
    state: CallState = CallState.RINGING
