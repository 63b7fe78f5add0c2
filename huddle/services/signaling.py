"""
Signaling Relay

Stateless pass-through for call setup. Every message is forwarded verbatim to
the target's live connection, tagged with the sender's identity; SDP offers,
answers and ICE candidates are opaque. A target that is not online means the
message is dropped: there is no store-and-forward and no error back to the
sender, whose client times out instead.
"""

import logging
from typing import Any, Optional

from huddle.models.call import CallEndReason, CallRejectReason, CallType
from huddle.models.events import OutboundEvent
from huddle.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)


def _response_payload(responder_id: str, accepted: bool, call_type: str, reason: Optional[str]) -> dict:
    # A refusal without an explicit reason is a decline
    if accepted:
        reason = None
    elif not reason:
        reason = CallRejectReason.DECLINED.value
    return {
        "responderId": responder_id,
        "accepted": accepted,
        "callType": call_type,
        "reason": reason,
    }


class SignalingRelay:
    """Forwards call-signaling frames between exactly two peers."""

    def __init__(self, presence: PresenceRegistry):
        self.presence = presence

    async def _forward(self, sender_id: str, target_id: str, event: OutboundEvent, data: dict) -> bool:
        if not sender_id or not target_id:
            return False

        delivered = await self.presence.notify(target_id, event, data)
        if not delivered:
            logger.debug(f"Dropped {event.value} from {sender_id}: {target_id} not reachable")
        return delivered

    async def call_request(
        self,
        caller_id: str,
        target_id: str,
        call_type: str = CallType.AUDIO.value,
        caller_username: Optional[str] = None,
    ) -> bool:
        logger.info(f"Call request {caller_id} -> {target_id} ({call_type})")
        return await self._forward(caller_id, target_id, OutboundEvent.INCOMING_CALL, {
            "callerId": caller_id,
            "callerUsername": caller_username,
            "callType": call_type,
        })

    async def call_response(
        self,
        responder_id: str,
        target_id: str,
        accepted: bool,
        call_type: str = CallType.AUDIO.value,
        reason: Optional[str] = None,
    ) -> bool:
        """
        Tell the caller whether the call was taken.

        A refusal without an explicit reason is reported as ``declined``.
        """
        return await self._forward(
            responder_id, target_id, OutboundEvent.CALL_RESPONSE,
            _response_payload(responder_id, accepted, call_type, reason),
        )

    async def reply_busy(self, caller: Any, callee_id: str, call_type: str) -> bool:
        """Answer the caller's own connection on behalf of a callee who is already in a call."""
        logger.info(f"Call to {callee_id} refused: busy")
        return await caller.send(
            OutboundEvent.CALL_RESPONSE,
            _response_payload(callee_id, False, call_type, CallRejectReason.BUSY.value),
        )

    async def offer(self, sender_id: str, target_id: str, offer: Any) -> bool:
        return await self._forward(sender_id, target_id, OutboundEvent.WEBRTC_OFFER, {
            "senderId": sender_id,
            "offer": offer,
        })

    async def answer(self, sender_id: str, target_id: str, answer: Any) -> bool:
        return await self._forward(sender_id, target_id, OutboundEvent.WEBRTC_ANSWER, {
            "senderId": sender_id,
            "answer": answer,
        })

    async def ice_candidate(self, sender_id: str, target_id: str, candidate: Any) -> bool:
        return await self._forward(sender_id, target_id, OutboundEvent.WEBRTC_ICE_CANDIDATE, {
            "senderId": sender_id,
            "candidate": candidate,
        })

    async def call_end(
        self,
        sender_id: str,
        target_id: str,
        reason: str = CallEndReason.HANGUP.value,
    ) -> bool:
        logger.info(f"Call ended between {sender_id} and {target_id} ({reason})")
        return await self._forward(sender_id, target_id, OutboundEvent.CALL_ENDED, {
            "endedBy": sender_id,
            "reason": reason,
        })
