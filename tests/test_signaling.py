import pytest

from huddle.services.presence import PresenceRegistry
from huddle.services.signaling import SignalingRelay


class TestSignalingRelay:
    """Tests for the stateless call-signaling relay."""

    @pytest.fixture
    def presence(self):
        return PresenceRegistry()

    @pytest.fixture
    def relay(self, presence):
        return SignalingRelay(presence)

    @pytest.mark.asyncio
    async def test_offline_target_is_dropped(self, relay):
        assert await relay.call_request("user-a", "user-b", "audio", "alice") is False

    @pytest.mark.asyncio
    async def test_empty_ids_are_rejected(self, relay, presence, make_connection):
        conn = make_connection()
        presence.register("user-b", conn)

        assert await relay.offer("", "user-b", {"sdp": "x"}) is False
        assert await relay.offer("user-a", "", {"sdp": "x"}) is False
        assert conn.websocket.frames == []

    @pytest.mark.asyncio
    async def test_call_request_shape(self, relay, presence, make_connection):
        conn = make_connection()
        presence.register("user-b", conn)

        assert await relay.call_request("user-a", "user-b", "video", "alice") is True
        assert conn.websocket.frames == [{
            "event": "incoming-call",
            "data": {"callerId": "user-a", "callerUsername": "alice", "callType": "video"},
        }]

    @pytest.mark.asyncio
    async def test_payloads_are_forwarded_verbatim(self, relay, presence, make_connection):
        conn = make_connection()
        presence.register("user-b", conn)
        offer = {"type": "offer", "sdp": "v=0\r\n...", "extra": [1, 2, {"nested": True}]}
        candidate = {"candidate": "candidate:1 1 udp 2122260223 10.0.0.1 50000 typ host"}

        await relay.offer("user-a", "user-b", offer)
        await relay.answer("user-a", "user-b", {"type": "answer"})
        await relay.ice_candidate("user-a", "user-b", candidate)

        assert conn.websocket.payloads("webrtc-offer") == [{"senderId": "user-a", "offer": offer}]
        assert conn.websocket.payloads("webrtc-answer") == [
            {"senderId": "user-a", "answer": {"type": "answer"}}
        ]
        assert conn.websocket.payloads("webrtc-ice-candidate") == [
            {"senderId": "user-a", "candidate": candidate}
        ]

    @pytest.mark.asyncio
    async def test_refusal_defaults_to_declined(self, relay, presence, make_connection):
        conn = make_connection()
        presence.register("user-a", conn)

        await relay.call_response("user-b", "user-a", False, "audio")
        await relay.call_response("user-b", "user-a", True, "audio", reason="ignored")

        assert conn.websocket.payloads("call-response") == [
            {"responderId": "user-b", "accepted": False, "callType": "audio", "reason": "declined"},
            {"responderId": "user-b", "accepted": True, "callType": "audio", "reason": None},
        ]

    @pytest.mark.asyncio
    async def test_reply_busy_goes_to_caller(self, relay, make_connection):
        caller = make_connection()

        await relay.reply_busy(caller, "user-b", "video")

        assert caller.websocket.payloads("call-response") == [
            {"responderId": "user-b", "accepted": False, "callType": "video", "reason": "busy"}
        ]

    @pytest.mark.asyncio
    async def test_call_end_reasons(self, relay, presence, make_connection):
        conn = make_connection()
        presence.register("user-b", conn)

        await relay.call_end("user-a", "user-b")
        await relay.call_end("user-a", "user-b", "disconnected")

        assert conn.websocket.payloads("call-ended") == [
            {"endedBy": "user-a", "reason": "hangup"},
            {"endedBy": "user-a", "reason": "disconnected"},
        ]
