import pytest
from unittest.mock import patch

from huddle.exceptions import StoreError
from huddle.gateway.dispatch import dispatch
from huddle.gateway.session import SessionGateway
from huddle.models.call import CallState
from huddle.store.base import conversation_id_for


def frames(gateway):
    return gateway.connection.websocket


class TestAuthentication:
    """Tests for binding connections to identities."""

    @pytest.mark.asyncio
    async def test_events_before_authenticate_are_ignored(self, hub, make_user, make_connection):
        await make_user("alice")
        gateway = SessionGateway(hub, make_connection())

        await dispatch(gateway, "get-initial-data")
        await dispatch(gateway, "send-friend-request", "alice")

        assert frames(gateway).frames == []

    @pytest.mark.asyncio
    async def test_ping_works_before_authenticate(self, hub, make_connection):
        gateway = SessionGateway(hub, make_connection())

        await dispatch(gateway, "ping")

        assert frames(gateway).events() == ["pong"]

    @pytest.mark.asyncio
    async def test_unknown_user_is_not_authenticated(self, hub, make_connection):
        gateway = SessionGateway(hub, make_connection())

        await dispatch(gateway, "authenticate", "user-ghost")

        assert not gateway.is_authenticated
        assert not hub.presence.is_online("user-ghost")
        assert frames(gateway).frames == []

    @pytest.mark.asyncio
    async def test_authenticate_pushes_user_and_friend_status(self, hub, make_user, befriend, connect, make_connection):
        alice = await make_user("alice")
        bob = await make_user("bob")
        carol = await make_user("carol")
        await befriend(alice, bob)
        await befriend(alice, carol)
        bob_gw = await connect(bob)

        gateway = SessionGateway(hub, make_connection())
        await dispatch(gateway, "authenticate", {"userId": alice.id})

        sent = frames(gateway)
        assert sent.events() == ["auth-success", "friends-online-status"]
        user = sent.payloads("auth-success")[0]
        assert user["id"] == alice.id
        assert "passwordHash" not in user
        assert sorted(sent.payloads("friends-online-status")[0], key=lambda s: s["userId"]) == [
            {"userId": bob.id, "isOnline": True},
            {"userId": carol.id, "isOnline": False},
        ]
        assert frames(bob_gw).payloads("online-status") == [{"userId": alice.id, "isOnline": True}]

    @pytest.mark.asyncio
    async def test_disconnect_announces_offline(self, hub, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await befriend(alice, bob)
        bob_gw = await connect(bob)
        alice_gw = await connect(alice)
        frames(bob_gw).clear()

        await alice_gw.disconnect()

        assert not hub.presence.is_online(alice.id)
        assert frames(bob_gw).payloads("online-status") == [{"userId": alice.id, "isOnline": False}]

    @pytest.mark.asyncio
    async def test_stale_disconnect_announces_nothing(self, hub, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await befriend(alice, bob)
        bob_gw = await connect(bob)
        old = await connect(alice)
        new = await connect(alice)
        frames(bob_gw).clear()

        await old.disconnect()

        assert hub.presence.handle_of(alice.id) is new.connection
        assert frames(bob_gw).frames == []

    @pytest.mark.asyncio
    async def test_identity_cannot_be_switched(self, hub, make_user, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        alice_gw = await connect(alice)

        await dispatch(alice_gw, "authenticate", bob.id)

        assert alice_gw.user_id == alice.id
        assert not hub.presence.is_online(bob.id)


class TestFriendEvents:
    """Tests for friend-request events over the gateway."""

    @pytest.mark.asyncio
    async def test_request_to_missing_user(self, store, make_user, connect):
        alice = await make_user("alice")
        gateway = await connect(alice)

        await dispatch(gateway, "send-friend-request", "bob")

        assert frames(gateway).payloads("status-error") == ["User @bob not found."]
        assert await store.pending_for("user-bob") == []

    @pytest.mark.asyncio
    async def test_request_to_self(self, make_user, connect):
        alice = await make_user("alice")
        gateway = await connect(alice)

        await dispatch(gateway, "send-friend-request", "alice")

        assert frames(gateway).payloads("status-error") == ["You cannot add yourself."]

    @pytest.mark.asyncio
    async def test_request_and_accept(self, store, make_user, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        alice_gw = await connect(alice)
        bob_gw = await connect(bob)

        await dispatch(alice_gw, "send-friend-request", "bob")
        assert frames(alice_gw).payloads("status-success") == ["Request sent to @bob."]
        assert frames(bob_gw).payloads("new-request")[0]["id"] == alice.id

        await dispatch(bob_gw, "accept-friend-request", alice.id)
        assert "reload-data" in frames(alice_gw).events()
        assert "reload-data" in frames(bob_gw).events()

        frames(bob_gw).clear()
        await dispatch(bob_gw, "get-initial-data")
        assert frames(bob_gw).events() == ["friends-list", "requests-list"]
        friends = frames(bob_gw).payloads("friends-list")[0]
        assert friends[0]["conversationId"] == conversation_id_for(alice.id, bob.id)
        assert frames(bob_gw).payloads("requests-list") == [[]]


class TestMessaging:
    """End-to-end chat scenarios."""

    @pytest.mark.asyncio
    async def test_joined_peer_receives_new_message(self, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        cid = await befriend(alice, bob)
        alice_gw = await connect(alice)
        bob_gw = await connect(bob)

        await dispatch(bob_gw, "get-messages", cid)
        assert frames(bob_gw).payloads("messages-history") == [
            {"conversationId": cid, "messages": []}
        ]

        await dispatch(alice_gw, "send-message", {"conversationId": cid, "text": "hi"})

        pushed = frames(bob_gw).payloads("new-message")
        assert len(pushed) == 1
        assert pushed[0]["message"]["text"] == "hi"
        assert pushed[0]["message"]["userId"] == alice.id
        # Alice never fetched the history, so she is not in the channel
        assert frames(alice_gw).payloads("new-message") == []

    @pytest.mark.asyncio
    async def test_unfriend_then_fetch_fails(self, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        cid = await befriend(alice, bob)
        alice_gw = await connect(alice)
        bob_gw = await connect(bob)

        await dispatch(alice_gw, "unfriend", {"friendId": bob.id})
        await dispatch(alice_gw, "get-messages", cid)
        await dispatch(bob_gw, "get-messages", cid)
        await dispatch(bob_gw, "send-message", {"conversationId": cid, "text": "still there?"})

        assert frames(alice_gw).payloads("status-error") == ["Conversation not found."]
        assert frames(bob_gw).payloads("status-error") == [
            "Conversation not found.", "Conversation not found."
        ]

    @pytest.mark.asyncio
    async def test_read_receipt_uses_bound_identity(self, hub, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        cid = await befriend(alice, bob)
        await hub.conversations.post_message(cid, alice.id, "hi")
        alice_gw = await connect(alice)
        bob_gw = await connect(bob)

        await dispatch(bob_gw, "messages-read", {"conversationId": cid, "readerId": alice.id})

        history = await hub.conversations.fetch_history(cid)
        assert history[0].read_by == [bob.id]
        assert frames(alice_gw).payloads("message-read") == [
            {"conversationId": cid, "readerId": bob.id}
        ]

    @pytest.mark.asyncio
    async def test_read_receipt_for_missing_conversation_is_silent(self, make_user, connect):
        alice = await make_user("alice")
        gateway = await connect(alice)

        await dispatch(gateway, "messages-read", {"conversationId": "user-alice_user-zed"})

        assert frames(gateway).frames == []

    @pytest.mark.asyncio
    async def test_typing_reaches_other_viewer(self, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        cid = await befriend(alice, bob)
        alice_gw = await connect(alice)
        bob_gw = await connect(bob)
        await dispatch(alice_gw, "get-messages", cid)
        await dispatch(bob_gw, "get-messages", cid)
        frames(alice_gw).clear()

        await dispatch(alice_gw, "typing-start", {"conversationId": cid, "userId": alice.id})
        await dispatch(alice_gw, "typing-stop", {"conversationId": cid})

        assert frames(bob_gw).payloads("typing-status") == [
            {"conversationId": cid, "userId": alice.id, "isTyping": True},
            {"conversationId": cid, "userId": alice.id, "isTyping": False},
        ]
        assert frames(alice_gw).frames == []

    @pytest.mark.asyncio
    async def test_store_failure_reports_generic_error(self, hub, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        cid = await befriend(alice, bob)
        alice_gw = await connect(alice)

        with patch.object(hub.store, "append_message", side_effect=StoreError("disk full")):
            await dispatch(alice_gw, "send-message", {"conversationId": cid, "text": "hi"})

        assert frames(alice_gw).payloads("status-error") == ["Something went wrong. Please try again."]
        assert await hub.conversations.fetch_history(cid) == []

    @pytest.mark.asyncio
    async def test_empty_message_is_ignored(self, hub, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        cid = await befriend(alice, bob)
        alice_gw = await connect(alice)

        await dispatch(alice_gw, "send-message", {"conversationId": cid, "text": ""})

        assert await hub.conversations.fetch_history(cid) == []


class TestCalls:
    """Tests for call signaling and per-connection call state."""

    @pytest.mark.asyncio
    async def test_offline_callee_never_rings(self, hub, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await befriend(alice, bob)
        alice_gw = await connect(alice)

        await dispatch(alice_gw, "call-request", {"targetUserId": bob.id, "callType": "video"})

        assert frames(alice_gw).frames == []
        assert alice_gw.connection.call is None

    @pytest.mark.asyncio
    async def test_full_call_then_disconnect(self, hub, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await befriend(alice, bob)
        alice_gw = await connect(alice)
        bob_gw = await connect(bob)

        await dispatch(alice_gw, "call-request", {"targetUserId": bob.id, "callType": "video"})
        assert frames(bob_gw).payloads("incoming-call") == [
            {"callerId": alice.id, "callerUsername": "alice", "callType": "video"}
        ]
        assert alice_gw.connection.call.state == CallState.RINGING
        assert bob_gw.connection.call.peer_id == alice.id

        await dispatch(bob_gw, "call-response", {"targetUserId": alice.id, "accepted": True, "callType": "video"})
        assert frames(alice_gw).payloads("call-response")[0]["accepted"] is True
        assert alice_gw.connection.call.state == CallState.NEGOTIATING

        await dispatch(alice_gw, "webrtc-offer", {"targetUserId": bob.id, "offer": {"sdp": "o"}})
        await dispatch(bob_gw, "webrtc-answer", {"targetUserId": alice.id, "answer": {"sdp": "a"}})
        await dispatch(bob_gw, "webrtc-ice-candidate", {"targetUserId": alice.id, "candidate": {"c": 1}})
        assert alice_gw.connection.call.state == CallState.ACTIVE
        assert bob_gw.connection.call.state == CallState.ACTIVE
        assert frames(bob_gw).payloads("webrtc-offer") == [{"senderId": alice.id, "offer": {"sdp": "o"}}]

        await alice_gw.disconnect()

        assert frames(bob_gw).payloads("call-ended") == [{"endedBy": alice.id, "reason": "disconnected"}]
        assert bob_gw.connection.call is None

    @pytest.mark.asyncio
    async def test_superseded_connection_does_not_end_peers_next_call(self, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        carol = await make_user("carol")
        await befriend(alice, bob)
        old_alice = await connect(alice)
        bob_gw = await connect(bob)
        carol_gw = await connect(carol)

        await dispatch(old_alice, "call-request", {"targetUserId": bob.id})
        await dispatch(bob_gw, "call-response", {"targetUserId": alice.id, "accepted": True})

        # Alice reconnects; bob hangs up and takes a call from carol
        new_alice = await connect(alice)
        await dispatch(bob_gw, "call-end", {"targetUserId": alice.id})
        assert frames(new_alice).payloads("call-ended") == [{"endedBy": bob.id, "reason": "hangup"}]
        await dispatch(carol_gw, "call-request", {"targetUserId": bob.id})
        await dispatch(bob_gw, "call-response", {"targetUserId": carol.id, "accepted": True})
        frames(bob_gw).clear()

        await old_alice.disconnect()

        assert frames(bob_gw).payloads("call-ended") == []
        assert bob_gw.connection.call.peer_id == carol.id
        assert bob_gw.connection.call.state == CallState.NEGOTIATING
        assert old_alice.connection.call is None

    @pytest.mark.asyncio
    async def test_decline_returns_both_to_idle(self, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await befriend(alice, bob)
        alice_gw = await connect(alice)
        bob_gw = await connect(bob)

        await dispatch(alice_gw, "call-request", {"targetUserId": bob.id, "callType": "audio"})
        await dispatch(bob_gw, "call-response", {"targetUserId": alice.id, "accepted": False})

        assert frames(alice_gw).payloads("call-response") == [
            {"responderId": bob.id, "accepted": False, "callType": "audio", "reason": "declined"}
        ]
        assert alice_gw.connection.call is None
        assert bob_gw.connection.call is None

    @pytest.mark.asyncio
    async def test_busy_callee(self, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        carol = await make_user("carol")
        await befriend(alice, bob)
        await befriend(carol, bob)
        alice_gw = await connect(alice)
        bob_gw = await connect(bob)
        carol_gw = await connect(carol)

        await dispatch(alice_gw, "call-request", {"targetUserId": bob.id})
        await dispatch(carol_gw, "call-request", {"targetUserId": bob.id, "callType": "video"})

        assert frames(carol_gw).payloads("call-response") == [
            {"responderId": bob.id, "accepted": False, "callType": "video", "reason": "busy"}
        ]
        assert len(frames(bob_gw).payloads("incoming-call")) == 1
        assert bob_gw.connection.call.peer_id == alice.id
        assert carol_gw.connection.call is None

    @pytest.mark.asyncio
    async def test_hangup(self, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        await befriend(alice, bob)
        alice_gw = await connect(alice)
        bob_gw = await connect(bob)
        await dispatch(alice_gw, "call-request", {"targetUserId": bob.id})
        await dispatch(bob_gw, "call-response", {"targetUserId": alice.id, "accepted": True})

        await dispatch(bob_gw, "call-end", {"targetUserId": alice.id})

        assert frames(alice_gw).payloads("call-ended") == [{"endedBy": bob.id, "reason": "hangup"}]
        assert alice_gw.connection.call is None
        assert bob_gw.connection.call is None

        # Disconnecting afterwards must not report a second call end
        await alice_gw.disconnect()
        assert frames(bob_gw).payloads("call-ended") == []

    @pytest.mark.asyncio
    async def test_second_call_while_busy_is_refused(self, make_user, befriend, connect):
        alice = await make_user("alice")
        bob = await make_user("bob")
        carol = await make_user("carol")
        await befriend(alice, bob)
        await befriend(alice, carol)
        alice_gw = await connect(alice)
        await connect(bob)
        carol_gw = await connect(carol)

        await dispatch(alice_gw, "call-request", {"targetUserId": bob.id})
        await dispatch(alice_gw, "call-request", {"targetUserId": carol.id})

        assert frames(alice_gw).payloads("status-error") == ["Already in a call."]
        assert frames(carol_gw).payloads("incoming-call") == []
