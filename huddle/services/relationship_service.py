"""Relationship Service - Friend-request lifecycle and the friendship graph."""

import logging
from typing import List, Optional

from huddle.exceptions import AlreadyFriendsError, NotFoundError, SelfReferenceError
from huddle.models.events import OutboundEvent
from huddle.models.friend import FriendInfo, FriendRequestInfo
from huddle.models.user import User
from huddle.services.presence import PresenceRegistry
from huddle.store.base import Store, conversation_id_for

logger = logging.getLogger(__name__)


class RelationshipManager:
    """
    Friend requests and friendships.

    Friendship edges are always written and removed in pairs with the same
    conversation id, and a pending request never outlives the friendship it
    turns into.
    """

    def __init__(self, store: Store, presence: PresenceRegistry):
        self.store = store
        self.presence = presence

    async def send_request(self, from_id: str, to_username: str) -> User:
        """
        Record a pending request from ``from_id`` to the user named ``to_username``.

        Raises NotFoundError, SelfReferenceError or AlreadyFriendsError.
        Returns the target user.
        """
        target = await self.store.find_user_by_username(to_username)
        if not target:
            raise NotFoundError(f"User @{to_username} not found.")

        if target.id == from_id:
            raise SelfReferenceError()

        friends = await self.store.friends_of(from_id)
        if target.id in friends:
            raise AlreadyFriendsError(f"You are already friends with @{target.username}.")

        await self.store.add_pending(target.id, from_id)
        logger.info(f"Friend request sent: {from_id} -> {target.id}")

        sender = await self.store.get_user(from_id)
        if sender:
            request = FriendRequestInfo(
                id=sender.id, username=sender.username, avatar_url=sender.avatar_url
            )
            await self.presence.notify(target.id, OutboundEvent.NEW_REQUEST, request.to_wire())

        return target

    async def accept_request(self, accepter_id: str, sender_id: str) -> Optional[str]:
        """
        Accept the pending request ``sender_id -> accepter_id``.

        Returns the conversation id, or None (and does nothing) when no such
        request exists.
        """
        conversation_id = conversation_id_for(accepter_id, sender_id)
        accepted = await self.store.accept_friendship(accepter_id, sender_id, conversation_id)
        if not accepted:
            logger.debug(f"No pending request {sender_id} -> {accepter_id}")
            return None

        logger.info(f"Friendship created: {sender_id} <-> {accepter_id}")

        await self.presence.notify(accepter_id, OutboundEvent.RELOAD_DATA)
        await self.presence.notify(sender_id, OutboundEvent.RELOAD_DATA)
        return conversation_id

    async def unfriend(self, user_a: str, user_b: str) -> str:
        """
        Dissolve the friendship and delete the whole conversation history.

        Irreversible. Tolerates edges that are already gone on one side.
        """
        conversation_id = conversation_id_for(user_a, user_b)
        await self.store.dissolve_friendship(user_a, user_b, conversation_id)
        logger.info(f"Friendship removed: {user_a} <-> {user_b}")

        await self.presence.notify(user_a, OutboundEvent.UNFRIENDED, {"friendId": user_b})
        await self.presence.notify(user_b, OutboundEvent.UNFRIENDED, {"friendId": user_a})
        await self.presence.notify(user_a, OutboundEvent.RELOAD_DATA)
        await self.presence.notify(user_b, OutboundEvent.RELOAD_DATA)
        return conversation_id

    async def friend_ids(self, user_id: str) -> List[str]:
        return list(await self.store.friends_of(user_id))

    async def friends_of(self, user_id: str) -> List[FriendInfo]:
        """Friend details with the conversation id each friendship maps to."""
        edges = await self.store.friends_of(user_id)
        users = await self.store.get_users(edges.keys())

        friends = []
        for friend_id, conversation_id in edges.items():
            user = users.get(friend_id)
            friends.append(FriendInfo(
                id=friend_id,
                email=user.email if user else None,
                username=user.username if user else None,
                avatar_url=user.avatar_url if user else None,
                conversation_id=conversation_id,
            ))
        return friends

    async def pending_for(self, user_id: str) -> List[FriendRequestInfo]:
        """Requests waiting for ``user_id`` to accept."""
        sender_ids = await self.store.pending_for(user_id)
        users = await self.store.get_users(sender_ids)

        return [
            FriendRequestInfo(
                id=sender_id,
                username=users[sender_id].username,
                avatar_url=users[sender_id].avatar_url,
            )
            for sender_id in sender_ids
            if sender_id in users
        ]
