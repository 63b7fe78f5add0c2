"""
MongoDB Store

Production backend on motor. Collections:

- users:            one document per user (``id`` is the identity)
- friendships:      one document per direction {user_id, friend_id, conversation_id}
- friend_requests:  one document per pending edge {to_user_id, from_user_id}
- conversations:    {conversation_id, participants, messages: [...]}

Single-collection updates are atomic on their own ($push, $addToSet with
array filters, upserts). Accept and unfriend touch several collections and
run in one multi-document transaction, which needs a replica set. Setting
MONGODB_USE_TRANSACTIONS=false (standalone dev servers) drops that guarantee.
"""

import logging
from contextlib import asynccontextmanager
from typing import Dict, Iterable, List, Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from huddle.config import settings
from huddle.database import init_mongodb, close_mongodb, get_db, get_mongo_client
from huddle.exceptions import InvalidInputError, StoreError
from huddle.models.message import Conversation, Message
from huddle.models.user import User
from huddle.store.base import Store
from huddle.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)


def _user_document(user: User) -> dict:
    doc = user.model_dump()
    doc["email_lower"] = user.email.lower()
    return doc


class MongoStore(Store):
    """Store backed by MongoDB collections."""

    async def open(self) -> None:
        await init_mongodb()
        if not settings.mongodb_use_transactions:
            logger.warning("MongoDB transactions disabled; accept and unfriend are not atomic")

    async def close(self) -> None:
        await close_mongodb()

    @asynccontextmanager
    async def _session(self):
        """Yield a transaction session, or None when transactions are disabled."""
        if not settings.mongodb_use_transactions:
            yield None
            return

        client = get_mongo_client()
        async with await client.start_session() as session:
            async with session.start_transaction():
                yield session

    # =========================================================================
    # Users
    # =========================================================================

    async def get_user(self, user_id: str) -> Optional[User]:
        db = get_db()
        try:
            doc = await db.users.find_one({"id": user_id})
        except PyMongoError as e:
            raise StoreError(f"Failed to read user {user_id}: {e}") from e
        return User.model_validate(doc) if doc else None

    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, User]:
        db = get_db()
        ids = list(user_ids)
        if not ids:
            return {}

        users = {}
        try:
            async for doc in db.users.find({"id": {"$in": ids}}):
                users[doc["id"]] = User.model_validate(doc)
        except PyMongoError as e:
            raise StoreError(f"Failed to read users: {e}") from e
        return users

    async def find_user_by_username(self, username: str) -> Optional[User]:
        if not username:
            return None
        return await self._find_user({"username_lower": username.lower()})

    async def find_user_by_email(self, email: str) -> Optional[User]:
        return await self._find_user({"email_lower": email.lower()})

    async def _find_user(self, query: dict) -> Optional[User]:
        db = get_db()
        try:
            doc = await db.users.find_one(query)
        except PyMongoError as e:
            raise StoreError(f"User lookup failed: {e}") from e
        return User.model_validate(doc) if doc else None

    async def create_user(self, user: User) -> User:
        db = get_db()
        try:
            await db.users.insert_one(_user_document(user))
        except PyMongoError as e:
            raise StoreError(f"Failed to create user {user.id}: {e}") from e
        return user

    async def update_user(self, user_id: str, fields: dict) -> Optional[User]:
        db = get_db()
        try:
            result = await db.users.update_one({"id": user_id}, {"$set": fields})
        except DuplicateKeyError:
            # Lost a race for the unique username index
            raise InvalidInputError("This username is already taken.")
        except PyMongoError as e:
            raise StoreError(f"Failed to update user {user_id}: {e}") from e

        if result.matched_count == 0:
            return None
        return await self.get_user(user_id)

    # =========================================================================
    # Relationships
    # =========================================================================

    async def friends_of(self, user_id: str) -> Dict[str, str]:
        db = get_db()
        friends = {}
        try:
            async for edge in db.friendships.find({"user_id": user_id}):
                friends[edge["friend_id"]] = edge["conversation_id"]
        except PyMongoError as e:
            raise StoreError(f"Failed to read friends of {user_id}: {e}") from e
        return friends

    async def pending_for(self, target_id: str) -> List[str]:
        db = get_db()
        senders = []
        try:
            cursor = db.friend_requests.find({"to_user_id": target_id}).sort("created_at", 1)
            async for req in cursor:
                senders.append(req["from_user_id"])
        except PyMongoError as e:
            raise StoreError(f"Failed to read requests for {target_id}: {e}") from e
        return senders

    async def add_pending(self, target_id: str, sender_id: str) -> None:
        db = get_db()
        try:
            await db.friend_requests.update_one(
                {"to_user_id": target_id, "from_user_id": sender_id},
                {"$set": {"created_at": utc_now()}},
                upsert=True,
            )
        except PyMongoError as e:
            raise StoreError(f"Failed to record request {sender_id} -> {target_id}: {e}") from e

    async def accept_friendship(
        self, target_id: str, sender_id: str, conversation_id: str
    ) -> bool:
        db = get_db()
        pending_filter = {"to_user_id": target_id, "from_user_id": sender_id}

        try:
            async with self._session() as session:
                pending = await db.friend_requests.find_one(pending_filter, session=session)
                if not pending:
                    return False

                now = utc_now()
                await db.conversations.update_one(
                    {"conversation_id": conversation_id},
                    {"$setOnInsert": {
                        "participants": sorted([target_id, sender_id]),
                        "messages": [],
                        "created_at": now,
                    }},
                    upsert=True,
                    session=session,
                )
                for user_id, friend_id in ((target_id, sender_id), (sender_id, target_id)):
                    await db.friendships.update_one(
                        {"user_id": user_id, "friend_id": friend_id},
                        {"$set": {"conversation_id": conversation_id, "created_at": now}},
                        upsert=True,
                        session=session,
                    )
                # Also drops a crossed request in the other direction
                await db.friend_requests.delete_many(
                    {"$or": [
                        pending_filter,
                        {"to_user_id": sender_id, "from_user_id": target_id},
                    ]},
                    session=session,
                )
        except PyMongoError as e:
            raise StoreError(f"Failed to accept request {sender_id} -> {target_id}: {e}") from e

        return True

    async def dissolve_friendship(
        self, user_a: str, user_b: str, conversation_id: str
    ) -> None:
        db = get_db()
        try:
            async with self._session() as session:
                await db.friendships.delete_many(
                    {"$or": [
                        {"user_id": user_a, "friend_id": user_b},
                        {"user_id": user_b, "friend_id": user_a},
                    ]},
                    session=session,
                )
                await db.conversations.delete_one(
                    {"conversation_id": conversation_id}, session=session
                )
        except PyMongoError as e:
            raise StoreError(f"Failed to unfriend {user_a} <-> {user_b}: {e}") from e

    # =========================================================================
    # Conversations
    # =========================================================================

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        db = get_db()
        try:
            doc = await db.conversations.find_one({"conversation_id": conversation_id})
        except PyMongoError as e:
            raise StoreError(f"Failed to read {conversation_id}: {e}") from e
        if not doc:
            return None
        return Conversation(
            id=conversation_id,
            participants=doc.get("participants", []),
            messages=[Message.model_validate(m) for m in doc.get("messages", [])],
        )

    async def append_message(self, conversation_id: str, message: Message) -> bool:
        db = get_db()
        try:
            result = await db.conversations.update_one(
                {"conversation_id": conversation_id},
                {"$push": {"messages": message.model_dump()}},
            )
        except PyMongoError as e:
            raise StoreError(f"Failed to append to {conversation_id}: {e}") from e
        return result.matched_count > 0

    async def mark_read(self, conversation_id: str, reader_id: str) -> bool:
        db = get_db()
        try:
            result = await db.conversations.update_one(
                {"conversation_id": conversation_id},
                {"$addToSet": {"messages.$[m].read_by": reader_id}},
                array_filters=[{"m.user_id": {"$ne": reader_id}}],
            )
        except PyMongoError as e:
            raise StoreError(f"Failed to mark {conversation_id} read: {e}") from e
        return result.matched_count > 0
