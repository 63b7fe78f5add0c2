"""
JSON File Store

Single-file backend for one-node deployments and tests. The document keeps
four tables (users, friends, pendingRequests, conversations). Every write
runs against a copy, the copy is flushed with an atomic rename and only then
becomes the live document, so a failed flush leaves no partial state behind.
"""

import asyncio
import copy
import json
import logging
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

from huddle.exceptions import StoreError
from huddle.models.message import Conversation, Message
from huddle.models.user import User
from huddle.store.base import Store

logger = logging.getLogger(__name__)


def _empty_document() -> Dict[str, Any]:
    return {"users": {}, "friends": {}, "pendingRequests": {}, "conversations": {}}


class JsonFileStore(Store):
    """Whole-document store persisted to one JSON file."""

    def __init__(self, path):
        self.path = Path(path)
        self._data: Dict[str, Any] = _empty_document()
        self._lock = asyncio.Lock()

    async def open(self) -> None:
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise StoreError(f"Failed to read {self.path}: {e}") from e
            self._data = {**_empty_document(), **loaded}
            logger.info(f"Loaded store from {self.path}")
        else:
            self._flush(self._data)
            logger.info(f"Created new store at {self.path}")

    def _flush(self, document: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StoreError(f"Failed to write {self.path}: {e}") from e

    def _commit(self, draft: Dict[str, Any]) -> None:
        """Flush first; the draft becomes live only once it is on disk."""
        self._flush(draft)
        self._data = draft

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[Dict[str, Any]]:
        async with self._lock:
            draft = copy.deepcopy(self._data)
            yield draft
            self._commit(draft)

    # =========================================================================
    # Users
    # =========================================================================

    async def get_user(self, user_id: str) -> Optional[User]:
        doc = self._data["users"].get(user_id)
        return User.model_validate(doc) if doc else None

    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, User]:
        users = {}
        for user_id in user_ids:
            doc = self._data["users"].get(user_id)
            if doc:
                users[user_id] = User.model_validate(doc)
        return users

    async def find_user_by_username(self, username: str) -> Optional[User]:
        needle = username.lower()
        if not needle:
            return None
        for doc in self._data["users"].values():
            if doc.get("usernameLower") == needle:
                return User.model_validate(doc)
        return None

    async def find_user_by_email(self, email: str) -> Optional[User]:
        needle = email.lower()
        for doc in self._data["users"].values():
            if (doc.get("email") or "").lower() == needle:
                return User.model_validate(doc)
        return None

    async def create_user(self, user: User) -> User:
        async with self._transaction() as doc:
            doc["users"][user.id] = user.to_wire()
        return user

    async def update_user(self, user_id: str, fields: dict) -> Optional[User]:
        async with self._lock:
            if user_id not in self._data["users"]:
                return None
            draft = copy.deepcopy(self._data)
            current = User.model_validate(draft["users"][user_id])
            updated = current.model_copy(update=fields)
            draft["users"][user_id] = updated.to_wire()
            self._commit(draft)
        return updated

    # =========================================================================
    # Relationships
    # =========================================================================

    async def friends_of(self, user_id: str) -> Dict[str, str]:
        return dict(self._data["friends"].get(user_id, {}))

    async def pending_for(self, target_id: str) -> List[str]:
        return list(self._data["pendingRequests"].get(target_id, {}))

    async def add_pending(self, target_id: str, sender_id: str) -> None:
        async with self._transaction() as doc:
            doc["pendingRequests"].setdefault(target_id, {})[sender_id] = True

    async def accept_friendship(
        self, target_id: str, sender_id: str, conversation_id: str
    ) -> bool:
        async with self._lock:
            if not self._data["pendingRequests"].get(target_id, {}).get(sender_id):
                return False

            draft = copy.deepcopy(self._data)
            draft["friends"].setdefault(target_id, {})[sender_id] = conversation_id
            draft["friends"].setdefault(sender_id, {})[target_id] = conversation_id
            if conversation_id not in draft["conversations"]:
                draft["conversations"][conversation_id] = {
                    "id": conversation_id,
                    "participants": sorted([target_id, sender_id]),
                    "messages": [],
                }
            # Requests crossed in flight go away together
            del draft["pendingRequests"][target_id][sender_id]
            draft["pendingRequests"].get(sender_id, {}).pop(target_id, None)
            self._commit(draft)
        return True

    async def dissolve_friendship(
        self, user_a: str, user_b: str, conversation_id: str
    ) -> None:
        async with self._transaction() as doc:
            doc["friends"].get(user_a, {}).pop(user_b, None)
            doc["friends"].get(user_b, {}).pop(user_a, None)
            doc["conversations"].pop(conversation_id, None)

    # =========================================================================
    # Conversations
    # =========================================================================

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        doc = self._data["conversations"].get(conversation_id)
        return Conversation.model_validate(doc) if doc else None

    async def append_message(self, conversation_id: str, message: Message) -> bool:
        async with self._lock:
            if conversation_id not in self._data["conversations"]:
                return False
            draft = copy.deepcopy(self._data)
            draft["conversations"][conversation_id]["messages"].append(message.to_wire())
            self._commit(draft)
        return True

    async def mark_read(self, conversation_id: str, reader_id: str) -> bool:
        async with self._lock:
            if conversation_id not in self._data["conversations"]:
                return False
            draft = copy.deepcopy(self._data)
            for message in draft["conversations"][conversation_id]["messages"]:
                if message.get("userId") == reader_id:
                    continue
                read_by = message.setdefault("readBy", [])
                if reader_id not in read_by:
                    read_by.append(reader_id)
            self._commit(draft)
        return True
