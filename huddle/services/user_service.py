"""User Service - Registration, login, profile edits and uploaded files."""

import logging
import uuid
from pathlib import Path
from typing import Optional

import bcrypt
from pydantic import ValidationError

from huddle.config import Settings, settings as default_settings
from huddle.exceptions import InvalidCredentialsError, InvalidInputError
from huddle.models.user import USERNAME_RULE, User, UserCreate, UsernameUpdate
from huddle.store.base import Store

logger = logging.getLogger(__name__)

AVATAR_TYPES = {
    "image/jpeg": {".jpg", ".jpeg"},
    "image/png": {".png"},
    "image/gif": {".gif"},
}

CHAT_FILE_TYPES = {
    **AVATAR_TYPES,
    "video/mp4": {".mp4"},
    "video/webm": {".webm"},
    "video/ogg": {".ogg"},
    "audio/ogg": {".ogg"},
    "audio/webm": {".webm"},
}


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, stored: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash
        return False


def default_avatar_url(email: str) -> str:
    initial = email[:1].upper() or "?"
    return f"https://placehold.co/40x40/4f46e5/ffffff?text={initial}"


def new_user_id() -> str:
    # "user-" keeps the id free of the conversation-id separator
    return f"user-{uuid.uuid4()}"


class UserService:
    """
    Account and profile management.

    These are thin collaborators of the messaging core: the core only ever
    needs user lookups by identity and by username.
    """

    def __init__(self, store: Store, config: Optional[Settings] = None):
        self.store = store
        self.settings = config or default_settings

    async def register(self, email: str, password: str) -> User:
        """
        Create an account.

        Raises InvalidInputError for a malformed email, a password shorter
        than six characters, or an email that is already registered.
        """
        try:
            data = UserCreate(email=email, password=password)
        except ValidationError:
            raise InvalidInputError("Invalid email or password (must be 6+ chars).")

        if await self.store.find_user_by_email(data.email):
            raise InvalidInputError("Email is already registered.")

        user = User(
            id=new_user_id(),
            email=data.email,
            password_hash=hash_password(data.password),
            avatar_url=default_avatar_url(data.email),
        )
        await self.store.create_user(user)

        logger.info(f"Registered user {user.id}")
        return user

    async def login(self, email: str, password: str) -> User:
        user = await self.store.find_user_by_email(email or "")
        if not user or not verify_password(password or "", user.password_hash):
            raise InvalidCredentialsError()
        return user

    async def update_profile(
        self,
        user_id: str,
        username: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        """
        Change the username and/or avatar.

        Usernames are 3-15 characters of letters, digits, hyphen and underscore,
        unique ignoring case. Keeping one's own name in a different case is
        allowed.
        """
        user = await self.store.get_user(user_id)
        if not user:
            raise InvalidInputError("User not found.")

        updates = {}

        if username:
            try:
                username = UsernameUpdate(username=username).username
            except ValidationError:
                raise InvalidInputError(USERNAME_RULE)

            username_lower = username.lower()
            if username_lower != user.username_lower:
                existing = await self.store.find_user_by_username(username)
                if existing and existing.id != user_id:
                    raise InvalidInputError("This username is already taken.")
            updates["username"] = username
            updates["username_lower"] = username_lower

        if avatar_url:
            updates["avatar_url"] = avatar_url

        if not updates:
            return user

        updated = await self.store.update_user(user_id, updates)
        logger.info(f"Profile updated for {user_id}: {sorted(updates)}")
        return updated or user

    # =========================================================================
    # Uploaded files
    # =========================================================================

    def _check_file(self, filename: str, content_type: str, size: int, allowed: dict, max_bytes: int):
        extension = Path(filename or "").suffix.lower()
        if content_type not in allowed or extension not in allowed[content_type]:
            kinds = ", ".join(sorted({e.lstrip(".") for exts in allowed.values() for e in exts}))
            raise InvalidInputError(f"File upload only supports the following filetypes: {kinds}")
        if size > max_bytes:
            raise InvalidInputError(f"File too large. Max size is {max_bytes // (1024 * 1024)}MB.")
        return extension

    def _write(self, name: str, content: bytes) -> str:
        upload_path = self.settings.upload_path
        upload_path.mkdir(parents=True, exist_ok=True)
        (upload_path / name).write_bytes(content)
        return f"/uploads/{name}"

    def save_avatar(self, user_id: str, filename: str, content_type: str, content: bytes) -> str:
        """Store an avatar image and return its URL."""
        extension = self._check_file(
            filename, content_type, len(content), AVATAR_TYPES, self.settings.avatar_max_bytes
        )
        return self._write(f"avatar-{user_id}-{uuid.uuid4()}{extension}", content)

    def save_chat_file(self, filename: str, content_type: str, content: bytes) -> str:
        """Store a chat attachment and return its URL."""
        extension = self._check_file(
            filename, content_type, len(content), CHAT_FILE_TYPES, self.settings.chat_file_max_bytes
        )
        return self._write(f"file-{uuid.uuid4()}{extension}", content)
