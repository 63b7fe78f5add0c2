"""User Model - Defines the user schema for persistence and the public projection."""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from huddle.models.base import CamelModel
from huddle.utils.timezone_utils import utc_now

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{3,15}$")
USERNAME_RULE = "Username must be 3-15 chars (alphanumeric, hyphen, underscore)."


class User(CamelModel):
    """
    User record.

    Fields:
    - id: Opaque immutable identity (``user-<uuid4>``)
    - email: Login email, unique case-insensitively
    - password_hash: bcrypt hash, never sent to clients
    - username: Display handle, unset until chosen in the profile
    - username_lower: Lowercased handle used for unique lookups
    - avatar_url: Opaque URL or path of the avatar image
    """
    id: str
    email: str
    password_hash: str = ""
    username: Optional[str] = None
    username_lower: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    def to_public(self) -> "UserPublic":
        return UserPublic(
            id=self.id,
            email=self.email,
            username=self.username,
            avatar_url=self.avatar_url,
        )


class UserPublic(CamelModel):
    """User fields safe to push to any connection."""
    id: str
    email: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None


class UserCreate(BaseModel):
    """Data required to register."""
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("password")
    @classmethod
    def check_password_length(cls, value: str) -> str:
        # bcrypt only looks at the first 72 bytes
        if len(value.encode("utf-8")) > 72:
            raise ValueError("Password is too long.")
        return value


class UsernameUpdate(BaseModel):
    """Validated username change."""
    username: str

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str) -> str:
        if not USERNAME_PATTERN.match(value):
            raise ValueError(USERNAME_RULE)
        return value
