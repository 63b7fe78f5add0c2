"""Message Model - One entry in a conversation's append-only log."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from huddle.models.base import CamelModel
from huddle.utils.timezone_utils import utc_now


class Message(CamelModel):
    """
    Chat message.

    ``read_by`` only ever grows and never contains the author.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    text: str = ""
    file_url: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    read_by: List[str] = Field(default_factory=list)


class Conversation(CamelModel):
    """Conversation between exactly two friends."""
    id: str
    participants: List[str]
    messages: List[Message] = Field(default_factory=list)
