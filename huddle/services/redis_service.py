"""Redis Service - Ephemeral session keys for online users."""

import logging
from typing import Optional

from redis.exceptions import RedisError

from huddle.config import settings
from huddle.database import get_redis
from huddle.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# Redis Key Naming Convention
# =============================================================================
#
# All keys are namespaced under "huddle:" prefix.
#
# Key patterns:
# - huddle:session:{user_id}   - Hash {connection_id, since} of the live connection
#
# TTL rules:
# - Sessions: SESSION_TTL_SECONDS, refreshed on every authenticate
#
# The in-process PresenceRegistry stays authoritative for delivery; these keys
# only make "who is online" visible to other processes and tools.
#
# =============================================================================


class RedisKeys:
    """Redis key builders with documentation."""

    @staticmethod
    def user_session(user_id: str) -> str:
        """Hash holding the user's live connection id and session start (ISO)."""
        return f"huddle:session:{user_id}"

    @staticmethod
    def session_pattern() -> str:
        return "huddle:session:*"


class SessionTracker:
    """
    Mirrors presence into Redis.

    Every call is best-effort: with Redis disabled or unreachable it logs and
    returns, never failing the WebSocket operation that triggered it.
    """

    def __init__(self, ttl_seconds: Optional[int] = None):
        self.ttl_seconds = ttl_seconds or settings.session_ttl_seconds

    async def mark_online(self, user_id: str, connection_id: str) -> None:
        redis = get_redis()
        if not redis:
            return

        key = RedisKeys.user_session(user_id)
        try:
            await redis.hset(key, mapping={
                "connection_id": connection_id,
                "since": utc_now().isoformat(),
            })
            await redis.expire(key, self.ttl_seconds)
        except RedisError as e:
            logger.debug(f"Session mark failed for {user_id}: {e}")

    async def mark_offline(self, user_id: str, connection_id: str) -> None:
        """Drop the session key unless a newer connection already owns it."""
        redis = get_redis()
        if not redis:
            return

        key = RedisKeys.user_session(user_id)
        try:
            current = await redis.hget(key, "connection_id")
            if current == connection_id:
                await redis.delete(key)
        except RedisError as e:
            logger.debug(f"Session clear failed for {user_id}: {e}")

    async def online_count(self) -> Optional[int]:
        """Number of session keys, or None when Redis is not available."""
        redis = get_redis()
        if not redis:
            return None

        try:
            count = 0
            async for _ in redis.scan_iter(match=RedisKeys.session_pattern(), count=500):
                count += 1
            return count
        except RedisError as e:
            logger.debug(f"Session count failed: {e}")
            return None
