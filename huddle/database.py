"""
Huddle Database Module

MongoDB and Redis connection management.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from huddle.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# MongoDB Connection
# =============================================================================

class MongoDB:
    """MongoDB connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None


mongo = MongoDB()


async def init_mongodb():
    """Initialize MongoDB connection and create indexes."""
    mongo.client = AsyncIOMotorClient(settings.mongodb_uri, tz_aware=True)
    mongo.db = mongo.client[settings.mongodb_database]

    # Users collection indexes
    await mongo.db.users.create_index("id", unique=True)
    await mongo.db.users.create_index("email_lower", unique=True)
    # Username is null until chosen; only set usernames must be unique
    await mongo.db.users.create_index(
        "username_lower",
        unique=True,
        partialFilterExpression={"username_lower": {"$type": "string"}},
    )

    # Friendship edges: one document per direction
    await mongo.db.friendships.create_index(
        [("user_id", 1), ("friend_id", 1)], unique=True
    )
    await mongo.db.friendships.create_index("conversation_id")

    # Pending requests keyed by (target, sender)
    await mongo.db.friend_requests.create_index(
        [("to_user_id", 1), ("from_user_id", 1)], unique=True
    )

    await mongo.db.conversations.create_index("conversation_id", unique=True)

    logger.info(f"Connected to MongoDB: {settings.mongodb_database}")


async def close_mongodb():
    """Close MongoDB connection."""
    if mongo.client:
        mongo.client.close()
        mongo.client = None
        mongo.db = None


def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    if mongo.db is None:
        raise RuntimeError("Database not initialized")
    return mongo.db


def get_mongo_client() -> AsyncIOMotorClient:
    """Get the client (needed to open sessions for transactions)."""
    if mongo.client is None:
        raise RuntimeError("Database not initialized")
    return mongo.client


# =============================================================================
# Redis Connection
# =============================================================================

class RedisClient:
    """Redis connection manager."""

    client: Optional[redis.Redis] = None


redis_client = RedisClient()


async def init_redis():
    """Initialize Redis connection. Skipped when REDIS_URL is not configured."""
    if not settings.redis_url:
        logger.info("REDIS_URL not set, session tracking disabled")
        return

    redis_client.client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=30,
        socket_connect_timeout=5,
        retry_on_timeout=True,
        socket_keepalive=True
    )


async def close_redis():
    """Close Redis connection."""
    if redis_client.client:
        await redis_client.client.aclose()
        redis_client.client = None


def get_redis() -> Optional[redis.Redis]:
    """Get Redis client instance, or None when Redis is disabled."""
    return redis_client.client
