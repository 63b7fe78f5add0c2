"""Huddle Routers Package"""

from huddle.routers import auth, users, websocket

__all__ = ["auth", "users", "websocket"]
