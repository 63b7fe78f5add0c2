"""Huddle Session Gateway Package"""

from huddle.gateway.connection import Connection
from huddle.gateway.dispatch import EVENTS, EventSpec, dispatch
from huddle.gateway.session import SessionGateway

__all__ = [
    "Connection",
    "EVENTS",
    "EventSpec",
    "SessionGateway",
    "dispatch",
]
