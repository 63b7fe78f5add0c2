"""Shared fixtures: a fresh JSON-backed Hub per test and recording sockets."""

import pytest

from huddle.config import Settings
from huddle.gateway.connection import Connection
from huddle.gateway.dispatch import dispatch
from huddle.gateway.session import SessionGateway
from huddle.models.user import User
from huddle.runtime import Hub
from huddle.store.json_file import JsonFileStore


class RecordingSocket:
    """Stands in for a WebSocket and keeps every frame sent through it."""

    def __init__(self, fail: bool = False):
        self.frames = []
        self.fail = fail

    async def send_json(self, frame):
        if self.fail:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        self.frames.append(frame)

    def events(self):
        return [f["event"] for f in self.frames]

    def payloads(self, event):
        return [f["data"] for f in self.frames if f["event"] == event]

    def clear(self):
        self.frames.clear()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        store_backend="json",
        data_file=str(tmp_path / "db.json"),
        upload_dir=str(tmp_path / "uploads"),
        redis_url=None,
    )


@pytest.fixture
def store(settings):
    return JsonFileStore(settings.data_file)


@pytest.fixture
def hub(store, settings):
    return Hub(store, settings)


@pytest.fixture
def make_connection():
    def _make(fail: bool = False) -> Connection:
        return Connection(RecordingSocket(fail=fail))
    return _make


@pytest.fixture
def make_user(store):
    async def _make(username: str) -> User:
        user = User(
            id=f"user-{username}",
            email=f"{username}@example.com",
            username=username,
            username_lower=username.lower(),
            avatar_url=f"/uploads/{username}.png",
        )
        await store.create_user(user)
        return user
    return _make


@pytest.fixture
def befriend(hub):
    async def _befriend(a: User, b: User) -> str:
        await hub.relationships.send_request(a.id, b.username)
        return await hub.relationships.accept_request(b.id, a.id)
    return _befriend


@pytest.fixture
def connect(hub):
    """Open a session and authenticate it; the socket starts with a clean frame log."""
    async def _connect(user: User) -> SessionGateway:
        gateway = SessionGateway(hub, Connection(RecordingSocket()))
        await dispatch(gateway, "authenticate", user.id)
        gateway.connection.websocket.clear()
        return gateway
    return _connect
