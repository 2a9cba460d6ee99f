"""Pytest configuration and shared fixtures for all tests"""
import pytest
from unittest.mock import AsyncMock

from database.message_store import MessageStore
from domain.errors import AuthError
from domain.models import Identity
from events.publisher import EventPublisher
from realtime.dispatcher import Dispatcher, build_dispatcher
from realtime.session_registry import SessionRegistry

pytest_plugins = ("pytest_asyncio",)

ALICE = Identity(id=1, username="alice", email="alice@example.com")
BOB = Identity(id=2, username="bob", email="bob@example.com")
CAROL = Identity(id=3, username="carol", email="carol@example.com")

TOKENS = {
    "token-alice": ALICE,
    "token-bob": BOB,
    "token-carol": CAROL,
}


class FakeAuthClient:
    """Stands in for the auth service: fixed token -> identity table"""

    def __init__(self, tokens: dict[str, Identity] | None = None) -> None:
        self.tokens = dict(TOKENS if tokens is None else tokens)
        self.closed = False

    async def identify(self, token: str | None) -> Identity:
        if not token or token not in self.tokens:
            raise AuthError("Invalid or expired token")
        return self.tokens[token]

    async def close(self) -> None:
        self.closed = True


def drain(session) -> list[dict]:
    """Pop every envelope currently queued for a session"""
    envelopes: list[dict] = []
    while not session.outbox.empty():
        envelopes.append(session.outbox.get_nowait())
    return envelopes


@pytest.fixture
def alice() -> Identity:
    return ALICE


@pytest.fixture
def bob() -> Identity:
    return BOB


@pytest.fixture
def carol() -> Identity:
    return CAROL


@pytest.fixture
def fake_auth_client():
    return FakeAuthClient()


@pytest.fixture
async def in_memory_store():
    """Create an in-memory SQLite message store for testing"""
    store = MessageStore(":memory:")
    await store.init()
    yield store
    await store.close()


@pytest.fixture
def session_registry():
    """Create a SessionRegistry without a presence listener"""
    return SessionRegistry()


@pytest.fixture
def event_publisher(session_registry):
    return EventPublisher(session_registry)


@pytest.fixture
async def dispatcher(in_memory_store) -> Dispatcher:
    """Fully wired dispatcher over an in-memory store"""
    return build_dispatcher(in_memory_store)


@pytest.fixture
def mock_websocket():
    """Create a mock WebSocket for testing"""
    ws = AsyncMock()
    ws.accept = AsyncMock()
    ws.send_text = AsyncMock()
    ws.close = AsyncMock()
    return ws


@pytest.fixture
def drain_outbox():
    """Helper that empties a session outbox and returns its envelopes"""
    return drain
