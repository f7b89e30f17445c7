# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up test environment variables before any imports
# - Provides a recording Outbox for relay service tests
# - Provides an in-memory WebSocket stand-in for connection manager tests
# =============================================================================

import asyncio
import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("JWT_SECRET", "test-secret-key-for-relay-tests")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

import pytest

from core.services import PresenceRegistry


# =============================================================================
# Test Doubles
# =============================================================================

class RecordingOutbox:
    """Outbox that records what the relays hand it."""

    def __init__(self):
        self.sent: list[tuple[str, dict]] = []
        self.broadcasts: list[dict] = []

    def send(self, connection_id, event) -> bool:
        self.sent.append((connection_id, event.to_wire()))
        return True

    def broadcast(self, event) -> int:
        self.broadcasts.append(event.to_wire())
        return 1

    def sent_to(self, connection_id: str) -> list[dict]:
        return [event for target, event in self.sent if target == connection_id]


class FakeWebSocket:
    """Just enough of fastapi.WebSocket for the connection manager."""

    def __init__(self):
        self.accepted = False
        self.sent: list[dict] = []
        self.closed: tuple[int, str | None] | None = None

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None):
        self.closed = (code, reason)


async def drain():
    """Let writer tasks flush their queues."""
    for _ in range(10):
        await asyncio.sleep(0)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def outbox():
    """A fresh recording outbox."""
    return RecordingOutbox()


@pytest.fixture
def registry(outbox):
    """A presence registry wired to the recording outbox."""
    return PresenceRegistry(outbox=outbox)


@pytest.fixture
def fake_websocket():
    """Factory for in-memory WebSockets."""
    return FakeWebSocket


@pytest.fixture
def flush():
    """Coroutine that yields to the event loop until writers are idle."""
    return drain
