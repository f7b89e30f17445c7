# =============================================================================
# tests/test_connection_manager.py - Connection Lifecycle Tests
# =============================================================================
# Tests for ConnectionManager and Connection:
# - connecting -> authenticated -> closed transitions
# - registry mutations on accept/close (and none on reject)
# - event dispatch, malformed frame handling
# - the single-session supersede policy, including full and stalled queues
# - events handed over from worker threads
#
# Async code is driven with asyncio.run and in-memory WebSockets.
# =============================================================================

import asyncio
import json
import threading

import pytest

from app.auth import AuthUser, TokenMissingError
from app.websocket import (
    SUPERSEDED_CLOSE_CODE,
    ConnectionManager,
    InvalidTransitionError,
)
from core.models import ConnectionState, PresenceOnlineEvent


def _frame(**data) -> str:
    return json.dumps(data)


# =============================================================================
# Lifecycle
# =============================================================================

class TestLifecycle:
    """State transitions and their registry side effects."""

    def test_accept_registers_and_announces(self, fake_websocket, flush):
        """Test that accept binds the user and broadcasts presence."""
        async def scenario():
            manager = ConnectionManager()
            websocket = fake_websocket()
            connection = manager.open(websocket)
            assert connection.state is ConnectionState.CONNECTING

            await manager.accept(connection, AuthUser(id="alice"))
            await flush()

            assert websocket.accepted is True
            assert connection.state is ConnectionState.AUTHENTICATED
            assert connection.user_id == "alice"
            assert manager.registry.lookup("alice") == connection.id
            assert websocket.sent == [{"type": "presence-online", "userId": "alice"}]
            await manager.close(connection)

        asyncio.run(scenario())

    def test_reject_leaves_registry_untouched(self, fake_websocket):
        """Test that a failed handshake closes without registering."""
        async def scenario():
            manager = ConnectionManager()
            websocket = fake_websocket()
            connection = manager.open(websocket)

            await manager.reject(connection, TokenMissingError())

            assert websocket.accepted is False
            assert websocket.closed == (4001, "auth token missing")
            assert connection.state is ConnectionState.CLOSED
            assert manager.registry.online_users() == []
            assert manager.get_connection_count() == 0

        asyncio.run(scenario())

    def test_close_unregisters_and_announces(self, fake_websocket, flush):
        """Test that disconnect removes presence and tells everyone else."""
        async def scenario():
            manager = ConnectionManager()
            alice_ws, bob_ws = fake_websocket(), fake_websocket()
            alice = manager.open(alice_ws)
            bob = manager.open(bob_ws)
            await manager.accept(alice, AuthUser(id="alice"))
            await manager.accept(bob, AuthUser(id="bob"))

            await manager.close(bob)
            await flush()

            assert bob.state is ConnectionState.CLOSED
            assert manager.registry.lookup("bob") is None
            assert alice_ws.sent[-1] == {"type": "presence-offline", "userId": "bob"}
            await manager.close(alice)

        asyncio.run(scenario())

    def test_close_is_idempotent(self, fake_websocket):
        async def scenario():
            manager = ConnectionManager()
            connection = manager.open(fake_websocket())
            await manager.accept(connection, AuthUser(id="alice"))

            await manager.close(connection)
            await manager.close(connection)

            assert manager.get_connection_count() == 0

        asyncio.run(scenario())

    def test_closed_connection_cannot_authenticate(self, fake_websocket):
        """Test that a closed connection is never reused."""
        async def scenario():
            manager = ConnectionManager()
            connection = manager.open(fake_websocket())
            connection.mark_closed()

            with pytest.raises(InvalidTransitionError):
                connection.authenticate(AuthUser(id="alice"))

        asyncio.run(scenario())

    def test_identity_bound_once(self, fake_websocket):
        """Test that the bound user cannot be replaced."""
        async def scenario():
            manager = ConnectionManager()
            connection = manager.open(fake_websocket())
            await manager.accept(connection, AuthUser(id="alice"))

            with pytest.raises(InvalidTransitionError):
                connection.authenticate(AuthUser(id="mallory"))
            assert connection.user_id == "alice"
            await manager.close(connection)

        asyncio.run(scenario())


# =============================================================================
# Dispatch
# =============================================================================

class TestDispatch:
    """Routing inbound frames to the relays."""

    def test_message_between_two_connections(self, fake_websocket, flush):
        async def scenario():
            manager = ConnectionManager()
            alice_ws, bob_ws = fake_websocket(), fake_websocket()
            alice = manager.open(alice_ws)
            bob = manager.open(bob_ws)
            await manager.accept(alice, AuthUser(id="alice"))
            await manager.accept(bob, AuthUser(id="bob"))
            await flush()
            alice_ws.sent.clear()
            bob_ws.sent.clear()

            handled = manager.dispatch(alice, _frame(
                type="send-message",
                recipientId="bob",
                content="hi",
                clientCorrelationId="t1",
            ))
            await flush()

            assert handled is True
            assert len(bob_ws.sent) == 1
            received = bob_ws.sent[0]
            assert received["type"] == "receive-message"
            assert received["senderId"] == "alice"
            assert received["content"] == "hi"
            assert alice_ws.sent == [{
                "type": "message-acknowledged",
                "clientCorrelationId": "t1",
                "serverMessageId": received["id"],
            }]
            await manager.close(alice)
            await manager.close(bob)

        asyncio.run(scenario())

    def test_signal_between_two_connections(self, fake_websocket, flush):
        async def scenario():
            manager = ConnectionManager()
            alice_ws, bob_ws = fake_websocket(), fake_websocket()
            alice = manager.open(alice_ws)
            bob = manager.open(bob_ws)
            await manager.accept(alice, AuthUser(id="alice"))
            await manager.accept(bob, AuthUser(id="bob"))
            await flush()
            bob_ws.sent.clear()

            manager.dispatch(alice, _frame(type="call-answer", recipientId="bob", sdp={"sdp": "v=0"}))
            await flush()

            assert bob_ws.sent == [{"type": "call-answer", "senderId": "alice", "sdp": {"sdp": "v=0"}}]
            await manager.close(alice)
            await manager.close(bob)

        asyncio.run(scenario())

    def test_malformed_frame_is_ignored(self, fake_websocket, flush):
        """Test that a bad frame fails alone and the connection stays up."""
        async def scenario():
            manager = ConnectionManager()
            websocket = fake_websocket()
            connection = manager.open(websocket)
            await manager.accept(connection, AuthUser(id="alice"))
            await flush()
            websocket.sent.clear()

            assert manager.dispatch(connection, "{not json") is False
            assert manager.dispatch(connection, _frame(type="send-message", content="hi")) is False
            assert connection.state is ConnectionState.AUTHENTICATED

            assert manager.dispatch(connection, _frame(
                type="send-message",
                recipientId="nobody",
                clientCorrelationId="t2",
            )) is True
            await flush()
            assert [event["type"] for event in websocket.sent] == ["message-acknowledged"]
            await manager.close(connection)

        asyncio.run(scenario())

    def test_closed_connection_dispatches_nothing(self, fake_websocket):
        async def scenario():
            manager = ConnectionManager()
            connection = manager.open(fake_websocket())
            await manager.accept(connection, AuthUser(id="alice"))
            await manager.close(connection)

            assert manager.dispatch(connection, _frame(
                type="send-message",
                recipientId="bob",
                clientCorrelationId="t1",
            )) is False

        asyncio.run(scenario())


# =============================================================================
# Supersede Policy
# =============================================================================

class TestSupersede:
    """A second connection for the same user evicts the first."""

    def test_second_connection_evicts_first(self, fake_websocket, flush):
        async def scenario():
            manager = ConnectionManager()
            first_ws, second_ws = fake_websocket(), fake_websocket()
            first = manager.open(first_ws)
            second = manager.open(second_ws)

            await manager.accept(first, AuthUser(id="alice"))
            await manager.accept(second, AuthUser(id="alice"))
            await flush()

            assert manager.registry.lookup("alice") == second.id
            assert first.state is ConnectionState.CLOSED
            assert first_ws.sent[-1] == {"type": "session-superseded", "userId": "alice"}
            assert first_ws.closed == (SUPERSEDED_CLOSE_CODE, "session superseded")
            assert manager.get_connection_count() == 1

            # The evicted socket's late close must not knock alice offline
            await manager.close(first)
            assert manager.registry.lookup("alice") == second.id
            await manager.close(second)
            assert manager.registry.lookup("alice") is None

        asyncio.run(scenario())

    def test_evicted_connection_sees_presence_before_superseded(self, fake_websocket, flush):
        """Test the order of events on the old connection."""
        async def scenario():
            manager = ConnectionManager()
            first_ws = fake_websocket()
            first = manager.open(first_ws)
            second = manager.open(fake_websocket())

            await manager.accept(first, AuthUser(id="alice"))
            await manager.accept(second, AuthUser(id="alice"))
            await flush()

            assert first_ws.sent == [
                {"type": "presence-online", "userId": "alice"},
                {"type": "presence-online", "userId": "alice"},
                {"type": "session-superseded", "userId": "alice"},
            ]
            await manager.close(first)
            await manager.close(second)

        asyncio.run(scenario())

    def test_eviction_closes_even_with_full_queue(self, fake_websocket, flush):
        """Test that a backed-up queue cannot block the 4009 close."""
        async def scenario():
            manager = ConnectionManager(queue_size=1)
            first_ws, second_ws = fake_websocket(), fake_websocket()
            first = manager.open(first_ws)
            second = manager.open(second_ws)

            # Nothing is drained between the two accepts, so the first
            # connection's single slot is already taken
            await manager.accept(first, AuthUser(id="alice"))
            await manager.accept(second, AuthUser(id="alice"))
            await flush()

            assert first_ws.closed == (SUPERSEDED_CLOSE_CODE, "session superseded")
            assert first_ws.sent == [{"type": "session-superseded", "userId": "alice"}]
            assert not first.writer_active

            await manager.close(first)
            assert manager.registry.lookup("alice") == second.id
            await manager.close(second)

        asyncio.run(scenario())

    def test_close_stops_writer_of_stalled_evicted_connection(self, fake_websocket, flush):
        """Test that a stuck writer is cancelled when the evicted client drops."""
        class StalledWebSocket(fake_websocket):
            async def send_json(self, data):
                await asyncio.Event().wait()

        async def scenario():
            manager = ConnectionManager(queue_size=1)
            first_ws = StalledWebSocket()
            first = manager.open(first_ws)
            second = manager.open(fake_websocket())

            await manager.accept(first, AuthUser(id="alice"))
            await flush()
            await manager.accept(second, AuthUser(id="alice"))
            await flush()

            assert first.state is ConnectionState.CLOSED
            assert first.writer_active
            assert first_ws.closed is None

            await manager.close(first)

            assert not first.writer_active
            assert manager.registry.lookup("alice") == second.id
            await manager.close(second)

        asyncio.run(scenario())


# =============================================================================
# Outbound Queue
# =============================================================================

class TestOutboundQueue:
    def test_full_queue_drops_events(self, fake_websocket):
        """Test that a slow client loses events instead of blocking relays."""
        async def scenario():
            manager = ConnectionManager(queue_size=2)
            connection = manager.open(fake_websocket())
            await manager.accept(connection, AuthUser(id="alice"))

            # presence-online already occupies one slot
            assert connection.enqueue({"type": "x"}) is True
            assert connection.enqueue({"type": "y"}) is False
            await manager.close(connection)

        asyncio.run(scenario())

    def test_send_to_unknown_connection(self):
        manager = ConnectionManager()

        assert manager.send("missing", object()) is False

    def test_closed_connection_refuses_events(self, fake_websocket):
        async def scenario():
            manager = ConnectionManager()
            connection = manager.open(fake_websocket())
            await manager.accept(connection, AuthUser(id="alice"))
            await manager.close(connection)

            assert connection.enqueue({"type": "x"}) is False

        asyncio.run(scenario())


# =============================================================================
# Cross-Thread Delivery
# =============================================================================

class TestCrossThreadDelivery:
    """Events handed over from threads other than the socket's event loop."""

    def test_send_from_worker_thread(self, fake_websocket, flush):
        """Test that a send from another thread reaches the socket."""
        async def scenario():
            manager = ConnectionManager()
            websocket = fake_websocket()
            connection = manager.open(websocket)
            await manager.accept(connection, AuthUser(id="alice"))
            await flush()
            websocket.sent.clear()

            results = []
            worker = threading.Thread(
                target=lambda: results.append(
                    manager.send(connection.id, PresenceOnlineEvent(user_id="bob"))
                )
            )
            worker.start()
            worker.join()

            # Scheduled on the loop, not yet written
            assert results == [True]
            assert websocket.sent == []

            await flush()
            assert websocket.sent == [{"type": "presence-online", "userId": "bob"}]
            await manager.close(connection)

        asyncio.run(scenario())

    def test_register_from_worker_threads(self, fake_websocket, flush):
        """Test that presence broadcasts from several threads all arrive."""
        async def scenario():
            manager = ConnectionManager()
            websocket = fake_websocket()
            connection = manager.open(websocket)
            await manager.accept(connection, AuthUser(id="alice"))
            await flush()
            websocket.sent.clear()

            workers = [
                threading.Thread(target=manager.registry.register, args=(user, f"remote-{user}"))
                for user in ("bob", "carol", "dave")
            ]
            for worker in workers:
                worker.start()
            for worker in workers:
                worker.join()
            await flush()

            assert sorted(event["userId"] for event in websocket.sent) == ["bob", "carol", "dave"]
            assert manager.registry.online_users() == ["alice", "bob", "carol", "dave"]
            await manager.close(connection)

        asyncio.run(scenario())

    def test_worker_thread_send_can_still_be_dropped(self, fake_websocket, flush):
        """Test that True from another thread only means the event was scheduled."""
        class GatedWebSocket(fake_websocket):
            def __init__(self):
                super().__init__()
                self.release = asyncio.Event()

            async def send_json(self, data):
                await self.release.wait()
                await super().send_json(data)

        async def scenario():
            manager = ConnectionManager(queue_size=1)
            websocket = GatedWebSocket()
            connection = manager.open(websocket)
            await manager.accept(connection, AuthUser(id="alice"))
            await flush()

            # The writer holds presence-online; this fills the only slot
            assert connection.enqueue({"type": "filler"}) is True

            results = []
            worker = threading.Thread(
                target=lambda: results.append(
                    manager.send(connection.id, PresenceOnlineEvent(user_id="bob"))
                )
            )
            worker.start()
            worker.join()
            await flush()

            websocket.release.set()
            await flush()

            assert results == [True]
            assert websocket.sent == [
                {"type": "presence-online", "userId": "alice"},
                {"type": "filler"},
            ]
            await manager.close(connection)

        asyncio.run(scenario())
