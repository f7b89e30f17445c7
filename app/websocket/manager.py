# =============================================================================
# app/websocket/manager.py - WebSocket Connection Manager
# =============================================================================
# Owns every relay connection from handshake to close, and wires inbound
# events to the relay services.
#
# Usage:
#   from app.websocket import connection_manager
#
#   connection = connection_manager.open(websocket)
#   await connection_manager.accept(connection, user)   # registers presence
#   connection_manager.dispatch(connection, raw_frame)  # routes one event
#   await connection_manager.close(connection)          # unregisters
#
# The manager is also the Outbox the relays write to: send() and broadcast()
# only enqueue on each connection's outbound queue.
# =============================================================================

import logging
import threading
from typing import Any, Callable

from fastapi import WebSocket
from pydantic import ValidationError

from app.auth import AUTH_CLOSE_CODE, AuthUser, AuthenticationError
from app.config import settings
from app.websocket.connection import Connection
from core.models.events import (
    INBOUND_EVENT_TYPES,
    CallAnswerEvent,
    CallIceEvent,
    CallOfferEvent,
    SendMessageEvent,
    SessionSupersededEvent,
    WireModel,
    parse_inbound_event,
)
from core.models.relay import ConnectionState
from core.services import MessageRelay, PresenceRegistry, SignalingRelay

logger = logging.getLogger(__name__)

# Close code sent to a connection replaced by a newer one for the same user
SUPERSEDED_CLOSE_CODE = 4009


class ConnectionManager:
    """
    Manages relay connections and routes their events.

    One user has at most one live connection. When the same user connects
    again, the older connection receives session-superseded and is closed.
    """

    def __init__(self, queue_size: int = 256):
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()
        self._queue_size = queue_size

        self.registry = PresenceRegistry(outbox=self)
        self.message_relay = MessageRelay(self.registry, outbox=self)
        self.signaling_relay = SignalingRelay(self.registry, outbox=self)

        self._handlers: dict[type, Callable[[Connection, Any], None]] = {
            SendMessageEvent: self._handle_send_message,
            CallOfferEvent: self._handle_signal,
            CallAnswerEvent: self._handle_signal,
            CallIceEvent: self._handle_signal,
        }
        missing = [cls.__name__ for cls in INBOUND_EVENT_TYPES if cls not in self._handlers]
        if missing:
            raise RuntimeError(f"No handler registered for inbound events: {missing}")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self, websocket: WebSocket) -> Connection:
        """Create a connection in the connecting state."""
        return Connection(websocket, queue_size=self._queue_size)

    async def reject(self, connection: Connection, error: AuthenticationError) -> None:
        """
        Refuse a connection that failed authentication.

        The socket is closed before it is accepted, so no events are ever
        dispatched and the registry is never touched.
        """
        connection.mark_closed()
        logger.warning(f"Rejected connection {connection.id}: {error.reason}")
        await connection.websocket.close(code=AUTH_CLOSE_CODE, reason=error.reason)

    async def accept(self, connection: Connection, user: AuthUser) -> None:
        """
        Accept an authenticated connection and make its user reachable.

        Args:
            connection: A connection in the connecting state
            user: Identity returned by the auth gate
        """
        await connection.websocket.accept()
        connection.authenticate(user)
        connection.start_writer()

        with self._lock:
            self._connections[connection.id] = connection

        previous_id = self.registry.register(user.id, connection.id)
        if previous_id is not None:
            self._evict(previous_id, user.id)

        logger.info(
            f"User {user.id} connected on {connection.id}. "
            f"Total connections: {self.get_connection_count()}"
        )

    def _evict(self, connection_id: str, user_id: str) -> None:
        with self._lock:
            old = self._connections.pop(connection_id, None)
        if old is None:
            return

        old.mark_closed()
        old.request_close(
            SUPERSEDED_CLOSE_CODE,
            "session superseded",
            farewell=SessionSupersededEvent(user_id=user_id).to_wire(),
        )
        logger.info(f"Connection {connection_id} of user {user_id} was superseded")

    async def close(self, connection: Connection) -> None:
        """
        Tear down a connection after transport close.

        Unregisters the user only if this connection is still the one
        registered for them. Undelivered outbound events are discarded.
        The writer is always stopped, even for a connection that was already
        marked closed by eviction.
        """
        was_authenticated = connection.state is ConnectionState.AUTHENTICATED
        if connection.mark_closed():
            with self._lock:
                self._connections.pop(connection.id, None)

            if was_authenticated:
                self.registry.unregister(connection.user_id, connection.id)

            logger.info(
                f"User {connection.user_id} disconnected from {connection.id}. "
                f"Total connections: {self.get_connection_count()}"
            )

        await connection.stop_writer()

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    def dispatch(self, connection: Connection, raw: str | bytes) -> bool:
        """
        Parse one inbound frame and route it to its handler.

        Malformed frames are logged and ignored; the connection stays open.

        Returns:
            bool: True if the event was handled
        """
        if connection.state is not ConnectionState.AUTHENTICATED:
            logger.debug(f"Ignoring frame on {connection.state.value} connection {connection.id}")
            return False

        try:
            event = parse_inbound_event(raw)
        except ValidationError as e:
            logger.warning(
                f"Ignoring malformed event from user {connection.user_id}: "
                f"{e.error_count()} validation error(s)"
            )
            return False

        self._handlers[type(event)](connection, event)
        return True

    def _handle_send_message(self, connection: Connection, event: SendMessageEvent) -> None:
        self.message_relay.send(connection.user_id, connection.id, event)

    def _handle_signal(self, connection: Connection, event: Any) -> None:
        self.signaling_relay.forward(
            sender_id=connection.user_id,
            kind=event.signal_kind,
            recipient_id=event.recipient_id,
            payload=event.payload,
        )

    # -------------------------------------------------------------------------
    # Outbox
    # -------------------------------------------------------------------------

    def send(self, connection_id: str, event: WireModel) -> bool:
        with self._lock:
            connection = self._connections.get(connection_id)
        if connection is None:
            return False
        return connection.enqueue(event.to_wire())

    def broadcast(self, event: WireModel) -> int:
        with self._lock:
            targets = list(self._connections.values())

        payload = event.to_wire()
        sent_count = sum(1 for connection in targets if connection.enqueue(payload))

        logger.debug(f"Broadcast type={payload.get('type')} to {sent_count} connections")
        return sent_count

    # -------------------------------------------------------------------------
    # Stats
    # -------------------------------------------------------------------------

    def get_connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def get_online_users(self) -> list[str]:
        return self.registry.online_users()


# Global singleton instance
connection_manager = ConnectionManager(queue_size=settings.OUTBOUND_QUEUE_SIZE)
