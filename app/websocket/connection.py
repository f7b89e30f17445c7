# =============================================================================
# app/websocket/connection.py - One Relay Connection
# =============================================================================
# Wraps a single WebSocket with:
# - a lifecycle state (connecting -> authenticated -> closed, single-use)
# - the user identity bound at handshake (set once, never changed)
# - a bounded outbound queue drained by a writer task
#
# Relays never await socket sends. They put JSON-ready dicts on the queue and
# move on. If the queue is full or the socket is broken the event is dropped.
# Close requests are the exception: they always get a slot, discarding the
# oldest pending events if needed, so an evicted client is always closed.
# =============================================================================

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from fastapi import WebSocket

from app.auth.models import AuthUser
from core.models.relay import ConnectionState
from lib.utils import ApplicationError, new_connection_id

logger = logging.getLogger(__name__)


_ALLOWED_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.CONNECTING: frozenset({ConnectionState.AUTHENTICATED, ConnectionState.CLOSED}),
    ConnectionState.AUTHENTICATED: frozenset({ConnectionState.CLOSED}),
    ConnectionState.CLOSED: frozenset(),
}


class InvalidTransitionError(ApplicationError):
    """Raised when a connection is driven through a forbidden state change."""

    def __init__(self, connection_id: str, current: ConnectionState, target: ConnectionState):
        super().__init__(
            message=f"Connection {connection_id} cannot go from {current.value} to {target.value}",
            code="INVALID_CONNECTION_TRANSITION",
            suggestion="Open a new connection instead of reusing a closed one",
            details={
                "connection_id": connection_id,
                "current": current.value,
                "target": target.value,
            },
        )


@dataclass(frozen=True)
class _CloseRequest:
    code: int
    reason: str
    farewell: Optional[dict[str, Any]] = None


class Connection:
    """
    A transport session owned by the ConnectionManager.

    Args:
        websocket: The underlying FastAPI WebSocket
        queue_size: Max outbound events buffered before new ones are dropped
    """

    def __init__(self, websocket: WebSocket, queue_size: int = 256):
        self.id = new_connection_id()
        self.websocket = websocket
        self._state = ConnectionState.CONNECTING
        self._user: Optional[AuthUser] = None
        self._state_lock = threading.Lock()
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._writer: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"<Connection {self.id} user={self.user_id} state={self._state.value}>"

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def user(self) -> Optional[AuthUser]:
        return self._user

    @property
    def user_id(self) -> Optional[str]:
        return self._user.id if self._user else None

    def _transition(self, target: ConnectionState) -> None:
        if target not in _ALLOWED_TRANSITIONS[self._state]:
            raise InvalidTransitionError(self.id, self._state, target)
        self._state = target

    def authenticate(self, user: AuthUser) -> None:
        """Bind the user identity and move to authenticated."""
        with self._state_lock:
            self._transition(ConnectionState.AUTHENTICATED)
            self._user = user

    def mark_closed(self) -> bool:
        """
        Move to closed.

        Returns:
            bool: False if the connection was already closed
        """
        with self._state_lock:
            if self._state is ConnectionState.CLOSED:
                return False
            self._transition(ConnectionState.CLOSED)
            return True

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    def start_writer(self) -> None:
        """Start draining the outbound queue. Must run on the socket's loop."""
        loop = asyncio.get_running_loop()
        with self._state_lock:
            self._loop = loop
            self._writer = loop.create_task(self._write_loop())

    @property
    def writer_active(self) -> bool:
        return self._writer is not None and not self._writer.done()

    def enqueue(self, payload: dict[str, Any]) -> bool:
        """
        Queue an event for delivery without waiting for the socket.

        When called from a thread other than the socket's event loop the
        event is handed to the loop with call_soon_threadsafe, and True only
        means it was scheduled. A full queue can still drop it afterwards.

        Returns:
            bool: False if the connection is not authenticated or the queue
                is full
        """
        with self._state_lock:
            accepting = self._state is ConnectionState.AUTHENTICATED and self._loop is not None
        if not accepting:
            return False
        return self._put(payload, self._put_nowait)

    def request_close(
        self,
        code: int,
        reason: str,
        farewell: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Close the socket once the writer reaches this request.

        The request never waits for queue capacity: if the queue is full,
        the oldest pending events are discarded to make room. The optional
        farewell event is sent right before the close frame.
        """
        with self._state_lock:
            loop = self._loop
        if loop is not None:
            self._put(_CloseRequest(code=code, reason=reason, farewell=farewell), self._put_priority)

    def _put(self, item: Any, put: Callable[[Any], bool]) -> bool:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not self._loop:
            # Called from another thread's handler
            self._loop.call_soon_threadsafe(put, item)
            return True
        return put(item)

    def _put_nowait(self, item: Any) -> bool:
        try:
            self._queue.put_nowait(item)
            return True
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for connection {self.id}, dropping event")
            return False

    def _put_priority(self, item: Any) -> bool:
        dropped = 0
        while self._queue.full():
            self._queue.get_nowait()
            dropped += 1
        if dropped:
            logger.warning(f"Discarded {dropped} pending event(s) on connection {self.id} to close it")
        self._queue.put_nowait(item)
        return True

    async def _write_loop(self) -> None:
        while True:
            item = await self._queue.get()

            if isinstance(item, _CloseRequest):
                try:
                    if item.farewell is not None:
                        await self.websocket.send_json(item.farewell)
                    await self.websocket.close(code=item.code, reason=item.reason)
                except Exception as e:
                    logger.debug(f"Close on connection {self.id} failed: {e}")
                return

            try:
                await self.websocket.send_json(item)
            except Exception as e:
                # Broken transport; the read loop will notice and close us
                logger.warning(f"Failed to send to connection {self.id}: {e}")
                return

    async def stop_writer(self) -> None:
        """Stop the writer, discarding anything still queued."""
        if self._writer is None or self._writer.done():
            return
        self._writer.cancel()
        # wait() does not re-raise the writer's CancelledError
        await asyncio.wait({self._writer})
