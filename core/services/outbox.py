# =============================================================================
# core/services/outbox.py - Outbound Delivery Contract
# =============================================================================
# The relay services never touch sockets. They hand outbound events to an
# Outbox, which the WebSocket connection manager implements.
#
# Both methods are fire-and-forget: they enqueue and return immediately,
# without waiting for the transport to confirm delivery.
# =============================================================================

from typing import Protocol

from core.models.events import WireModel


class Outbox(Protocol):
    """Where relay services put events for connected clients."""

    def send(self, connection_id: str, event: WireModel) -> bool:
        """
        Enqueue an event for one connection.

        True means the event was handed off, not delivered. An event handed
        off from another thread can still be dropped by a full queue.

        Returns:
            bool: False if the connection is gone or its queue is full
        """
        ...

    def broadcast(self, event: WireModel) -> int:
        """
        Enqueue an event for every connected client.

        Returns:
            int: Number of connections the event was queued for
        """
        ...
