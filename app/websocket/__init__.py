# =============================================================================
# app/websocket/__init__.py - WebSocket Module
# =============================================================================
# Realtime presence, direct-message relay and call signaling.
#
# Usage:
#   from app.websocket import connection_manager
#
#   connection_manager.get_online_users()
#   connection_manager.get_connection_count()
# =============================================================================

from app.websocket.connection import Connection, InvalidTransitionError
from app.websocket.manager import (
    SUPERSEDED_CLOSE_CODE,
    ConnectionManager,
    connection_manager,
)

__all__ = [
    "Connection",
    "ConnectionManager",
    "InvalidTransitionError",
    "SUPERSEDED_CLOSE_CODE",
    "connection_manager",
]
