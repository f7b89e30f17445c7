# =============================================================================
# app/websocket/routes.py - WebSocket Routes
# =============================================================================
# Relay endpoint for presence, direct messages and call signaling.
#
# Connect: ws://host/ws?token={jwt}
#
# Client -> server events:
#   - {"type": "send-message", "recipientId": "...", "content": "...", "clientCorrelationId": "..."}
#   - {"type": "call-offer" | "call-answer", "recipientId": "...", "sdp": {...}}
#   - {"type": "call-ice", "recipientId": "...", "candidate": {...}}
#
# Server -> client events:
#   - receive-message, message-acknowledged
#   - call-offer, call-answer, call-ice
#   - presence-online, presence-offline, session-superseded
# =============================================================================

import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from app.auth import AuthenticationError, auth_gate
from app.config import settings
from app.websocket.manager import connection_manager

logger = logging.getLogger(__name__)

router = APIRouter()


def _extract_token(websocket: WebSocket, token: Optional[str]) -> Optional[str]:
    """
    Get the handshake credential.

    Prefers the `token` query parameter (what browser clients can send);
    falls back to an `Authorization: Bearer` header for native clients.
    """
    if token:
        return token

    header = websocket.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    return None


@router.websocket(settings.WS_PATH)
async def relay_websocket(
    websocket: WebSocket,
    token: Optional[str] = Query(default=None, description="JWT token for authentication"),
):
    """
    WebSocket endpoint for the realtime relay.

    Authentication happens before the socket is accepted. A missing token
    closes with reason "auth token missing"; an invalid or expired one with
    "auth error" (both code 4001).

    Connection URL:
        ws://localhost:4000/ws?token={jwt}
    """
    connection = connection_manager.open(websocket)

    # 1. Verify JWT token
    try:
        user = auth_gate.authenticate(_extract_token(websocket, token))
    except AuthenticationError as e:
        await connection_manager.reject(connection, e)
        return

    # 2. Accept, register presence, then process events in arrival order
    try:
        await connection_manager.accept(connection, user)

        while True:
            try:
                message = await websocket.receive()
            except Exception as e:
                logger.warning(f"WebSocket receive error: {e}")
                break

            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(code=message.get("code", 1000))

            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue

            connection_manager.dispatch(connection, raw)

    except WebSocketDisconnect:
        logger.info(f"WebSocket client {user.id} disconnected")
    finally:
        await connection_manager.close(connection)


@router.get("/ws/status")
async def websocket_status():
    """
    Get WebSocket connection statistics.

    Returns:
        dict: Online users and connection count
    """
    online_users = connection_manager.get_online_users()
    return {
        "online_users": online_users,
        "online_count": len(online_users),
        "connection_count": connection_manager.get_connection_count(),
    }
