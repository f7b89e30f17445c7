# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Handshake authentication for the relay socket.
#
# Usage:
#   from app.auth import auth_gate, AuthenticationError
#
#   try:
#       user = auth_gate.authenticate(token)
#   except AuthenticationError as e:
#       await websocket.close(code=AUTH_CLOSE_CODE, reason=e.reason)
# =============================================================================

from app.auth.gate import (
    AUTH_CLOSE_CODE,
    AuthGate,
    AuthenticationError,
    TokenInvalidError,
    TokenMissingError,
    auth_gate,
)
from app.auth.models import AuthUser

__all__ = [
    "AUTH_CLOSE_CODE",
    "AuthGate",
    "AuthUser",
    "AuthenticationError",
    "TokenInvalidError",
    "TokenMissingError",
    "auth_gate",
]
