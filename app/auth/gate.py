# =============================================================================
# app/auth/gate.py - Handshake Authentication
# =============================================================================
# Verifies the JWT a client presents when opening the relay socket.
#
# Outcomes:
#   - no token            -> TokenMissingError  (close reason "auth token missing")
#   - bad signature/expiry -> TokenInvalidError (close reason "auth error")
#   - valid               -> AuthUser bound to the connection for its lifetime
#
# There is no retry: a rejected client opens a new connection with a fresh
# token.
#
# Usage:
#   from app.auth import auth_gate
#
#   user = auth_gate.authenticate(token)
# =============================================================================

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from app.auth.models import AuthUser
from app.config import settings
from lib.utils import ApplicationError

logger = logging.getLogger(__name__)

# WebSocket close code for rejected handshakes (4000-4999 is app-defined)
AUTH_CLOSE_CODE = 4001


# =============================================================================
# Errors
# =============================================================================

class AuthenticationError(ApplicationError):
    """
    Raised when a connection cannot be authenticated.

    `reason` is the short string sent to the client in the close frame.
    """

    def __init__(self, reason: str, message: str, suggestion: str | None = None):
        super().__init__(
            message=message,
            code="AUTHENTICATION_FAILED",
            suggestion=suggestion,
            details={"reason": reason},
        )
        self.reason = reason


class TokenMissingError(AuthenticationError):
    """Raised when the handshake carries no token at all."""

    def __init__(self):
        super().__init__(
            reason="auth token missing",
            message="No access token was presented at handshake",
            suggestion="Connect with ?token=<jwt> or an 'Authorization: Bearer' header",
        )


class TokenInvalidError(AuthenticationError):
    """Raised when the token is malformed, badly signed or expired."""

    def __init__(self, detail: str):
        super().__init__(
            reason="auth error",
            message=f"Access token rejected: {detail}",
            suggestion="Obtain a fresh access token and reconnect",
        )


# =============================================================================
# AuthGate
# =============================================================================

class AuthGate:
    """
    Validates handshake credentials against a shared secret.

    Args:
        secret: HMAC secret shared with the token issuer
        algorithm: JWT algorithm (HS256 by default)
        user_claim: Claim holding the user id; "sub" is used as a fallback
        expires_minutes: Lifetime of tokens minted by create_access_token
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        user_claim: str = "userId",
        expires_minutes: int = 15,
    ):
        self._secret = secret
        self._algorithm = algorithm
        self._user_claim = user_claim
        self._expires_minutes = expires_minutes

    def authenticate(self, token: Optional[str]) -> AuthUser:
        """
        Verify a token and return the user it identifies.

        Args:
            token: Raw JWT from the handshake, or None if absent

        Returns:
            AuthUser: The authenticated user

        Raises:
            TokenMissingError: If no token was presented
            TokenInvalidError: If the signature, expiry or claims are invalid
        """
        if not token:
            raise TokenMissingError()

        try:
            # Signature and `exp` are both checked by the decoder
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            logger.warning("Handshake rejected: token has expired")
            raise TokenInvalidError("token has expired")
        except JWTError as e:
            logger.warning(f"Handshake rejected: {e}")
            raise TokenInvalidError(str(e))

        user_id = payload.get(self._user_claim) or payload.get("sub")
        if user_id is None or str(user_id).strip() == "":
            logger.warning(f"Handshake rejected: token has no '{self._user_claim}' claim")
            raise TokenInvalidError("missing user id")

        logger.debug(f"Authenticated user: {user_id}")
        return AuthUser(id=str(user_id))

    def create_access_token(
        self,
        user_id: str,
        expires_minutes: Optional[int] = None,
    ) -> str:
        """
        Mint a token this gate will accept.

        Production tokens come from the account service; this exists for
        local development and tests.

        Args:
            user_id: Identity to embed
            expires_minutes: Lifetime override; negative values produce an
                already-expired token

        Returns:
            str: Encoded JWT
        """
        minutes = self._expires_minutes if expires_minutes is None else expires_minutes
        now = datetime.now(timezone.utc)
        claims = {
            self._user_claim: user_id,
            "sub": user_id,
            "iat": now,
            "exp": now + timedelta(minutes=minutes),
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)


# Global singleton instance
auth_gate = AuthGate(
    secret=settings.JWT_SECRET,
    algorithm=settings.JWT_ALGORITHM,
    user_claim=settings.JWT_USER_CLAIM,
    expires_minutes=settings.JWT_EXPIRES_MINUTES,
)
