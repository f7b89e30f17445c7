# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field


class AuthUser(BaseModel):
    """
    Authenticated user extracted from the handshake JWT.

    This is the minimal user info available from the token itself,
    without querying the user store.
    """
    model_config = ConfigDict(frozen=True)  # Make immutable

    id: str = Field(..., min_length=1)
