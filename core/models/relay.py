# =============================================================================
# core/models/relay.py - Presence & Relay Records
# =============================================================================
# These models describe what flows through the relay core:
# - ConnectionState: Lifecycle of a single transport connection
# - PresenceEntry: Which connection currently represents a user
# - Message: A direct message built by the relay (never persisted here)
# - SignalingEnvelope: An opaque call-negotiation payload between two users
#
# State machine (one per connection, single-use):
#     connecting -> authenticated -> closed
#               \-> closed
# =============================================================================

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from lib.utils import new_message_id, utc_now_iso


class ConnectionState(str, Enum):
    """
    Lifecycle state of a transport connection.

    - connecting: Handshake received, credential not yet verified
    - authenticated: User identity bound, registered for presence
    - closed: Terminal; the connection object is never reused
    """
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


class SignalKind(str, Enum):
    """Kinds of call-negotiation envelopes the relay forwards."""
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"


class PresenceEntry(BaseModel):
    """
    A user's active connection.

    At most one entry exists per user; a newer registration replaces it.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    connection_id: str


class Message(BaseModel):
    """
    A direct message assembled by the relay.

    The relay generates the id and timestamp, forwards the record to the
    recipient if they are online, and then discards it. Durable storage is
    somebody else's job.

    Example:
        {
            "id": "9b2f6c1e-...",
            "sender_id": "alice",
            "recipient_id": "bob",
            "content": "hi",
            "media_url": null,
            "created_at": "2026-01-15T10:30:00+00:00"
        }
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=new_message_id,
        description="Server-assigned message id (UUID4)"
    )

    sender_id: str = Field(
        ...,
        description="Authenticated identity of the sender"
    )

    recipient_id: str = Field(
        ...,
        description="Identity the message is addressed to"
    )

    content: Optional[str] = Field(
        default=None,
        description="Text body, if any"
    )

    media_url: Optional[str] = Field(
        default=None,
        description="Opaque object-store URL, never fetched by the relay"
    )

    created_at: str = Field(
        default_factory=utc_now_iso,
        description="UTC creation timestamp (ISO-8601)"
    )


class SignalingEnvelope(BaseModel):
    """
    Offer, answer or ICE candidate travelling from one peer to another.

    The payload is a session description or a connectivity candidate.
    It is opaque to the relay and forwarded unchanged.
    """
    model_config = ConfigDict(frozen=True)

    kind: SignalKind
    sender_id: str
    recipient_id: str
    payload: Any = None
