# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for the relay:
# - relay.py: Connection state, presence entries, messages, signaling envelopes
# - events.py: Inbound/outbound WebSocket event schemas
#
# These models define the "contract" between the relay and its clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Relay Records
# -----------------------------------------------------------------------------
from .relay import (
    ConnectionState,
    Message,
    PresenceEntry,
    SignalingEnvelope,
    SignalKind,
)

# -----------------------------------------------------------------------------
# WebSocket Events
# -----------------------------------------------------------------------------
from .events import (
    INBOUND_EVENT_TYPES,
    MAX_CONTENT_LENGTH,
    CallAnswerEvent,
    CallIceEvent,
    CallOfferEvent,
    MessageAcknowledgedEvent,
    PresenceOfflineEvent,
    PresenceOnlineEvent,
    ReceiveMessageEvent,
    RelayedCallAnswer,
    RelayedCallIce,
    RelayedCallOffer,
    SendMessageEvent,
    SessionSupersededEvent,
    WireModel,
    parse_inbound_event,
    relayed_signal_event,
)

# -----------------------------------------------------------------------------
# __all__ - Explicit public API
# -----------------------------------------------------------------------------
__all__ = [
    # Relay
    "ConnectionState",
    "Message",
    "PresenceEntry",
    "SignalingEnvelope",
    "SignalKind",
    # Events
    "INBOUND_EVENT_TYPES",
    "MAX_CONTENT_LENGTH",
    "CallAnswerEvent",
    "CallIceEvent",
    "CallOfferEvent",
    "MessageAcknowledgedEvent",
    "PresenceOfflineEvent",
    "PresenceOnlineEvent",
    "ReceiveMessageEvent",
    "RelayedCallAnswer",
    "RelayedCallIce",
    "RelayedCallOffer",
    "SendMessageEvent",
    "SessionSupersededEvent",
    "WireModel",
    "parse_inbound_event",
    "relayed_signal_event",
]
