# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .outbox import Outbox
from .presence_registry import PresenceRegistry
from .message_relay import MessageRelay
from .signaling_relay import SignalingRelay

__all__ = [
    "Outbox",
    "PresenceRegistry",
    "MessageRelay",
    "SignalingRelay",
]
