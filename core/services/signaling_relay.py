# =============================================================================
# core/services/signaling_relay.py - Call Signaling Relay
# =============================================================================
# Forwards WebRTC negotiation envelopes (offer, answer, ICE candidate) between
# two users. Payloads are never inspected. If the recipient is offline the
# envelope is dropped without telling the sender; a stalled negotiation is
# the caller's timeout to notice.
# =============================================================================

import logging
from typing import Any

from core.models.events import relayed_signal_event
from core.models.relay import SignalingEnvelope, SignalKind
from core.services.outbox import Outbox
from core.services.presence_registry import PresenceRegistry

logger = logging.getLogger(__name__)


class SignalingRelay:
    def __init__(self, registry: PresenceRegistry, outbox: Outbox):
        self._registry = registry
        self._outbox = outbox

    def forward(
        self,
        sender_id: str,
        kind: SignalKind,
        recipient_id: str,
        payload: Any,
    ) -> bool:
        """
        Forward one signaling envelope to its recipient.

        Returns:
            bool: True if the envelope was queued for the recipient
        """
        envelope = SignalingEnvelope(
            kind=kind,
            sender_id=sender_id,
            recipient_id=recipient_id,
            payload=payload,
        )

        connection_id = self._registry.lookup(envelope.recipient_id)
        if connection_id is None:
            logger.debug(
                f"Dropped {envelope.kind.value} from {sender_id}: "
                f"{recipient_id} is offline"
            )
            return False

        return self._outbox.send(
            connection_id,
            relayed_signal_event(envelope.kind, envelope.sender_id, envelope.payload),
        )
