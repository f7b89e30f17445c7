# =============================================================================
# core/services/message_relay.py - Direct Message Relay
# =============================================================================
# Forwards a direct message from sender to recipient.
#
# Flow for one send-message event:
# 1. Look up the recipient's connection
# 2. Build a Message with a fresh UUID and timestamp
# 3. If the recipient is online, queue receive-message for them
# 4. Always queue message-acknowledged back to the sender
#
# Messages for offline users are dropped. No queueing, retry or persistence:
# a durable store, if wanted, sits outside this core.
# =============================================================================

import logging

from core.models.events import (
    MessageAcknowledgedEvent,
    ReceiveMessageEvent,
    SendMessageEvent,
)
from core.models.relay import Message
from core.services.outbox import Outbox
from core.services.presence_registry import PresenceRegistry

logger = logging.getLogger(__name__)


class MessageRelay:
    """Best-effort delivery of direct messages between online users."""

    def __init__(self, registry: PresenceRegistry, outbox: Outbox):
        self._registry = registry
        self._outbox = outbox

    def send(
        self,
        sender_id: str,
        sender_connection_id: str,
        request: SendMessageEvent,
    ) -> Message:
        """
        Relay a message and acknowledge it to the sender.

        The acknowledgment goes out after the relay attempt, whatever its
        outcome, so the sender always learns the server-assigned id.

        Args:
            sender_id: Authenticated identity of the sender
            sender_connection_id: Connection the acknowledgment goes to
            request: The parsed send-message event

        Returns:
            Message: The record that was built (and possibly delivered)
        """
        recipient_connection_id = self._registry.lookup(request.recipient_id)

        message = Message(
            sender_id=sender_id,
            recipient_id=request.recipient_id,
            content=request.content,
            media_url=request.media_url,
        )

        if recipient_connection_id is not None:
            handed_off = self._outbox.send(
                recipient_connection_id,
                ReceiveMessageEvent.from_message(message),
            )
            logger.debug(
                f"Message {message.id} from {sender_id} to {request.recipient_id}: "
                f"{'handed to transport' if handed_off else 'dropped by transport'}"
            )
        else:
            logger.debug(
                f"Message {message.id} from {sender_id} dropped: "
                f"{request.recipient_id} is offline"
            )

        self._outbox.send(
            sender_connection_id,
            MessageAcknowledgedEvent(
                client_correlation_id=request.client_correlation_id,
                server_message_id=message.id,
            ),
        )
        return message
