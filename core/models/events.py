# =============================================================================
# core/models/events.py - WebSocket Event Schemas
# =============================================================================
# Every frame on the relay socket is a JSON object tagged by "type".
# Field names on the wire are camelCase (recipientId, clientCorrelationId...).
#
# Inbound (client -> server):
#   - send-message:  {recipientId, content?, mediaUrl?, clientCorrelationId}
#   - call-offer:    {recipientId, sdp}
#   - call-answer:   {recipientId, sdp}
#   - call-ice:      {recipientId, candidate}
#
# Outbound (server -> client):
#   - receive-message:      {id, senderId, recipientId, content, mediaUrl, createdAt}
#   - message-acknowledged: {clientCorrelationId, serverMessageId}
#   - call-offer / call-answer / call-ice: {senderId, sdp|candidate}
#   - presence-online / presence-offline:  {userId}
#   - session-superseded:   {userId}
#
# Inbound frames are parsed into a closed discriminated union, so the
# connection manager can route them with a handler table instead of
# comparing event-name strings.
# =============================================================================

from typing import Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from core.models.relay import Message, SignalKind

# Upper bound for a single message body
MAX_CONTENT_LENGTH = 4000


class WireModel(BaseModel):
    """Base for wire events: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON-ready dict sent over the socket."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Inbound Events
# =============================================================================

class SendMessageEvent(WireModel):
    """
    Client asks the relay to deliver a direct message.

    Example:
        {
            "type": "send-message",
            "recipientId": "bob",
            "content": "hi",
            "clientCorrelationId": "t1"
        }
    """
    type: Literal["send-message"] = "send-message"

    recipient_id: str = Field(..., min_length=1)

    content: Optional[str] = Field(default=None, max_length=MAX_CONTENT_LENGTH)

    media_url: Optional[str] = Field(default=None)

    # Echoed back in the acknowledgment so the client can match its
    # optimistic copy with the server id
    client_correlation_id: str = Field(..., min_length=1)


class CallOfferEvent(WireModel):
    """Client sends a session description offer to a peer."""
    signal_kind: ClassVar[SignalKind] = SignalKind.OFFER

    type: Literal["call-offer"] = "call-offer"
    recipient_id: str = Field(..., min_length=1)
    sdp: Any

    @property
    def payload(self) -> Any:
        return self.sdp


class CallAnswerEvent(WireModel):
    """Client answers a peer's offer."""
    signal_kind: ClassVar[SignalKind] = SignalKind.ANSWER

    type: Literal["call-answer"] = "call-answer"
    recipient_id: str = Field(..., min_length=1)
    sdp: Any

    @property
    def payload(self) -> Any:
        return self.sdp


class CallIceEvent(WireModel):
    """Client shares an ICE connectivity candidate with a peer."""
    signal_kind: ClassVar[SignalKind] = SignalKind.ICE_CANDIDATE

    type: Literal["call-ice"] = "call-ice"
    recipient_id: str = Field(..., min_length=1)
    candidate: Any

    @property
    def payload(self) -> Any:
        return self.candidate


InboundEvent = Annotated[
    Union[SendMessageEvent, CallOfferEvent, CallAnswerEvent, CallIceEvent],
    Field(discriminator="type"),
]

# Every concrete inbound event class, used to check handler tables
INBOUND_EVENT_TYPES: tuple[type[WireModel], ...] = (
    SendMessageEvent,
    CallOfferEvent,
    CallAnswerEvent,
    CallIceEvent,
)

_inbound_adapter: TypeAdapter = TypeAdapter(InboundEvent)


def parse_inbound_event(raw: str | bytes) -> WireModel:
    """
    Parse a raw JSON frame into one of the inbound event models.

    Args:
        raw: The text (or bytes) frame received from the client

    Returns:
        The matching inbound event instance

    Raises:
        pydantic.ValidationError: If the frame is not JSON, has an unknown
            "type", or is missing required fields
    """
    return _inbound_adapter.validate_json(raw)


# =============================================================================
# Outbound Events
# =============================================================================

class ReceiveMessageEvent(WireModel):
    """A message delivered to its recipient."""
    type: Literal["receive-message"] = "receive-message"
    id: str
    sender_id: str
    recipient_id: str
    content: Optional[str] = None
    media_url: Optional[str] = None
    created_at: str

    @classmethod
    def from_message(cls, message: Message) -> "ReceiveMessageEvent":
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            recipient_id=message.recipient_id,
            content=message.content,
            media_url=message.media_url,
            created_at=message.created_at,
        )


class MessageAcknowledgedEvent(WireModel):
    """Tells the sender which server id was assigned to its message."""
    type: Literal["message-acknowledged"] = "message-acknowledged"
    client_correlation_id: str
    server_message_id: str


class RelayedCallOffer(WireModel):
    type: Literal["call-offer"] = "call-offer"
    sender_id: str
    sdp: Any


class RelayedCallAnswer(WireModel):
    type: Literal["call-answer"] = "call-answer"
    sender_id: str
    sdp: Any


class RelayedCallIce(WireModel):
    type: Literal["call-ice"] = "call-ice"
    sender_id: str
    candidate: Any


class PresenceOnlineEvent(WireModel):
    type: Literal["presence-online"] = "presence-online"
    user_id: str


class PresenceOfflineEvent(WireModel):
    type: Literal["presence-offline"] = "presence-offline"
    user_id: str


class SessionSupersededEvent(WireModel):
    """Sent to a connection just before it is replaced by a newer one."""
    type: Literal["session-superseded"] = "session-superseded"
    user_id: str


def relayed_signal_event(kind: SignalKind, sender_id: str, payload: Any) -> WireModel:
    """Build the outbound event a recipient sees for a signaling envelope."""
    if kind is SignalKind.OFFER:
        return RelayedCallOffer(sender_id=sender_id, sdp=payload)
    if kind is SignalKind.ANSWER:
        return RelayedCallAnswer(sender_id=sender_id, sdp=payload)
    return RelayedCallIce(sender_id=sender_id, candidate=payload)
