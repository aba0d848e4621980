"""Wire protocol for the co-op session.

Every frame on the link is one JSON envelope::

    {"type": "<message type>", "data": {...}}

The payload shape depends on ``type``. Decoding validates the payload with a
pydantic model so the session code only ever sees well-formed messages;
anything else raises :class:`ProtocolError` and is dropped by the caller.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class ProtocolError(ValueError):
    """Raised for frames that are not a valid envelope."""


class MessageType(str, Enum):
    """Envelope types exchanged over the link."""

    # participant -> server
    JOIN = "join"
    USER_INPUT = "user_input"
    BROADCAST_AI_RESPONSE = "broadcast_ai_response"

    # server -> participant
    WELCOME = "welcome"
    USER_JOINED = "user_joined"
    USER_LEFT = "user_left"
    CLIENT_INPUT = "client_input"
    BROADCAST_MESSAGE = "broadcast_message"

    # host -> server, relayed unchanged to clients
    HOST_INPUT_REQUEST = "host_input_request"


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class JoinPayload(_Payload):
    id: str
    name: str


class UserPayload(_Payload):
    """Roster notification (``user_joined`` / ``user_left``)."""

    id: str
    name: str
    is_host: bool = Field(default=False, alias="isHost")


class InputPayload(_Payload):
    """One participant's turn input (``user_input`` / ``client_input``)."""

    id: str
    name: str
    text: str


class RosterEntry(_Payload):
    id: str
    name: str
    is_host: bool = Field(default=False, alias="isHost")


class WelcomePayload(_Payload):
    id: str
    is_host: bool = Field(alias="isHost")
    host_id: Optional[str] = Field(default=None, alias="hostId")
    users: List[RosterEntry] = Field(default_factory=list)


class TextPayload(_Payload):
    text: str


class EmptyPayload(_Payload):
    pass


Payload = Union[
    JoinPayload,
    UserPayload,
    InputPayload,
    WelcomePayload,
    TextPayload,
    EmptyPayload,
]


PAYLOAD_TYPES: Dict[MessageType, Type[_Payload]] = {
    MessageType.JOIN: JoinPayload,
    MessageType.USER_INPUT: InputPayload,
    MessageType.BROADCAST_AI_RESPONSE: TextPayload,
    MessageType.WELCOME: WelcomePayload,
    MessageType.USER_JOINED: UserPayload,
    MessageType.USER_LEFT: UserPayload,
    MessageType.CLIENT_INPUT: InputPayload,
    MessageType.BROADCAST_MESSAGE: TextPayload,
    MessageType.HOST_INPUT_REQUEST: EmptyPayload,
}


@dataclass(frozen=True)
class Envelope:
    """A decoded frame: message type plus its validated payload."""

    type: MessageType
    data: Payload

    def __post_init__(self) -> None:
        expected = PAYLOAD_TYPES[self.type]
        if not isinstance(self.data, expected):
            raise TypeError(
                f"{self.type.value} expects {expected.__name__}, "
                f"got {type(self.data).__name__}"
            )


def make(msg_type: MessageType, **fields) -> Envelope:
    """Build an envelope, validating ``fields`` against the type's payload."""
    model = PAYLOAD_TYPES[msg_type]
    return Envelope(type=msg_type, data=model.model_validate(fields))


def encode(envelope: Envelope) -> str:
    """Serialize an envelope to its JSON wire form."""
    return json.dumps({
        "type": envelope.type.value,
        "data": envelope.data.model_dump(by_alias=True, exclude_none=True),
    })


def decode(raw: Union[str, bytes]) -> Envelope:
    """Parse one frame.

    Raises:
        ProtocolError: invalid JSON, unknown ``type`` or a payload that does
            not match the type's schema.
    """
    try:
        message = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"not JSON: {e}") from e

    if not isinstance(message, dict):
        raise ProtocolError("envelope must be a JSON object")

    try:
        msg_type = MessageType(message.get("type"))
    except ValueError as e:
        raise ProtocolError(f"unknown message type {message.get('type')!r}") from e

    data = message.get("data")
    if data is None:
        data = {}
    try:
        payload = PAYLOAD_TYPES[msg_type].model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"bad {msg_type.value} payload: {e}") from e
    return Envelope(type=msg_type, data=payload)
