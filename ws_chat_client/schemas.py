from enum import Enum

from pydantic import BaseModel, ConfigDict, StrictStr


class ConnectionState(str, Enum):
    """
    Connection status as exposed to the presentation layer.

    Exactly one value is active at a time and only the connection lifecycle
    manager changes it.

    Attributes
    ----------
    CONNECTING : str
        ``start()`` was called and the first handle is being opened.
    CONNECTED : str
        The current handle reported open.
    DISCONNECTED : str
        The current handle closed and a reconnect is scheduled.
    ERRORED : str
        The current handle reported an error, or could not be constructed.
    """

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERRORED = "error"


class MessageKind(str, Enum):
    """
    Discriminator of a chat frame. The values are the wire ``type`` strings.
    """

    TEXT = "message"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """
    An admitted message, immutable once created.

    Attributes:
        kind: TEXT for user messages, SYSTEM for server notices
        body: The message text
    """

    model_config = ConfigDict(frozen=True)

    kind: MessageKind
    body: str


class ChatFrame(BaseModel):
    """
    Wire format of a single frame in both directions.

    Outbound frames are always ``{"type": "message", "text": ...}``. Inbound
    frames may also carry ``"system"``. Unknown extra keys are ignored, but
    ``text`` must be a real string - numbers, nulls or objects are rejected
    rather than coerced.
    """

    model_config = ConfigDict(frozen=True)

    type: MessageKind
    text: StrictStr

    @classmethod
    def outbound(cls, text: str) -> "ChatFrame":
        return cls(type=MessageKind.TEXT, text=text)

    def to_message(self) -> ChatMessage:
        return ChatMessage(kind=self.type, body=self.text)
