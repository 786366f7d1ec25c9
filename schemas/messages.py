"""Wire messages exchanged over the relay websocket.

Every frame is a JSON object with a ``type`` discriminator. Inbound frames are
parsed into one of the ``send_*`` models; everything the relay emits is one of
the outbound models below.
"""
from typing import Annotated, Dict, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class Ciphertext(BaseModel):
    content: str
    iv: str


# Inbound

class SendMessage(BaseModel):
    type: Literal["send_message"]
    messages: Dict[str, Ciphertext]


class SendExchange(BaseModel):
    type: Literal["send_exchange"]
    key: str = Field(min_length=1)


InboundFrame = Annotated[Union[SendMessage, SendExchange], Field(discriminator="type")]
inbound_frame_adapter = TypeAdapter(InboundFrame)


# Outbound

class RelayedMessage(BaseModel):
    type: Literal["message"] = "message"
    sender: str
    uuid: str
    content: str
    iv: str


class Exchange(BaseModel):
    type: Literal["exchange"] = "exchange"
    uuid: str
    key: str


class Announcement(BaseModel):
    type: Literal["announcement"] = "announcement"
    content: str


class KeyInit(BaseModel):
    type: Literal["keyinit"] = "keyinit"
    keys: Dict[str, str]


OutboundFrame = Union[RelayedMessage, Exchange, Announcement, KeyInit]
