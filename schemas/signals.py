from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, StrictBool, StrictStr, StringConstraints, TypeAdapter


class InboundFrame(BaseModel):
    event: StrictStr
    data: Any = None


class OutboundFrame(BaseModel):
    event: str
    data: Any = None


class SignalRequest(BaseModel):
    """Client -> server negotiation payload. Only `target` is interpreted."""
    model_config = ConfigDict(extra="allow")

    target: StrictStr
    sdp: Optional[Any] = None
    ice: Optional[Any] = None


class SignalEnvelope(BaseModel):
    """Server -> target negotiation payload, stamped with the real sender."""
    model_config = ConfigDict(extra="allow")

    sender: str
    target: str
    sdp: Optional[Any] = None
    ice: Optional[Any] = None


class UserMuted(BaseModel):
    userId: str
    isMuted: bool


class Connected(BaseModel):
    connectionId: str


room_name_adapter = TypeAdapter(Annotated[str, StringConstraints(strict=True, min_length=1)])
mute_flag_adapter = TypeAdapter(StrictBool)
chat_text_adapter = TypeAdapter(StrictStr)
