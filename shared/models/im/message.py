from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ReasonCode


class MessageHeader(BaseModel):
    """Per-message header flags. Unknown flags are kept so they can be echoed back."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    no_persist: Optional[bool] = Field(default=None, alias="noPersist")
    red_dot: Optional[bool] = Field(default=None, alias="redDot")
    sync_once: Optional[bool] = Field(default=None, alias="syncOnce")
    dup: Optional[bool] = None


def _as_str(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class RecvMessage(BaseModel):
    """Inbound message delivered by a ``recv`` notification."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    header: Optional[MessageHeader] = None
    setting: Optional[int] = None
    message_id: str = Field(alias="messageId")
    message_seq: int = Field(alias="messageSeq")
    client_msg_no: Optional[str] = Field(default=None, alias="clientMsgNo")
    stream_no: Optional[str] = Field(default=None, alias="streamNo")
    stream_id: Optional[str] = Field(default=None, alias="streamId")
    stream_flag: Optional[int] = Field(default=None, alias="streamFlag")
    timestamp: Optional[int] = None
    channel_id: Optional[str] = Field(default=None, alias="channelId")
    channel_type: Optional[int] = Field(default=None, alias="channelType")
    topic: Optional[str] = None
    from_uid: Optional[str] = Field(default=None, alias="fromUid")
    payload: Any = None

    @field_validator("message_id", mode="before")
    @classmethod
    def _normalize_message_id(cls, value: Any) -> Any:
        return _as_str(value)


class RecvAckParams(BaseModel):
    """Acknowledgement for a delivered ``recv`` message."""

    model_config = ConfigDict(populate_by_name=True)

    header: Optional[MessageHeader] = None
    message_id: str = Field(alias="messageId")
    message_seq: int = Field(alias="messageSeq")


class SendParams(BaseModel):
    """Parameters of the ``send`` request."""

    model_config = ConfigDict(populate_by_name=True)

    client_msg_no: str = Field(alias="clientMsgNo")
    channel_id: str = Field(alias="channelId")
    channel_type: int = Field(alias="channelType")
    payload: Any
    header: Optional[MessageHeader] = None
    setting: Optional[int] = None
    msg_key: Optional[str] = Field(default=None, alias="msgKey")
    expire: Optional[int] = None
    topic: Optional[str] = None


class SendResult(BaseModel):
    """Server acknowledgement of a sent message."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    message_id: str = Field(alias="messageId")
    message_seq: int = Field(default=0, alias="messageSeq")
    reason_code: Union[ReasonCode, int] = Field(default=ReasonCode.SUCCESS, alias="reasonCode")

    @field_validator("message_id", mode="before")
    @classmethod
    def _normalize_message_id(cls, value: Any) -> Any:
        return _as_str(value)
