from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ReasonCode
from .message import MessageHeader, _as_str


class EventNotification(BaseModel):
    """Out-of-band server push (``event`` notification)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    header: Optional[MessageHeader] = None
    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    timestamp: Optional[int] = None
    data: Any = None

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Any:
        return _as_str(value)


class DisconnectNotice(BaseModel):
    """Server instruction to drop the session."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    reason_code: Union[ReasonCode, int, None] = Field(default=None, alias="reasonCode")
    reason: Optional[str] = None
