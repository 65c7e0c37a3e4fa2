from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .enums import DeviceFlag, ReasonCode


class ConnectParams(BaseModel):
    """Handshake request sent as the first correlated request on a new transport."""

    model_config = ConfigDict(populate_by_name=True)

    uid: str
    token: str
    device_id: Optional[str] = Field(default=None, alias="deviceId")
    device_flag: DeviceFlag = Field(default=DeviceFlag.WEB, alias="deviceFlag")
    client_timestamp: int = Field(alias="clientTimestamp")


class ConnectResult(BaseModel):
    """Handshake result returned by the server."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    server_key: str = Field(default="", alias="serverKey")
    salt: str = ""
    time_diff: int = Field(default=0, alias="timeDiff")
    reason_code: Union[ReasonCode, int] = Field(default=ReasonCode.SUCCESS, alias="reasonCode")
    server_version: Optional[int] = Field(default=None, alias="serverVersion")
    node_id: Optional[int] = Field(default=None, alias="nodeId")
