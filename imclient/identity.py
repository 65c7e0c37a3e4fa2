"""Session identity and credentials."""

from __future__ import annotations

import time
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models.im import DeviceFlag


class Credentials(BaseModel):
    """Credential set presented in the connect handshake."""

    model_config = ConfigDict(frozen=True)

    uid: str = Field(min_length=1)
    token: str = Field(min_length=1, repr=False)
    device_id: Optional[str] = None
    device_flag: DeviceFlag = DeviceFlag.WEB


def new_session_id() -> str:
    return str(uuid.uuid4())


def derive_device_id(session_id: str, now_ms: Optional[int] = None) -> str:
    """Build a client-side device id from the session id and a timestamp."""

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{session_id[:8]}{now_ms}"


def with_device_id(credentials: Credentials, session_id: str) -> Credentials:
    """Return ``credentials`` with ``device_id`` backfilled when it is missing."""

    if credentials.device_id:
        return credentials
    return credentials.model_copy(update={"device_id": derive_device_id(session_id)})
