"""Helpers for building/parsing JSON-RPC frames on the wire."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ValidationError

from shared.models.rpc import RpcNotification, RpcRequest, RpcResponse

CLOSE_NORMAL = 1000
CLOSE_GOING_AWAY = 1001
CLOSE_ABNORMAL = 1006
# client-forced closure; application range 3000-4999
CLOSE_CLIENT_FORCED = 4000

MAX_CLOSE_REASON_BYTES = 123

Params = Optional[Union[Dict[str, Any], BaseModel]]
Frame = Union[RpcResponse, RpcNotification]


class FrameDecodeError(ValueError):
    """Raised when an inbound frame is not a JSON-RPC response or notification."""


def _params_dict(params: Params) -> Dict[str, Any]:
    if params is None:
        return {}
    if isinstance(params, BaseModel):
        return params.model_dump(mode="json", by_alias=True, exclude_none=True)
    return dict(params)


def build_request(method: str, params: Params, request_id: str) -> Dict[str, Any]:
    """Construct a correlated request frame."""

    request = RpcRequest(method=method, params=_params_dict(params), id=request_id)
    return request.model_dump()


def build_notification(method: str, params: Params = None) -> Dict[str, Any]:
    """Construct an uncorrelated notification frame."""

    notification = RpcNotification(method=method, params=_params_dict(params))
    return notification.model_dump()


def encode_frame(frame: Dict[str, Any]) -> str:
    return json.dumps(frame, separators=(",", ":"), ensure_ascii=False)


def parse_frame(raw: Union[str, bytes]) -> Frame:
    """Decode one inbound frame.

    Frames carrying an ``id`` are responses, frames carrying only a ``method``
    are notifications. Anything else raises :class:`FrameDecodeError`.
    """

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FrameDecodeError(f"Frame is not valid UTF-8: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise FrameDecodeError(f"Failed to parse frame: {exc}") from exc
    if not isinstance(data, dict):
        raise FrameDecodeError(f"Frame must be a JSON object, got {type(data).__name__}")
    try:
        if "id" in data:
            return RpcResponse.model_validate(data)
        if "method" in data:
            return RpcNotification.model_validate(data)
    except ValidationError as exc:
        raise FrameDecodeError(f"Invalid frame: {exc}") from exc
    raise FrameDecodeError("Frame has neither 'id' nor 'method'")


def truncate_close_reason(reason: str, limit: int = MAX_CLOSE_REASON_BYTES) -> str:
    """Trim a close reason to ``limit`` UTF-8 bytes without splitting a character."""

    encoded = reason.encode("utf-8")
    if len(encoded) <= limit:
        return reason
    return encoded[:limit].decode("utf-8", errors="ignore")
