from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class RpcError(BaseModel):
    """Error object carried by a failed JSON-RPC response."""

    code: int
    message: str
    data: Optional[Any] = None


class RpcRequest(BaseModel):
    """Correlated request sent from client to server."""

    method: str
    params: Dict[str, Any]
    id: str


class RpcResponse(BaseModel):
    """Server reply matched to a request by ``id``."""

    model_config = ConfigDict(extra="ignore")

    id: str
    result: Optional[Any] = None
    error: Optional[RpcError] = None


class RpcNotification(BaseModel):
    """Frame without an ``id``; pushed by the server or fire-and-forget from the client."""

    model_config = ConfigDict(extra="ignore")

    method: str
    params: Optional[Dict[str, Any]] = None
