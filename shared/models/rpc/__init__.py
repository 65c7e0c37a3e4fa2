from .frames import RpcError, RpcNotification, RpcRequest, RpcResponse

__all__ = [
    "RpcError",
    "RpcNotification",
    "RpcRequest",
    "RpcResponse",
]
