from .enums import ChannelType, DeviceFlag, ReasonCode
from .connect import ConnectParams, ConnectResult
from .message import MessageHeader, RecvAckParams, RecvMessage, SendParams, SendResult
from .event import DisconnectNotice, EventNotification

__all__ = [
    "ChannelType",
    "DeviceFlag",
    "ReasonCode",
    "ConnectParams",
    "ConnectResult",
    "MessageHeader",
    "RecvAckParams",
    "RecvMessage",
    "SendParams",
    "SendResult",
    "DisconnectNotice",
    "EventNotification",
]
