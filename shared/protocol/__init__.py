from .rpc import (
    CLOSE_ABNORMAL,
    CLOSE_CLIENT_FORCED,
    CLOSE_GOING_AWAY,
    CLOSE_NORMAL,
    MAX_CLOSE_REASON_BYTES,
    FrameDecodeError,
    build_notification,
    build_request,
    encode_frame,
    parse_frame,
    truncate_close_reason,
)

__all__ = [
    "CLOSE_ABNORMAL",
    "CLOSE_CLIENT_FORCED",
    "CLOSE_GOING_AWAY",
    "CLOSE_NORMAL",
    "MAX_CLOSE_REASON_BYTES",
    "FrameDecodeError",
    "build_notification",
    "build_request",
    "encode_frame",
    "parse_frame",
    "truncate_close_reason",
]
