"""Enumerations shared by the IM protocol payloads."""

from __future__ import annotations

import enum


class ChannelType(enum.IntEnum):
    PERSON = 1
    GROUP = 2
    # prefer VISITORS for new customer-service integrations
    CUSTOMER_SERVICE = 3
    COMMUNITY = 4
    COMMUNITY_TOPIC = 5
    # subscribers of info channels are temporary
    INFO = 6
    DATA = 7
    TEMP = 8
    # live channels do not keep recent conversation data
    LIVE = 9
    VISITORS = 10


class DeviceFlag(enum.IntEnum):
    APP = 1
    WEB = 2
    PC = 3


class ReasonCode(enum.IntEnum):
    """Outcome classification returned by the server for connect/send.

    The session never branches on these values; they are handed to the
    application as-is.
    """

    UNKNOWN = 0
    SUCCESS = 1
    AUTH_FAIL = 2
    SUBSCRIBER_NOT_EXIST = 3
    IN_BLACKLIST = 4
    CHANNEL_NOT_EXIST = 5
    USER_NOT_ON_NODE = 6
    SENDER_OFFLINE = 7
    MSG_KEY_ERROR = 8
    PAYLOAD_DECODE_ERROR = 9
    FORWARD_SEND_PACKET_ERROR = 10
    NOT_ALLOW_SEND = 11
    CONNECT_KICK = 12
    NOT_IN_WHITELIST = 13
    QUERY_TOKEN_ERROR = 14
    SYSTEM_ERROR = 15
    CHANNEL_ID_ERROR = 16
    NODE_MATCH_ERROR = 17
    NODE_NOT_MATCH = 18
    BAN = 19
    NOT_SUPPORT_HEADER = 20
    CLIENT_KEY_IS_EMPTY = 21
    RATE_LIMIT = 22
    NOT_SUPPORT_CHANNEL_TYPE = 23
    DISBAND = 24
    SEND_BAN = 25
