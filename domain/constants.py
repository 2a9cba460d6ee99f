"""Domain constants and type aliases"""
from typing import Literal

# Type aliases for message kinds and outbound event types
MessageType = Literal["text", "image", "video", "file"]
EventType = Literal["boot", "message", "online_users", "reaction", "delete", "error"]

# Message type constants
MESSAGE_TYPE_TEXT: MessageType = "text"
MESSAGE_TYPE_IMAGE: MessageType = "image"
MESSAGE_TYPE_VIDEO: MessageType = "video"
MESSAGE_TYPE_FILE: MessageType = "file"

MESSAGE_TYPES: frozenset[str] = frozenset(
    {MESSAGE_TYPE_TEXT, MESSAGE_TYPE_IMAGE, MESSAGE_TYPE_VIDEO, MESSAGE_TYPE_FILE}
)

# Event type constants
EVENT_TYPE_BOOT: EventType = "boot"
EVENT_TYPE_MESSAGE: EventType = "message"
EVENT_TYPE_ONLINE_USERS: EventType = "online_users"
EVENT_TYPE_REACTION: EventType = "reaction"
EVENT_TYPE_DELETE: EventType = "delete"
EVENT_TYPE_ERROR: EventType = "error"

# WebSocket close codes
WS_CLOSE_POLICY_VIOLATION = 1008
WS_CLOSE_INTERNAL_ERROR = 1011

# Envelopes a session may have queued before it counts as a stalled peer
OUTBOX_MAX_SIZE = 1000
