"""Domain models for the chat system"""
import asyncio
import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from fastapi import WebSocket

from .audience import GENERAL, Audience, DirectAudience
from .constants import EventType, MessageType, MESSAGE_TYPE_TEXT, OUTBOX_MAX_SIZE


@dataclass(frozen=True)
class Identity:
    """An authenticated user as issued by the auth service"""
    id: int
    username: str
    email: str

    @classmethod
    def from_dict(cls, data: dict) -> "Identity":
        """Build an identity from an auth service payload (raises KeyError/ValueError on bad shape)"""
        return cls(id=int(data["id"]), username=str(data["username"]), email=str(data["email"]))

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "email": self.email}


@dataclass
class Reaction:
    """One emoji on a message and the users who added it, in order of first use"""
    emoji: str
    users: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"emoji": self.emoji, "users": list(self.users)}


@dataclass
class DraftMessage:
    """A validated inbound message that has not been persisted yet

    The audience is resolved at ingress so the rest of the pipeline never
    inspects a raw optional recipient field.
    """
    author: Identity
    content: str
    audience: Audience = GENERAL
    message_type: MessageType = MESSAGE_TYPE_TEXT
    file_url: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    reply_to_id: str | None = None

    @property
    def recipient_id(self) -> int | None:
        if isinstance(self.audience, DirectAudience):
            return self.audience.other(self.author.id)
        return None


@dataclass
class Message:
    """A persisted chat message"""
    id: str
    author: Identity
    content: str
    created_at: str
    message_type: MessageType = MESSAGE_TYPE_TEXT
    file_url: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    reply_to_id: str | None = None
    recipient_id: int | None = None
    reactions: list[Reaction] = field(default_factory=list)
    deleted_at: str | None = None

    def to_dict(self) -> dict:
        """Wire form sent to clients inside `boot` and `message` events"""
        return {
            "id": self.id,
            "user": self.author.to_dict(),
            "content": self.content,
            "created_at": self.created_at,
            "messageType": self.message_type,
            "fileUrl": self.file_url,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "replyToId": self.reply_to_id,
            "recipientId": self.recipient_id,
            "reactions": [reaction.to_dict() for reaction in self.reactions],
        }


class SessionState(enum.Enum):
    """Lifecycle of a WebSocket connection"""
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass(eq=False)
class Session:
    """One live WebSocket connection of an authenticated identity

    Outbound events are queued on `outbox` and written to the socket by the
    session's own consumer task, so a slow client never blocks a sender.
    """
    identity: Identity
    websocket: WebSocket
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: SessionState = SessionState.AUTHENTICATED
    outbox: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=OUTBOX_MAX_SIZE))

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    def enqueue(self, envelope: dict) -> bool:
        """Queue an outbound envelope unless the session is already closed

        Returns False when the outbox is full, i.e. the peer stopped reading.
        """
        if self.state is SessionState.CLOSED:
            return True
        try:
            self.outbox.put_nowait(envelope)
        except asyncio.QueueFull:
            return False
        return True


@dataclass
class OutboundEvent:
    """Envelope pushed to clients: {"type": ..., "data": ...}"""
    type: EventType
    data: dict | list

    def to_dict(self) -> dict:
        return {"type": self.type, "data": self.data}


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string"""
    return datetime.now(timezone.utc).isoformat()
