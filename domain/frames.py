"""Inbound WebSocket frame parsing.

A frame is either a JSON object describing a message or anything else, which
is treated as the plain-text content of a general chat message. Parsing never
fails on malformed JSON; only a JSON object with invalid fields is rejected.
"""
import json
from dataclasses import dataclass

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from .audience import GENERAL, audience_for
from .constants import MessageType, MESSAGE_TYPE_TEXT
from .errors import ValidationError
from .models import DraftMessage, Identity


@dataclass(frozen=True)
class PlainTextFrame:
    """Raw text sent by simple clients"""
    content: str


class StructuredFrame(BaseModel):
    """JSON message frame: {content, replyTo?, recipientId?, fileUrl?, fileName?, fileSize?, messageType?}"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    content: str | None = None
    reply_to: str | None = Field(default=None, alias="replyTo")
    recipient_id: int | None = Field(default=None, alias="recipientId", gt=0, strict=True)
    file_url: str | None = Field(default=None, alias="fileUrl")
    file_name: str | None = Field(default=None, alias="fileName")
    file_size: int | None = Field(default=None, alias="fileSize", ge=0, strict=True)
    message_type: MessageType = Field(default=MESSAGE_TYPE_TEXT, alias="messageType")


Frame = PlainTextFrame | StructuredFrame


def describe_validation_error(exc: pydantic.ValidationError) -> str:
    """Flatten pydantic errors into one readable line"""
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "frame"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


def decode_frame(raw: str) -> Frame:
    """Decode one inbound frame

    Raises:
        ValidationError: the frame is a JSON object whose fields are invalid
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return PlainTextFrame(content=raw)

    if not isinstance(payload, dict):
        return PlainTextFrame(content=raw)

    try:
        return StructuredFrame.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(describe_validation_error(e)) from e


def build_draft(frame: Frame, author: Identity) -> DraftMessage:
    """Turn a decoded frame into a draft with its audience resolved"""
    if isinstance(frame, PlainTextFrame):
        return DraftMessage(author=author, content=frame.content, audience=GENERAL)

    return DraftMessage(
        author=author,
        content=frame.content or "",
        audience=audience_for(author.id, frame.recipient_id),
        message_type=frame.message_type,
        file_url=frame.file_url,
        file_name=frame.file_name,
        file_size=frame.file_size,
        reply_to_id=frame.reply_to,
    )


def parse_frame(raw: str, author: Identity) -> DraftMessage:
    """Decode a raw frame from `author` into a draft message"""
    return build_draft(decode_frame(raw), author)
