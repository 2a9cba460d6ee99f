"""HTTP routes for message history and mutations (reactions, deletion)

Mutations do not depend on the WebSocket channel, but their events reach
connected clients through the same publisher as live messages.
"""
from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field

from api.dependencies import get_current_identity, get_dispatcher
from domain.models import Identity
from realtime.dispatcher import Dispatcher

router = APIRouter(prefix="/messages", tags=["messages"])


class ReactionRequest(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=64)


@router.get("")
async def list_messages(
    recipient_id: int | None = Query(default=None, alias="recipientId", gt=0),
    limit: int | None = Query(default=None, ge=1, le=500),
    identity: Identity = Depends(get_current_identity),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> list[dict]:
    """General chat history, or the caller's conversation with `recipientId`"""
    messages = await dispatcher.history_for(identity, recipient_id, limit)
    return [message.to_dict() for message in messages]


@router.post("/{message_id}/reactions")
async def add_reaction(
    message_id: str,
    body: ReactionRequest,
    identity: Identity = Depends(get_current_identity),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> dict:
    reaction = await dispatcher.add_reaction(message_id, identity, body.emoji)
    return {"messageId": message_id, "reaction": reaction.to_dict()}


@router.delete("/{message_id}", status_code=204)
async def delete_message(
    message_id: str,
    identity: Identity = Depends(get_current_identity),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> Response:
    await dispatcher.delete_message(message_id, identity)
    return Response(status_code=204)
