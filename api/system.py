"""Health and presence routes"""
from fastapi import APIRouter, Depends

from api.dependencies import get_current_identity, get_dispatcher
from domain.models import Identity
from realtime.dispatcher import Dispatcher

router = APIRouter(tags=["system"])


@router.get("/healthz")
async def healthz() -> dict:
    return {"ok": True}


@router.get("/presence")
async def presence(
    identity: Identity = Depends(get_current_identity),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> list[dict]:
    """Identities that currently have at least one live connection"""
    return [online.to_dict() for online in dispatcher.registry.list_online()]
