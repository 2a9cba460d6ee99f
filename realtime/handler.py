"""WebSocket connection handling: authentication, boot and the per-connection read loop"""
import asyncio
import json
import logging

from fastapi import WebSocket, WebSocketDisconnect

from auth.client import AuthClient
from domain.constants import EVENT_TYPE_ERROR, WS_CLOSE_INTERNAL_ERROR, WS_CLOSE_POLICY_VIOLATION
from domain.errors import AuthError, ChatError, TransportError
from domain.models import Identity, OutboundEvent, SessionState
from events.consumer import OutboxConsumer
from realtime.dispatcher import Dispatcher

logger = logging.getLogger(__name__)


async def reject_connection(websocket: WebSocket, error: ChatError, code: int) -> None:
    """Accept only to report why, then close (terminal state)"""
    await websocket.accept()
    await websocket.send_text(json.dumps(OutboundEvent(type=EVENT_TYPE_ERROR, data=error.to_dict()).to_dict()))
    await websocket.close(code=code, reason=error.message)


async def close_quietly(websocket: WebSocket) -> None:
    try:
        await websocket.close(code=WS_CLOSE_INTERNAL_ERROR)
    except Exception as e:
        logger.debug("Socket already closed: %s", e)


async def authenticate(websocket: WebSocket, auth_client: AuthClient) -> Identity | None:
    """Resolve the `token` query parameter; rejects the connection on failure"""
    token = websocket.query_params.get("token", "")
    try:
        return await auth_client.identify(token)
    except AuthError as e:
        logger.warning("Rejected WebSocket connection: %s", e.message)
        await reject_connection(websocket, e, WS_CLOSE_POLICY_VIOLATION)
    except TransportError as e:
        logger.warning("Could not validate WebSocket token: %s", e.message)
        await reject_connection(websocket, e, WS_CLOSE_INTERNAL_ERROR)
    return None


async def handle_websocket_connection(websocket: WebSocket, dispatcher: Dispatcher, auth_client: AuthClient) -> None:
    """Run one connection from handshake to close"""
    identity = await authenticate(websocket, auth_client)
    if identity is None:
        return

    await websocket.accept()
    session = None
    consumer_task = None

    try:
        session = await dispatcher.open_session(identity, websocket)
        consumer = OutboxConsumer(session, on_transport_error=dispatcher.close_session)
        consumer_task = asyncio.create_task(consumer.consume())

        while True:
            raw = await websocket.receive_text()
            # a frame in flight finishes even if this connection goes away
            await asyncio.shield(dispatcher.handle_frame(session, raw))
            if session.state is SessionState.CLOSED:
                # torn down from the outbound side; stop reading
                logger.info("Session %s of '%s' closed while reading", session.session_id, identity.username)
                await close_quietly(websocket)
                break
    except WebSocketDisconnect:
        logger.info("Client '%s' disconnected", identity.username)
    except Exception as e:
        logger.warning("WebSocket error for '%s', closing connection: %s", identity.username, e)
        await close_quietly(websocket)
    finally:
        if session is not None:
            dispatcher.close_session(session)
        if consumer_task is not None:
            consumer_task.cancel()
