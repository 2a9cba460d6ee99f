"""Main FastAPI application - real-time chat server"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from api.errors import register_exception_handlers
from api.messages import router as messages_router
from api.system import router as system_router
from auth.client import AuthClient
from core.config import Settings, get_settings
from core.logging import setup_logging
from database.message_store import MessageStore
from realtime.dispatcher import build_dispatcher
from realtime.handler import handle_websocket_connection

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, auth_client: AuthClient | None = None) -> FastAPI:
    """Build the application; `auth_client` can be injected for tests"""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the store and wire the dispatcher for the app's lifetime"""
        setup_logging(settings.log_level)

        store = MessageStore(settings.database_path, history_limit=settings.history_limit)
        await store.init()
        client = auth_client or AuthClient(settings.auth_base_url, timeout=settings.auth_timeout_seconds)

        app.state.store = store
        app.state.auth_client = client
        app.state.dispatcher = build_dispatcher(store, outbox_max_size=settings.outbox_max_size)
        logger.info("%s started", settings.app_name)

        yield

        if auth_client is None:
            await client.close()
        await store.close()
        logger.info("%s shutdown complete", settings.app_name)

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(system_router)
    app.include_router(messages_router)

    @app.websocket("/ws/chat")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        """WebSocket endpoint that delegates to handler"""
        await handle_websocket_connection(websocket, app.state.dispatcher, app.state.auth_client)

    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    setup_logging(settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port)
