"""Translate chat core exceptions into HTTP responses"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from domain.errors import (
    AuthError,
    ChatError,
    NotFoundError,
    PermissionDeniedError,
    TransportError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[ChatError], int] = {
    AuthError: 401,
    ValidationError: 422,
    NotFoundError: 404,
    PermissionDeniedError: 403,
    TransportError: 502,
}


def status_for(error: ChatError) -> int:
    for error_type, status_code in STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ChatError, chat_error_handler)
