"""FastAPI dependencies shared by the HTTP routes"""
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from auth.client import AuthClient
from domain.errors import AuthError
from domain.models import Identity
from realtime.dispatcher import Dispatcher

bearer_scheme = HTTPBearer(auto_error=False)


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_auth_client(request: Request) -> AuthClient:
    return request.app.state.auth_client


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_client: AuthClient = Depends(get_auth_client),
) -> Identity:
    """Identity behind the request's bearer token"""
    if credentials is None:
        raise AuthError("Missing bearer token")
    return await auth_client.identify(credentials.credentials)
