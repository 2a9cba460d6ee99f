"""Unit tests for AuthClient against a mocked auth service"""
import httpx
import pytest

from auth.client import AuthClient
from domain.errors import AuthError, TransportError
from domain.models import Identity


def make_client(handler) -> AuthClient:
    transport = httpx.MockTransport(handler)
    return AuthClient(client=httpx.AsyncClient(base_url="http://auth.test", transport=transport))


@pytest.mark.unit
@pytest.mark.asyncio
class TestAuthClientIdentify:
    """Test token resolution through GET /auth/me"""

    async def test_valid_token(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["authorization"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"id": 5, "username": "eve", "email": "eve@example.com"})

        client = make_client(handler)
        identity = await client.identify("abc")
        await client.close()

        assert identity == Identity(id=5, username="eve", email="eve@example.com")
        assert seen == {"path": "/auth/me", "authorization": "Bearer abc"}

    async def test_missing_token_skips_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("auth service should not be called")

        client = make_client(handler)

        with pytest.raises(AuthError):
            await client.identify("")
        with pytest.raises(AuthError):
            await client.identify(None)

    async def test_rejected_token(self):
        client = make_client(lambda request: httpx.Response(401, json={"detail": "expired"}))

        with pytest.raises(AuthError):
            await client.identify("stale")

    async def test_server_error_is_transport_error(self):
        client = make_client(lambda request: httpx.Response(503))

        with pytest.raises(TransportError):
            await client.identify("abc")

    async def test_malformed_identity_is_transport_error(self):
        client = make_client(lambda request: httpx.Response(200, json={"id": 5}))

        with pytest.raises(TransportError):
            await client.identify("abc")

    async def test_network_failure_is_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(TransportError):
            await client.identify("abc")
