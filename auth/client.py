"""Client for the external auth service that resolves bearer tokens"""
import logging

import httpx

from domain.errors import AuthError, TransportError
from domain.models import Identity

logger = logging.getLogger(__name__)

DEFAULT_AUTH_BASE_URL = "http://localhost:8001"


class AuthClient:
    """Validates bearer tokens via `GET /auth/me` on the auth service"""

    def __init__(self, base_url: str = DEFAULT_AUTH_BASE_URL, timeout: float = 10.0, client: httpx.AsyncClient | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )

    async def identify(self, token: str | None) -> Identity:
        """Resolve a bearer token to the identity it was issued for

        Raises:
            AuthError: token missing, invalid or expired
            TransportError: auth service unreachable or misbehaving
        """
        if not token or not token.strip():
            raise AuthError("Missing bearer token")

        try:
            resp = await self._client.get("/auth/me", headers={"Authorization": f"Bearer {token.strip()}"})
        except httpx.HTTPError as e:
            logger.warning("Auth service request failed: %s", e)
            raise TransportError("Auth service unavailable") from e

        if resp.status_code in (401, 403):
            raise AuthError("Invalid or expired token")
        if resp.status_code >= 400:
            raise TransportError(f"Auth service returned HTTP {resp.status_code}")

        try:
            return Identity.from_dict(resp.json())
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError("Auth service returned a malformed identity") from e

    async def close(self) -> None:
        await self._client.aclose()
