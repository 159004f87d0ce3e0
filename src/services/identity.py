"""
Identity verification against the external auth provider.

The provider (a Supabase-style ``/auth/v1/user`` endpoint) resolves a bearer
token to the user it belongs to. Nothing about token formats lives here;
an unknown, expired, or unverifiable token is simply "not authenticated".
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from config.settings import AuthSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    """The caller, as confirmed by the identity provider."""
    id: str
    email: Optional[str] = None


class IdentityVerificationError(Exception):
    """The token could not be resolved to a user."""


class IdentityVerifier(Protocol):
    async def verify(self, token: str) -> AuthenticatedUser:
        ...


class HttpIdentityVerifier:
    """Verifies bearer tokens by asking the identity provider who they belong to."""

    def __init__(self, settings: AuthSettings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.timeout_seconds, connect=5.0)
        )

    async def verify(self, token: str) -> AuthenticatedUser:
        """
        Resolve a bearer token to a user.

        Raises:
            IdentityVerificationError: rejected token, provider unreachable,
                or a response without a user id.
        """
        if not self.settings.verify_url:
            raise IdentityVerificationError("Identity provider is not configured")

        headers = {"Authorization": f"Bearer {token}"}
        if self.settings.api_key:
            headers["apikey"] = self.settings.api_key

        try:
            response = await self._client.get(self.settings.verify_url, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("Identity provider request timed out")
            raise IdentityVerificationError("Identity provider timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Identity provider connection error: {e}")
            raise IdentityVerificationError("Identity provider unreachable") from e

        if response.status_code != 200:
            logger.info(
                "Identity provider rejected token",
                extra={'extra_data': {'status_code': response.status_code}}
            )
            raise IdentityVerificationError(f"Token rejected ({response.status_code})")

        try:
            payload = response.json()
        except ValueError as e:
            raise IdentityVerificationError("Malformed identity response") from e

        user_id = payload.get("id") if isinstance(payload, dict) else None
        if not user_id:
            raise IdentityVerificationError("Identity response has no user id")

        return AuthenticatedUser(id=str(user_id), email=payload.get("email"))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
