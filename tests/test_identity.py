"""Tests for bearer token verification against the identity provider."""

import httpx
import pytest

from config.settings import AuthSettings
from services.identity import AuthenticatedUser, HttpIdentityVerifier, IdentityVerificationError

VERIFY_URL = "https://auth.example.com/auth/v1/user"


def verifier_for(handler, **settings):
    options = dict(verify_url=VERIFY_URL, api_key="anon-key")
    options.update(settings)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpIdentityVerifier(AuthSettings(**options), client=client)


class TestHttpIdentityVerifier:

    @pytest.mark.asyncio
    async def test_valid_token(self):
        seen = {}

        def handler(request):
            seen["authorization"] = request.headers["authorization"]
            seen["apikey"] = request.headers.get("apikey")
            return httpx.Response(200, json={"id": "user-123", "email": "alex@example.com"})

        user = await verifier_for(handler).verify("good-token")

        assert user == AuthenticatedUser(id="user-123", email="alex@example.com")
        assert seen == {"authorization": "Bearer good-token", "apikey": "anon-key"}

    @pytest.mark.asyncio
    async def test_apikey_header_optional(self):
        seen = {}

        def handler(request):
            seen["apikey"] = request.headers.get("apikey")
            return httpx.Response(200, json={"id": "u1"})

        user = await verifier_for(handler, api_key=None).verify("t")

        assert user.email is None
        assert seen["apikey"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403, 500])
    async def test_rejected_token(self, status):
        verifier = verifier_for(lambda request: httpx.Response(status, json={"msg": "invalid JWT"}))

        with pytest.raises(IdentityVerificationError, match=str(status)):
            await verifier.verify("bad-token")

    @pytest.mark.asyncio
    async def test_response_without_user_id(self):
        verifier = verifier_for(lambda request: httpx.Response(200, json={"email": "x@example.com"}))

        with pytest.raises(IdentityVerificationError, match="no user id"):
            await verifier.verify("t")

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        verifier = verifier_for(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(IdentityVerificationError, match="Malformed"):
            await verifier.verify("t")

    @pytest.mark.asyncio
    async def test_provider_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(IdentityVerificationError, match="unreachable"):
            await verifier_for(handler).verify("t")

    @pytest.mark.asyncio
    async def test_provider_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(IdentityVerificationError, match="timed out"):
            await verifier_for(handler).verify("t")

    @pytest.mark.asyncio
    async def test_not_configured(self):
        verifier = verifier_for(lambda request: httpx.Response(200, json={"id": "u1"}), verify_url=None)

        with pytest.raises(IdentityVerificationError, match="not configured"):
            await verifier.verify("t")

    @pytest.mark.asyncio
    async def test_numeric_id_stringified(self):
        user = await verifier_for(lambda request: httpx.Response(200, json={"id": 42})).verify("t")
        assert user.id == "42"
