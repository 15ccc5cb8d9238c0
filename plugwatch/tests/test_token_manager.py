"""
Unit tests for the access-token lifecycle.

Tests verify:
- Two calls inside the expiry window make exactly one token request.
- A call after expiry makes one fresh request and moves the expiry.
- Concurrent callers while EMPTY share a single request.
- Rejections, HTTP errors and network errors raise AuthenticationError,
  cache nothing, and the next call retries.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import asyncio

import httpx
import pytest

from plugwatch.src.errors import AuthenticationError
from plugwatch.src.models import TokenState
from plugwatch.src.signature import RequestSigner
from plugwatch.src.token_manager import TOKEN_PATH, TokenManager

_BASE_URL = "https://openapi.example.com"


def _manager(provider, clock) -> tuple[TokenManager, httpx.AsyncClient]:
    client = httpx.AsyncClient(base_url=_BASE_URL, transport=provider.transport)
    signer = RequestSigner("cid", "secret")
    return TokenManager(client, signer, clock=clock), client


class TestTokenCaching:
    @pytest.mark.asyncio()
    async def test_starts_empty(self, provider, clock) -> None:
        manager, client = _manager(provider, clock)
        assert manager.state is TokenState.EMPTY
        assert manager.expires_at is None
        await client.aclose()

    @pytest.mark.asyncio()
    async def test_two_calls_within_expiry_make_one_request(
        self, provider, clock
    ) -> None:
        manager, client = _manager(provider, clock)

        first = await manager.get_token()
        clock.advance(100)
        second = await manager.get_token()

        assert first == second == "tok-abc123"
        assert len(provider.requests_to("/v1.0/token")) == 1
        assert manager.state is TokenState.VALID
        await client.aclose()

    @pytest.mark.asyncio()
    async def test_expiry_is_now_plus_expire_time(self, provider, clock) -> None:
        manager, client = _manager(provider, clock)
        start = clock.now

        await manager.get_token()

        assert manager.expires_at == start + 7200
        await client.aclose()

    @pytest.mark.asyncio()
    async def test_refreshes_after_expiry(self, provider, clock) -> None:
        manager, client = _manager(provider, clock)
        await manager.get_token()
        first_expiry = manager.expires_at

        clock.advance(7200)
        assert manager.state is TokenState.EMPTY
        await manager.get_token()

        assert len(provider.requests_to("/v1.0/token")) == 2
        assert manager.expires_at == clock.now + 7200
        assert manager.expires_at > first_expiry
        await client.aclose()

    @pytest.mark.asyncio()
    async def test_invalidate_forces_refetch(self, provider, clock) -> None:
        manager, client = _manager(provider, clock)
        await manager.get_token()

        manager.invalidate()
        await manager.get_token()

        assert len(provider.requests_to("/v1.0/token")) == 2
        await client.aclose()

    @pytest.mark.asyncio()
    async def test_concurrent_callers_share_one_request(
        self, provider, clock
    ) -> None:
        manager, client = _manager(provider, clock)

        tokens = await asyncio.gather(*(manager.get_token() for _ in range(5)))

        assert set(tokens) == {"tok-abc123"}
        assert len(provider.requests_to("/v1.0/token")) == 1
        await client.aclose()


class TestTokenRequest:
    @pytest.mark.asyncio()
    async def test_request_is_signed_without_access_token(
        self, provider, clock
    ) -> None:
        manager, client = _manager(provider, clock)
        await manager.get_token()

        request = provider.requests_to("/v1.0/token")[0]
        signer = RequestSigner("cid", "secret")
        t = str(int(clock.now * 1000))
        assert request.method == "GET"
        assert request.url.params["grant_type"] == "1"
        assert request.headers["client_id"] == "cid"
        assert request.headers["t"] == t
        assert request.headers["sign"] == signer.sign("GET", TOKEN_PATH, "", t)
        assert request.headers["sign_method"] == "HMAC-SHA256"
        assert "access_token" not in request.headers
        await client.aclose()


class TestTokenFailures:
    @pytest.mark.asyncio()
    async def test_rejected_envelope_raises_with_provider_message(
        self, provider, provider_responses, clock
    ) -> None:
        provider.route_json("GET", "/v1.0/token", provider_responses["token_rejected"])
        manager, client = _manager(provider, clock)

        with pytest.raises(AuthenticationError, match="sign invalid"):
            await manager.get_token()

        assert manager.state is TokenState.EMPTY
        await client.aclose()

    @pytest.mark.asyncio()
    async def test_failure_is_not_cached_and_next_call_retries(
        self, provider, provider_responses, clock
    ) -> None:
        provider.route_json("GET", "/v1.0/token", provider_responses["token_rejected"])
        manager, client = _manager(provider, clock)

        with pytest.raises(AuthenticationError):
            await manager.get_token()

        provider.route_json("GET", "/v1.0/token", provider_responses["token_success"])
        assert await manager.get_token() == "tok-abc123"
        assert len(provider.requests_to("/v1.0/token")) == 2
        await client.aclose()

    @pytest.mark.asyncio()
    async def test_network_error_raises_authentication_error(
        self, provider, clock
    ) -> None:
        provider.route_error(
            "GET", "/v1.0/token", httpx.ConnectError("Connection refused")
        )
        manager, client = _manager(provider, clock)

        with pytest.raises(AuthenticationError, match="Connection refused"):
            await manager.get_token()
        await client.aclose()

    @pytest.mark.asyncio()
    async def test_timeout_raises_authentication_error(self, provider, clock) -> None:
        provider.route_error(
            "GET", "/v1.0/token", httpx.ReadTimeout("Read timed out")
        )
        manager, client = _manager(provider, clock)

        with pytest.raises(AuthenticationError):
            await manager.get_token()
        await client.aclose()

    @pytest.mark.asyncio()
    async def test_http_500_raises_authentication_error(
        self, provider, clock
    ) -> None:
        provider.route_json("GET", "/v1.0/token", {"error": "boom"}, status_code=500)
        manager, client = _manager(provider, clock)

        with pytest.raises(AuthenticationError, match="HTTP 500"):
            await manager.get_token()
        await client.aclose()

    @pytest.mark.asyncio()
    async def test_non_json_body_raises_authentication_error(
        self, provider, clock
    ) -> None:
        provider.route(
            "GET",
            "/v1.0/token",
            lambda request: httpx.Response(200, text="<html>gateway</html>"),
        )
        manager, client = _manager(provider, clock)

        with pytest.raises(AuthenticationError, match="malformed"):
            await manager.get_token()
        await client.aclose()

    @pytest.mark.asyncio()
    async def test_missing_token_fields_raise(self, provider, clock) -> None:
        provider.route_json(
            "GET", "/v1.0/token", {"success": True, "result": {"uid": "x"}}
        )
        manager, client = _manager(provider, clock)

        with pytest.raises(AuthenticationError, match="access_token"):
            await manager.get_token()
        assert manager.state is TokenState.EMPTY
        await client.aclose()
