"""
Access-token lifecycle for the smart-plug cloud API.

The manager is a two-state machine:

- **EMPTY**: no token held (initial state, after expiry, after a failure).
- **VALID**: an :class:`AccessToken` is held and ``now < expires_at``.

``get_token()`` serves the cached token without I/O while VALID. Otherwise
it performs one signed ``GET /v1.0/token?grant_type=1`` and stores the
result. Refreshes are serialized by an ``asyncio.Lock`` so concurrent
callers arriving while EMPTY share a single token request.

Failures are never cached and always raise :class:`AuthenticationError`:
a silently missing token would turn every downstream read into a false
"no devices" answer.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import asyncio
import logging
import time
from collections.abc import Callable

import httpx

from plugwatch.src.errors import AuthenticationError
from plugwatch.src.models import AccessToken, TokenState
from plugwatch.src.signature import RequestSigner

logger = logging.getLogger(__name__)

TOKEN_PATH = "/v1.0/token?grant_type=1"


class TokenManager:
    """Obtains and caches the provider bearer token.

    Args:
        client: HTTP client whose ``base_url`` points at the provider API.
        signer: Request signer for this client's credentials.
        clock: Returns the current time in epoch seconds. Injected so
            tests can move time forward.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        signer: RequestSigner,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._signer = signer
        self._clock = clock
        self._token: AccessToken | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def state(self) -> TokenState:
        """Current state, evaluated against the clock."""
        if self._token is not None and self._token.is_valid(self._clock()):
            return TokenState.VALID
        return TokenState.EMPTY

    @property
    def expires_at(self) -> float | None:
        return self._token.expires_at if self._token is not None else None

    def invalidate(self) -> None:
        """Drop the cached token so the next call fetches a new one."""
        self._token = None

    async def get_token(self) -> str:
        """Return a valid bearer token, fetching one if needed.

        Returns:
            The access token string.

        Raises:
            AuthenticationError: The provider rejected the request or it
                could not be completed.
        """
        token = self._token
        if token is not None and token.is_valid(self._clock()):
            return token.value

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited.
            token = self._token
            if token is not None and token.is_valid(self._clock()):
                return token.value

            self._token = None
            self._token = await self._fetch_token()
            return self._token.value

    async def _fetch_token(self) -> AccessToken:
        timestamp = str(int(self._clock() * 1000))
        headers = self._signer.headers("GET", TOKEN_PATH, "", timestamp)

        try:
            response = await self._client.get(TOKEN_PATH, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Token request returned HTTP %s", exc.response.status_code
            )
            raise AuthenticationError(
                f"Authentication failed: HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Token request failed: %s", exc)
            raise AuthenticationError(f"Authentication failed: {exc}") from exc
        except ValueError as exc:
            logger.error("Token response is not valid JSON")
            raise AuthenticationError(
                "Authentication failed: malformed token response"
            ) from exc

        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(data, dict) or not data.get("success") or not result:
            msg = data.get("msg") if isinstance(data, dict) else None
            logger.error("Token request rejected: %s", msg or "Unknown error")
            raise AuthenticationError(
                f"Authentication failed: {msg or 'Unknown error'}"
            )

        try:
            value = str(result["access_token"])
            expire_seconds = float(result["expire_time"])
        except (KeyError, TypeError, ValueError) as exc:
            raise AuthenticationError(
                "Authentication failed: token response missing access_token "
                "or expire_time"
            ) from exc

        logger.info("Access token obtained (expires in %ds)", expire_seconds)
        return AccessToken(value=value, expires_at=self._clock() + expire_seconds)
