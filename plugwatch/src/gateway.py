"""
Device gateway -- the only component that speaks the smart-plug cloud API.

Every outbound request is signed (see :mod:`plugwatch.src.signature`) and,
apart from the token call, carries the bearer token from
:class:`TokenManager`. Each public operation issues at most one resource
request per call and never retries; retry cadence belongs to the caller.

Public operations degrade instead of raising:

- ``list_devices()`` / ``get_power_history()`` -> ``[]``
- ``get_device_status()`` -> ``None``
- ``control_device()`` -> ``False``

An empty list therefore means "currently unknown", not "no devices". Use
``fetch_devices()`` when the difference matters.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlencode

import httpx

from plugwatch.src.errors import MappingError, PlugCloudError, TransportError
from plugwatch.src.mapping import (
    map_device_list,
    map_device_status,
    map_power_logs,
    unwrap_envelope,
)
from plugwatch.src.models import DeviceReading, PowerReading
from plugwatch.src.signature import RequestSigner
from plugwatch.src.token_manager import TokenManager

if TYPE_CHECKING:
    from plugwatch.src.config import PlugSettings

logger = logging.getLogger(__name__)

# Default request timeout in seconds.
_DEFAULT_TIMEOUT: float = 10.0

# Provider log type for data-point reports.
_LOG_TYPE_REPORT = 7

MAX_HISTORY_SIZE = 100

_MS_PER_DAY = 24 * 60 * 60 * 1000


class DeviceGateway:
    """Signed, authenticated access to the provider device endpoints.

    Args:
        client_id: Provider API client id.
        client_secret: Provider API client secret.
        base_url: Provider API base URL (e.g. ``https://openapi.tuyaus.com``).
        api_version: Value of the ``v`` header.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport, used to plug in a fake
            provider in tests.
        clock: Returns epoch seconds; drives request timestamps, token
            expiry and history windows.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str,
        api_version: str = "1.0",
        timeout: float = _DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._signer = RequestSigner(client_id, client_secret, api_version)
        self._clock = clock
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )
        self._tokens = TokenManager(self._client, self._signer, clock=clock)

    @classmethod
    def from_settings(
        cls,
        settings: PlugSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> DeviceGateway:
        return cls(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            base_url=settings.api_url,
            api_version=settings.api_version,
            timeout=settings.request_timeout_s,
            transport=transport,
        )

    @property
    def token_manager(self) -> TokenManager:
        return self._tokens

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> DeviceGateway:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_devices(self) -> list[DeviceReading]:
        """Fetch and map every device, raising on failure.

        Raises:
            PlugCloudError: Any authentication, transport, provider or
                mapping failure.
        """
        result = await self._request("GET", "/v1.0/devices")
        return map_device_list(result, self._now())

    async def list_devices(self) -> list[DeviceReading]:
        """Fetch every device; ``[]`` on any failure."""
        logger.debug("Fetching smart plug devices")
        try:
            return await self.fetch_devices()
        except PlugCloudError:
            logger.error("Error fetching devices", exc_info=True)
            return []

    async def get_device_status(self, device_id: str) -> DeviceReading | None:
        """Fetch one device's status; ``None`` if it cannot be resolved."""
        path = f"/v1.0/devices/{quote(device_id, safe='')}/status"
        try:
            result = await self._request("GET", path)
            return map_device_status(result, device_id, self._now())
        except PlugCloudError:
            logger.error("Error fetching device %s", device_id, exc_info=True)
            return None

    async def control_device(self, device_id: str, power_state: bool) -> bool:
        """Switch a device on or off.

        Returns:
            ``True`` only when the provider confirmed the command.
        """
        action = "ON" if power_state else "OFF"
        logger.info("Turning %s device %s", action, device_id)
        path = f"/v1.0/devices/{quote(device_id, safe='')}/commands"
        body = {"commands": [{"code": "switch_1", "value": power_state}]}
        try:
            await self._request("POST", path, body=body)
        except PlugCloudError:
            logger.error("Error controlling device %s", device_id, exc_info=True)
            return False

        logger.info("Device %s turned %s", device_id, action)
        return True

    async def get_power_history(
        self,
        device_id: str,
        days: int = 7,
        size: int = MAX_HISTORY_SIZE,
    ) -> list[PowerReading]:
        """Fetch the power log for the last *days* days.

        At most 100 entries are requested. Only ``power`` is populated on
        the returned readings; voltage, current and energy are ``None``.
        """
        end_time = int(self._clock() * 1000)
        start_time = end_time - days * _MS_PER_DAY
        query = urlencode(
            {
                "start_time": start_time,
                "end_time": end_time,
                "type": _LOG_TYPE_REPORT,
                "size": max(1, min(size, MAX_HISTORY_SIZE)),
            }
        )
        path = f"/v1.0/devices/{quote(device_id, safe='')}/logs?{query}"
        try:
            result = await self._request("GET", path)
            return map_power_logs(result, device_id)
        except PlugCloudError:
            logger.error(
                "Error fetching power history for %s", device_id, exc_info=True
            )
            return []

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=UTC)

    async def _request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Send one signed request and return the envelope's ``result``.

        The body is serialized once so the bytes sent are the bytes signed.

        Raises:
            AuthenticationError: No token could be obtained.
            TransportError: Network failure, timeout or non-2xx status.
            ProviderError: ``success=false`` envelope.
            MappingError: Response body is not a JSON envelope.
        """
        token = await self._tokens.get_token()
        content = json.dumps(body, separators=(",", ":")) if body else ""
        timestamp = str(int(self._clock() * 1000))
        headers = self._signer.headers(
            method, path, content, timestamp, access_token=token
        )

        try:
            response = await self._client.request(
                method, path, headers=headers, content=content or None
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"{method} {path} returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.TimeoutException as exc:
            raise TransportError(f"{method} {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise MappingError(f"{method} {path} returned non-JSON body") from exc

        return unwrap_envelope(data)
