"""
Dashboard API serving room statuses, alerts and device control.

Sits between the presentation layer and the device gateway. Room and alert
reads use the cached snapshot written by the poll daemon and fall back to
a live ``list_devices()`` call on a miss. An empty list means the provider
is currently unreachable or has no devices; it is never a confirmed zero.

Identity and role checks belong to the identity provider in front of this
service and are not repeated here.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from plugwatch.src.alerts import detect
from plugwatch.src.cache import SnapshotCache
from plugwatch.src.config import get_settings
from plugwatch.src.gateway import DeviceGateway
from plugwatch.src.models import DEFAULT_THRESHOLDS, DeviceReading, Thresholds
from plugwatch.src.normalizer import normalize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["telemetry"])


# ---------------------------------------------------------------------------
# Pydantic response schemas
# ---------------------------------------------------------------------------


class RoomStatusResponse(BaseModel):
    id: str
    number: str
    status: str
    current_usage: float
    percentage: int
    detected_device: str | None = None
    warning_count: int | None = None


class DeviceAlertResponse(BaseModel):
    device_id: str
    room_number: str
    type: str
    message: str
    timestamp: datetime
    severity: str


class AlertCountResponse(BaseModel):
    count: int


class DeviceReadingResponse(BaseModel):
    """Schema for a single device reading.

    Attributes:
        device_id: Provider device identifier.
        name: Device display name.
        room_number: Room label derived from the name.
        online: Whether the provider reports the device online.
        power_state: Relay on/off.
        current_power: Instantaneous power (W).
        voltage: Voltage (V).
        current: Current (A).
        total_energy: Cumulative energy (kWh).
        last_update: Time the reading was taken.
    """

    device_id: str
    name: str
    room_number: str
    online: bool
    power_state: bool
    current_power: float
    voltage: float
    current: float
    total_energy: float
    last_update: datetime


class PowerReadingResponse(BaseModel):
    """One power log entry. ``voltage``, ``current`` and ``energy`` are
    not reported by the log endpoint and are always ``null``."""

    device_id: str
    timestamp: datetime
    power: float
    voltage: float | None = None
    current: float | None = None
    energy: float | None = None


class PowerCommand(BaseModel):
    power_state: bool


class PowerCommandResponse(BaseModel):
    device_id: str
    power_state: bool
    success: bool


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_gateway(request: Request) -> DeviceGateway:
    return request.app.state.gateway


def get_cache(request: Request) -> SnapshotCache:
    return request.app.state.cache


def get_thresholds(request: Request) -> Thresholds:
    return request.app.state.thresholds


Gateway = Annotated[DeviceGateway, Depends(get_gateway)]
Cache = Annotated[SnapshotCache, Depends(get_cache)]
ThresholdsDep = Annotated[Thresholds, Depends(get_thresholds)]


async def _current_readings(
    gateway: DeviceGateway, cache: SnapshotCache
) -> list[DeviceReading]:
    """Cached snapshot if present, otherwise a live device list."""
    cached = await cache.load_snapshot()
    if cached is not None:
        return cached

    readings = await gateway.list_devices()
    # Never cache an empty list; it may stand for a provider outage.
    if readings:
        await cache.store_snapshot(readings)
    return readings


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/rooms", response_model=list[RoomStatusResponse])
async def get_rooms(
    gateway: Gateway, cache: Cache, thresholds: ThresholdsDep
) -> list[dict]:
    """Room usage statuses for every known device."""
    readings = await _current_readings(gateway, cache)
    return [room.to_dict() for room in normalize(readings, thresholds)]


@router.get("/alerts", response_model=list[DeviceAlertResponse])
async def get_alerts(
    gateway: Gateway, cache: Cache, thresholds: ThresholdsDep
) -> list[dict]:
    """Alerts derived from the current snapshot."""
    readings = await _current_readings(gateway, cache)
    return [alert.to_dict() for alert in detect(readings, thresholds)]


@router.get("/alerts/count", response_model=AlertCountResponse)
async def get_alert_count(
    gateway: Gateway, cache: Cache, thresholds: ThresholdsDep
) -> AlertCountResponse:
    readings = await _current_readings(gateway, cache)
    return AlertCountResponse(count=len(detect(readings, thresholds)))


@router.get("/devices/{device_id}", response_model=DeviceReadingResponse)
async def get_device(device_id: str, gateway: Gateway) -> dict:
    """Live status of one device.

    Raises:
        HTTPException: 404 if the provider cannot resolve the device.
    """
    reading = await gateway.get_device_status(device_id)
    if reading is None:
        raise HTTPException(
            status_code=404,
            detail=f"Device '{device_id}' could not be resolved",
        )
    return reading.to_dict()


@router.get(
    "/devices/{device_id}/history", response_model=list[PowerReadingResponse]
)
async def get_history(
    device_id: str,
    gateway: Gateway,
    days: int = Query(7, ge=1, le=30, description="Days of history"),
) -> list[dict]:
    history = await gateway.get_power_history(device_id, days=days)
    return [entry.to_dict() for entry in history]


@router.post("/devices/{device_id}/power", response_model=PowerCommandResponse)
async def set_power(
    device_id: str,
    command: PowerCommand,
    gateway: Gateway,
    cache: Cache,
) -> PowerCommandResponse:
    """Switch a room's plug on or off.

    Raises:
        HTTPException: 502 if the provider did not confirm the command.
    """
    success = await gateway.control_device(device_id, command.power_state)
    if not success:
        raise HTTPException(
            status_code=502,
            detail=f"Provider did not confirm power command for '{device_id}'",
        )
    # The cached snapshot no longer reflects this device's relay state.
    await cache.invalidate()
    return PowerCommandResponse(
        device_id=device_id, power_state=command.power_state, success=True
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    gateway: DeviceGateway | None = None,
    cache: SnapshotCache | None = None,
    thresholds: Thresholds | None = None,
) -> FastAPI:
    """Build the dashboard API.

    Anything not injected is built from :class:`PlugSettings` at startup,
    and a gateway built there is closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned: DeviceGateway | None = None
        if app.state.gateway is None:
            settings = get_settings()
            owned = DeviceGateway.from_settings(settings)
            app.state.gateway = owned
            if app.state.cache is None:
                app.state.cache = SnapshotCache(
                    settings.redis_url, settings.cache_ttl_s
                )
            if app.state.thresholds is None:
                app.state.thresholds = settings.thresholds
            logger.info("Dashboard API configured for %s", settings.api_url)
        try:
            yield
        finally:
            if owned is not None:
                await owned.aclose()

    app = FastAPI(
        title="plugwatch API",
        description="Hostel smart plug telemetry, room status and alerts.",
        version="0.1.0",
        lifespan=lifespan,
    )
    if gateway is not None:
        # Injected gateway: no settings are loaded, so fill in defaults.
        cache = cache or SnapshotCache("")
        thresholds = thresholds or DEFAULT_THRESHOLDS
    app.state.gateway = gateway
    app.state.cache = cache
    app.state.thresholds = thresholds

    app.include_router(router)

    @app.get("/")
    async def root() -> dict:
        return {"status": "ok"}

    @app.get("/health")
    async def health(request: Request) -> dict:
        """Provider token state and whether the snapshot cache is enabled."""
        state_gateway: DeviceGateway = request.app.state.gateway
        state_cache: SnapshotCache = request.app.state.cache
        return {
            "status": "ok",
            "token": state_gateway.token_manager.state.value,
            "cache": "enabled" if state_cache.enabled else "disabled",
        }

    return app


app = create_app()
