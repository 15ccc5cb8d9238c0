"""
Telemetry daemon entry point -- periodic device poll on an asyncio loop.

Each cycle:
1. Fetch every device reading from the provider (strict variant, so a
   failure is recorded as such instead of looking like zero devices).
2. Derive room statuses and alerts.
3. Store the snapshot in the Redis cache (best-effort).
4. Record the outcome and write the health file.
5. Wait ``poll_interval_s`` (interruptible by shutdown).

Handles SIGTERM and SIGINT for graceful shutdown inside Docker by setting
the stop event; the current cycle finishes and the HTTP client is closed.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import asyncio
import logging
import signal
from dataclasses import dataclass

from plugwatch.src.alerts import detect
from plugwatch.src.cache import SnapshotCache
from plugwatch.src.config import PlugSettings
from plugwatch.src.errors import PlugCloudError
from plugwatch.src.gateway import DeviceGateway
from plugwatch.src.health import (
    record_poll_failure,
    record_poll_success,
    write_health_file,
)
from plugwatch.src.logging_config import setup_logging
from plugwatch.src.models import (
    DEFAULT_THRESHOLDS,
    DeviceAlert,
    DeviceReading,
    RoomState,
    RoomStatus,
    Severity,
    Thresholds,
)
from plugwatch.src.normalizer import normalize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollResult:
    """Everything derived from one successful poll."""

    readings: list[DeviceReading]
    rooms: list[RoomStatus]
    alerts: list[DeviceAlert]


async def poll_once(
    gateway: DeviceGateway,
    cache: SnapshotCache,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> PollResult | None:
    """Run one poll cycle.

    Returns:
        The derived :class:`PollResult`, or ``None`` when the provider
        could not be read (the failure is logged and recorded for health).
    """
    try:
        readings = await gateway.fetch_devices()
    except PlugCloudError as exc:
        logger.error("Device poll failed: %s", exc)
        record_poll_failure(str(exc))
        return None

    rooms = normalize(readings, thresholds)
    alerts = detect(readings, thresholds)

    await cache.store_snapshot(readings)
    record_poll_success(len(readings))

    in_alert = sum(1 for room in rooms if room.status is RoomState.ALERT)
    logger.info(
        "Polled %d devices (%d rooms in alert band, %d active alerts)",
        len(readings),
        in_alert,
        len(alerts),
    )
    for alert in alerts:
        if alert.severity is Severity.HIGH:
            logger.warning(
                "%s alert for %s (%s): %s",
                alert.type,
                alert.room_number,
                alert.device_id,
                alert.message,
            )

    return PollResult(readings=readings, rooms=rooms, alerts=alerts)


async def run(
    settings: PlugSettings,
    stop_event: asyncio.Event,
    gateway: DeviceGateway | None = None,
    cache: SnapshotCache | None = None,
) -> None:
    """Poll until *stop_event* is set.

    A gateway built here is closed on exit; an injected one is left to
    its owner.
    """
    owns_gateway = gateway is None
    if gateway is None:
        gateway = DeviceGateway.from_settings(settings)
    if cache is None:
        cache = SnapshotCache(settings.redis_url, settings.cache_ttl_s)
    thresholds = settings.thresholds

    try:
        while not stop_event.is_set():
            try:
                await poll_once(gateway, cache, thresholds)
            except Exception:
                record_poll_failure("unexpected error")
                logger.exception("Unexpected error in poll loop")

            write_health_file(settings.health_file_path)

            try:
                await asyncio.wait_for(
                    stop_event.wait(), timeout=settings.poll_interval_s
                )
            except TimeoutError:
                pass
    finally:
        if owns_gateway:
            await gateway.aclose()


def _signal_handler(signum: int, stop_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by signalling shutdown."""
    sig_name = signal.Signals(signum).name
    logger.info("Received %s, initiating graceful shutdown", sig_name)
    stop_event.set()


async def _serve(settings: PlugSettings) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _signal_handler, sig, stop_event)

    logger.info(
        "Telemetry daemon starting -- poll every %ds against %s",
        settings.poll_interval_s,
        settings.api_url,
    )
    await run(settings, stop_event)
    logger.info("Telemetry daemon shut down cleanly")


def main() -> None:
    """Telemetry daemon entry point.

    Configures logging, loads settings from the environment and runs the
    poll loop until SIGTERM/SIGINT.
    """
    setup_logging()
    settings = PlugSettings()
    asyncio.run(_serve(settings))


if __name__ == "__main__":
    main()
