"""
Threshold alert detection over a snapshot of device readings.

Stateless: every call re-derives the full alert set from the readings it
is given. Deduplication and acknowledgement are up to the caller. Each
reading is checked against three independent conditions, so one device
can produce up to three alerts.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from collections.abc import Iterable
from datetime import UTC, datetime

from plugwatch.src.models import (
    DEFAULT_THRESHOLDS,
    AlertType,
    DeviceAlert,
    DeviceReading,
    Severity,
    Thresholds,
)

OFFLINE_MESSAGE = "Device is offline"
UNAUTHORIZED_MESSAGE = "Possible unauthorized high-power device detected"


def _alerts_for(
    reading: DeviceReading, thresholds: Thresholds, now: datetime
) -> list[DeviceAlert]:
    power = reading.current_power
    alerts = []

    if power > thresholds.alert_power_w:
        alerts.append(
            DeviceAlert(
                device_id=reading.device_id,
                room_number=reading.room_number,
                type=AlertType.HIGH_POWER,
                message=f"High power usage detected: {power / 1000:.2f}kW",
                timestamp=now,
                severity=(
                    Severity.HIGH
                    if power > thresholds.critical_power_w
                    else Severity.MEDIUM
                ),
            )
        )

    if not reading.online:
        alerts.append(
            DeviceAlert(
                device_id=reading.device_id,
                room_number=reading.room_number,
                type=AlertType.OFFLINE,
                message=OFFLINE_MESSAGE,
                timestamp=now,
                severity=Severity.MEDIUM,
            )
        )

    if power > thresholds.critical_power_w:
        alerts.append(
            DeviceAlert(
                device_id=reading.device_id,
                room_number=reading.room_number,
                type=AlertType.UNAUTHORIZED_DEVICE,
                message=UNAUTHORIZED_MESSAGE,
                timestamp=now,
                severity=Severity.HIGH,
            )
        )

    return alerts


def detect(
    readings: Iterable[DeviceReading],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    now: datetime | None = None,
) -> list[DeviceAlert]:
    """Detect threshold violations in *readings*.

    Args:
        readings: Device readings from one poll.
        thresholds: Power thresholds.
        now: Detection time stamped on every alert. Defaults to the
            current UTC time, never the reading's ``last_update``.

    Returns:
        All alerts, grouped by reading in input order.
    """
    detected_at = now or datetime.now(tz=UTC)
    alerts: list[DeviceAlert] = []
    for reading in readings:
        alerts.extend(_alerts_for(reading, thresholds, detected_at))
    return alerts


def count_alerts(
    readings: Iterable[DeviceReading],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> int:
    """Number of active alerts for *readings*."""
    return len(detect(readings, thresholds))
