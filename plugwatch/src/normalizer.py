"""
Room normalizer for smart plug readings.

Pure function that turns device readings into room-level usage records.
No side effects, no I/O, no clock.

Bands (instantaneous power, defaults):

- ``power > 5000 W``          -> alert
- ``3000 W < power <= 5000 W`` -> warning
- otherwise                   -> normal

``percentage`` is power relative to a 6000 W capacity ceiling, clamped to
0-100. ``detected_device`` is a placeholder label for alert-band rooms, not
a verified appliance identity, and ``warning_count`` is 1 for rooms above
the warning threshold (not a running count).

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from plugwatch.src.models import (
    DEFAULT_THRESHOLDS,
    DeviceReading,
    RoomState,
    RoomStatus,
    Thresholds,
)

HIGH_POWER_DEVICE = "High Power Device"


def _round_half_up(value: float, places: int = 0) -> Decimal:
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def classify(power: float, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> RoomState:
    """Return the usage band for *power* watts."""
    if power > thresholds.alert_power_w:
        return RoomState.ALERT
    if power > thresholds.warning_power_w:
        return RoomState.WARNING
    return RoomState.NORMAL


def capacity_percentage(
    power: float, thresholds: Thresholds = DEFAULT_THRESHOLDS
) -> int:
    """Return *power* as a whole percentage of capacity, clamped to 0-100."""
    percentage = int(_round_half_up(power / thresholds.capacity_w * 100))
    return max(0, min(percentage, 100))


def normalize_reading(
    reading: DeviceReading, thresholds: Thresholds = DEFAULT_THRESHOLDS
) -> RoomStatus:
    """Derive the :class:`RoomStatus` for a single reading."""
    power = reading.current_power
    status = classify(power, thresholds)
    return RoomStatus(
        id=reading.device_id,
        number=reading.room_number,
        status=status,
        current_usage=float(_round_half_up(power / 1000, 1)),
        percentage=capacity_percentage(power, thresholds),
        detected_device=HIGH_POWER_DEVICE if status is RoomState.ALERT else None,
        warning_count=1 if power > thresholds.warning_power_w else 0,
    )


def normalize(
    readings: Iterable[DeviceReading],
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> list[RoomStatus]:
    """Normalize a snapshot of readings into room statuses.

    Args:
        readings: Device readings from one poll.
        thresholds: Band and capacity thresholds.

    Returns:
        One :class:`RoomStatus` per reading, in input order. Empty input
        gives an empty list.
    """
    return [normalize_reading(reading, thresholds) for reading in readings]
