"""
Immutable telemetry records shared by the gateway, normalizer and detector.

Every poll produces fresh instances; nothing here is mutated after
construction. ``to_dict()`` renders a JSON-safe dict (ISO 8601 timestamps,
enum values as plain strings) for the snapshot cache and the API layer.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any


class RoomState(StrEnum):
    NORMAL = "normal"
    WARNING = "warning"
    ALERT = "alert"


class AlertType(StrEnum):
    HIGH_POWER = "high_power"
    OFFLINE = "offline"
    UNAUTHORIZED_DEVICE = "unauthorized_device"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TokenState(StrEnum):
    EMPTY = "empty"
    VALID = "valid"


def _jsonable(data: dict[str, Any]) -> dict[str, Any]:
    """Convert datetimes to ISO strings and enums to their values."""
    out: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, datetime):
            out[key] = value.isoformat()
        elif isinstance(value, StrEnum):
            out[key] = value.value
        else:
            out[key] = value
    return out


@dataclass(frozen=True)
class Thresholds:
    """Power thresholds in watts used for room bands and alerts.

    Attributes:
        warning_power_w: Above this a room is in the warning band.
        alert_power_w: Above this a room is in the alert band and a
            ``high_power`` alert is raised.
        critical_power_w: Above this ``high_power`` becomes high severity
            and an ``unauthorized_device`` alert is raised.
        capacity_w: Power that counts as 100% of a room's capacity.
    """

    warning_power_w: float = 3000
    alert_power_w: float = 5000
    critical_power_w: float = 8000
    capacity_w: float = 6000


DEFAULT_THRESHOLDS = Thresholds()


@dataclass(frozen=True)
class DeviceReading:
    """One poll snapshot of a smart plug's electrical telemetry."""

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

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeviceReading:
        """Rebuild a reading from :meth:`to_dict` output."""
        return cls(
            device_id=data["device_id"],
            name=data["name"],
            room_number=data["room_number"],
            online=data["online"],
            power_state=data["power_state"],
            current_power=data["current_power"],
            voltage=data["voltage"],
            current=data["current"],
            total_energy=data["total_energy"],
            last_update=datetime.fromisoformat(data["last_update"]),
        )


@dataclass(frozen=True)
class PowerReading:
    """A single entry from a device's power log.

    The log endpoint only reports power. ``voltage``, ``current`` and
    ``energy`` are ``None`` because they are unknown, not zero.
    """

    device_id: str
    timestamp: datetime
    power: float
    voltage: float | None = None
    current: float | None = None
    energy: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class RoomStatus:
    """Room-level usage classification derived from one reading."""

    id: str
    number: str
    status: RoomState
    current_usage: float
    percentage: int
    detected_device: str | None = None
    warning_count: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class DeviceAlert:
    """A threshold violation found during one detection pass."""

    device_id: str
    room_number: str
    type: AlertType
    message: str
    timestamp: datetime
    severity: Severity

    def to_dict(self) -> dict[str, Any]:
        return _jsonable(asdict(self))


@dataclass(frozen=True)
class AccessToken:
    """Bearer token plus its absolute expiry (epoch seconds)."""

    value: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at
