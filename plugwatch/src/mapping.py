"""
Maps raw provider payloads onto :class:`DeviceReading` and
:class:`PowerReading` records.

Mapping is tolerant of partial payloads: unknown or non-string status codes
are ignored, missing or non-finite numeric fields become ``0`` and missing
booleans become ``False``. Log entries whose ``event_time`` is missing or
out of range are skipped. Only an unparseable envelope raises
:class:`MappingError`.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging
import math
import re
from datetime import UTC, datetime
from typing import Any

from plugwatch.src.errors import MappingError, ProviderError
from plugwatch.src.models import DeviceReading, PowerReading

logger = logging.getLogger(__name__)

# Provider status code -> DeviceReading field.
STATUS_CODE_FIELDS: dict[str, str] = {
    "switch_1": "power_state",
    "cur_power": "current_power",
    "cur_voltage": "voltage",
    "cur_current": "current",
    "add_ele": "total_energy",
}

_BOOLEAN_FIELDS: frozenset[str] = frozenset({"power_state"})

_ROOM_RE = re.compile(r"room\s*(\d+)", re.IGNORECASE)
_THREE_DIGITS_RE = re.compile(r"(\d{3})")

UNKNOWN_ROOM = "Unknown Room"


def extract_room_number(device_name: str) -> str:
    """Derive a room label from a device name.

    ``"Room 203 Plug"`` -> ``"Room 203"``, ``"Plug-104"`` -> ``"Room 104"``,
    anything without a room number -> ``"Unknown Room"``.
    """
    match = _ROOM_RE.search(device_name) or _THREE_DIGITS_RE.search(device_name)
    return f"Room {match.group(1)}" if match else UNKNOWN_ROOM


def unwrap_envelope(data: Any) -> Any:
    """Return ``result`` from a provider response envelope.

    Raises:
        MappingError: If *data* is not an envelope object.
        ProviderError: If the envelope reports ``success=false``.
    """
    if not isinstance(data, dict):
        raise MappingError(
            f"Expected a JSON object envelope, got {type(data).__name__}"
        )
    if not data.get("success"):
        raise ProviderError(data.get("msg") or "Unknown error", data.get("code"))
    return data.get("result")


def _as_number(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number if number >= 0 else 0.0


def _status_fields(status: Any) -> dict[str, Any]:
    fields: dict[str, Any] = {
        field: (False if field in _BOOLEAN_FIELDS else 0.0)
        for field in STATUS_CODE_FIELDS.values()
    }
    if not isinstance(status, list):
        return fields

    for entry in status:
        if not isinstance(entry, dict):
            continue
        code = entry.get("code")
        field = STATUS_CODE_FIELDS.get(code) if isinstance(code, str) else None
        if field is None:
            continue
        value = entry.get("value")
        if field in _BOOLEAN_FIELDS:
            fields[field] = value is True
        else:
            fields[field] = _as_number(value)
    return fields


def map_device(
    payload: dict[str, Any],
    now: datetime,
    device_id: str | None = None,
) -> DeviceReading:
    """Build a :class:`DeviceReading` from a provider device object.

    Args:
        payload: Provider device object with ``id``, ``name``, ``online``
            and a ``status`` list of ``{code, value}`` pairs.
        now: Snapshot time stored as ``last_update``.
        device_id: Identifier to use instead of ``payload["id"]``; the
            status endpoint does not always echo it back.
    """
    resolved_id = device_id or str(payload.get("id") or "")
    name = payload.get("name")
    if not isinstance(name, str) or not name:
        name = f"Device {resolved_id}"
        room_source = ""
    else:
        room_source = name

    return DeviceReading(
        device_id=resolved_id,
        name=name,
        room_number=extract_room_number(room_source),
        online=payload.get("online") is True,
        last_update=now,
        **_status_fields(payload.get("status")),
    )


def map_device_list(result: Any, now: datetime) -> list[DeviceReading]:
    """Map the ``result`` of ``GET /v1.0/devices``.

    Entries that are not objects or carry no ``id`` are skipped.

    Raises:
        MappingError: If *result* is not a list.
    """
    if not isinstance(result, list):
        raise MappingError(
            f"Expected a device list, got {type(result).__name__}"
        )

    readings = []
    for entry in result:
        if not isinstance(entry, dict) or not entry.get("id"):
            logger.warning("Skipping device entry without an id: %r", entry)
            continue
        readings.append(map_device(entry, now))
    return readings


def map_device_status(
    result: Any, device_id: str, now: datetime
) -> DeviceReading:
    """Map the ``result`` of ``GET /v1.0/devices/{id}/status``.

    The endpoint returns either a device object or a bare status list.

    Raises:
        MappingError: If *result* is neither.
    """
    if isinstance(result, list):
        return map_device({"status": result}, now, device_id=device_id)
    if isinstance(result, dict):
        return map_device(result, now, device_id=device_id)
    raise MappingError(
        f"Expected a device object or status list, got {type(result).__name__}"
    )


def map_power_logs(result: Any, device_id: str) -> list[PowerReading]:
    """Map the ``result`` of ``GET /v1.0/devices/{id}/logs``.

    Accepts a bare list of log entries or an object with a ``logs`` list.
    Each entry contributes ``event_time`` (epoch ms) and ``value`` (watts).

    Raises:
        MappingError: If no entry list can be found.
    """
    entries = result.get("logs") if isinstance(result, dict) else result
    if not isinstance(entries, list):
        raise MappingError(
            f"Expected a log entry list, got {type(entries).__name__}"
        )

    readings = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        try:
            event_ms = float(entry["event_time"])
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping log entry without event_time: %r", entry)
            continue
        try:
            timestamp = datetime.fromtimestamp(event_ms / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            logger.warning(
                "Skipping log entry with out-of-range event_time: %r", entry
            )
            continue
        readings.append(
            PowerReading(
                device_id=device_id,
                timestamp=timestamp,
                power=_as_number(entry.get("value")),
            )
        )
    return readings
