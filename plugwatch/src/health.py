"""
Poll health tracking for the telemetry daemon.

Exposes ``get_health_status()`` which summarizes the outcome of the most
recent poll, and ``write_health_file()`` for container healthchecks via a
JSON file on disk. This state lives in the daemon process only; the
dashboard API's ``/health`` reports its own token and cache state instead.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Module-level state tracking for poll results.
_last_poll_ok: bool | None = None
_last_poll_ts: float | None = None
_last_device_count: int | None = None
_last_error: str | None = None

# Default health file path (inside the Docker volume).
HEALTH_FILE_PATH = "/data/health.json"


def record_poll_success(device_count: int) -> None:
    """Record a successful poll and how many devices it returned."""
    global _last_poll_ok, _last_poll_ts, _last_device_count, _last_error  # noqa: PLW0603
    _last_poll_ok = True
    _last_poll_ts = time.monotonic()
    _last_device_count = device_count
    _last_error = None


def record_poll_failure(error: str) -> None:
    """Record a failed poll; the last device count is left untouched."""
    global _last_poll_ok, _last_poll_ts, _last_error  # noqa: PLW0603
    _last_poll_ok = False
    _last_poll_ts = time.monotonic()
    _last_error = error


def get_health_status() -> dict[str, Any]:
    """Build a health status dict for the telemetry daemon.

    Returns:
        Dict with ``status`` (``"ok"``, ``"degraded"`` or ``"starting"``),
        ``last_poll_success``, ``last_poll_elapsed_s``, ``device_count``,
        ``last_error`` and ``checked_at``.
    """
    elapsed: float | None = None
    if _last_poll_ts is not None:
        elapsed = round(time.monotonic() - _last_poll_ts, 1)

    if _last_poll_ok is None:
        status = "starting"
    elif _last_poll_ok:
        status = "ok"
    else:
        status = "degraded"

    return {
        "status": status,
        "last_poll_success": _last_poll_ok,
        "last_poll_elapsed_s": elapsed,
        "device_count": _last_device_count,
        "last_error": _last_error,
        "checked_at": datetime.now(tz=UTC).isoformat(),
    }


def write_health_file(path: str = HEALTH_FILE_PATH) -> None:
    """Write health status to a JSON file for Docker healthcheck.

    Errors during write are logged but not raised.

    Args:
        path: Filesystem path for the health file.
    """
    try:
        Path(path).write_text(
            json.dumps(get_health_status()), encoding="utf-8"
        )
    except Exception:
        logger.warning(
            "Health check: failed to write health file",
            exc_info=True,
        )


def reset() -> None:
    """Reset module-level state (for testing only)."""
    global _last_poll_ok, _last_poll_ts, _last_device_count, _last_error  # noqa: PLW0603
    _last_poll_ok = None
    _last_poll_ts = None
    _last_device_count = None
    _last_error = None
