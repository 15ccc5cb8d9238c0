"""
Log output setup shared by the poll daemon and the dashboard API.

Both processes log one JSON object per line so container log collectors
can index them without a parser. Records carry ``timestamp``, ``level``,
``logger`` and ``message``; a traceback is added under ``exception``
when one is attached (``logger.exception`` or ``exc_info=True``, which
the gateway uses for every degraded provider call).

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import json
import logging
from datetime import UTC, datetime


class JSONFormatter(logging.Formatter):
    """Render a record as a single-line JSON document."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: int = logging.INFO) -> None:
    """Route all plugwatch logging through :class:`JSONFormatter`.

    Called once at process start. Any handlers already on the root logger
    are replaced so a second call does not duplicate lines. The ``httpx``
    logger is held at WARNING; at INFO it would echo every signed provider
    request, one per poll and per dashboard call.

    Args:
        level: Root logger level.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for existing in root.handlers[:]:
        root.removeHandler(existing)

    stream = logging.StreamHandler()
    stream.setFormatter(JSONFormatter())
    root.addHandler(stream)

    logging.getLogger("httpx").setLevel(logging.WARNING)
