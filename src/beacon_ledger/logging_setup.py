"""Process-wide logging setup driven by :class:`LoggingSettings`.

Library modules only ever call ``logging.getLogger(__name__)``; this module is
called once by the CLI entry points to attach a single stream handler.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from beacon_ledger.config import LoggingSettings

_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
}


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "thread": record.threadName,
        }
        if record.exc_info:
            payload["err"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"))


def configure_logging(settings: LoggingSettings) -> None:
    """Replace root handlers with one stderr handler using ``settings``."""
    handler = logging.StreamHandler(sys.stderr)
    if settings.format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_FORMATS.get(settings.format, _FORMATS["detailed"])))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(settings.level.upper())
