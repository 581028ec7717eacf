"""Process-wide logging configuration.

Modules obtain their logger with ``logging.getLogger(__name__)`` and never
configure handlers themselves. The CLI calls :func:`configure_logging` once at
startup using ``config.logging``.
"""

from __future__ import annotations

import json
import logging
import sys

from currency_server.config import LoggingSettings

_FORMATS = {
    "simple": "%(levelname)s %(message)s",
    "detailed": "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
}
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record, _DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, sort_keys=True)


def build_formatter(format_name: str) -> logging.Formatter:
    """Return the formatter for a ``LoggingSettings.format`` value."""
    if format_name == "json":
        return JsonFormatter()
    return logging.Formatter(_FORMATS.get(format_name, _FORMATS["detailed"]), _DATE_FORMAT)


def configure_logging(settings: LoggingSettings) -> None:
    """Install a single stderr handler on the root logger.

    Calling this more than once replaces the previously installed handler, so
    a reloaded configuration takes effect without duplicating output.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(build_formatter(settings.format))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_currency_server_handler", False):
            root.removeHandler(existing)
    handler._currency_server_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    root.setLevel(settings.level.upper())
