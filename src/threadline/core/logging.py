"""Process-wide logging setup."""

from __future__ import annotations

import json
import logging


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


HANDLER_NAME = "threadline"


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Install the application stream handler on the root logger.

    Calling it again replaces the handler it installed earlier; handlers
    added by anything else are left in place.

    Args:
        level: Root log level name (``DEBUG``, ``INFO``...).
        fmt: ``json`` for structured lines, anything else for plain text.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    for existing in root.handlers[:]:
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.set_name(HANDLER_NAME)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    root.addHandler(handler)
