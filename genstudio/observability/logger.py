"""
Structured JSON logging for GenStudio entry points.

Library modules only call ``logging.getLogger(__name__)``; an entry point
(the CLI, or a host application) calls ``setup_logging`` once at startup.
Output goes to stderr so command output on stdout stays clean.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TextIO

NOISY_LOGGERS = ("httpx", "httpcore", "google_genai", "openai")


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def __init__(self, service_name: str):
        super().__init__()
        self._service = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self._service,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        extra = getattr(record, "_extra", None)
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


def setup_logging(
    service_name: str,
    default_level: str = "INFO",
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Configure the root logger with JSON output.

    The level comes from LOG_LEVEL, falling back to ``default_level``.

    Args:
        service_name: Name stamped on every entry
        default_level: Level used when LOG_LEVEL is unset or unknown
        stream: Destination stream (stderr by default)

    Returns:
        The service-specific logger
    """
    level_name = os.environ.get("LOG_LEVEL", default_level).upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level_name = default_level.upper()
        level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter(service_name))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Silence noisy third-party loggers
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger(service_name)
    logger.debug("Logging initialized", extra={"_extra": {"level": level_name}})
    return logger
