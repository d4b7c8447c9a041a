"""Logging setup shared by the API and the scripts.

LOG_FORMAT=json emits one JSON object per line for log aggregators;
anything else gives human-readable text. LOG_LEVEL defaults to INFO.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from .config import load_config

# Third-party loggers that are noisy at INFO
_NOISY_LOGGERS = [
    "urllib3",
    "sqlalchemy.engine",
    "httpx",
    "httpcore",
]


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging() -> None:
    config = load_config()
    level = getattr(logging, config.log_level, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if config.log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
