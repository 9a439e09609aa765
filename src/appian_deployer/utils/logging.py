"""Logging helpers."""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional

from ..errors import redact_sensitive_info

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s - %(message)s"

_LOGGING_CONFIGURED = False


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_sensitive_info(record.getMessage()),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def configure_logging(level: str = "info", json_format: bool = False) -> None:
    """(Re)configure the root logger. Logs go to stderr so stdout stays clean."""
    global _LOGGING_CONFIGURED
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonLineFormatter() if json_format else logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric)
    # urllib3 的连接日志太多
    logging.getLogger("urllib3").setLevel(max(numeric, logging.WARNING))
    _LOGGING_CONFIGURED = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if not _LOGGING_CONFIGURED:
        configure_logging()
    return logging.getLogger(name)
