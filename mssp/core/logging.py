"""Logging configuration helpers."""
from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from mssp.core.config import Settings

_RESERVED_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


class JSONLogFormatter(logging.Formatter):
    """Render log records as single-line JSON documents.

    Attributes passed through ``extra=`` are copied into the document so that
    services can attach context such as ``entity_type`` or ``definition_id``.
    """

    def __init__(self, app_env: str) -> None:
        super().__init__()
        self.app_env = app_env

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - short description inherited
        log_record: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "environment": self.app_env,
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRIBUTES or key.startswith("_"):
                continue
            log_record[key] = value

        return json.dumps(log_record, ensure_ascii=False, default=str)


def configure_logging(settings: Settings) -> None:
    """Route the root and uvicorn loggers through one JSON handler."""
    handler = logging.StreamHandler()
    handler.setFormatter(JSONLogFormatter(settings.app_env))

    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, handlers=[handler], force=True)

    for logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.propagate = False
        uvicorn_logger.setLevel(level)
