"""Structured JSON logging for the API process and the maintenance worker."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from .config import Settings
from .context import get_actor_id, get_request_id

_RESERVED_LOG_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}
_CONTEXT_ATTRS = ("request_id", "actor_id")


class JsonLogFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def __init__(
        self,
        *,
        defaults: dict[str, Any] | None = None,
        fmt: str | None = None,
        datefmt: str | None = None,
        style: str = "%",
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt, style=style)
        self._defaults = defaults or {}

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: dict[str, Any] = dict(self._defaults)
        payload.update(
            {
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
        )
        for attr in _CONTEXT_ATTRS:
            payload[attr] = getattr(record, attr, "-")

        for key, value in record.__dict__.items():
            if key in _RESERVED_LOG_RECORD_ATTRS or key in _CONTEXT_ATTRS:
                continue
            payload.setdefault(key, self._coerce_extra(value))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)

        return json.dumps(payload, ensure_ascii=False, default=str)

    @staticmethod
    def _coerce_extra(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        try:
            json.dumps(value)
        except TypeError:
            return str(value)
        return value


class RequestContextFilter(logging.Filter):
    """Copy the request id and acting user id onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.request_id = get_request_id()
        record.actor_id = get_actor_id()
        return True


def configure_logging(settings: Settings) -> None:
    """Install the JSON handler on the root, uvicorn and rq loggers."""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.captureWarnings(True)

    routed = {"handlers": ["default"], "level": level, "propagate": False}
    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "taskvision.core.logging.JsonLogFormatter",
                "defaults": {
                    "service": settings.project_name,
                    "environment": settings.environment,
                    "version": settings.version,
                },
            }
        },
        "filters": {
            "request_context": {"()": RequestContextFilter},
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "json",
                "level": level,
                "filters": ["request_context"],
            }
        },
        "loggers": {
            "": {"handlers": ["default"], "level": level},
            "uvicorn": dict(routed),
            "uvicorn.error": dict(routed),
            "uvicorn.access": dict(routed),
            "rq": dict(routed),
            "rq.worker": dict(routed),
            "sqlalchemy.engine": {
                "handlers": ["default"],
                "level": logging.INFO if settings.db_echo else logging.WARNING,
                "propagate": False,
            },
        },
    }
    logging.config.dictConfig(config)


__all__ = ["JsonLogFormatter", "RequestContextFilter", "configure_logging"]
