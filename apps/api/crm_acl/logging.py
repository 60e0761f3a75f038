from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

from crm_acl.context import get_correlation_id
from crm_acl.core.config import Settings, get_settings


ACL_LOG_FIELDS = (
    "entity_type",
    "entity_id",
    "user_id",
    "action",
    "allowed",
    "step",
    "reason",
    "depth",
    "backend",
    "error",
)
MAX_ERROR_LENGTH = 500
_CONFIGURED_FLAG = "_crm_acl_configured"


def _with_correlation_id(record: logging.LogRecord) -> logging.LogRecord:
    if not getattr(record, "correlation_id", None):
        record.correlation_id = get_correlation_id()
    return record


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        _with_correlation_id(record)
        return True


_base_record_factory = logging.getLogRecordFactory()


def _record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    return _with_correlation_id(_base_record_factory(*args, **kwargs))


class JsonLogFormatter(logging.Formatter):
    """One JSON object per line; ACL context passed via ``extra=`` lands under ``fields``."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = {name: record.__dict__[name] for name in ACL_LOG_FIELDS if name in record.__dict__}

        error = fields.get("error")
        if isinstance(error, str):
            fields["error"] = error[:MAX_ERROR_LENGTH]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        return json.dumps(
            {
                "ts": datetime.now(timezone.utc).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                "correlation_id": getattr(record, "correlation_id", None),
                "fields": fields,
            },
            default=str,
        )


def configure_logging(settings: Settings | None = None, *, stream: IO[str] | None = None) -> None:
    """Route all records through a single JSON handler. Only the first call has an effect."""

    root_logger = logging.getLogger()
    if getattr(root_logger, _CONFIGURED_FLAG, False):
        return

    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonLogFormatter())
    handler.addFilter(CorrelationIdFilter())

    root_logger.handlers.clear()
    root_logger.filters.clear()
    root_logger.setLevel(level)
    logging.setLogRecordFactory(_record_factory)
    root_logger.addHandler(handler)
    setattr(root_logger, _CONFIGURED_FLAG, True)
