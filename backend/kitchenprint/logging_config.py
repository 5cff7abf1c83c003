"""
Logging for KitchenPrint.

Application records go to stdout (and optionally a rotating file) as JSON
or plain text depending on LOG_FORMAT. Dispatch results and printer or
station configuration changes also go to the "audit" logger, which writes
one JSON object per event to AUDIT_LOG_FILE.
"""
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from kitchenprint.core.settings import settings

APP_LOG_MAX_BYTES = 10 * 1024 * 1024
AUDIT_LOG_MAX_BYTES = 50 * 1024 * 1024

QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "websockets")

_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "taskName"}


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Fields passed through ``extra=`` (printer_id, job_id, order_id...)."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS
    }


def _json_safe(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class JSONFormatter(logging.Formatter):
    """One JSON object per record, extras flattened into the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.levelno >= logging.ERROR:
            entry["location"] = f"{record.pathname}:{record.lineno} in {record.funcName}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update({key: _json_safe(value) for key, value in _extra_fields(record).items()})
        return json.dumps(entry)


class TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = f"{self.formatTime(record, '%Y-%m-%d %H:%M:%S')} [{record.levelname}] {record.name}: {record.getMessage()}"
        extras = " ".join(f"{key}={value}" for key, value in _extra_fields(record).items())
        if extras:
            line = f"{line} {extras}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class AuditFormatter(logging.Formatter):
    """Audit events keep a fixed shape; empty keys are left out."""

    FIELDS = ("event", "branch_id", "resource_type", "resource_id", "details")

    def format(self, record: logging.LogRecord) -> str:
        entry = {"timestamp": datetime.now(timezone.utc).isoformat()}
        for field in self.FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        entry.setdefault("event", record.getMessage())
        return json.dumps(entry, default=str)


def _rotating_handler(path: str, max_bytes: int, backups: int) -> logging.Handler:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    return logging.handlers.RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups)


def setup_logging() -> None:
    """Install handlers on the root and audit loggers. Called from the app lifespan."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    formatter = JSONFormatter() if settings.LOG_FORMAT.lower() == "json" else TextFormatter()

    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_FILE:
        handlers.append(_rotating_handler(settings.LOG_FILE, APP_LOG_MAX_BYTES, 5))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        root.addHandler(handler)

    setup_audit_logging()

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_audit_logging() -> None:
    audit_logger = logging.getLogger("audit")
    audit_logger.setLevel(logging.INFO)
    audit_logger.handlers.clear()
    audit_logger.propagate = False

    handlers = []
    if settings.AUDIT_LOG_FILE:
        handlers.append(_rotating_handler(settings.AUDIT_LOG_FILE, AUDIT_LOG_MAX_BYTES, 10))
    if settings.DEBUG:
        handlers.append(logging.StreamHandler(sys.stdout))
    for handler in handlers:
        handler.setFormatter(AuditFormatter())
        audit_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def audit_log(
    event: str,
    *,
    branch_id: Optional[str] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[Any] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Record a dispatch or configuration event, e.g.
    ``audit_log("PRINTER_UPDATED", branch_id=..., resource_type="printer", resource_id=7)``.
    """
    logging.getLogger("audit").info(
        event,
        extra={
            "event": event,
            "branch_id": branch_id,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "details": details or {},
        },
    )
