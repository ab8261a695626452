"""
Logging Configuration

Plain-text logs locally, one JSON object per line in production. Identifiers
passed through ``extra`` (tenant, user, workflow, event) become top-level
JSON keys so the aggregator can filter on them.
"""
import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict

# Libraries that are chatty at INFO
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore")

SECURITY_EVENT_TYPES = frozenset({
    "failed_login",
    "tenant_isolation_violation",
    "rate_limit_exceeded",
    "scheduler_secret_rejected",
    "agent_auth_failed",
})


class JSONFormatter(logging.Formatter):
    EXTRA_FIELDS = (
        "tenant_id",
        "user_id",
        "workflow_id",
        "event_id",
        "security_event",
        "event_type",
    )

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update({
            field: getattr(record, field)
            for field in self.EXTRA_FIELDS
            if hasattr(record, field)
        })
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """Install a single stdout handler on the root logger. Safe to call twice."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JSONFormatter() if json_format else logging.Formatter(
            "%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_security_event(event_type: str, details: Dict[str, Any], logger: logging.Logger) -> None:
    """
    Emit a WARNING tagged ``security_event`` for alerting.

    ``event_type`` is one of SECURITY_EVENT_TYPES; ``details`` are attached
    as extra fields.
    """
    if event_type not in SECURITY_EVENT_TYPES:
        logger.debug(f"Unregistered security event type: {event_type}")
    logger.warning(
        f"SECURITY EVENT: {event_type} {details}",
        extra={"security_event": True, "event_type": event_type, **details}
    )
