"""
Logging setup for Phaseboard.

Records emitted while a request is handled are stamped with the request id,
the project named in the URL and the signed-in profile, so service log
lines (``Process updated id=...``) can be tied to the request that caused
them without every call site passing ``extra=``.

Config keys:
    LOG_FORMAT   "json" or "readable"; JSON unless DEBUG or TESTING is on
    LOG_LEVEL    defaults to DEBUG when DEBUG is on, INFO otherwise
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

# Identifiers the context filter fills in; always emitted in that order.
CONTEXT_FIELDS = ("request_id", "project_id", "profile_id")

# Per-request measurements passed by the timing middleware.
REQUEST_FIELDS = ("method", "path", "status", "duration_ms", "remote_addr")

QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "alembic")


class RequestContextFilter(logging.Filter):
    """Copy request-scoped identifiers onto records that don't already carry them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        if getattr(record, "request_id", None) is None:
            record.request_id = g.get("request_id")
        if getattr(record, "project_id", None) is None:
            record.project_id = (request.view_args or {}).get("project_id")
        if getattr(record, "profile_id", None) is None:
            record.profile_id = g.get("profile_id")
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line; absent context fields are left out."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for key in CONTEXT_FIELDS + REQUEST_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line output for a terminal.

    ``12:04:31 INFO     phaseboard.services.task_service: Task created ... [8ms] req=3f2a project=7``
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    _LABELS = {"request_id": "req", "project_id": "project", "profile_id": "profile"}

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        parts = [f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"]
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            parts.append(f"[{duration:.0f}ms]")
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                parts.append(f"{self._LABELS[key]}={value}")
        line = " ".join(parts)
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _resolve_format(app) -> str:
    fmt = str(app.config.get("LOG_FORMAT") or "").lower()
    if fmt in ("json", "readable"):
        return fmt
    if app.config.get("DEBUG") or app.config.get("TESTING"):
        return "readable"
    return "json"


def configure_logging(app):
    """Install a single stderr handler on the root logger for *app*."""
    fmt = _resolve_format(app)
    level_name = str(app.config.get("LOG_LEVEL") or ("DEBUG" if app.config.get("DEBUG") else "INFO"))
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    # Replace rather than add, so repeated create_app() calls don't stack handlers.
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not app.config.get("TESTING"):
        app.logger.info("Logging configured: level=%s format=%s", level_name.upper(), fmt)
