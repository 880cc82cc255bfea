"""
Structured logging for the MARINOVA API.

Log records on the "marinova" logger tree carry the request id and, once the
caller is authenticated, the user id. Both come from context variables bound
per request, so service code only passes domain fields (feature, plan,
remaining credits) through `extra=`.

Production emits one JSON object per line; other environments get a compact
human-readable line.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

LOGGER_NAME = "marinova"

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

# Copied from `extra=` into JSON output when present
LEDGER_FIELDS = (
    "user_id",
    "feature",
    "plan",
    "remaining",
    "event_type",
    "error_code",
    "status",
    "method",
    "path",
    "latency_bucket",
)

MAX_FIELD_LENGTH = 500


def get_request_id(default: Optional[str] = None) -> Optional[str]:
    rid = request_id_var.get()
    return rid if rid is not None else default


def bind_user_id(user_id: Optional[str]) -> None:
    """Attach the authenticated user to every record logged for this request."""
    user_id_var.set(user_id)


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")


class RequestContextFilter(logging.Filter):
    """Fill request_id / user_id from context when the caller did not pass them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        if getattr(record, "user_id", None) is None:
            record.user_id = user_id_var.get()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        payload.update(
            (field, getattr(record, field))
            for field in LEDGER_FIELDS
            if getattr(record, field, None) is not None
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        tags = []
        for label, field in (("rid", "request_id"), ("user", "user_id"), ("feature", "feature")):
            value = getattr(record, field, None)
            if value:
                tags.append(f"[{label}={value}]")
        prefix = " ".join([_timestamp(record), record.levelname, f"[{LOGGER_NAME}]", *tags])
        line = f"{prefix} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(env: str = "development", level: int = logging.INFO) -> None:
    """Install a single stdout handler on the "marinova" logger."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if env.lower() == "production" else PrettyFormatter())
    handler.addFilter(RequestContextFilter())

    logger.handlers = [handler]
    logger.propagate = True

    # uvicorn keeps its own handlers
    for name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(name).propagate = False


def _truncate(value: Any, limit: int = MAX_FIELD_LENGTH) -> str:
    try:
        text = str(value)
    except Exception:
        return "<unserializable>"
    if len(text) <= limit:
        return text
    return text[:limit] + "...<truncated>"


def log_event(
    level: str,
    msg: str,
    *,
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    feature: Optional[str] = None,
    plan: Optional[str] = None,
    event_type: Optional[str] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, object]] = None,
) -> None:
    """Log a ledger event; free-form `extra` values are stringified and truncated."""
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        configure_logging(os.getenv("ENV", "development"))

    fields: Dict[str, Any] = {
        "request_id": request_id or request_id_var.get(),
        "user_id": user_id or user_id_var.get(),
        "feature": feature,
        "plan": plan,
    }
    if event_type:
        fields["event_type"] = event_type
    if error_code:
        fields["error_code"] = error_code
    for key, value in (extra or {}).items():
        fields[key] = _truncate(value)

    getattr(logger, level, logger.info)(msg, extra=fields)
