"""Structured JSON audit logging for the rate limiting service.

Logs go to stdout as JSON lines. Optional file output via the
AUDIT_LOG_FILE env var.

Rejections, fail-open events and admin overrides all land here, so
support staff can answer "why was this user blocked" from the log stream.
"""

import hashlib
import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

from storegate.config.settings import get_settings

# Request-scoped context for correlating log entries
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id_var.get(""),
        }
        # Merge any extra fields passed via `extra={}` kwarg
        if hasattr(record, "audit_data"):
            log_entry.update(record.audit_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging() -> None:
    """Configure the audit logger with JSON output."""
    settings = get_settings()

    logger = logging.getLogger("storegate.audit")
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    logger.handlers.clear()

    formatter = JSONFormatter()

    # Always log to stdout
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    # Optional file output
    if settings.audit_log_file:
        file_handler = logging.FileHandler(settings.audit_log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Prevent propagation to root logger (avoids duplicate output)
    logger.propagate = False


def get_audit_logger() -> logging.Logger:
    return logging.getLogger("storegate.audit")


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


def hash_identifier(identifier: str) -> str:
    """Short stable digest so raw IPs and session ids stay out of the logs."""
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


def log_rate_limit_event(
    level: int,
    message: str,
    key_prefix: str,
    identifier: str | None = None,
    **fields,
) -> None:
    """Write one audit line about a limiter decision or an admin override.

    Every line carries ``event=rate_limit`` and the profile prefix. The
    identifier is only ever logged as its hash.
    """
    audit_data = {"event": "rate_limit", "key_prefix": key_prefix}
    if identifier is not None:
        audit_data["identifier_hash"] = hash_identifier(identifier)
    audit_data.update(fields)
    get_audit_logger().log(level, message, extra={"audit_data": audit_data})


class RequestTimer:
    """Context manager to measure request latency."""

    def __init__(self):
        self.start_time: float = 0
        self.elapsed_ms: float = 0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        self.elapsed_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
