"""Structured logging configuration for Arbor.

JSON lines in production, human-readable text in development. The request
id set by the request context middleware is attached to every record.
"""

import contextvars
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Optional


# Set by the request context middleware, read by the formatters.
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="")

_STANDARD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "request_id"}


class _JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Anything passed through ``extra=`` lands at the top level, so the batch
    coordinator's ``extra={"kind": "page", "changed": 2}`` is queryable as-is.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = request_id_var.get("")
        if request_id:
            entry["request_id"] = request_id

        entry.update(
            (key, value) for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and key not in entry
        )
        if record.exc_info:
            entry["exception"] = record.exc_text or self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


_REDACTED = "***REDACTED***"

# Bearer tokens, raw JWTs, key=value secrets and passwords in database URLs.
_SECRET_PATTERNS = (
    re.compile(r"(?i)(bearer\s+)[A-Za-z0-9._\-]{20,}"),
    re.compile(r"()eyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+"),
    re.compile(r"(?i)((?:secret|password|token|authorization)\s*[=:]\s*)[^\s,'\"]{8,}"),
    re.compile(r"(://[^:/\s]+:)[^@\s]+(?=@)"),
)


def redact(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + _REDACTED, text)
    return text


class _SecretFilter(logging.Filter):
    """Redact secrets from the rendered message and any exception text.

    The message is rendered with its args before redaction, so a secret
    passed as ``%s`` argument is caught too.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.getMessage())
        record.args = ()
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = redact(record.exc_text)
        return True


class _RequestIdFilter(logging.Filter):
    """Expose the current request id to ``%(request_id)s`` in text output."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("") or "-"
        return True


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        log_level: Root level name. Defaults to INFO.
        log_format: ``"json"`` (default) or ``"text"``.
    """
    level = (log_level or "INFO").upper()
    fmt = (log_format or "json").lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(_SecretFilter())
    if fmt == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.addFilter(_RequestIdFilter())
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s %(levelname)-8s %(name)s [%(request_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Per-request lines come from the request context middleware.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging configured", extra={"level": level, "format": fmt})
