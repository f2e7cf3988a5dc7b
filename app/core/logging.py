"""Structured logging: JSON output, request correlation and redaction.

Log calls across the app use short event names as the message
(``"cache.miss"``, ``"rate_limit.exceeded"``) and put the context in
``extra``. This module turns those records into one JSON object per line,
stamps them with the current request id and scrubs secrets (admin tokens,
store credentials) before anything is written.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

SENSITIVE_KEYS_DEFAULT: set[str] = {
    "admin_token",
    "x-admin-token",
    "auth_admin_token",
    "authorization",
    "token",
    "secret",
    "password",
    "redis_password",
    "redis_url",
    "cookie",
    "set-cookie",
}

# user:password@ inside URLs, e.g. redis://:s3cret@cache:6379/0
_URL_CREDENTIALS = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)[^\s/@]*@", re.IGNORECASE)

# Standard LogRecord attributes; everything else on a record came from ``extra``
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}

_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "redis": logging.WARNING,
}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def scrub_text(text: str) -> str:
    """Drop credentials embedded in URLs inside free-form text.

    Examples:
        >>> scrub_text("Error connecting to redis://:pw@cache:6379/0")
        'Error connecting to redis://[REDACTED]@cache:6379/0'
    """
    return _URL_CREDENTIALS.sub(lambda m: f"{m.group('scheme')}{REDACTED}@", text)


class Redactor:
    """Replaces values of sensitive keys, recursively, in extras.

    Keys are compared case-insensitively. String values anywhere in the
    payload also have URL credentials scrubbed.
    """

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        self.sensitive_keys = {k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)}

    def is_sensitive(self, key: str) -> bool:
        return key.lower() in self.sensitive_keys

    def redact(self, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {
                k: REDACTED if self.is_sensitive(str(k)) else self.redact(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(self.redact(v) for v in value)
        if isinstance(value, str):
            return scrub_text(value)
        return value

    def extras(self, record: LogRecord) -> dict[str, Any]:
        """Return the record's ``extra`` fields, redacted."""
        data: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith("_"):
                continue
            data[key] = REDACTED if self.is_sensitive(key) else self.redact(value)
        return data


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact sensitive extras in place, so any formatter downstream is safe."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.redactor = Redactor(sensitive_keys)

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in self.redactor.extras(record).items():
            setattr(record, key, value)
        if isinstance(record.msg, str):
            record.msg = scrub_text(record.msg)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message, extras."""

    def __init__(
        self,
        *,
        sensitive_keys: Iterable[str] | None = None,
        ensure_ascii: bool = True,
    ) -> None:
        super().__init__()
        self.redactor = Redactor(sensitive_keys)
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": scrub_text(record.getMessage()),
        }

        extras = self.redactor.extras(record)
        request_id = extras.pop("request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id
        payload.update(extras)

        if record.exc_info:
            payload["exception"] = scrub_text(self.formatException(record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


class PlainFormatter(logging.Formatter):
    """Human-readable single line, for local development."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s")

    def format(self, record: LogRecord) -> str:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = "-"
        return super().format(record)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/app.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if not log_settings.max_bytes:
        return logging.FileHandler(file_path, encoding="utf-8")
    return RotatingFileHandler(
        file_path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install a single redacting handler on the root logger.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(PlainFormatter() if cfg.format.lower() == "plain" else JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    # Avoid double logging from uvicorn if it gets re-configured
    logging.getLogger("uvicorn").propagate = False
    for name, level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)
