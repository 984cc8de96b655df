"""Structured JSON logging.

Every record is rendered as one JSON object. Fields passed through ``extra=``
become top-level keys; the request context bound by the HTTP middleware
(request id, method, path) is stamped onto every record emitted while a
request is being served, so service-level logs can be joined with the
``request_complete`` line without threading ids through every call.
"""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any

_RESERVED_LOG_RECORD_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}

# Never emitted even if a caller passes them through `extra=`.
_REDACTED_FIELDS = frozenset(
    {"password", "password_hash", "token", "current_password", "new_password", "authorization"}
)
REDACTED = "***"

_CONTEXT_FIELDS = ("request_id", "method", "path")
_request_context: ContextVar[dict[str, Any]] = ContextVar("request_context", default={})


def bind_request_context(**values: Any) -> Token[dict[str, Any]]:
    merged = {**_request_context.get(), **{k: v for k, v in values.items() if k in _CONTEXT_FIELDS}}
    return _request_context.set(merged)


def reset_request_context(token: Token[dict[str, Any]]) -> None:
    _request_context.reset(token)


def current_request_context() -> dict[str, Any]:
    return dict(_request_context.get())


def redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTED if str(key).lower() in _REDACTED_FIELDS else redact(item)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(item) for item in value]
    return value


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _request_context.get().items():
            if getattr(record, key, None) is None:
                setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_LOG_RECORD_FIELDS and not key.startswith("_")
        }
        payload.update(redact(extras))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=True)


def setup_json_logging(level: int | str = logging.INFO) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestContextFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper() if isinstance(level, str) else level)

    # uvicorn's access log duplicates request_complete.
    logging.getLogger("uvicorn.access").propagate = False
