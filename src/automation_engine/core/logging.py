"""Structured logging configuration.

Uses standard library logging with a JSON formatter.

Keys passed through `extra=` become `LogRecord` attributes, so they must not
shadow the record's own fields (`module`, `name`, `message`, `args`,
`filename`, `lineno` and the rest of `_RESERVED_LOG_RECORD_ATTRS`); the
logging module raises `KeyError` when they do. `RunLogAdapter` renames such
keys to `extra_<key>`.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

_RESERVED_LOG_RECORD_ATTRS: set[str] = {
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}


class JsonFormatter(logging.Formatter):
    """A minimal JSON formatter for logging records."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_LOG_RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class RunLogAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Attach run-scoped fields (run id, workflow) to every record.

    Per-call `extra` values are merged on top of the adapter's fields so that
    the JSON formatter renders both. Reserved record attributes are renamed.
    """

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        merged = dict(self.extra or {})
        merged.update(kwargs.get("extra") or {})
        kwargs["extra"] = {
            (f"extra_{key}" if key in _RESERVED_LOG_RECORD_ATTRS else key): value
            for key, value in merged.items()
        }
        return msg, kwargs


def run_logger(name: str, **fields: object) -> RunLogAdapter:
    return RunLogAdapter(logging.getLogger(name), fields)


def configure_logging(level: str) -> None:
    """Configure root logging with structured JSON output."""

    root = logging.getLogger()

    # Remove any existing handlers to avoid duplicate logs when re-configuring.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter())

    root.addHandler(handler)
    root.setLevel(level.upper())

    # Keep third-party loggers reasonably quiet unless explicitly configured.
    for noisy in ("httpx", "openai", "github", "urllib3"):
        logging.getLogger(noisy).setLevel(max(root.level, logging.INFO))
