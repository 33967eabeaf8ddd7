"""Structured JSON logging for the loyalty service.

Every line is one JSON object on stdout. Fields bound with ``logger.bind`` or passed as
keyword arguments (``user_id``, ``reward_id``, ``reason``...) land at the top level next to
the service metadata, so redemption outcomes can be filtered without parsing messages.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, TextIO

from loguru import logger
from opentelemetry import trace


# Attributes every stdlib LogRecord carries; anything else was passed via ``extra=``.
_STDLIB_RECORD_FIELDS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite")


class InterceptHandler(logging.Handler):
    """Route stdlib records (uvicorn, SQLAlchemy) through Loguru."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - bridging glue
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        try:
            message = record.getMessage()
        except Exception:  # pragma: no cover - malformed format strings
            message = str(record.msg)

        extra = {key: value for key, value in vars(record).items() if key not in _STDLIB_RECORD_FIELDS}
        logger.bind(stdlib_logger=record.name, **extra).opt(depth=6, exception=record.exc_info).log(
            level, message.replace("{", "{{").replace("}", "}}")
        )


def _trace_fields() -> Dict[str, str]:
    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return {}
    return {
        "trace_id": f"{span_context.trace_id:032x}",
        "span_id": f"{span_context.span_id:016x}",
    }


def _render(record: Dict[str, Any], metadata: Dict[str, str]) -> str:
    extra = dict(record["extra"])
    payload: Dict[str, Any] = {
        "ts": record["time"].isoformat(),
        "level": record["level"].name.lower(),
        "event": record["message"],
        "logger": extra.pop("stdlib_logger", None) or record["name"],
        **metadata,
        **_trace_fields(),
        **extra,
    }

    if record["exception"] is not None:
        exc_type, exc_value, _ = record["exception"]
        payload["error"] = {
            "type": getattr(exc_type, "__name__", str(exc_type)),
            "detail": str(exc_value),
        }

    return json.dumps(payload, default=str)


def configure_logging(
    *,
    service_name: str,
    environment: str,
    version: str,
    level: str | int = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Send Loguru and stdlib logging to ``stream`` (stdout by default) as JSON lines."""

    output = stream if stream is not None else sys.stdout
    metadata = {"service": service_name, "environment": environment, "version": version}

    def sink(message: "logger.Message") -> None:
        output.write(_render(message.record, metadata) + "\n")
        output.flush()

    logger.remove()
    logger.add(sink, level=level, backtrace=False, diagnose=False)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
