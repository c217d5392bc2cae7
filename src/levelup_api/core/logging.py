"""Structured JSON logging for the storefront services.

Every record becomes one JSON object on a single line. Loguru extras bound at
the call site (``logger.info("Created order", order_id=...)``) are merged into
the object, and the active OpenTelemetry span, when there is one, contributes
``trace_id``/``span_id``.
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict, dataclass
from typing import Any, Dict, TextIO

from loguru import logger
from opentelemetry import trace

# Attributes every stdlib LogRecord carries; anything else came in via ``extra=``.
_STDLIB_RECORD_FIELDS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}

# Chatty third-party loggers kept at WARNING unless debugging.
_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite", "alembic.runtime.migration")


@dataclass(frozen=True, slots=True)
class ServiceMetadata:
    service: str
    environment: str
    version: str


class InterceptHandler(logging.Handler):
    """Route stdlib records (SQLAlchemy, alembic) through Loguru, keeping their extras."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging's own frames so Loguru reports the original caller.
        frame, depth = sys._getframe(1), 1
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        extras = {key: value for key, value in record.__dict__.items() if key not in _STDLIB_RECORD_FIELDS}
        extras.setdefault("stdlib_logger", record.name)
        logger.bind(**extras).opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


class JsonLineSink:
    """Loguru sink writing one JSON document per record."""

    def __init__(self, metadata: ServiceMetadata, stream: TextIO | None = None) -> None:
        self._metadata = asdict(metadata)
        self._stream = stream

    def __call__(self, message: "logger.Message") -> None:
        stream = self._stream or sys.stdout
        stream.write(json.dumps(self.render(message.record), default=str) + "\n")
        stream.flush()

    def render(self, record: Dict[str, Any]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "timestamp": record["time"].isoformat(),
            "level": record["level"].name.lower(),
            "message": record["message"],
            "logger": record["name"],
            **self._metadata,
        }

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            payload["trace_id"] = format(span_context.trace_id, "032x")
            payload["span_id"] = format(span_context.span_id, "016x")

        payload.update(record["extra"])
        if record["exception"] is not None:
            payload["exception"] = repr(record["exception"].value)
        return payload


def configure_logging(
    *,
    service_name: str,
    environment: str,
    version: str,
    level: str | int = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Replace Loguru's default sink with JSON lines and capture stdlib logging."""

    metadata = ServiceMetadata(service=service_name, environment=environment, version=version)
    logger.remove()
    logger.add(JsonLineSink(metadata, stream), level=level, backtrace=False, diagnose=False)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    level_no = level if isinstance(level, int) else logger.level(level).no
    quiet_level = logging.DEBUG if level_no <= logging.DEBUG else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


__all__ = ["InterceptHandler", "JsonLineSink", "ServiceMetadata", "configure_logging"]
