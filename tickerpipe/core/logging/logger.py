"""JSON line logging on top of loguru.

Every record carries a trace id and the pipeline fields ``run_id``,
``ticker``, ``source`` and ``error_code`` at the top level, so the lines of
one run can be filtered out of a shared log. Anything else bound to the
record ends up under ``context``.
"""

from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any, Iterator
from uuid import uuid4

from loguru import logger

from tickerpipe.core.logging.config import LogConfig

if TYPE_CHECKING:
    from loguru import Logger, Record

PIPELINE_FIELDS = ("run_id", "ticker", "source", "error_code")

_trace_id: ContextVar[str | None] = ContextVar("tickerpipe_trace_id", default=None)
_fields: ContextVar[dict[str, Any]] = ContextVar("tickerpipe_log_fields", default={})


def current_trace_id() -> str:
    """Return the active trace id, starting a new trace if none is active."""

    trace_id = _trace_id.get()
    if trace_id is None:
        trace_id = uuid4().hex
        _trace_id.set(trace_id)
    return trace_id


def _inject_context(record: Record) -> None:
    extra = record["extra"]
    # values bound on the logger win over the surrounding log_context
    for key, value in _fields.get().items():
        extra.setdefault(key, value)
    if not extra.get("trace_id"):
        extra["trace_id"] = current_trace_id()


def _encode(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_json_line(record: Record) -> str:
    """Render a loguru record as a single JSON document."""

    extra = record["extra"]
    payload: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "trace_id": extra.get("trace_id"),
    }
    for key in PIPELINE_FIELDS:
        payload[key] = extra.get(key)
    context = {key: value for key, value in extra.items() if key != "trace_id" and key not in PIPELINE_FIELDS}
    if context:
        payload["context"] = context
    exception = record["exception"]
    if exception is not None and exception.type is not None:
        payload["exception"] = f"{exception.type.__name__}: {exception.value}"
    return json.dumps(payload, default=_encode)


class JsonLineSink:
    """Loguru sink appending one JSON document per record to a stream or a file."""

    def __init__(self, stream: IO[str] | None = None, path: str | Path | None = None) -> None:
        if (stream is None) == (path is None):
            raise ValueError("JsonLineSink needs exactly one of stream or path")
        self.stream = stream
        self.path = Path(path) if path is not None else None
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)

    def __call__(self, message: Any) -> None:
        line = to_json_line(message.record) + "\n"
        if self.path is not None:
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line)
        elif self.stream is not None:
            self.stream.write(line)
            self.stream.flush()


def configure_logging(config: LogConfig | None = None, **overrides: Any) -> LogConfig:
    """Replace all loguru sinks with JSON line sinks described by ``config``.

    Keyword overrides are applied on top of ``config`` (or the defaults) and
    validated like the model itself. Returns the effective configuration.
    """

    if overrides or config is None:
        base = config.model_dump() if config is not None else {}
        config = LogConfig(**{**base, **overrides})

    handlers: list[dict[str, Any]] = []
    if config.console:
        handlers.append({"sink": JsonLineSink(stream=config.stream or sys.stderr), "level": config.level})
    if config.path:
        handlers.append({"sink": JsonLineSink(path=config.path), "level": config.level})
    logger.configure(handlers=handlers, patcher=_inject_context, extra=dict(config.extra))
    return config


def get_logger(name: str | None = None) -> Logger:
    """Return the shared loguru logger, tagged with ``name`` when given."""

    return logger.bind(logger_name=name) if name else logger


@contextmanager
def log_context(*, trace_id: str | None = None, **fields: Any) -> Iterator[str]:
    """Attach ``fields`` to every record logged inside the block.

    A fresh trace id is started unless ``trace_id`` is supplied; both the
    trace and the fields of an enclosing block are restored on exit.
    """

    fields_token = _fields.set({**_fields.get(), **fields})
    trace_token = _trace_id.set(trace_id or uuid4().hex)
    try:
        yield _trace_id.get() or ""
    finally:
        _trace_id.reset(trace_token)
        _fields.reset(fields_token)


__all__ = [
    "JsonLineSink",
    "PIPELINE_FIELDS",
    "configure_logging",
    "current_trace_id",
    "get_logger",
    "log_context",
    "logger",
    "to_json_line",
]
