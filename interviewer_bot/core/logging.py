import json
import logging
import os
import sys
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

LOGGER_NAME = "interviewer_bot"

_ctx_trace_id: ContextVar[str | None] = ContextVar("trace_id", default=None)
_ctx_span_id: ContextVar[str | None] = ContextVar("span_id", default=None)
_ctx_parent_span_id: ContextVar[str | None] = ContextVar("parent_span_id", default=None)
_ctx_run_id: ContextVar[str | None] = ContextVar("run_id", default=None)
_ctx_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_ctx_mask: ContextVar[bool] = ContextVar("mask", default=False)

_TRUTHY = {"1", "true", "yes", "on"}

# LogRecord attributes that are never copied into the JSON payload as extras
_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }
)

_COMMON_FIELDS = (
    "event",
    "trace_id",
    "span_id",
    "parent_span_id",
    "run_id",
    "request_id",
    "session_id",
    "component",
    "operation",
    "duration_ms",
    "status",
    "error_type",
    "error_msg",
)


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = _ctx_trace_id.get()
        record.span_id = _ctx_span_id.get()
        record.parent_span_id = _ctx_parent_span_id.get()
        record.run_id = _ctx_run_id.get()
        record.request_id = _ctx_request_id.get()
        record.component = getattr(record, "component", None)
        record.operation = getattr(record, "operation", None)
        if not hasattr(record, "event"):
            record.event = record.name
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
        }

        for key in _COMMON_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS or key in payload:
                continue
            payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def _coerce_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    if not level:
        return logging.INFO
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _env_flag(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    return raw.lower() in _TRUTHY


def _build_handler(file_path: str | None, use_stderr: bool) -> logging.Handler:
    if file_path:
        try:
            return logging.FileHandler(file_path)
        except OSError as e:
            print(f"Warning: could not open log file '{file_path}': {e}; logging to stderr", file=sys.stderr)
            return logging.StreamHandler(sys.stderr)
    return logging.StreamHandler(sys.stderr if use_stderr else sys.stdout)


def init_logging(
    level: str | int | None = None,
    fmt: str | None = None,
    file_path: str | None = None,
    mask: bool | None = None,
    use_stderr: bool | None = None,
) -> logging.Logger:
    """Configure the root logger for the service or the CLI.

    Every argument falls back to an environment variable:

    - level: ``INTERVIEWER_BOT_LOG_LEVEL`` (default INFO)
    - fmt: ``INTERVIEWER_BOT_LOG_FORMAT``, ``json`` or ``text`` (default json)
    - file_path: ``INTERVIEWER_BOT_LOG_FILE`` (default: stream output)
    - mask: ``INTERVIEWER_BOT_LOG_MASK``, hides candidate answers in logs
    - use_stderr: ``INTERVIEWER_BOT_LOG_STDERR`` (default stdout)
    """
    resolved_level = _coerce_level(level or os.getenv("INTERVIEWER_BOT_LOG_LEVEL") or logging.INFO)
    resolved_format = (fmt or os.getenv("INTERVIEWER_BOT_LOG_FORMAT") or "json").lower()
    resolved_file = file_path or os.getenv("INTERVIEWER_BOT_LOG_FILE")
    resolved_mask = mask if mask is not None else bool(_env_flag("INTERVIEWER_BOT_LOG_MASK"))
    resolved_stderr = use_stderr if use_stderr is not None else bool(_env_flag("INTERVIEWER_BOT_LOG_STDERR"))

    root = logging.getLogger()
    root.setLevel(resolved_level)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = _build_handler(resolved_file, resolved_stderr)
    if resolved_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s %(event)s %(message)s [trace=%(trace_id)s span=%(span_id)s]",
                datefmt="%Y-%m-%dT%H:%M:%S",
            )
        )
    handler.addFilter(ContextFilter())
    root.addHandler(handler)

    if not _ctx_run_id.get():
        set_run_id(short_uuid())
    set_masking(resolved_mask)

    logger = logging.getLogger(LOGGER_NAME)
    logger.debug(
        "logging initialized",
        extra={
            "event": "logging.init",
            "component": "logging",
            "operation": "init",
            "format": resolved_format,
            "file": resolved_file or ("stderr" if resolved_stderr else "stdout"),
            "mask": resolved_mask,
        },
    )
    return logger


def short_uuid() -> str:
    return uuid.uuid4().hex[:12]


def set_trace_id(trace_id: str | None) -> None:
    _ctx_trace_id.set(trace_id)


def get_trace_id() -> str | None:
    return _ctx_trace_id.get()


def set_run_id(run_id: str) -> None:
    _ctx_run_id.set(run_id)


def get_run_id() -> str | None:
    return _ctx_run_id.get()


def set_request_id(request_id: str | None) -> None:
    _ctx_request_id.set(request_id)


def get_request_id() -> str | None:
    return _ctx_request_id.get()


def set_masking(mask: bool) -> None:
    _ctx_mask.set(mask)


def is_masking() -> bool:
    return _ctx_mask.get()


def mask_text(text: str) -> str:
    if not is_masking():
        return text
    return f"[masked len={len(text)}]"


@contextmanager
def span(event: str, **fields: Any) -> Iterator[None]:
    """Time a block and emit one structured record when it exits.

    Usage:
        with span("llm.next_question", component="oracle", operation="complete", session_id=sid):
            ...
    """
    logger = logging.getLogger(LOGGER_NAME)
    parent = _ctx_span_id.get()
    _ctx_parent_span_id.set(parent)
    _ctx_span_id.set(short_uuid())
    start = time.perf_counter()
    status = "ok"
    error_type: str | None = None
    error_msg: str | None = None
    try:
        yield
    except BaseException as e:
        status = "error"
        error_type = type(e).__name__
        error_msg = str(e)
        raise
    finally:
        payload: dict[str, Any] = {
            "event": event,
            "component": fields.pop("component", None),
            "operation": fields.pop("operation", None),
            "duration_ms": round((time.perf_counter() - start) * 1000.0, 3),
            "status": status,
        }
        if error_type:
            payload["error_type"] = error_type
            payload["error_msg"] = error_msg
        payload.update(fields)
        logger.info("span", extra=payload)
        _ctx_span_id.set(parent)
        _ctx_parent_span_id.set(None)


def log_event(event: str, level: int = logging.INFO, **fields: Any) -> None:
    logger = logging.getLogger(LOGGER_NAME)
    extra = {"event": event}
    extra.update(fields)
    logger.log(level, event, extra=extra)
