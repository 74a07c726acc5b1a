"""
Rallypoint Logging Subsystem

Purpose
-------
Provide an async-safe logging subsystem for the match engine, offering:

- Structured JSON logs for aggregation and analysis.
- LogContext-based propagation of request/operation context via ContextVars.
- Correlation IDs for end-to-end traceability of one join/leave/respond call.
- Async-safe logging via a QueueHandler + QueueListener pair so handler I/O
  never runs on the event loop.
- Bounded log queue that drops (and counts) records during log storms.

Responsibilities
----------------
- Initialize and configure the global logging stack.
- Enrich all log records with contextual fields:
  - user_id, match_id
  - correlation_id, request_id
  - component, operation
- Provide simple helper APIs:
  - get_logger()
  - LogContext (sync + async context manager)
  - set_log_context() / clear_log_context()
  - get_logging_health() for health inspection.

Design Decisions
----------------
- Console logging is the primary sink (JSON in production, colored in dev).
  An optional TimedRotatingFileHandler is enabled with ``LOG_TO_FILE``.
- ContextFilter is attached to the queue handler so it runs in the caller's
  task, where the ContextVar holds the right values.
- Extra fields passed via ``logger.info("msg", extra={...})`` are merged into
  the JSON document.

Dependencies
------------
- rallypoint.core.config.config.Config
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from rallypoint.core.config.config import Config


_request_context: ContextVar[Dict[str, Any]] = ContextVar("request_context", default={})

_INIT_FLAG = "_rallypoint_logging_initialized"


# ============================================================================
# Config / Environment
# ============================================================================


@dataclass(frozen=True)
class LoggerConfig:
    """Configuration for the logging subsystem, read lazily from Config."""

    CONSOLE_FORMAT: str = (
        "%(asctime)s | %(levelname)-8s | %(name)-32s | [%(correlation_id)s] %(message)s"
    )
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    DAILY_BASENAME: str = "rallypoint.json.log"
    DAILY_BACKUP_COUNT: int = 1

    QUEUE_MAX_SIZE: int = 10_000

    @property
    def environment(self) -> str:
        return str(getattr(Config, "ENVIRONMENT", "development")).lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def logs_dir(self) -> Path:
        return Path(Config.LOGS_DIR).resolve()

    @property
    def log_level(self) -> int:
        level_name = getattr(Config, "LOG_LEVEL", "INFO")
        if not isinstance(level_name, str):
            level_name = "INFO"
        return getattr(logging, level_name.upper(), logging.INFO)

    @property
    def use_json(self) -> bool:
        return bool(getattr(Config, "LOG_JSON", self.is_production))

    @property
    def use_colors(self) -> bool:
        if self.is_production or self.use_json:
            return False
        return bool(getattr(Config, "LOG_COLORS", True)) and sys.stdout.isatty()

    @property
    def to_file(self) -> bool:
        return bool(getattr(Config, "LOG_TO_FILE", False))


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Logging Metrics / Health
# ============================================================================


@dataclass
class LoggingMetrics:
    records_enqueued: int = 0
    records_dropped: int = 0
    listener_errors: int = 0


@dataclass(frozen=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


_logging_metrics: LoggingMetrics = LoggingMetrics()
_log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
_queue_listener: Optional[QueueListener] = None


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Stamp the active LogContext onto every record that passes through."""

    FIELDS = ("user_id", "match_id", "component", "operation")

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context: Dict[str, Any] = _request_context.get({})

        for field in self.FIELDS:
            # explicit extra= values win over the ambient context
            if not hasattr(record, field):
                setattr(record, field, context.get(field, "N/A"))

        correlation_id = context.get("correlation_id") or context.get("request_id") or "N/A"
        record.correlation_id = correlation_id
        record.request_id = context.get("request_id", correlation_id)

        if getattr(record, "component", "N/A") == "N/A":
            record.component = record.name.split(".")[-1]

        return True


class ColoredFormatter(logging.Formatter):
    COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[91m\033[1m",
        "RESET": "\033[0m",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        original = record.levelname
        prefix = self.COLORS.get(original, "")
        if prefix:
            record.levelname = f"{prefix}{original}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JSONFormatter(logging.Formatter):
    """One JSON document per record: standard fields, context, then extras."""

    STANDARD_ATTRS = {
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
        "message",
        "asctime",
    }

    CONTEXT_ATTRS = {
        "user_id",
        "match_id",
        "correlation_id",
        "request_id",
        "component",
        "operation",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for attr in self.CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value not in (None, "N/A"):
                log_data[attr] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            log_data["exception"] = record.exc_text

        extra = {
            key: val
            for key, val in record.__dict__.items()
            if key not in self.STANDARD_ATTRS
            and key not in self.CONTEXT_ATTRS
            and not key.startswith("_")
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, ensure_ascii=False, default=str)


# ============================================================================
# Queue Handler & Listener
# ============================================================================


class RallyQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _logging_metrics.records_enqueued += 1
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _logging_metrics.records_dropped += 1
            sys.stderr.write("rallypoint logging queue full; dropping log record.\n")


class RallyQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _logging_metrics.listener_errors += 1
        sys.stderr.write("rallypoint logging handler error while processing record.\n")


# ============================================================================
# Global Setup
# ============================================================================


def _build_console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LOGGER_CONFIG.log_level)

    if LOGGER_CONFIG.use_json:
        handler.setFormatter(JSONFormatter())
    elif LOGGER_CONFIG.use_colors:
        handler.setFormatter(
            ColoredFormatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )
    else:
        handler.setFormatter(
            logging.Formatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
        )
    return handler


def _build_daily_file_handler() -> logging.Handler:
    LOGGER_CONFIG.logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(LOGGER_CONFIG.logs_dir / LOGGER_CONFIG.DAILY_BASENAME),
        when="midnight",
        interval=1,
        backupCount=LOGGER_CONFIG.DAILY_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setLevel(LOGGER_CONFIG.log_level)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging() -> None:
    """Install the queue handler on the root logger. Idempotent."""
    global _queue_listener, _logging_metrics, _log_queue

    root = logging.getLogger()
    if getattr(root, _INIT_FLAG, False):
        return

    _logging_metrics = LoggingMetrics()
    root.setLevel(LOGGER_CONFIG.log_level)

    sinks: List[logging.Handler] = [_build_console_handler()]
    if LOGGER_CONFIG.to_file:
        sinks.append(_build_daily_file_handler())

    _log_queue = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _queue_listener = RallyQueueListener(_log_queue, *sinks, respect_handler_level=True)
    _queue_listener.start()

    queue_handler = RallyQueueHandler(_log_queue)
    queue_handler.setLevel(LOGGER_CONFIG.log_level)
    queue_handler.addFilter(ContextFilter())
    root.addHandler(queue_handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if getattr(Config, "DATABASE_ECHO", False) else logging.WARNING
    )

    setattr(root, _INIT_FLAG, True)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": LOGGER_CONFIG.environment,
            "log_level": logging.getLevelName(LOGGER_CONFIG.log_level),
            "json": LOGGER_CONFIG.use_json,
            "to_file": LOGGER_CONFIG.to_file,
        },
    )


def shutdown_logging() -> None:
    """Stop the listener and detach the handlers installed by setup_logging()."""
    global _queue_listener, _log_queue

    root = logging.getLogger()
    if not getattr(root, _INIT_FLAG, False):
        return

    logging.getLogger(__name__).info("Shutting down logging subsystem.")

    if _queue_listener is not None:
        _queue_listener.stop()
        for handler in _queue_listener.handlers:
            handler.flush()
            handler.close()
        _queue_listener = None

    for handler in list(root.handlers):
        if isinstance(handler, RallyQueueHandler):
            root.removeHandler(handler)
            handler.close()

    setattr(root, _INIT_FLAG, False)
    _log_queue = None


def get_logging_health() -> LoggingHealth:
    queue_size = _log_queue.qsize() if _log_queue is not None else 0
    max_size = _log_queue.maxsize if _log_queue is not None else 0
    return LoggingHealth(
        initialized=bool(getattr(logging.getLogger(), _INIT_FLAG, False)),
        queue_size=queue_size,
        queue_max_size=max_size,
        records_enqueued=_logging_metrics.records_enqueued,
        records_dropped=_logging_metrics.records_dropped,
        listener_errors=_logging_metrics.listener_errors,
    )


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind request context for the duration of a block.

    Usable both as ``with`` and ``async with``; nested contexts restore the
    outer values on exit.

    Example
    -------
    >>> async with LogContext(user_id="u-1", match_id=str(match_id), operation="match.join"):
    ...     logger.info("joining")
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        match_id: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        request_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        inherited = _request_context.get({})
        effective = (
            correlation_id
            or request_id
            or inherited.get("correlation_id")
            or self._generate_correlation_id()
        )

        self.context: Dict[str, Any] = {
            **inherited,
            "correlation_id": effective,
            "request_id": request_id or inherited.get("request_id") or effective,
            **extra,
        }
        for key, value in (
            ("user_id", user_id),
            ("match_id", match_id),
            ("component", component),
            ("operation", operation),
        ):
            if value is not None:
                self.context[key] = str(value)

        self._token: Optional[Token[Dict[str, Any]]] = None

    @staticmethod
    def _generate_correlation_id() -> str:
        return str(uuid.uuid4())[:8]

    def __enter__(self) -> "LogContext":
        self._token = _request_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _request_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(
    user_id: Optional[str] = None,
    match_id: Optional[str] = None,
    component: Optional[str] = None,
    operation: Optional[str] = None,
    correlation_id: Optional[str] = None,
    request_id: Optional[str] = None,
    **extra: Any,
) -> None:
    current = _request_context.get({}).copy()

    if user_id is not None:
        current["user_id"] = str(user_id)
    if match_id is not None:
        current["match_id"] = str(match_id)
    if component is not None:
        current["component"] = component
    if operation is not None:
        current["operation"] = operation
    if correlation_id:
        current["correlation_id"] = correlation_id
    if request_id:
        current["request_id"] = request_id
        current.setdefault("correlation_id", request_id)

    current.update(extra)
    _request_context.set(current)


def get_log_context() -> Dict[str, Any]:
    return dict(_request_context.get({}))


def clear_log_context() -> None:
    _request_context.set({})


# Initialize logging automatically
setup_logging()
