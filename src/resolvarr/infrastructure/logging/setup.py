"""Logging wiring: structlog on top of stdlib, drained by a queue listener.

Every record (structlog and foreign, e.g. uvicorn) ends up in the same
``ProcessorFormatter``. Handlers run on a listener thread so the event
loop only ever enqueues. Credentials that travel inside URLs (FebBox
``cookie=``, TMDB ``api_key=``) are masked before rendering.
"""

from __future__ import annotations

import atexit
import copy
import logging
import logging.config
import queue
import re
import sys
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Optional

import structlog

from resolvarr.infrastructure.config.schema import AppConfig

log = structlog.get_logger(__name__)

_QUIET_LIBRARIES = ("httpx", "httpcore", "hpack")

_SECRET_QUERY_RE = re.compile(r"(?i)\b(cookie|api_key|ui|token)=([^&\s\"']+)")
_SECRET_KEYS = frozenset({"cookie", "cookies", "api_key", "moviebox_key", "token"})

_listener: Optional[QueueListener] = None


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------


def _mask(value: Any) -> Any:
    if isinstance(value, str):
        return _SECRET_QUERY_RE.sub(lambda m: f"{m.group(1)}=***", value)
    return value


def redact_secrets(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask credential fields and credential query params in string values."""
    for key, value in event_dict.items():
        if key in _SECRET_KEYS and value:
            event_dict[key] = "***"
        elif key != "event":
            event_dict[key] = _mask(value)
    return event_dict


def _drop_color_message(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.pop("color_message", None)
    return event_dict


def _record_timestamp(_: Any, __: Any, event_dict: dict[str, Any]) -> dict[str, Any]:
    # Foreign records are formatted on the listener thread; use creation time.
    record = event_dict.get("_record")
    if isinstance(record, logging.LogRecord):
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        event_dict["timestamp"] = created.isoformat().replace("+00:00", "Z")
    return event_dict


def _shared_processors() -> list[structlog.typing.Processor]:
    return [
        _drop_color_message,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
    ]


def _formatter_kwargs(config: AppConfig) -> dict[str, Any]:
    renderer: structlog.typing.Processor = (
        structlog.processors.JSONRenderer()
        if config.log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    return {
        "foreign_pre_chain": [_record_timestamp, *_shared_processors()],
        "processors": [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            redact_secrets,
            renderer,
        ],
    }


# ---------------------------------------------------------------------------
# stdlib configuration
# ---------------------------------------------------------------------------


def build_logging_config(config: AppConfig) -> dict[str, Any]:
    """dictConfig for stdlib and uvicorn, rendered through structlog.

    HTTP client libraries stay at WARNING unless the level is DEBUG.
    """
    level = config.log_level
    library_level = "DEBUG" if level == "DEBUG" else "WARNING"

    def stream_handler(stream: str) -> dict[str, Any]:
        return {
            "class": "logging.StreamHandler",
            "formatter": "structlog",
            "stream": stream,
        }

    loggers: dict[str, Any] = {
        "uvicorn": {"handlers": ["stderr"], "level": level, "propagate": False},
        "uvicorn.error": {"level": level},
        "uvicorn.access": {"handlers": ["stdout"], "level": level, "propagate": False},
    }
    loggers.update({name: {"level": library_level} for name in _QUIET_LIBRARIES})

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structlog": {
                "()": structlog.stdlib.ProcessorFormatter,
                **_formatter_kwargs(config),
            }
        },
        "handlers": {
            "stderr": stream_handler("ext://sys.stderr"),
            "stdout": stream_handler("ext://sys.stdout"),
        },
        "loggers": loggers,
        "root": {"handlers": ["stderr"], "level": level},
    }


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int) -> None:
        super().__init__()
        self._max = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self._max


class _DictPreservingQueueHandler(QueueHandler):
    """Enqueue a copy of the record as-is.

    ``QueueHandler.prepare`` would render ``msg`` to a string, losing the
    event dict structlog hands to ``ProcessorFormatter``.
    """

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        return copy.copy(record)


def stop_logging_listener() -> None:
    global _listener
    if _listener is None:
        return
    try:
        _listener.stop()
    finally:
        _listener = None


def _start_queue_listener(config: AppConfig) -> None:
    """Move all handler I/O to a listener thread.

    Records up to WARNING go to stdout, ERROR and above to stderr.
    """
    global _listener
    stop_logging_listener()

    formatter = structlog.stdlib.ProcessorFormatter(**_formatter_kwargs(config))
    stdout = logging.StreamHandler(sys.stdout)
    stdout.setFormatter(formatter)
    stdout.addFilter(_MaxLevelFilter(logging.WARNING))
    stderr = logging.StreamHandler(sys.stderr)
    stderr.setFormatter(formatter)
    stderr.setLevel(logging.ERROR)

    records: queue.Queue[logging.LogRecord] = queue.Queue()
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_DictPreservingQueueHandler(records))
    root.setLevel(config.log_level)

    # Named loggers configured above now propagate into the queue.
    for name in list(logging.root.manager.loggerDict):
        named = logging.getLogger(name)
        named.handlers.clear()
        named.propagate = True

    _listener = QueueListener(records, stdout, stderr, respect_handler_level=True)
    _listener.start()
    atexit.register(stop_logging_listener)


def configure_logging(config: AppConfig) -> dict[str, Any]:
    """Configure structlog and stdlib logging; return the applied dictConfig.

    The returned dict is also what uvicorn receives as ``log_config``.
    """
    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    cfg = build_logging_config(config)
    logging.config.dictConfig(cfg)
    _start_queue_listener(config)

    log.info("logging_configured", log_format=config.log_format, log_level=config.log_level)
    return cfg
