"""
FeedStream Logging Configuration
===============================

Console and JSON-lines logging for ingestion runs.

Components log through :func:`get_logger_for_component`, which stamps every
record with the component name and, for per-feed components, the feed
``source``. Run summaries pass ``RunResult.to_dict()`` and feed failures pass
``FeedStreamError.to_dict()`` as ``extra``; :class:`StructuredFormatter` lifts
those into ``run`` and ``failure`` objects so a log file can be filtered per
feed and per outcome without parsing messages.
"""

import json
import logging
import logging.handlers
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Attributes every LogRecord has; anything else arrived through ``extra``
_STANDARD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}

CONTEXT_FIELDS = ("component", "source")

RUN_FIELDS = (
    "state",
    "success",
    "entries_fetched",
    "published",
    "rejected_recency",
    "rejected_dedup",
    "timestamp_fallbacks",
    "seen_ids",
    "committed",
    "cancelled",
    "error",
    "retryable",
    "duration_seconds",
)

FAILURE_FIELDS = ("error_type", "error_code", "error_message", "recoverable", "context")


def _pick(attrs: Dict[str, Any], names) -> Dict[str, Any]:
    return {name: attrs[name] for name in names if name in attrs}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record with feed context as top-level fields."""

    def format(self, record: logging.LogRecord) -> str:
        attrs = {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}

        entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            **_pick(attrs, CONTEXT_FIELDS),
            "message": record.getMessage(),
        }

        run = _pick(attrs, RUN_FIELDS)
        if run:
            entry["run"] = run

        failure = _pick(attrs, FAILURE_FIELDS)
        if failure:
            entry["failure"] = failure

        claimed = set(CONTEXT_FIELDS) | set(RUN_FIELDS) | set(FAILURE_FIELDS)
        rest = {k: v for k, v in attrs.items() if k not in claimed}
        if rest:
            entry["extra"] = rest

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Short colored lines: time, level, component and feed."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        stamp = time.strftime("%H:%M:%S", time.localtime(record.created))

        where = getattr(record, "component", None) or record.name
        source = getattr(record, "source", None)
        if source:
            where = f"{where} <{source}>"

        line = f"{color}{stamp} {record.levelname:<8}{self.RESET} {where}: {record.getMessage()}"

        code = getattr(record, "error_code", None)
        if code:
            line += f" [{code}]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that merges component context into every record."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger_for_component(
    component_name: str,
    source: Optional[str] = None,
) -> LoggerAdapter:
    """Get a logger adapter with component-specific context.

    Args:
        component_name: Name of the component (e.g., 'feed_fetcher', 'ingestion_task')
        source: Feed URL the component is working on (optional)

    Returns:
        Logger adapter named ``feedstream.<component_name>``
    """
    context = {"component": component_name}
    if source:
        context["source"] = source

    return LoggerAdapter(logging.getLogger(f"feedstream.{component_name}"), context)


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/feedstream.log",
    enable_console: bool = True,
    structured_logging: bool = False,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Configure the ``feedstream`` logger tree.

    The console handler writes to stderr so record output on stdout stays
    machine-readable. The rotating file, when enabled, always gets JSON lines.

    Args:
        log_level: Global log level
        log_file: Path to main log file, None or empty disables file logging
        enable_console: Whether to enable console logging
        structured_logging: JSON instead of colored lines on the console
        max_file_size: Maximum log file size in bytes
        backup_count: Number of rotated log files to keep

    Returns:
        The configured ``feedstream`` logger
    """
    logger = logging.getLogger("feedstream")
    logger.setLevel(getattr(logging, log_level.upper()))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if enable_console:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(StructuredFormatter() if structured_logging else ColoredConsoleFormatter())
        logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
        )
        rotating.setFormatter(StructuredFormatter())
        logger.addHandler(rotating)

    for noisy in ("aiohttp", "asyncio", "feedparser"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


class PerformanceLogger:
    """Time a block and log its duration at DEBUG.

    ``duration`` is set on exit, also when the block raised.
    """

    def __init__(self, logger, operation: str, **context):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.duration: Optional[float] = None
        self._started = 0.0

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.monotonic()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration = time.monotonic() - self._started
        outcome = "failed" if exc_type else "done"
        self.logger.debug(
            f"{self.operation} {outcome} in {self.duration:.3f}s",
            extra={**self.context, "operation": self.operation, "elapsed_seconds": self.duration},
        )
