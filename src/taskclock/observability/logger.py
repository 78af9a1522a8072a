"""
observability/logger.py — taskclock Structured Logger

taskclock is usually embedded in a host application, so logging is set up on
the "taskclock" logger only. The host's root logger and handlers are left
alone, and taskclock records do not propagate into them.

Every line carries:
  - timestamp, level, logger, event
  - thread_name, which tells the dispatch thread ("taskclock-dispatch")
    apart from whichever thread called add / cancel / trigger_check
  - task_id while a scheduled callback runs (bound through contextvars),
    so anything the callback logs is attributed to the task that fired it

Usage:
    from taskclock.observability.logger import get_logger, setup_logging
    setup_logging(level="INFO", log_dir="./data/logs")
    log = get_logger(__name__)
    log.info("scheduler.task_added", task_id=3, schedule="every 5s")
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import structlog

LOGGER_NAME = "taskclock"
LOG_FILE_NAME = "taskclock.log"


# ─────────────────────────────────────────────────────────────────────────────
# Building blocks
# ─────────────────────────────────────────────────────────────────────────────

def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.CallsiteParameterAdder(
            {structlog.processors.CallsiteParameter.THREAD_NAME}
        ),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]


def _formatter(renderer: Any, pre_chain: list[Any]) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=pre_chain,
    )


def _build_handlers(
    log_dir: Optional[Path],
    console_output: bool,
    json_console: bool,
    max_bytes: int,
    backup_count: int,
) -> list[logging.Handler]:
    pre_chain = _shared_processors()
    handlers: list[logging.Handler] = []

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / LOG_FILE_NAME,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer(), pre_chain))
        handlers.append(file_handler)

    if console_output:
        renderer = (
            structlog.processors.JSONRenderer()
            if json_console
            else structlog.dev.ConsoleRenderer(colors=True)
        )
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(_formatter(renderer, pre_chain))
        handlers.append(console_handler)

    return handlers


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(
    level: str = "INFO",
    log_dir: str | Path | None = None,
    json_format: Optional[bool] = None,  # None = auto-detect from tty
    console_output: bool = True,
    max_bytes: int = 10 * 1024 * 1024,   # 10 MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Configure structlog and the "taskclock" stdlib logger. Safe to call again;
    previous taskclock handlers are closed and replaced.

    Args:
        level:          DEBUG | INFO | WARNING | ERROR | CRITICAL
        log_dir:        Directory for the rotating JSON log file. None = no file.
        json_format:    Console format. None = pretty on a TTY, JSON when piped.
        console_output: Whether to emit logs to stdout at all.
        max_bytes:      Max size of the log file before rotation.
        backup_count:   Number of rotated log files to keep.

    Returns the configured "taskclock" logger.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if json_format is None:
        json_format = not sys.stdout.isatty()

    handlers = _build_handlers(
        Path(log_dir) if log_dir is not None else None,
        console_output,
        json_format,
        max_bytes,
        backup_count,
    )

    logger = logging.getLogger(LOGGER_NAME)
    for old in logger.handlers[:]:
        logger.removeHandler(old)
        old.close()
    for handler in handlers:
        handler.setLevel(numeric_level)
        logger.addHandler(handler)
    logger.setLevel(numeric_level)
    logger.propagate = False

    structlog.configure(
        processors=_shared_processors()
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return logger


def get_logger(name: str = LOGGER_NAME, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """
    Get a bound logger with optional initial context values.

    Pass a dotted name under "taskclock" (normally __name__) so the records
    reach the handlers installed by setup_logging().
    """
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger


@contextmanager
def bound_task(task_id: int) -> Iterator[None]:
    """
    Attach task_id to every log line emitted in this context.

    The dispatch loop wraps each callback invocation in this, so log calls
    made by the callback itself carry the id of the task that fired it.
    """
    tokens = structlog.contextvars.bind_contextvars(task_id=task_id)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
