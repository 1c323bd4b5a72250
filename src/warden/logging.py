from __future__ import annotations

import logging
import os
import sys
from typing import Any, TextIO

import structlog

LOG_FILE_ENV = "WARDEN_LOG_FILE"

_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def resolve_level(level: str | int | None, *, debug: bool = False) -> int:
    if debug:
        return logging.DEBUG
    if level is None:
        return logging.INFO
    if isinstance(level, int):
        return level
    try:
        return _LEVELS[level.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown log level {level!r}") from None


def _open_log_file(path: str) -> TextIO:
    return open(path, "a", encoding="utf-8", buffering=1)  # noqa: SIM115


def setup_logging(
    *,
    debug: bool = False,
    level: str | int | None = None,
    cache_logger_on_first_use: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Configure structlog for the whole process.

    Console output is rendered for humans on a TTY and as JSON lines otherwise.
    When ``WARDEN_LOG_FILE`` is set, records go to that file instead.
    """
    min_level = resolve_level(level, debug=debug)

    log_file = os.environ.get(LOG_FILE_ENV)
    if log_file:
        output = _open_log_file(log_file)
    else:
        output = stream or sys.stderr

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
        structlog.processors.StackInfoRenderer(),
    ]
    is_tty = not log_file and hasattr(output, "isatty") and output.isatty()
    if is_tty:
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=cache_logger_on_first_use,
    )

    # py-cord logs through the stdlib; keep its gateway chatter out of debug runs.
    logging.basicConfig(level=min_level, stream=output)
    logging.getLogger("discord").setLevel(max(min_level, logging.INFO))


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)
