"""Logging utilities for RuleZ.

This module provides standalone structlog logger factories that write
JSON-formatted logs to the RuleZ operational log. Each logger is
self-contained and does not modify global structlog configuration.
"""

import logging
from logging.handlers import RotatingFileHandler
from os import getenv
from pathlib import Path
from typing import TYPE_CHECKING, cast

import structlog

from ._paths import get_hooks_log_file

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

# Config level names that the stdlib does not know
_LEVEL_ALIASES: dict[str, int] = {
    "TRACE": logging.DEBUG,
    "WARN": logging.WARNING,
}


def _get_log_level() -> int:
    """Get the log level from environment variables.

    Checks RULEZ_DEBUG first (sets DEBUG if present), then RULEZ_LOG_LEVEL.
    Defaults to INFO if neither is set.

    Returns:
        The logging level as an integer.
    """
    if getenv("RULEZ_DEBUG", None):
        return logging.DEBUG

    env_level = getenv("RULEZ_LOG_LEVEL", None)
    if env_level is None:
        return logging.INFO
    return log_level_from_string(env_level)


def log_level_from_string(level: str, *, respect_env: bool = False) -> int:
    """Convert a log level string to a logging level integer.

    Args:
        level: Log level string (trace, debug, info, warn, warning, error).
        respect_env: If True, RULEZ_DEBUG overrides to DEBUG level and
            RULEZ_LOG_LEVEL overrides ``level``.

    Returns:
        The logging level as an integer.
    """
    if respect_env:
        if getenv("RULEZ_DEBUG", None):
            return logging.DEBUG
        level = getenv("RULEZ_LOG_LEVEL", level)

    name = level.upper()
    if name in _LEVEL_ALIASES:
        return _LEVEL_ALIASES[name]
    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(name, logging.INFO)


def _create_logger(
    log_file_path: str,
    *,
    log_level: int | None = None,
    max_bytes: int | None = None,
    backup_count: int | None = None,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a standalone structlog logger writing to the specified file.

    Args:
        log_file_path: Path to the log file (will be opened in append mode).
        log_level: Override log level (uses env vars if not specified).
        max_bytes: Maximum size in bytes before rotation. Must be set with
            backup_count for rotation to be enabled.
        backup_count: Number of rotated log files to keep. Must be set with
            max_bytes for rotation to be enabled.

    Returns:
        A configured FilteringBoundLogger instance.
    """
    log_path = Path(log_file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    effective_level = log_level if log_level is not None else _get_log_level()

    stdlib_logger: logging.Logger | None = None
    if max_bytes is not None and backup_count is not None:
        stdlib_logger = logging.getLogger(f"rulez.{log_path.stem}.{id(log_path)}")
        stdlib_logger.handlers.clear()
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(effective_level)

        handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        handler.setLevel(effective_level)
        # structlog renders the line; the handler only writes it
        handler.setFormatter(logging.Formatter("%(message)s"))
        stdlib_logger.addHandler(handler)

        raw_logger: object = stdlib_logger
    else:
        raw_logger = structlog.WriteLoggerFactory(file=log_path.open("a"))()

    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(),
    ]

    wrapper_class = structlog.make_filtering_bound_logger(effective_level)

    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            raw_logger,
            processors=processors,
            wrapper_class=wrapper_class,
            context_class=dict,
        ),
    )


def create_hooks_logger(
    level: str | None = None,
    *,
    log_file: Path | None = None,
    max_bytes: int | None = None,
    backup_count: int | None = None,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a logger for hook invocations.

    Creates a standalone structlog logger that writes JSON-formatted logs
    to ~/.claude/logs/rulez-hooks.log.

    The log level is determined by (in order of precedence):
    1. RULEZ_DEBUG environment variable (if set, enables DEBUG level)
    2. RULEZ_LOG_LEVEL environment variable
    3. The `level` parameter (normally ``settings.log_level``)
    4. Default: INFO

    Args:
        level: Optional log level string.
        log_file: Override the log file location.
        max_bytes: Maximum size in bytes before rotation. Must be set with
            backup_count for rotation to be enabled.
        backup_count: Number of rotated log files to keep. Must be set with
            max_bytes for rotation to be enabled.

    Returns:
        A FilteringBoundLogger instance configured for hooks logging.
    """
    hooks_log_file = log_file if log_file is not None else get_hooks_log_file()

    effective_level: int | None = None
    if level is not None:
        effective_level = log_level_from_string(level, respect_env=True)

    return _create_logger(
        str(hooks_log_file),
        log_level=effective_level,
        max_bytes=max_bytes,
        backup_count=backup_count,
    )


def create_null_logger() -> "FilteringBoundLogger":  # noqa: UP037
    """Create a logger that drops everything.

    Used when the log directory cannot be created, so that logging problems
    never change a policy decision.
    """
    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            structlog.ReturnLogger(),
            processors=[],
            wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL + 10),
            context_class=dict,
        ),
    )
