"""Logging utilities for wryshell.

Registry, bus and bridge failures that do not stop the shell are logged here
rather than raised.
"""

from __future__ import annotations

import logging
import sys


DEFAULT_FORMAT = "%(name)s - %(levelname)s - %(message)s"


class _LoggerHolder:
    """Lazily created package logger."""

    instance: logging.Logger | None = None


def get_logger() -> logging.Logger:
    """Get the wryshell logger instance.

    Returns
    -------
    logging.Logger
        The wryshell logger configured with a stream handler.
    """
    if _LoggerHolder.instance is None:
        logger = logging.getLogger("wryshell")
        logger.setLevel(logging.WARNING)

        if not logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
            logger.addHandler(handler)

        _LoggerHolder.instance = logger

    return _LoggerHolder.instance


def debug(msg: str) -> None:
    """Log a debug message."""
    get_logger().debug(msg)


def info(msg: str) -> None:
    """Log an info message."""
    get_logger().info(msg)


def warn(msg: str) -> None:
    """Log a warning message."""
    get_logger().warning(msg)


def error(msg: str) -> None:
    """Log an error, such as an unknown window or an unreadable style sheet.

    Parameters
    ----------
    msg : str
        Message shown to the user.
    """
    get_logger().error(msg)


def exception(msg: str) -> None:
    """Log an error with the traceback of the exception being handled.

    Only meaningful inside an ``except`` block.
    """
    get_logger().exception(msg)


def set_level(level: int | str) -> None:
    """Set the level of the wryshell logger from a number or a level name."""
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    get_logger().setLevel(level)


def configure(level: int | str = logging.WARNING, fmt: str = DEFAULT_FORMAT) -> None:
    """Apply a level and a record format to the wryshell logger.

    Parameters
    ----------
    level : int or str
        The logging level.
    fmt : str
        Format string used by every handler attached to the logger.
    """
    logger = get_logger()
    set_level(level)
    for handler in logger.handlers:
        handler.setFormatter(logging.Formatter(fmt))


def enable_debug() -> None:
    """Enable verbose logging of bus traffic, window state changes and scripts."""
    set_level(logging.DEBUG)


def log_handler_error(signal: str, exc: BaseException) -> None:
    """Log a signal handler error with standardized format.

    Parameters
    ----------
    signal : str
        The signal whose handler raised.
    exc : BaseException
        The exception raised by the handler.
    """
    get_logger().error(f"Handler error for signal '{signal}': {exc}", exc_info=exc)
