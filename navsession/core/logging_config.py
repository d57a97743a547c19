#!/usr/bin/env python3

"""
Logging configuration for navigation sessions.

Sets up the ``navsession`` logger hierarchy using Python's standard
``logging`` module:
- Configurable log level via argument or ``LOG_LEVEL``.
- Console (stderr) and file handlers; the log directory comes from
  ``LOG_DIR`` (loaded from ``.env``) and defaults to ``Logs``.
- A formatter that aligns multi-line messages under the first line and
  colours warnings and errors.
- Filters that silence Selenium/urllib3 chatter on the console.
- Re-invocation only updates handler levels.
"""

from __future__ import annotations

import copy
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from navsession.testing.test_framework import Colors

load_dotenv()

LOG_FORMAT: str = (
    "%(asctime)s %(levelname).3s [%(module)-8.8s %(funcName)-8.8s %(lineno)-4d] %(message)s"
)
DATE_FORMAT: str = "%H:%M:%S"

ROOT_LOGGER_NAME = "navsession"
DIAGNOSTICS_LOGGER_NAME = "navsession.diagnostics"
STATUS_LOGGER_NAME = "navsession.status"

NOISY_LIBRARIES = [
    "selenium",
    "urllib3",
    "websockets",
    "undetected_chromedriver",
    "asyncio",
]

setup_logger = logging.getLogger("navsession.logger_setup")


def resolve_log_directory(log_dir: str | Path | None = None) -> Path:
    """Return an absolute log directory from the argument, ``LOG_DIR`` or ``Logs``."""
    directory = Path(log_dir) if log_dir else Path(os.getenv("LOG_DIR", "Logs"))
    if not directory.is_absolute():
        directory = (Path.cwd() / directory).resolve()
    return directory


class NameFilter(logging.Filter):
    """Filters log records whose logger name starts with an excluded prefix."""

    def __init__(self, excluded_names: list[str]) -> None:
        super().__init__()
        self.excluded_names = excluded_names

    def filter(self, record: logging.LogRecord) -> bool:
        return not any(record.name.startswith(name) for name in self.excluded_names)


class RemoteConnectionFilter(logging.Filter):
    """Filters out DEBUG messages originating from Selenium's remote_connection.py."""

    def filter(self, record: logging.LogRecord) -> bool:
        is_debug = record.levelno == logging.DEBUG
        is_remote_conn = bool(record.pathname) and Path(record.pathname).name == "remote_connection.py"
        return not (is_debug and is_remote_conn)


class AlignedMessageFormatter(logging.Formatter):
    """
    Formats log records to align multi-line messages below the initial log prefix.
    Leading whitespace from subsequent lines of the original message is removed.
    """

    def __init__(self, fmt: str | None = None, datefmt: str | None = None, use_color: bool = True) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def _apply_level_color(self, message: str, level: int) -> str:
        if not self.use_color or '\033[' in message:
            return message
        if level >= logging.ERROR:
            return Colors.red(message)
        if level >= logging.WARNING:
            return Colors.yellow(message)
        return message

    def _message_start(self, record: logging.LogRecord) -> tuple[str, int]:
        record_copy = copy.copy(record)
        placeholder = "X"
        record_copy.msg = placeholder
        record_copy.args = ()
        record_copy.exc_info = None
        record_copy.exc_text = None
        prefix_with_placeholder = super().format(record_copy)
        # The message is the last field of LOG_FORMAT.
        position = prefix_with_placeholder.rfind(placeholder)
        if position == -1:
            heuristic_index = prefix_with_placeholder.find("] ")
            position = heuristic_index + 2 if heuristic_index != -1 else 0
        return prefix_with_placeholder[:position], position

    def format(self, record: logging.LogRecord) -> str:
        message = self._apply_level_color(record.getMessage(), record.levelno)
        prefix, position = self._message_start(record)
        indent = " " * position

        lines = message.split("\n")
        if record.exc_info:
            lines.extend(self.formatException(record.exc_info).split("\n"))

        formatted = [f"{prefix}{lines[0].lstrip()}"]
        formatted.extend(f"{indent}{line.lstrip()}" for line in lines[1:])
        return "\n".join(formatted)


class _LoggingState:
    """Tracks if logging has been set up to avoid adding duplicate handlers."""

    initialized: bool = False


def setup_logging(log_file: str = "", log_level: str = "INFO", log_dir: str | Path | None = None) -> logging.Logger:
    """
    Configure the ``navsession`` logger with file and console handlers.

    Args:
        log_file: Base name of the log file (placed in the log directory).
                  If empty, reads ``LOG_FILE`` (default: "navsession.log").
        log_level: Minimum level for the handlers (e.g. "DEBUG", "INFO").
        log_dir: Directory for the log file; defaults to ``LOG_DIR``.

    Returns:
        The configured ``navsession`` logger.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not log_file:
        log_file = os.getenv("LOG_FILE", "navsession.log")
    numeric_log_level = getattr(logging, log_level.upper(), logging.INFO)

    if _LoggingState.initialized:
        for handler in root.handlers:
            handler.setLevel(numeric_log_level)
        return root

    logs_dir = resolve_log_directory(log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file_path = logs_dir / Path(log_file).name

    root.setLevel(logging.DEBUG)
    root.propagate = False
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    file_handler = logging.FileHandler(log_file_path, mode="a", encoding="utf-8")
    file_handler.setFormatter(AlignedMessageFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT, use_color=False))
    file_handler.setLevel(numeric_log_level)
    root.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(AlignedMessageFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    console_handler.setLevel(numeric_log_level)
    console_handler.addFilter(RemoteConnectionFilter())
    console_handler.addFilter(NameFilter(NOISY_LIBRARIES))
    root.addHandler(console_handler)

    logging.getLogger("urllib3").setLevel(logging.ERROR)
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("selenium.webdriver.remote.remote_connection").setLevel(logging.WARNING)
    logging.getLogger("undetected_chromedriver").setLevel(logging.WARNING)
    logging.getLogger("uc").setLevel(logging.ERROR)

    _LoggingState.initialized = True
    setup_logger.debug(f"Logging initialised at {log_level.upper()} -> {log_file_path}")
    return root


def reset_logging() -> None:
    """Remove handlers added by ``setup_logging`` so it can run again."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    _LoggingState.initialized = False
