#!/usr/bin/env python3

"""
Small error-handling helpers shared by the session and the teardown gate.

``invoke_callback`` calls a user-supplied sink or callback and logs, rather
than propagates, anything it raises. ``LoggedSuppression`` wraps best-effort
cleanup calls such as ``driver.quit()``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import TracebackType
from typing import Any, Optional

logger = logging.getLogger(__name__)


def invoke_callback(callback: Optional[Callable[..., Any]], *args: Any, description: str = "callback") -> bool:
    """Call ``callback(*args)``; return False if it raised (the error is logged)."""
    if callback is None:
        return True
    try:
        callback(*args)
    except Exception:
        logger.exception(f"{description} raised; continuing")
        return False
    return True


class LoggedSuppression:
    """Context manager that logs and swallows ``Exception`` from cleanup code."""

    def __init__(self, operation_name: str, level: int = logging.WARNING) -> None:
        self.operation_name = operation_name
        self.level = level
        self.error: Optional[BaseException] = None

    def __enter__(self) -> LoggedSuppression:
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        _exc_tb: Optional[TracebackType],
    ) -> bool:
        if exc_val is None or not isinstance(exc_val, Exception):
            return False
        self.error = exc_val
        logger.log(self.level, f"{self.operation_name} failed: {exc_val}")
        return True
