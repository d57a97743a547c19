#!/usr/bin/env python3

"""
Bounded teardown gate.

Closing many browsers at once can overwhelm the host, so sessions release
their driver through a shared ``TeardownGate``. With a positive
``max_concurrent`` at most that many sessions tear down at a time; waiters
re-check every ``poll_interval`` seconds (no FIFO guarantee). Without a limit
teardown proceeds immediately.

Usage:
    gate = TeardownGate(max_concurrent=2)
    session_a = NavigationSession(config, teardown_gate=gate)
    session_b = NavigationSession(config, teardown_gate=gate)
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Any, Optional, Protocol

from navsession.core.error_handling import LoggedSuppression
from navsession.observability.metrics_registry import metrics

if TYPE_CHECKING:
    from navsession.config.config_schema import TeardownConfig

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0


class _Closable(Protocol):
    """What the gate needs from a session."""

    session_id: str

    @property
    def browser(self) -> Any:
        ...


class TeardownGate:
    """Admission controller bounding concurrent driver teardowns."""

    def __init__(self, max_concurrent: Optional[int] = None, poll_interval: float = DEFAULT_POLL_INTERVAL) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.max_concurrent = max_concurrent if max_concurrent and max_concurrent > 0 else None
        self.poll_interval = poll_interval
        self._closing: set[Any] = set()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: TeardownConfig) -> TeardownGate:
        return cls(max_concurrent=config.max_concurrent_teardowns, poll_interval=config.poll_interval)

    @property
    def is_bounded(self) -> bool:
        return self.max_concurrent is not None

    def closing_count(self) -> int:
        with self._lock:
            return len(self._closing)

    def close_with_admission(self, session: _Closable) -> None:
        """Tear down ``session``'s driver, waiting for a slot if the gate is bounded."""
        if not self.is_bounded:
            self._teardown(session)
            return

        self._admit(session)
        try:
            self._teardown(session)
        finally:
            with self._lock:
                self._closing.discard(session)

    def _admit(self, session: _Closable) -> None:
        assert self.max_concurrent is not None
        waited = False
        while True:
            with self._lock:
                if len(self._closing) < self.max_concurrent:
                    self._closing.add(session)
                    return
            if not waited:
                metrics().teardown_admission_waits.inc()
                waited = True
            logger.debug(f"Session {session.session_id}: Waiting for other sessions to finish closing.")
            time.sleep(self.poll_interval)

    @staticmethod
    def _teardown(session: _Closable) -> None:
        driver = session.browser
        if driver is None:
            logger.debug(f"Session {session.session_id}: no driver to release")
            return

        metrics().teardowns_in_progress.inc()
        try:
            with LoggedSuppression(f"Closing browser window for session {session.session_id}", logging.DEBUG):
                driver.close()
            with LoggedSuppression(f"Quitting driver for session {session.session_id}"):
                driver.quit()
            logger.debug(f"Session {session.session_id}: driver released")
        finally:
            metrics().teardowns_in_progress.dec()

    def __repr__(self) -> str:
        limit = self.max_concurrent if self.is_bounded else "unlimited"
        return f"TeardownGate(max_concurrent={limit}, closing={self.closing_count()})"
