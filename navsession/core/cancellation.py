#!/usr/bin/env python3
"""
navsession.core.cancellation - Cooperative cancellation signaling for sessions.

Each session owns one threading.Event-based token. A controller sets it from
any thread; the session's worker observes it at every suspension point and
unwinds with NavigationCancelled. Tokens are set once and never cleared.
"""
from __future__ import annotations

import threading

from navsession.core.exceptions import NavigationCancelled


class CancellationToken:
    """One-shot cancellation flag shared by a session and its steps."""

    def __init__(self, scope: str | None = None) -> None:
        self._event = threading.Event()
        self._reason: str | None = None
        self.scope = scope

    def cancel(self, reason: str | None = None) -> None:
        """Signal that the current operation should cancel ASAP."""
        if not self._event.is_set():
            self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        """Return True if a cancellation has been requested."""
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        """Optional string describing who requested cancel (for diagnostics)."""
        return self._reason

    def wait(self, timeout: float | None = None) -> bool:
        """Block up to ``timeout`` seconds; return True if cancelled meanwhile."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise NavigationCancelled(self)

    def __repr__(self) -> str:
        state = "cancelled" if self.is_cancelled else "active"
        return f"CancellationToken(scope={self.scope!r}, {state})"
