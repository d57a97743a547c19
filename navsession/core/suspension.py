#!/usr/bin/env python3

"""
Cooperative suspension point.

Every primitive a step performs calls ``SuspensionCheck.check()`` first. The
check blocks while the session is paused (polling the run state, but waking
immediately on cancellation) and raises ``NavigationCancelled`` once the
session's token has been cancelled.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from navsession.core.cancellation import CancellationToken
from navsession.core.exceptions import NavigationCancelled
from navsession.core.run_state import RunState

logger = logging.getLogger(__name__)

DEFAULT_PAUSE_POLL_INTERVAL = 1.0


class SuspensionCheck:
    """Blocks while paused, raises when cancelled."""

    def __init__(
        self,
        token: CancellationToken,
        state_provider: Callable[[], RunState],
        log_diagnostic: Callable[[str], None] | None = None,
        poll_interval: float = DEFAULT_PAUSE_POLL_INTERVAL,
    ) -> None:
        self.token = token
        self.state_provider = state_provider
        self.log_diagnostic = log_diagnostic
        self.poll_interval = poll_interval

    def _diagnostic(self, message: str) -> None:
        if self.log_diagnostic is None:
            logger.debug(message)
            return
        self.log_diagnostic(message)

    def check(self) -> None:
        paused = False
        while not self.token.is_cancelled and self.state_provider() is RunState.PAUSED:
            if not paused:
                self._diagnostic("Pausing.")
                paused = True
            self.token.wait(self.poll_interval)

        if paused:
            self._diagnostic("Unpausing.")

        if self.token.is_cancelled:
            raise NavigationCancelled(self.token)

    __call__ = check
