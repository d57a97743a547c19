#!/usr/bin/env python3

"""
Pausable polling wait.

A polling loop in the spirit of Selenium's ``WebDriverWait`` that honours the
session's suspension point on every iteration. Conditions report a tagged
``PollOutcome`` or any truthy result; value probes return the value, or
``None`` or an empty result while the value is not there yet.

Elapsed time is only approximately bounded by the timeout: the iteration
count is derived from ``timeout / interval`` and the cost of evaluating the
condition is not subtracted.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from enum import Enum
from typing import Any, Generic, NoReturn, TypeVar, Union

from navsession.core.exceptions import WaitTimeoutError
from navsession.observability.metrics_registry import metrics

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5

D = TypeVar("D")
T = TypeVar("T")


class PollOutcome(Enum):
    """Result of a single poll."""

    PENDING = "pending"
    SATISFIED = "satisfied"
    ABORT = "abort"


Condition = Callable[[D], Any]
Probe = Callable[[D], Union[T, None, PollOutcome]]


def _normalize(result: Any) -> PollOutcome:
    if isinstance(result, PollOutcome):
        return result
    return PollOutcome.SATISFIED if result else PollOutcome.PENDING


class PausableWait(Generic[D]):
    """Poll a condition against ``driver`` until it holds, aborts, or times out."""

    def __init__(
        self,
        driver: D,
        timeout: float,
        check_pause: Callable[[], None],
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.driver = driver
        self.timeout = max(float(timeout), 0.0)
        self.interval = interval
        self.check_pause = check_pause

    @property
    def iterations(self) -> int:
        return max(1, math.ceil(self.timeout / self.interval))

    def until(self, condition: Condition[D]) -> PollOutcome:
        """Wait for a boolean condition.

        Returns ``PollOutcome.SATISFIED`` or ``PollOutcome.ABORT``; raises
        ``WaitTimeoutError`` when every poll came back pending.
        """
        last_error: Exception | None = None
        for attempt in range(self.iterations):
            self.check_pause()
            try:
                outcome = _normalize(condition(self.driver))
            except Exception as exc:
                last_error = exc
                outcome = PollOutcome.PENDING

            if outcome is not PollOutcome.PENDING:
                return outcome
            if attempt < self.iterations - 1:
                time.sleep(self.interval)

        self._raise_timeout(last_error)

    def until_value(self, probe: Probe[D, T]) -> T | None:
        """Wait for a probe to produce a value.

        ``None`` or any falsy value means not yet; ``PollOutcome.ABORT`` stops
        early and returns ``None``.
        """
        last_error: Exception | None = None
        for attempt in range(self.iterations):
            self.check_pause()
            try:
                value = probe(self.driver)
            except Exception as exc:
                last_error = exc
                value = None

            if value is PollOutcome.ABORT:
                return None
            if value and not isinstance(value, PollOutcome):
                return value
            if attempt < self.iterations - 1:
                time.sleep(self.interval)

        self._raise_timeout(last_error)

    def _raise_timeout(self, last_error: Exception | None) -> NoReturn:
        metrics().wait_timeouts.inc()
        message = f"Timed out after about {self.timeout:g} seconds"
        if last_error is not None:
            logger.debug(f"Last condition failure before timeout: {last_error!r}")
        raise WaitTimeoutError(message, timeout_seconds=self.timeout) from last_error
