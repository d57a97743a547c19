#!/usr/bin/env python3

"""
Retry policy for element interactions.

Step primitives (typing, clicking) run through ``retry_interaction``: before
every try the suspension point is honoured, a transient interaction failure
is logged and followed by a pause, and the final failure is re-raised
unchanged. Cancellation is a ``BaseException`` and is never caught here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar

from selenium.common.exceptions import (
    ElementClickInterceptedException,
    ElementNotInteractableException,
    ElementNotVisibleException,
    InvalidElementStateException,
    NoSuchElementException,
    StaleElementReferenceException,
)

from navsession.core.exceptions import TransientInteractionError
from navsession.observability.metrics_registry import metrics

logger = logging.getLogger(__name__)

R = TypeVar('R')

TRANSIENT_INTERACTION_ERRORS: tuple[type[Exception], ...] = (
    NoSuchElementException,
    ElementNotVisibleException,
    ElementNotInteractableException,
    ElementClickInterceptedException,
    InvalidElementStateException,
    StaleElementReferenceException,
    TransientInteractionError,
)


@dataclass(frozen=True)
class InteractionRetryPolicy:
    """How often and how patiently to retry an element interaction.

    ``max_attempts`` counts retries, so an interaction is tried
    ``max_attempts + 1`` times in total.
    """

    max_attempts: int = 10
    retry_delay_ms: int = 500
    retry_on: tuple[type[Exception], ...] = field(default=TRANSIENT_INTERACTION_ERRORS)

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be non-negative")
        if self.retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must be non-negative")

    def with_attempts(self, max_attempts: int) -> InteractionRetryPolicy:
        return InteractionRetryPolicy(max_attempts, self.retry_delay_ms, self.retry_on)

    @property
    def total_tries(self) -> int:
        return self.max_attempts + 1


def retry_interaction(
    action: Callable[[], R],
    *,
    policy: InteractionRetryPolicy,
    label: str,
    check_pause: Callable[[], None],
    sleep_ms: Callable[[float], None],
    log_diagnostic: Callable[[str], None],
) -> R:
    """Run ``action`` under ``policy``, returning its result."""
    for attempt in range(policy.total_tries):
        check_pause()
        try:
            return action()
        except policy.retry_on as exc:
            if attempt >= policy.max_attempts:
                log_diagnostic(f"{label} failed on attempt {attempt + 1}/{policy.total_tries}. Throwing.")
                logger.debug("%s exhausted retries: %r", label, exc)
                raise
            log_diagnostic(
                f"{label} failed on attempt {attempt + 1}/{policy.total_tries}: "
                f"{type(exc).__name__}. Retrying."
            )
            metrics().interaction_retries.inc()
            sleep_ms(policy.retry_delay_ms)

    # total_tries is always >= 1, so the loop either returns or raises.
    raise AssertionError("unreachable")
