"""
navsession - scripted, pausable browser navigation sessions.

A ``NavigationSession`` drives a Selenium WebDriver through an ordered list
of ``NavigationStep`` objects on a worker thread, while controllers pause,
resume or stop it from other threads. Driver teardown is bounded by a shared
``TeardownGate``.
"""

from navsession.core.builtin_steps import (
    CallableStep,
    ClickStep,
    GoToUrlStep,
    SleepStep,
    TypeTextStep,
    WaitForElementStep,
)
from navsession.core.cancellation import CancellationToken
from navsession.core.exceptions import (
    BrowserFailedToStartError,
    NavigationCancelled,
    NavigationError,
    ProfileCorruptedError,
    ProfileDirectoryLockedError,
    ResourceAcquisitionError,
    SessionFatalError,
    SessionStateError,
    TransientInteractionError,
    WaitTimeoutError,
)
from navsession.core.pausable_wait import PausableWait, PollOutcome
from navsession.core.run_state import RunState
from navsession.core.session import NavigationSession, RunOutcome
from navsession.core.step import NavigationStep
from navsession.core.teardown_gate import TeardownGate

__version__ = "1.0.0"

__all__ = [
    "BrowserFailedToStartError",
    "CallableStep",
    "CancellationToken",
    "ClickStep",
    "GoToUrlStep",
    "NavigationCancelled",
    "NavigationError",
    "NavigationSession",
    "NavigationStep",
    "PausableWait",
    "PollOutcome",
    "ProfileCorruptedError",
    "ProfileDirectoryLockedError",
    "ResourceAcquisitionError",
    "RunOutcome",
    "RunState",
    "SessionFatalError",
    "SessionStateError",
    "SleepStep",
    "TeardownGate",
    "TransientInteractionError",
    "TypeTextStep",
    "WaitForElementStep",
    "WaitTimeoutError",
]
