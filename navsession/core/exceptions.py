#!/usr/bin/env python3

"""
Exception hierarchy for scripted navigation sessions.

Two families live here. ``NavigationInterrupt`` subclasses ``BaseException``
so that a cooperative cancellation unwinds through every ``except Exception``
retry handler untouched. Everything else derives from ``NavigationError`` and
is split into retryable and fatal branches.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from navsession.core.cancellation import CancellationToken

logger = logging.getLogger(__name__)


# === CANCELLATION ===


class NavigationInterrupt(BaseException):
    """Base class for control-flow signals that must not be retried."""


class NavigationCancelled(NavigationInterrupt):
    """Raised at a suspension point once the session's token is cancelled."""

    def __init__(self, token: CancellationToken | None = None, message: str = "Navigation Cancelled.") -> None:
        super().__init__(message)
        self.token = token
        self.message = message

    def belongs_to(self, token: CancellationToken) -> bool:
        """Return True when this cancellation was raised for ``token``."""
        return self.token is token


# === APPLICATION EXCEPTION HIERARCHY ===


class NavigationError(Exception):
    """Base exception class for all navigation session errors."""


class RetryableError(NavigationError):
    """Exception that indicates the operation can be retried."""

    def __init__(self, message: str = "Operation can be retried", **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = kwargs.get('context', {})
        self.recovery_hint = kwargs.get('recovery_hint')


class FatalError(NavigationError):
    """Exception that indicates the operation should not be retried."""

    def __init__(self, message: str = "Fatal error occurred", **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = kwargs.get('context', {})
        self.recovery_hint = kwargs.get('recovery_hint')


class WaitTimeoutError(RetryableError):
    """A polling wait exhausted its budget without the condition holding."""

    def __init__(self, message: str = "Timed out", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.timeout_seconds = kwargs.get('timeout_seconds')


class TransientInteractionError(RetryableError):
    """An element was not yet present or interactable."""


# === RESOURCE ACQUISITION ===


class ResourceAcquisitionError(FatalError):
    """The browser driver could not be acquired."""

    def __init__(self, message: str = "Failed to acquire browser driver", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.original_exception: BaseException | None = kwargs.get('original_exception')
        self.profile_location = kwargs.get('profile_location')


class ProfileDirectoryLockedError(ResourceAcquisitionError):
    """The browser profile directory is already in use by another process."""

    def __init__(self, message: str = "Profile directory is locked by another browser", **kwargs: Any) -> None:
        kwargs.setdefault('recovery_hint', "Close the other browser using this profile or pick another profile.")
        super().__init__(message, **kwargs)


class BrowserFailedToStartError(ResourceAcquisitionError):
    """The browser process crashed or failed during launch."""

    def __init__(self, message: str = "Browser failed to start", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class ProfileCorruptedError(ResourceAcquisitionError):
    """The persistent profile could not be parsed by the browser."""

    def __init__(self, message: str = "Browser profile is corrupted", **kwargs: Any) -> None:
        kwargs.setdefault('recovery_hint', "Delete the profile directory and let the browser recreate it.")
        super().__init__(message, **kwargs)


# === SESSION ===


class SessionFatalError(FatalError):
    """A step failed while the session was still live."""

    def __init__(self, message: str = "Session script failed", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.session_id = kwargs.get('session_id')
        self.step_description = kwargs.get('step_description')


class SessionStateError(FatalError):
    """An operation was attempted in a session state that does not allow it."""

    def __init__(self, message: str = "Invalid session state", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.session_id = kwargs.get('session_id')


class ConfigValidationError(FatalError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str = "Configuration validation failed", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.config_section = kwargs.get('config_section')


__all__ = [
    "BrowserFailedToStartError",
    "ConfigValidationError",
    "FatalError",
    "NavigationCancelled",
    "NavigationError",
    "NavigationInterrupt",
    "ProfileCorruptedError",
    "ProfileDirectoryLockedError",
    "ResourceAcquisitionError",
    "RetryableError",
    "SessionFatalError",
    "SessionStateError",
    "TransientInteractionError",
    "WaitTimeoutError",
]
