#!/usr/bin/env python3

"""
Navigation steps.

A step is one unit of scripted browser work. Subclasses provide a
``description`` and implement ``perform_execute()`` using the primitives on
this base class. Every primitive passes through the session's suspension
point first, so a paused session blocks inside the step and a cancelled one
unwinds with ``NavigationCancelled``. Element interactions retry transient
failures under the step's ``InteractionRetryPolicy``; waits and sleeps are
scaled by ``timeout_coefficient``.

Example:
    class LogIn(NavigationStep):
        description = "Log in"

        def perform_execute(self) -> None:
            self.go_to_url("https://example.com/login")
            self.send_keys_by_xpath("//input[@name='user']", "alice")
            self.send_keys_by_xpath("//input[@name='pass']", "hunter2", confidential=True)
            self.click_button_by_xpath("//button[@type='submit']")
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Optional, TypeVar

from selenium.webdriver.common.action_chains import ActionChains
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys

from navsession.core.cancellation import CancellationToken
from navsession.core.exceptions import SessionStateError, WaitTimeoutError
from navsession.core.logging_config import DIAGNOSTICS_LOGGER_NAME, STATUS_LOGGER_NAME
from navsession.core.pausable_wait import DEFAULT_POLL_INTERVAL, Condition, PausableWait, PollOutcome, Probe
from navsession.core.retry import InteractionRetryPolicy, retry_interaction
from navsession.core.run_state import RunState
from navsession.core.suspension import DEFAULT_PAUSE_POLL_INTERVAL, SuspensionCheck

if TYPE_CHECKING:
    from navsession.core.protocols import DiagnosticSink, DriverProtocol, StatusSink
    from navsession.core.session import NavigationSession

logger = logging.getLogger(__name__)
_diagnostics_logger = logging.getLogger(DIAGNOSTICS_LOGGER_NAME)
_status_logger = logging.getLogger(STATUS_LOGGER_NAME)

T = TypeVar("T")

CONFIDENTIAL = "CONFIDENTIAL"
DEFAULT_WAIT_SECONDS = 10

_REMOVE_BY_CLASS_SCRIPT = """
var elements = document.getElementsByClassName(arguments[0]);
var removed = elements.length;
while (elements.length > 0) { elements[0].parentNode.removeChild(elements[0]); }
return removed;
"""


def default_diagnostic_sink(message: str) -> None:
    _diagnostics_logger.debug(message)


def default_status_sink(status: str) -> None:
    _status_logger.info(status)


class NavigationStep(ABC):
    """Abstract unit of scripted work executed by a ``NavigationSession``."""

    def __init__(self) -> None:
        # Wiring; the session overwrites these right before execute().
        self.browser: Optional[DriverProtocol] = None
        self.log_diagnostic: DiagnosticSink = default_diagnostic_sink
        self.report_status: StatusSink = default_status_sink
        self.timeout_coefficient: float = 1.0
        self.retry_policy = InteractionRetryPolicy()
        self.pause_poll_interval: float = DEFAULT_PAUSE_POLL_INTERVAL
        self.wait_poll_interval: float = DEFAULT_POLL_INTERVAL

        self._token: Optional[CancellationToken] = None
        self._session: Optional[NavigationSession] = None
        self._execution_lock = threading.Lock()

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable label used in status reports."""

    @abstractmethod
    def perform_execute(self) -> None:
        """Do the step's work using the primitives below."""

    def execute(self, token: CancellationToken, session: Optional[NavigationSession] = None) -> None:
        """Run ``perform_execute`` with ``token`` and ``session`` bound for its duration."""
        if not self._execution_lock.acquire(blocking=False):
            raise SessionStateError(f"Step '{self.description}' is already executing")
        try:
            self._token = token
            self._session = session
            try:
                self.perform_execute()
            finally:
                self._token = None
                self._session = None
        finally:
            self._execution_lock.release()

    @property
    def is_executing(self) -> bool:
        return self._execution_lock.locked()

    # --- suspension -------------------------------------------------------

    def _run_state(self) -> RunState:
        session = self._session
        return session.run_state if session is not None else RunState.RUNNING

    def _require_token(self) -> CancellationToken:
        token = self._token
        if token is None:
            raise SessionStateError(f"Step '{self.description}' is not executing")
        return token

    def _require_browser(self) -> DriverProtocol:
        if self.browser is None:
            raise SessionStateError(f"Step '{self.description}' has no browser attached")
        return self.browser

    def check_pause(self) -> None:
        """Block while the session is paused; raise NavigationCancelled if cancelled."""
        SuspensionCheck(
            self._require_token(),
            self._run_state,
            self.log_diagnostic,
            poll_interval=self.pause_poll_interval,
        ).check()

    def _retry(self, action: Callable[[], T], label: str, attempts: Optional[int] = None) -> T:
        policy = self.retry_policy if attempts is None else self.retry_policy.with_attempts(attempts)
        return retry_interaction(
            action,
            policy=policy,
            label=label,
            check_pause=self.check_pause,
            sleep_ms=self.sleep,
            log_diagnostic=self.log_diagnostic,
        )

    # --- typing -----------------------------------------------------------

    def send_keys_by_xpath(
        self, xpath: str, keys: str, confidential: bool = False, attempts: Optional[int] = None
    ) -> None:
        """Type ``keys`` into the element at ``xpath``, then press TAB."""
        self.check_pause()
        self.send_keys_by_xpath_no_tabs(xpath, keys, confidential=confidential, attempts=attempts)
        self.send_keys_by_xpath_no_tabs(xpath, Keys.TAB, attempts=attempts)

    def send_keys_by_xpath_no_tabs(
        self, xpath: str, keys: str, confidential: bool = False, attempts: Optional[int] = None
    ) -> None:
        shown = CONFIDENTIAL if confidential else keys
        label = f"Sending Keys. XPath: {xpath} Keys: {shown}"
        self.log_diagnostic(label)

        def _type() -> None:
            self._require_browser().find_element(By.XPATH, xpath).send_keys(keys)

        self._retry(_type, label, attempts)

    def send_keys_slow_by_xpath(
        self,
        xpath: str,
        keys: str,
        millisecond_delay: int = 3,
        confidential: bool = False,
        attempts: Optional[int] = None,
    ) -> None:
        """Type ``keys`` one character at a time with a scaled pause between characters."""
        shown = CONFIDENTIAL if confidential else keys
        label = f"Sending Keys Slowly. XPath: {xpath} Keys: {shown}"
        self.log_diagnostic(label)

        def _type_slowly() -> None:
            element = self._require_browser().find_element(By.XPATH, xpath)
            for character in keys:
                self.check_pause()
                element.send_keys(character)
                self.sleep(millisecond_delay)

        self._retry(_type_slowly, label, attempts)

    # --- clicking ---------------------------------------------------------

    def click_button_by_selector(self, selector: str, attempts: Optional[int] = None) -> None:
        label = f"Clicking button. Selector: {selector}"
        self.log_diagnostic(label)
        self._retry(lambda: self._require_browser().find_element(By.CSS_SELECTOR, selector).click(), label, attempts)

    def click_button_by_xpath(self, xpath: str, attempts: Optional[int] = None) -> None:
        label = f"Clicking button. XPath: {xpath}"
        self.log_diagnostic(label)
        self._retry(lambda: self._require_browser().find_element(By.XPATH, xpath).click(), label, attempts)

    def click_element_into_new_tab_by_xpath(self, xpath: str, attempts: Optional[int] = None) -> None:
        """Control-click the element at ``xpath`` so the link opens in a new tab."""
        label = f"Clicking into new tab. XPath: {xpath}"
        self.log_diagnostic(label)

        def _ctrl_click() -> None:
            browser = self._require_browser()
            element = browser.find_element(By.XPATH, xpath)
            ActionChains(browser).key_down(Keys.CONTROL).click(element).key_up(Keys.CONTROL).perform()

        self._retry(_ctrl_click, label, attempts)

    # --- navigation -------------------------------------------------------

    def go_to_url(self, url: str, wait_for_page_to_load: bool = True) -> None:
        self.check_pause()
        self.log_diagnostic(f"Navigating to {url}")
        self._require_browser().get(url)
        if wait_for_page_to_load:
            self.wait_for_page_to_load()

    def wait_for_page_to_load(self, delay: float = DEFAULT_WAIT_SECONDS) -> None:
        self.wait_until(
            lambda driver: driver.execute_script("return document.readyState") == "complete",
            "Page to load",
            delay=delay,
        )

    # --- sleeping ---------------------------------------------------------

    def sleep(self, milliseconds: float) -> None:
        """Sleep ``milliseconds`` scaled by the timeout coefficient; cancellation wakes it early."""
        self.check_pause()
        effective = milliseconds * self.timeout_coefficient
        self.log_diagnostic(f"Sleeping {effective:g} ms")
        if effective > 0:
            self._require_token().wait(effective / 1000.0)
        self.check_pause()

    def sleep_for(self, duration: timedelta) -> None:
        self.sleep(duration.total_seconds() * 1000.0)

    # --- lookup -----------------------------------------------------------

    def get_element_by_xpath(self, xpath: str) -> Any:
        self.check_pause()
        return self._require_browser().find_element(By.XPATH, xpath)

    def get_elements_by_xpath(self, xpath: str) -> list[Any]:
        self.check_pause()
        return list(self._require_browser().find_elements(By.XPATH, xpath))

    # --- waiting ----------------------------------------------------------

    def _pausable_wait(self, delay: float) -> PausableWait[Any]:
        return PausableWait(
            self._require_browser(),
            delay * self.timeout_coefficient,
            self.check_pause,
            interval=self.wait_poll_interval,
        )

    def wait_until(
        self,
        condition: Condition[Any],
        wait_description: str,
        delay: float = DEFAULT_WAIT_SECONDS,
        timeout_message: Optional[str] = None,
    ) -> PollOutcome:
        """Poll ``condition`` until it is satisfied or aborts.

        ``delay`` is in seconds before scaling. When ``timeout_message`` is
        given, a timeout is re-raised as ``WaitTimeoutError(timeout_message)``
        chained to the raw timeout.
        """
        wait = self._pausable_wait(delay)
        self.log_diagnostic(f"Waiting: {wait_description} Delay {wait.timeout:g}")
        try:
            outcome = wait.until(condition)
        except WaitTimeoutError as exc:
            if timeout_message is None:
                raise
            raise WaitTimeoutError(timeout_message, timeout_seconds=wait.timeout) from exc

        if outcome is PollOutcome.ABORT:
            self.log_diagnostic("Wait aborted.")
        else:
            self.log_diagnostic("Wait condition met.")
        return outcome

    def wait_for_value(
        self,
        probe: Probe[Any, T],
        wait_description: str,
        delay: float = DEFAULT_WAIT_SECONDS,
        timeout_message: Optional[str] = None,
    ) -> Optional[T]:
        """Poll ``probe`` until it produces a value; ``None`` if the probe aborted."""
        wait = self._pausable_wait(delay)
        self.log_diagnostic(f"Waiting: {wait_description} Delay {wait.timeout:g}")
        try:
            value = wait.until_value(probe)
        except WaitTimeoutError as exc:
            if timeout_message is None:
                raise
            raise WaitTimeoutError(timeout_message, timeout_seconds=wait.timeout) from exc

        self.log_diagnostic("Wait aborted." if value is None else "Wait condition met.")
        return value

    def wait_for_xpaths_to_be_on_screen(
        self,
        xpaths: Sequence[str],
        delay: float = DEFAULT_WAIT_SECONDS,
        timeout_message: Optional[str] = None,
    ) -> Optional[str]:
        """Wait until any of ``xpaths`` matches an element; return the xpath that matched."""

        def _first_present(driver: Any) -> Optional[str]:
            for xpath in xpaths:
                if driver.find_elements(By.XPATH, xpath):
                    self.log_diagnostic(f"Found {xpath}")
                    return xpath
            self.log_diagnostic("No xpaths were found on screen.")
            return None

        return self.wait_for_value(
            _first_present,
            f"XPaths to be on screen: {', '.join(xpaths)}",
            delay=delay,
            timeout_message=timeout_message,
        )

    def wait_for_xpath_to_be_on_screen(
        self, xpath: str, delay: float = DEFAULT_WAIT_SECONDS, timeout_message: Optional[str] = None
    ) -> None:
        self.wait_for_xpaths_to_be_on_screen([xpath], delay=delay, timeout_message=timeout_message)

    # --- scripts ----------------------------------------------------------

    def execute_script(self, source: str, *args: Any) -> Any:
        self.check_pause()
        return self._require_browser().execute_script(source, *args)

    def remove_element_from_screen_by_class_name(self, class_name: str) -> int:
        """Remove every element carrying ``class_name``; return how many were removed."""
        self.log_diagnostic(f"Removing elements with class {class_name}")
        removed = self.execute_script(_REMOVE_BY_CLASS_SCRIPT, class_name)
        return int(removed or 0)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.description!r})"
