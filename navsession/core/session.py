#!/usr/bin/env python3

"""
Navigation session.

A ``NavigationSession`` owns one browser driver, an ordered list of
``NavigationStep`` objects and a run-state machine
(RUNNING <-> PAUSED -> STOPPED). ``begin_navigation()`` acquires the driver
and executes the steps in order on a single worker thread; controllers may
``pause()``, ``unpause()`` or ``stop()`` from any thread.

Stopping is idempotent: the first ``stop()``/``stop_async()`` flips the
state to STOPPED and cancels the session token under the state lock, then
(outside the lock) waits for the worker to leave its current step, releases
the driver through the shared ``TeardownGate`` and finally calls
``on_stopping`` exactly once. Later calls do nothing.

Usage:
    gate = TeardownGate(max_concurrent=2)
    session = NavigationSession(SessionConfig(close_on_complete_async=False), teardown_gate=gate)
    session.add_step(GoToUrlStep("https://example.com"))
    session.add_step(ClickStep("//a[@id='next']"))
    outcome = session.run()
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from types import TracebackType
from typing import NoReturn, Optional

from selenium.common.exceptions import NoSuchWindowException, WebDriverException
from selenium.webdriver.common.by import By

from navsession.browser.driver_factory import ChromeDriverFactory
from navsession.config.config_schema import SessionConfig
from navsession.core.cancellation import CancellationToken
from navsession.core.error_handling import LoggedSuppression, invoke_callback
from navsession.core.exceptions import NavigationCancelled, SessionFatalError, SessionStateError
from navsession.core.protocols import DiagnosticSink, DriverFactory, DriverProtocol, StatusSink, StopCallback
from navsession.core.run_state import RunState
from navsession.core.step import NavigationStep, default_diagnostic_sink, default_status_sink
from navsession.core.suspension import SuspensionCheck
from navsession.core.teardown_gate import TeardownGate
from navsession.observability.metrics_registry import metrics

logger = logging.getLogger(__name__)

FATAL_WINDOW_OPEN_STATUS = "An error happened that will stop the session script. The window will remain open."


@dataclass(frozen=True)
class RunOutcome:
    """How a navigation run ended (fatal errors are raised instead)."""

    session_id: str
    completed: bool
    steps_executed: int
    manually_stopped: bool

    @property
    def cancelled(self) -> bool:
        return not self.completed


class NavigationSession:
    """Runs an ordered list of steps against one browser driver."""

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        *,
        driver_factory: Optional[DriverFactory] = None,
        teardown_gate: Optional[TeardownGate] = None,
        log_diagnostic: Optional[DiagnosticSink] = None,
        report_status: Optional[StatusSink] = None,
        on_stopping: Optional[StopCallback] = None,
        on_suppressed_failure: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self.config = config or SessionConfig()
        self.session_id = uuid.uuid4().hex
        self.cancellation = CancellationToken(scope=f"session:{self.session_id}")
        self.teardown_gate = teardown_gate or TeardownGate()

        self.log_diagnostic_call = log_diagnostic
        self.report_status_call = report_status
        self.on_stopping = on_stopping
        self.on_suppressed_failure = on_suppressed_failure

        self.close_on_complete = self.config.close_on_complete
        self.close_on_complete_async = self.config.close_on_complete_async
        self._timeout_coefficient = self.config.timeout_coefficient
        self._retry_policy = self.config.retry.to_policy()
        self._driver_factory = driver_factory

        self._steps: list[NavigationStep] = []
        self._state_lock = threading.Lock()
        self._run_state = RunState.RUNNING
        self._started = False
        self._acquiring = False
        self._teardown_deferred = False
        self._manually_stopped = False
        self._browser: Optional[DriverProtocol] = None
        self._worker: Optional[threading.Thread] = None
        self._steps_executed = 0
        self._stopped_event = threading.Event()

        self.suppressed_failures: list[BaseException] = []

    # --- state ------------------------------------------------------------

    @property
    def run_state(self) -> RunState:
        with self._state_lock:
            return self._run_state

    @property
    def manually_stopped(self) -> bool:
        return self._manually_stopped

    @property
    def browser(self) -> Optional[DriverProtocol]:
        return self._browser

    @property
    def steps(self) -> tuple[NavigationStep, ...]:
        return tuple(self._steps)

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def timeout_coefficient(self) -> float:
        return self._timeout_coefficient

    @timeout_coefficient.setter
    def timeout_coefficient(self, value: float) -> None:
        if value < 0:
            raise ValueError("timeout_coefficient must be >= 0")
        self._timeout_coefficient = value

    # --- sinks ------------------------------------------------------------

    def log_diagnostic(self, message: str) -> None:
        invoke_callback(self.log_diagnostic_call or default_diagnostic_sink, message, description="diagnostic sink")

    def report_status(self, status: str) -> None:
        self.log_diagnostic(f"Status Change: {status}")
        invoke_callback(self.report_status_call or default_status_sink, status, description="status sink")

    # --- steps ------------------------------------------------------------

    def _ensure_mutable(self) -> None:
        if self._started or self._run_state is RunState.STOPPED:
            raise SessionStateError("Steps cannot be changed once navigation has begun", session_id=self.session_id)

    def add_step(self, step: NavigationStep) -> None:
        with self._state_lock:
            self._ensure_mutable()
            self._steps.append(step)

    def add_step_after(self, existing: NavigationStep, step: NavigationStep) -> None:
        """Insert ``step`` right after ``existing`` (matched by identity)."""
        with self._state_lock:
            self._ensure_mutable()
            for index, candidate in enumerate(self._steps):
                if candidate is existing:
                    self._steps.insert(index + 1, step)
                    return
        raise ValueError(f"{existing!r} is not part of this session")

    # --- running ----------------------------------------------------------

    def begin_navigation(self) -> Future[RunOutcome]:
        """Acquire the driver and start executing steps on a worker thread.

        Driver acquisition errors propagate unchanged and leave the session
        unstarted. The returned future resolves to a ``RunOutcome`` or raises
        ``SessionFatalError``.
        """
        with self._state_lock:
            if self._run_state is RunState.STOPPED:
                raise SessionStateError("Session has been stopped", session_id=self.session_id)
            if self._started:
                raise SessionStateError("Navigation already started", session_id=self.session_id)
            self._started = True
            self._acquiring = True

        self.report_status("Beginning Navigation Session")
        try:
            driver = self._acquire_driver()
        except BaseException:
            with self._state_lock:
                self._acquiring = False
                self._started = False
                stopped_meanwhile = self._run_state is RunState.STOPPED
            if stopped_meanwhile:
                self._finish_stop()
            raise

        future: Future[RunOutcome] = Future()
        future.set_running_or_notify_cancel()

        with self._state_lock:
            self._acquiring = False
            self._browser = driver
            stopped_meanwhile = self._run_state is RunState.STOPPED
            if not stopped_meanwhile:
                self._run_state = RunState.RUNNING

        if stopped_meanwhile:
            # stop() ran during the launch and left the teardown to this thread
            self._finish_stop()
            future.set_result(self._outcome(completed=False))
            return future

        self._worker = threading.Thread(
            target=self._run_worker,
            args=(future,),
            name=f"nav-{self.session_id[:8]}",
            daemon=True,
        )
        self._worker.start()
        return future

    def run(self, timeout: Optional[float] = None) -> RunOutcome:
        """Begin navigation and block until the steps finish."""
        return self.begin_navigation().result(timeout)

    def _acquire_driver(self) -> DriverProtocol:
        factory = self._driver_factory or ChromeDriverFactory(self.config.browser).create
        driver = factory()
        logger.debug(f"Session {self.session_id}: driver acquired ({type(driver).__name__})")
        return driver

    def _run_worker(self, future: Future[RunOutcome]) -> None:
        try:
            outcome = self._navigate()
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(outcome)

    def _wire(self, step: NavigationStep) -> None:
        step.browser = self._browser
        step.log_diagnostic = self.log_diagnostic
        step.report_status = self.report_status
        step.timeout_coefficient = self._timeout_coefficient
        step.retry_policy = self._retry_policy
        step.pause_poll_interval = self.config.pause_poll_interval

    def _navigate(self) -> RunOutcome:
        completed = True
        between_steps = SuspensionCheck(
            self.cancellation,
            lambda: self.run_state,
            self.log_diagnostic,
            poll_interval=self.config.pause_poll_interval,
        )
        for step in self._steps:
            try:
                between_steps.check()
            except NavigationCancelled:
                completed = False
                break

            self.report_status(f"Starting task: {step.description}")
            self._wire(step)
            failure: Optional[BaseException] = None
            cancelled = False
            started = time.perf_counter()
            try:
                step.execute(self.cancellation, self)
            except NavigationCancelled as exc:
                if exc.belongs_to(self.cancellation):
                    cancelled = True
                else:
                    failure = exc
            except Exception as exc:
                failure = exc
            finally:
                metrics().step_duration.observe(time.perf_counter() - started)

            if cancelled:
                metrics().steps.inc("cancelled")
                completed = False
                break

            if failure is not None:
                metrics().steps.inc("failed")
                self._handle_failure(step, failure)
                completed = False
                break

            metrics().steps.inc("succeeded")
            self._steps_executed += 1

        if self.close_on_complete:
            if self.close_on_complete_async:
                self.stop_async()
            else:
                self.stop()

        return self._outcome(completed)

    def _outcome(self, completed: bool) -> RunOutcome:
        return RunOutcome(
            session_id=self.session_id,
            completed=completed,
            steps_executed=self._steps_executed,
            manually_stopped=self._manually_stopped,
        )

    def _record_suppressed_failure(self, step: NavigationStep, failure: BaseException) -> None:
        self.log_diagnostic(f"An error was encountered after the session stopped running: {failure}")
        logger.debug(f"Session {self.session_id}: suppressed failure in '{step.description}'", exc_info=failure)
        self.suppressed_failures.append(failure)
        metrics().suppressed_step_failures.inc()
        invoke_callback(self.on_suppressed_failure, failure, description="suppressed-failure listener")

    def _handle_failure(self, step: NavigationStep, failure: BaseException) -> None:
        """Raise ``SessionFatalError``, or record the failure if the session already stopped."""
        if self.run_state is not RunState.STOPPED:
            if not self.close_on_complete:
                self.report_status(FATAL_WINDOW_OPEN_STATUS)
                self._fail(step, failure)
            self.report_status(f"An error happened in '{step.description}'. Closing the session.")
            if self.stop():
                self._fail(step, failure)
        self._record_suppressed_failure(step, failure)

    def _fail(self, step: NavigationStep, failure: BaseException) -> NoReturn:
        logger.error(f"Session {self.session_id}: step '{step.description}' failed: {failure}")
        raise SessionFatalError(
            f"Step '{step.description}' failed: {failure}",
            session_id=self.session_id,
            step_description=step.description,
        ) from failure

    # --- run-state transitions ---------------------------------------------

    def pause(self) -> bool:
        """RUNNING -> PAUSED. Returns True if the state changed."""
        with self._state_lock:
            if self._run_state is not RunState.RUNNING:
                return False
            self._run_state = RunState.PAUSED
        self.report_status("Paused")
        return True

    def unpause(self) -> bool:
        """PAUSED -> RUNNING. Returns True if the state changed."""
        with self._state_lock:
            if self._run_state is not RunState.PAUSED:
                return False
            self._run_state = RunState.RUNNING
        self.report_status("Unpaused")
        return True

    def _transition_to_stopped(self, manual: bool) -> bool:
        with self._state_lock:
            if self._run_state is RunState.STOPPED:
                return False
            self._run_state = RunState.STOPPED
            self._manually_stopped = manual
            self._teardown_deferred = self._acquiring
            self.cancellation.cancel("manual stop" if manual else "stop")
        metrics().sessions_stopped.inc("manual" if manual else "automatic")
        self.report_status("Stopping")
        return True

    def _await_worker(self) -> None:
        worker = self._worker
        if worker is None or worker is threading.current_thread() or not worker.is_alive():
            return
        worker.join(self.config.worker_join_timeout)
        if worker.is_alive():
            logger.warning(
                f"Session {self.session_id}: worker still busy after "
                f"{self.config.worker_join_timeout:g}s; releasing the driver anyway"
            )

    def _finish_stop(self) -> None:
        try:
            self._await_worker()
            self.teardown_gate.close_with_admission(self)
            self._browser = None
        finally:
            invoke_callback(self.on_stopping, description="on_stopping callback")
            self._stopped_event.set()
            logger.debug(f"Session {self.session_id}: stopped")

    def stop(self, manual: bool = False) -> bool:
        """Stop synchronously. Returns False when the session was already stopped.

        While the driver is still launching, teardown and ``on_stopping`` run
        on the launching thread as soon as the launch returns.
        """
        if not self._transition_to_stopped(manual):
            return False
        if not self._teardown_deferred:
            self._finish_stop()
        return True

    def stop_async(self, manual: bool = False) -> Future[None]:
        """Flip to STOPPED now and release the driver on a background thread."""
        future: Future[None] = Future()
        future.set_running_or_notify_cancel()
        if not self._transition_to_stopped(manual):
            future.set_result(None)
            return future

        def _teardown() -> None:
            try:
                if self._teardown_deferred:
                    self._stopped_event.wait()
                else:
                    self._finish_stop()
            except BaseException as exc:
                future.set_exception(exc)
            else:
                future.set_result(None)

        threading.Thread(target=_teardown, name=f"nav-stop-{self.session_id[:8]}").start()
        return future

    def wait_until_stopped(self, timeout: Optional[float] = None) -> bool:
        """Block until teardown and the stop callback have finished."""
        return self._stopped_event.wait(timeout)

    # --- browser helpers ----------------------------------------------------

    def window_is_open(self) -> bool:
        browser = self._browser
        if browser is None:
            return False
        try:
            browser.find_elements(By.XPATH, "//a")
        except NoSuchWindowException:
            return False
        except WebDriverException as exc:
            if "chrome not reachable" in str(exc).lower():
                return False
            raise
        return True

    def get_current_html(self) -> str:
        browser = self._browser
        return browser.page_source if browser is not None else ""

    def get_screenshot(self) -> Optional[bytes]:
        """Maximize, capture a PNG, then restore the configured window size."""
        browser = self._browser
        if browser is None:
            return None
        browser.maximize_window()
        try:
            return browser.get_screenshot_as_png()
        finally:
            dimensions = self.config.browser.window_dimensions
            if dimensions is not None:
                with LoggedSuppression("Restoring window size after screenshot"):
                    browser.set_window_size(*dimensions)

    def bring_to_front(self) -> None:
        browser = self._browser
        if browser is None:
            raise SessionStateError("No browser to bring to front", session_id=self.session_id)
        browser.switch_to.window(browser.current_window_handle)

    # --- context manager ------------------------------------------------------

    def __enter__(self) -> NavigationSession:
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.stop()
        self.wait_until_stopped(self.config.worker_join_timeout)

    def __repr__(self) -> str:
        return f"NavigationSession(id={self.session_id[:8]}, state={self.run_state.value}, steps={len(self._steps)})"
