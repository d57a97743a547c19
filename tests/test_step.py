#!/usr/bin/env python3
"""
Tests for NavigationStep primitives.

Steps are executed directly against a MockDriver with a fresh cancellation
token, outside any session, so each primitive can be checked in isolation.
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Callable
from datetime import timedelta
from typing import Any, Optional
from unittest.mock import MagicMock

from selenium.common.exceptions import ElementNotInteractableException
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.remote.command import Command
from selenium.webdriver.remote.webelement import WebElement

from navsession.core.builtin_steps import CallableStep, SleepStep, WaitForElementStep
from navsession.core.cancellation import CancellationToken
from navsession.core.exceptions import NavigationCancelled, SessionStateError, WaitTimeoutError
from navsession.core.pausable_wait import PollOutcome
from navsession.core.protocols import DriverProtocol, ElementProtocol, WindowControlProtocol
from navsession.core.retry import InteractionRetryPolicy
from navsession.core.step import NavigationStep
from navsession.testing.protocol_mocks import MockDriver, MockElement
from navsession.testing.test_framework import TestSuite
from navsession.testing.test_utilities import create_standard_test_runner, wait_for


def _make_step(
    action: Callable[[NavigationStep], Any],
    driver: MockDriver,
    diagnostics: Optional[list[str]] = None,
    coefficient: float = 0.0,
) -> CallableStep:
    step = CallableStep("test step", action)
    step.browser = driver
    step.timeout_coefficient = coefficient
    step.retry_policy = InteractionRetryPolicy(max_attempts=10, retry_delay_ms=0)
    step.wait_poll_interval = 0.01
    step.pause_poll_interval = 0.01
    if diagnostics is not None:
        step.log_diagnostic = diagnostics.append
    return step


def _run(
    action: Callable[[NavigationStep], Any],
    driver: MockDriver,
    diagnostics: Optional[list[str]] = None,
    coefficient: float = 0.0,
    token: Optional[CancellationToken] = None,
) -> None:
    _make_step(action, driver, diagnostics, coefficient).execute(token or CancellationToken())


def test_send_keys_types_then_tabs() -> None:
    driver = MockDriver()
    field = driver.register("//input[@name='user']", MockElement("user"))
    _run(lambda s: s.send_keys_by_xpath("//input[@name='user']", "alice"), driver)
    assert field.sent_keys == ["alice", Keys.TAB]


def test_send_keys_no_tabs() -> None:
    driver = MockDriver()
    field = driver.register("//input", MockElement())
    _run(lambda s: s.send_keys_by_xpath_no_tabs("//input", "plain"), driver)
    assert field.sent_keys == ["plain"]


def test_confidential_keys_are_redacted() -> None:
    driver = MockDriver()
    field = driver.register("//input[@name='pass']", MockElement("pass"))
    diagnostics: list[str] = []
    _run(lambda s: s.send_keys_by_xpath("//input[@name='pass']", "hunter2", confidential=True), driver, diagnostics)

    assert field.typed_text.startswith("hunter2")
    assert any("Keys: CONFIDENTIAL" in line for line in diagnostics)
    assert not any("hunter2" in line for line in diagnostics)


def test_slow_typing_sends_one_character_at_a_time() -> None:
    driver = MockDriver()
    field = driver.register("//input", MockElement())
    _run(lambda s: s.send_keys_slow_by_xpath("//input", "abc"), driver)
    assert field.sent_keys == ["a", "b", "c"]


def test_click_retries_transient_failures() -> None:
    driver = MockDriver()
    button = driver.register("//button", MockElement("button", transient_failures=2))
    diagnostics: list[str] = []
    _run(lambda s: s.click_button_by_xpath("//button"), driver, diagnostics)

    assert button.clicks == 1
    assert button.interactions == 3
    assert sum("Retrying." in line for line in diagnostics) == 2


def test_click_by_css_selector() -> None:
    driver = MockDriver()
    button = driver.register("button.submit", MockElement(), by=By.CSS_SELECTOR)
    _run(lambda s: s.click_button_by_selector("button.submit"), driver)
    assert button.clicks == 1


def test_click_gives_up_after_attempts() -> None:
    driver = MockDriver()
    button = driver.register("//button", MockElement(transient_failures=100))
    try:
        _run(lambda s: s.click_button_by_xpath("//button", attempts=2), driver)
    except ElementNotInteractableException:
        pass
    else:
        raise AssertionError("expected ElementNotInteractableException")
    assert button.interactions == 3
    assert button.clicks == 0


def test_missing_element_is_retried_until_present() -> None:
    driver = MockDriver()
    driver.register("//late", MockElement(), hidden_for=2)
    _run(lambda s: s.click_button_by_xpath("//late"), driver)
    assert driver.events.count("find://late") == 3


def test_go_to_url_waits_for_ready_state() -> None:
    driver = MockDriver()
    _run(lambda s: s.go_to_url("https://example.com"), driver, coefficient=1.0)
    assert driver.visited == ["https://example.com"]
    assert any("document.readyState" in script for script, _ in driver.scripts)


def test_page_that_never_loads_times_out() -> None:
    driver = MockDriver()
    driver.ready_state = "loading"
    try:
        _run(lambda s: s.go_to_url("https://slow.example.com"), driver, coefficient=0.01)
    except WaitTimeoutError:
        pass
    else:
        raise AssertionError("expected WaitTimeoutError")


def test_wait_timeout_is_scaled_by_coefficient() -> None:
    driver = MockDriver()
    try:
        _run(lambda s: s.wait_until(lambda _d: False, "never", delay=0.05), driver, coefficient=2.0)
    except WaitTimeoutError as exc:
        assert exc.timeout_seconds == 0.1
    else:
        raise AssertionError("expected WaitTimeoutError")


def test_wait_timeout_message_wraps_raw_timeout() -> None:
    driver = MockDriver()
    try:
        _run(
            lambda s: s.wait_until(lambda _d: False, "never", delay=0.05, timeout_message="Login form never appeared"),
            driver,
            coefficient=1.0,
        )
    except WaitTimeoutError as exc:
        assert str(exc) == "Login form never appeared"
        assert isinstance(exc.__cause__, WaitTimeoutError)
    else:
        raise AssertionError("expected WaitTimeoutError")


def test_wait_until_reports_abort() -> None:
    driver = MockDriver()
    diagnostics: list[str] = []
    outcomes: list[PollOutcome] = []
    _run(lambda s: outcomes.append(s.wait_until(lambda _d: PollOutcome.ABORT, "abortable")), driver, diagnostics, 1.0)
    assert outcomes == [PollOutcome.ABORT]
    assert "Wait aborted." in diagnostics


def test_wait_for_xpaths_returns_the_one_found() -> None:
    driver = MockDriver()
    driver.register("//div[@id='b']", MockElement(), hidden_for=2)
    found: list[Optional[str]] = []
    diagnostics: list[str] = []
    _run(
        lambda s: found.append(s.wait_for_xpaths_to_be_on_screen(["//div[@id='a']", "//div[@id='b']"], delay=1.0)),
        driver,
        diagnostics,
        coefficient=1.0,
    )
    assert found == ["//div[@id='b']"]
    assert diagnostics.count("No xpaths were found on screen.") == 2
    assert "Found //div[@id='b']" in diagnostics


def test_remove_elements_by_class_name() -> None:
    driver = MockDriver()
    driver.script_result = 2
    removed: list[int] = []
    _run(lambda s: removed.append(s.remove_element_from_screen_by_class_name("cookie-banner")), driver)
    assert removed == [2]
    assert driver.scripts[-1][1] == ("cookie-banner",)


def test_sleep_is_scaled_by_coefficient() -> None:
    driver = MockDriver()
    diagnostics: list[str] = []
    _run(lambda s: s.sleep(100), driver, diagnostics, coefficient=0.5)
    assert "Sleeping 50 ms" in diagnostics


def test_sleep_wakes_on_cancellation() -> None:
    driver = MockDriver()
    token = CancellationToken()
    threading.Timer(0.05, token.cancel).start()
    try:
        _run(lambda s: s.sleep(60_000), driver, coefficient=1.0, token=token)
    except NavigationCancelled as exc:
        assert exc.belongs_to(token)
    else:
        raise AssertionError("expected NavigationCancelled")


def test_cancelled_token_blocks_every_primitive() -> None:
    driver = MockDriver()
    button = driver.register("//button", MockElement())
    token = CancellationToken()
    token.cancel()
    try:
        _run(lambda s: s.click_button_by_xpath("//button"), driver, token=token)
    except NavigationCancelled:
        pass
    else:
        raise AssertionError("expected NavigationCancelled")
    assert button.interactions == 0


def test_primitive_outside_execute_is_rejected() -> None:
    step = _make_step(lambda s: None, MockDriver())
    try:
        step.check_pause()
    except SessionStateError:
        return
    raise AssertionError("expected SessionStateError")


def test_step_cannot_execute_concurrently() -> None:
    release = threading.Event()
    step = _make_step(lambda s: release.wait(5.0), MockDriver())
    worker = threading.Thread(target=step.execute, args=(CancellationToken(),), daemon=True)
    worker.start()
    assert wait_for(lambda: step.is_executing, timeout=2.0)

    try:
        step.execute(CancellationToken())
    except SessionStateError:
        pass
    else:
        raise AssertionError("expected SessionStateError")
    finally:
        release.set()
        worker.join(2.0)
    assert not step.is_executing


def test_ctrl_click_opens_new_tab() -> None:
    driver = MockDriver()
    link = MagicMock(spec=WebElement)
    link.id = "link-1"
    driver.register("//a[@id='details']", link)
    _run(lambda s: s.click_element_into_new_tab_by_xpath("//a[@id='details']"), driver)

    assert len(driver.commands) == 1
    command, params = driver.commands[0]
    assert command == Command.W3C_ACTIONS
    assert params["actions"]


def test_element_lookups() -> None:
    driver = MockDriver()
    element = driver.register("//li", MockElement("item"))
    found: list[Any] = []
    _run(lambda s: found.extend([s.get_element_by_xpath("//li"), s.get_elements_by_xpath("//li")]), driver)
    assert found == [element, [element]]


def test_sleep_for_timedelta() -> None:
    diagnostics: list[str] = []
    _run(lambda s: s.sleep_for(timedelta(milliseconds=20)), MockDriver(), diagnostics, coefficient=1.0)
    assert "Sleeping 20 ms" in diagnostics


def test_builtin_wait_and_sleep_steps() -> None:
    driver = MockDriver()
    driver.register("//form", MockElement(), hidden_for=1)
    wait_step = WaitForElementStep(["//form"], delay=1.0)
    sleep_step = SleepStep(30)
    diagnostics: list[str] = []
    for step in (wait_step, sleep_step):
        step.browser = driver
        step.wait_poll_interval = 0.01
        step.timeout_coefficient = 0.5
        step.log_diagnostic = diagnostics.append
        step.execute(CancellationToken())

    assert wait_step.found == "//form"
    assert sleep_step.description == "Sleep 30 ms"
    assert "Sleeping 15 ms" in diagnostics


def test_wait_for_single_xpath_times_out_with_message() -> None:
    try:
        _run(
            lambda s: s.wait_for_xpath_to_be_on_screen("//missing", delay=0.05, timeout_message="Nothing there"),
            MockDriver(),
            coefficient=1.0,
        )
    except WaitTimeoutError as exc:
        assert str(exc) == "Nothing there"
    else:
        raise AssertionError("expected WaitTimeoutError")


def test_mocks_satisfy_driver_protocols() -> None:
    driver = MockDriver()
    assert isinstance(driver, DriverProtocol)
    assert isinstance(driver, WindowControlProtocol)
    assert isinstance(MockElement(), ElementProtocol)


def module_tests() -> bool:
    suite = TestSuite("Navigation Step Primitives", "tests/test_step.py")
    suite.start_suite()

    suite.run_test("Type then TAB", test_send_keys_types_then_tabs)
    suite.run_test("Type without TAB", test_send_keys_no_tabs)
    suite.run_test("Confidential redaction", test_confidential_keys_are_redacted, "Secret never logged")
    suite.run_test("Slow typing", test_slow_typing_sends_one_character_at_a_time)
    suite.run_test("Click retries transient failures", test_click_retries_transient_failures)
    suite.run_test("Click by CSS selector", test_click_by_css_selector)
    suite.run_test("Click gives up", test_click_gives_up_after_attempts, "Last error re-raised")
    suite.run_test("Missing element retried", test_missing_element_is_retried_until_present)
    suite.run_test("Navigate and wait for load", test_go_to_url_waits_for_ready_state)
    suite.run_test("Page never loads", test_page_that_never_loads_times_out)
    suite.run_test("Timeout coefficient scales waits", test_wait_timeout_is_scaled_by_coefficient)
    suite.run_test("Timeout message", test_wait_timeout_message_wraps_raw_timeout)
    suite.run_test("Wait abort", test_wait_until_reports_abort)
    suite.run_test("First of several xpaths", test_wait_for_xpaths_returns_the_one_found)
    suite.run_test("Remove by class name", test_remove_elements_by_class_name)
    suite.run_test("Sleep scaling", test_sleep_is_scaled_by_coefficient)
    suite.run_test("Sleep wakes on cancel", test_sleep_wakes_on_cancellation)
    suite.run_test("Cancelled token", test_cancelled_token_blocks_every_primitive)
    suite.run_test("Primitive outside execute", test_primitive_outside_execute_is_rejected)
    suite.run_test("Concurrent execute rejected", test_step_cannot_execute_concurrently)
    suite.run_test("Ctrl-click into new tab", test_ctrl_click_opens_new_tab, "One W3C actions command sent")
    suite.run_test("Element lookups", test_element_lookups)
    suite.run_test("sleep_for", test_sleep_for_timedelta)
    suite.run_test("Built-in wait and sleep steps", test_builtin_wait_and_sleep_steps)
    suite.run_test("Single xpath timeout", test_wait_for_single_xpath_times_out_with_message)
    suite.run_test("Mocks satisfy protocols", test_mocks_satisfy_driver_protocols)

    return suite.finish_suite()


run_comprehensive_tests = create_standard_test_runner(module_tests)


if __name__ == "__main__":
    success = run_comprehensive_tests()
    sys.exit(0 if success else 1)
