"""Ready-made steps for assembling scripts without subclassing."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Optional

from navsession.core.step import DEFAULT_WAIT_SECONDS, NavigationStep


class GoToUrlStep(NavigationStep):
    def __init__(self, url: str, wait_for_page_to_load: bool = True) -> None:
        super().__init__()
        self.url = url
        self.wait_for_page_to_load_after = wait_for_page_to_load

    @property
    def description(self) -> str:
        return f"Go to {self.url}"

    def perform_execute(self) -> None:
        self.go_to_url(self.url, wait_for_page_to_load=self.wait_for_page_to_load_after)


class TypeTextStep(NavigationStep):
    """Type into the element at ``xpath``; ``slow`` types one character at a time."""

    def __init__(
        self,
        xpath: str,
        text: str,
        slow: bool = False,
        confidential: bool = False,
        press_tab: bool = True,
        attempts: Optional[int] = None,
    ) -> None:
        super().__init__()
        self.xpath = xpath
        self.text = text
        self.slow = slow
        self.confidential = confidential
        self.press_tab = press_tab
        self.attempts = attempts

    @property
    def description(self) -> str:
        return f"Type into {self.xpath}"

    def perform_execute(self) -> None:
        if self.slow:
            self.send_keys_slow_by_xpath(
                self.xpath, self.text, confidential=self.confidential, attempts=self.attempts
            )
        elif self.press_tab:
            self.send_keys_by_xpath(self.xpath, self.text, confidential=self.confidential, attempts=self.attempts)
        else:
            self.send_keys_by_xpath_no_tabs(
                self.xpath, self.text, confidential=self.confidential, attempts=self.attempts
            )


class ClickStep(NavigationStep):
    """Click by xpath, or by CSS selector when ``css=True``."""

    def __init__(self, locator: str, css: bool = False, attempts: Optional[int] = None) -> None:
        super().__init__()
        self.locator = locator
        self.css = css
        self.attempts = attempts

    @property
    def description(self) -> str:
        return f"Click {self.locator}"

    def perform_execute(self) -> None:
        if self.css:
            self.click_button_by_selector(self.locator, attempts=self.attempts)
        else:
            self.click_button_by_xpath(self.locator, attempts=self.attempts)


class WaitForElementStep(NavigationStep):
    def __init__(
        self,
        xpaths: Sequence[str],
        delay: float = DEFAULT_WAIT_SECONDS,
        timeout_message: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.xpaths = list(xpaths)
        self.delay = delay
        self.timeout_message = timeout_message
        self.found: Optional[str] = None

    @property
    def description(self) -> str:
        return f"Wait for {' or '.join(self.xpaths)}"

    def perform_execute(self) -> None:
        self.found = self.wait_for_xpaths_to_be_on_screen(
            self.xpaths, delay=self.delay, timeout_message=self.timeout_message
        )


class SleepStep(NavigationStep):
    def __init__(self, milliseconds: float) -> None:
        super().__init__()
        self.milliseconds = milliseconds

    @property
    def description(self) -> str:
        return f"Sleep {self.milliseconds:g} ms"

    def perform_execute(self) -> None:
        self.sleep(self.milliseconds)


class CallableStep(NavigationStep):
    """Wrap ``action(step)`` as a step."""

    def __init__(self, description: str, action: Callable[[NavigationStep], None]) -> None:
        super().__init__()
        self._description = description
        self.action = action

    @property
    def description(self) -> str:
        return self._description

    def perform_execute(self) -> None:
        self.action(self)
