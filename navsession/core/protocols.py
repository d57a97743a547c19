"""
Type protocols for the browser driver surface a session relies on.

A real ``selenium.webdriver.Chrome`` satisfies these structurally; tests use
``navsession.testing.protocol_mocks.MockDriver``.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ElementProtocol(Protocol):
    """A located page element."""

    def send_keys(self, *value: str) -> None:
        ...

    def click(self) -> None:
        ...


@runtime_checkable
class DriverProtocol(Protocol):
    """The subset of Selenium's WebDriver used by steps and sessions."""

    def find_element(self, by: str, value: str | None = None) -> Any:
        """Locate one element; raise NoSuchElementException when absent."""
        ...

    def find_elements(self, by: str, value: str | None = None) -> list[Any]:
        """Locate all matching elements (possibly none)."""
        ...

    def get(self, url: str) -> None:
        ...

    @property
    def page_source(self) -> str:
        ...

    def execute_script(self, script: str, *args: Any) -> Any:
        ...

    def get_screenshot_as_png(self) -> bytes:
        ...

    def close(self) -> None:
        """Close the current window."""
        ...

    def quit(self) -> None:
        """Terminate the driver process."""
        ...


@runtime_checkable
class WindowControlProtocol(Protocol):
    """Window helpers used for screenshots and focus."""

    def maximize_window(self) -> None:
        ...

    def set_window_size(self, width: int, height: int, windowHandle: str = "current") -> None:
        ...

    @property
    def current_window_handle(self) -> str:
        ...


DiagnosticSink = Callable[[str], None]
StatusSink = Callable[[str], None]
StopCallback = Callable[[], None]
DriverFactory = Callable[[], DriverProtocol]
