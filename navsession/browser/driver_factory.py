#!/usr/bin/env python3

"""
Chrome driver acquisition.

``ChromeDriverFactory`` turns a ``BrowserLaunchConfig`` into Chrome options
and launches either a plain Selenium Chrome driver or an
undetected-chromedriver instance. Launches are serialized by a process-wide
lock because concurrent chromedriver start-ups can deadlock. Launch failures
are classified into ``ResourceAcquisitionError`` sub-kinds; nothing is
retried here.
"""

from __future__ import annotations

import importlib
import logging
import threading
import time
from pathlib import Path
from typing import Any, Optional

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.common.proxy import Proxy, ProxyType
from selenium.webdriver.remote.webdriver import WebDriver

from navsession.browser.proxy_extension import clear_old_proxy_extensions, package_proxy_extension
from navsession.config.config_schema import BrowserLaunchConfig
from navsession.core.exceptions import (
    BrowserFailedToStartError,
    ProfileCorruptedError,
    ProfileDirectoryLockedError,
    ResourceAcquisitionError,
)

logger = logging.getLogger(__name__)

_LAUNCH_LOCK = threading.Lock()

IMAGES_BLOCKED_PREFS = {"profile.default_content_setting_values.images": 2}


def classify_launch_failure(
    error: WebDriverException, profile_location: Optional[Path] = None
) -> Optional[ResourceAcquisitionError]:
    """Map a launch ``WebDriverException`` to a resource-acquisition error, or None."""
    message = str(error.msg if getattr(error, "msg", None) else error)
    lowered = message.lower()
    kwargs: dict[str, Any] = {"original_exception": error, "profile_location": profile_location}

    if "user data directory is already in use" in lowered:
        return ProfileDirectoryLockedError(f"Profile directory is locked: {profile_location}", **kwargs)
    if "failed to start: crashed" in lowered or "chrome failed to start" in lowered:
        return BrowserFailedToStartError(f"Chrome failed to start: {message.splitlines()[0]}", **kwargs)
    if "cannot connect to chrome" in lowered:
        return BrowserFailedToStartError(f"Could not connect to Chrome: {message.splitlines()[0]}", **kwargs)
    if "cannot parse internal json template" in lowered and profile_location is not None:
        return ProfileCorruptedError(f"Chrome profile appears corrupted: {profile_location}", **kwargs)
    return None


class ChromeDriverFactory:
    """Builds Chrome options from configuration and launches the driver."""

    def __init__(self, config: BrowserLaunchConfig) -> None:
        self.config = config

    def _new_options(self) -> ChromeOptions:
        if self.config.use_undetected_driver:
            return self._undetected_module().ChromeOptions()
        return ChromeOptions()

    @staticmethod
    def _undetected_module() -> Any:
        return importlib.import_module("undetected_chromedriver")

    def build_options(self) -> ChromeOptions:
        """Translate the launch configuration into Chrome options."""
        config = self.config
        options = self._new_options()

        options.add_argument("--ignore-certificate-errors")
        options.add_argument("--disable-geolocation")

        if config.incognito and not config.uses_proxy_auth:
            options.add_argument("--incognito")

        if config.proxy:
            proxy = Proxy()
            proxy.proxy_type = ProxyType.MANUAL
            proxy.http_proxy = config.proxy
            proxy.ssl_proxy = config.proxy
            options.proxy = proxy
            if config.uses_proxy_auth:
                self._add_proxy_extension(options)

        if config.user_agent:
            options.add_argument(f"--user-agent={config.user_agent}")

        if config.disable_images:
            options.add_experimental_option("prefs", dict(IMAGES_BLOCKED_PREFS))

        # The auth extension needs a headed browser with extensions enabled.
        if not config.uses_proxy_auth:
            if config.headless:
                options.add_argument("--headless=new")
            if config.disable_automation_flags and not config.use_undetected_driver:
                options.add_experimental_option("excludeSwitches", ["enable-automation"])
            if config.disable_extensions:
                options.add_argument("--disable-extensions")

        options.page_load_strategy = "none"

        dimensions = config.window_dimensions
        if dimensions is not None:
            options.add_argument(f"--window-size={dimensions[0]},{dimensions[1]}")

        if config.profile_location is not None:
            profile_dir = config.profile_location.resolve()
            profile_dir.mkdir(parents=True, exist_ok=True)
            options.add_argument(f"--user-data-dir={profile_dir}")

        return options

    def _add_proxy_extension(self, options: ChromeOptions) -> None:
        config = self.config
        assert config.proxy_host is not None and config.proxy_port is not None
        clear_old_proxy_extensions(config.proxy_extension_dir)
        zip_path = package_proxy_extension(
            config.proxy_extension_dir,
            config.proxy_host,
            config.proxy_port,
            config.proxy_username or "",
            config.proxy_password or "",
        )
        options.add_extension(str(zip_path))

    def create(self) -> WebDriver:
        """Launch a driver; raise a ``ResourceAcquisitionError`` sub-kind on known failures."""
        options = self.build_options()
        launcher = "undetected_chromedriver" if self.config.use_undetected_driver else "selenium"

        with _LAUNCH_LOCK:
            logger.debug(f"Launching Chrome via {launcher}...")
            start_time = time.time()
            try:
                driver = self._launch(options)
            except WebDriverException as e:
                classified = classify_launch_failure(e, self.config.profile_location)
                if classified is None:
                    logger.error(f"Chrome launch failed: {str(e).splitlines()[0] if str(e) else e!r}")
                    raise
                logger.error(f"{type(classified).__name__}: {classified.message}")
                raise classified from e

        logger.debug(f"Chrome started in {time.time() - start_time:.2f}s")
        return driver

    def _launch(self, options: ChromeOptions) -> WebDriver:
        if self.config.use_undetected_driver:
            uc = self._undetected_module()
            return uc.Chrome(options=options, use_subprocess=False, suppress_welcome=True)
        return webdriver.Chrome(options=options)

    __call__ = create
