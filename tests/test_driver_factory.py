#!/usr/bin/env python3
"""
Tests for Chrome driver acquisition.

Covers option building from BrowserLaunchConfig, launch-failure
classification, and the proxy-authentication extension package. No browser
is launched: ``_launch`` is patched wherever ``create()`` is exercised.
"""

from __future__ import annotations

import json
import sys
import tempfile
import zipfile
from pathlib import Path
from unittest.mock import MagicMock, patch

from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions

from navsession.browser.driver_factory import ChromeDriverFactory, classify_launch_failure
from navsession.browser.proxy_extension import (
    BACKGROUND_FILE,
    MANIFEST_FILE,
    build_manifest,
    clear_old_proxy_extensions,
    package_proxy_extension,
)
from navsession.config.config_schema import BrowserLaunchConfig
from navsession.core.exceptions import (
    BrowserFailedToStartError,
    ProfileCorruptedError,
    ProfileDirectoryLockedError,
)
from navsession.testing.test_framework import TestSuite
from navsession.testing.test_utilities import create_standard_test_runner


def _options(**config: object) -> ChromeOptions:
    return ChromeDriverFactory(BrowserLaunchConfig(**config)).build_options()


def test_baseline_options() -> None:
    options = _options()
    assert "--ignore-certificate-errors" in options.arguments
    assert "--disable-geolocation" in options.arguments
    assert options.page_load_strategy == "none"
    assert "--incognito" not in options.arguments
    assert not any(arg.startswith("--headless") for arg in options.arguments)


def test_behaviour_flags_map_to_arguments() -> None:
    options = _options(
        headless=True,
        incognito=True,
        disable_extensions=True,
        disable_automation_flags=True,
        disable_images=True,
        user_agent="Mozilla/5.0 (Test)",
        window_size="1280,720",
    )
    args = options.arguments
    assert "--headless=new" in args
    assert "--incognito" in args
    assert "--disable-extensions" in args
    assert "--user-agent=Mozilla/5.0 (Test)" in args
    assert "--window-size=1280,720" in args
    assert options.experimental_options["excludeSwitches"] == ["enable-automation"]
    assert options.experimental_options["prefs"] == {"profile.default_content_setting_values.images": 2}


def test_proxy_without_credentials_sets_manual_proxy() -> None:
    options = _options(proxy="10.0.0.1:8080", incognito=True)
    assert options.proxy.http_proxy == "10.0.0.1:8080"
    assert options.proxy.ssl_proxy == "10.0.0.1:8080"
    assert "--incognito" in options.arguments
    assert options.extensions == []


def test_proxy_credentials_add_extension_and_drop_incompatible_flags() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        options = _options(
            proxy="10.0.0.1:8080",
            proxy_username="user",
            proxy_password="secret",
            proxy_extension_dir=Path(tmp),
            incognito=True,
            headless=True,
            disable_extensions=True,
        )
        assert len(options.extensions) == 1
        assert len(list(Path(tmp).glob("extension*.zip"))) == 1

    args = options.arguments
    assert "--incognito" not in args
    assert "--disable-extensions" not in args
    assert not any(arg.startswith("--headless") for arg in args)


def test_profile_location_is_created_and_passed() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        profile = Path(tmp) / "profiles" / "alice"
        options = _options(profile_location=profile)
        assert profile.is_dir()
        assert f"--user-data-dir={profile.resolve()}" in options.arguments


def test_undetected_driver_keeps_automation_switches() -> None:
    fake_uc = MagicMock()
    fake_uc.ChromeOptions = ChromeOptions
    with patch.object(ChromeDriverFactory, "_undetected_module", return_value=fake_uc):
        options = _options(use_undetected_driver=True, disable_automation_flags=True)
    assert "excludeSwitches" not in options.experimental_options


def test_classify_launch_failures() -> None:
    profile = Path("/tmp/profile")
    locked = classify_launch_failure(
        WebDriverException("unknown error: user data directory is already in use, please specify a unique value"),
        profile,
    )
    assert isinstance(locked, ProfileDirectoryLockedError)
    assert locked.profile_location == profile
    assert locked.recovery_hint

    crashed = classify_launch_failure(WebDriverException("unknown error: Chrome failed to start: crashed."))
    assert isinstance(crashed, BrowserFailedToStartError)

    unreachable = classify_launch_failure(WebDriverException("cannot connect to chrome at 127.0.0.1:9222"))
    assert isinstance(unreachable, BrowserFailedToStartError)

    corrupted_error = WebDriverException("Cannot parse internal JSON template")
    corrupted = classify_launch_failure(corrupted_error, profile)
    assert isinstance(corrupted, ProfileCorruptedError)
    assert corrupted.original_exception is corrupted_error
    assert classify_launch_failure(corrupted_error, None) is None

    assert classify_launch_failure(WebDriverException("session not created: version mismatch")) is None


def test_create_raises_classified_error() -> None:
    launch_error = WebDriverException("user data directory is already in use")
    factory = ChromeDriverFactory(BrowserLaunchConfig())
    with patch.object(ChromeDriverFactory, "_launch", side_effect=launch_error):
        try:
            factory.create()
        except ProfileDirectoryLockedError as exc:
            assert exc.__cause__ is launch_error
        else:
            raise AssertionError("expected ProfileDirectoryLockedError")


def test_create_reraises_unclassified_error() -> None:
    launch_error = WebDriverException("session not created")
    with patch.object(ChromeDriverFactory, "_launch", side_effect=launch_error):
        try:
            ChromeDriverFactory(BrowserLaunchConfig())()
        except WebDriverException as exc:
            assert exc is launch_error
        else:
            raise AssertionError("expected WebDriverException")


def test_create_returns_launched_driver() -> None:
    driver = object()
    with patch.object(ChromeDriverFactory, "_launch", return_value=driver) as launch:
        assert ChromeDriverFactory(BrowserLaunchConfig())() is driver
    assert isinstance(launch.call_args.args[0], ChromeOptions)


def test_proxy_extension_package_contents() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        zip_path = package_proxy_extension(Path(tmp), "proxy.example.com", 3128, "bob", 'pa"ss')
        assert zip_path.name.startswith("extension") and zip_path.suffix == ".zip"
        assert [p for p in Path(tmp).iterdir() if p.is_dir()] == []

        with zipfile.ZipFile(zip_path) as archive:
            assert sorted(archive.namelist()) == sorted([MANIFEST_FILE, BACKGROUND_FILE])
            manifest = json.loads(archive.read(MANIFEST_FILE))
            background = archive.read(BACKGROUND_FILE).decode("utf-8")

    assert manifest == build_manifest()
    assert manifest["background"] == {"service_worker": BACKGROUND_FILE}
    assert '"proxy.example.com"' in background
    assert "port: 3128" in background
    assert '"bob"' in background
    assert '"pa\\"ss"' in background


def test_old_extensions_cleared_once_per_process() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        (root / "leftover").mkdir()
        (root / "extensionabc.zip").write_bytes(b"zip")
        (root / "notes.txt").write_text("keep", encoding="utf-8")

        assert clear_old_proxy_extensions(root) == 2
        assert sorted(p.name for p in root.iterdir()) == ["notes.txt"]

        (root / "extensiondef.zip").write_bytes(b"zip")
        assert clear_old_proxy_extensions(root) == 0
        assert clear_old_proxy_extensions(root, force=True) == 1


def module_tests() -> bool:
    suite = TestSuite("Chrome Driver Factory", "tests/test_driver_factory.py")
    suite.start_suite()

    suite.run_test("Baseline options", test_baseline_options)
    suite.run_test("Behaviour flags", test_behaviour_flags_map_to_arguments)
    suite.run_test("Proxy without credentials", test_proxy_without_credentials_sets_manual_proxy)
    suite.run_test(
        "Proxy with credentials",
        test_proxy_credentials_add_extension_and_drop_incompatible_flags,
        "Auth extension added; incognito, headless and --disable-extensions dropped",
    )
    suite.run_test("Profile directory", test_profile_location_is_created_and_passed)
    suite.run_test("undetected-chromedriver options", test_undetected_driver_keeps_automation_switches)
    suite.run_test("Launch failure classification", test_classify_launch_failures)
    suite.run_test("Classified launch error", test_create_raises_classified_error)
    suite.run_test("Unclassified launch error", test_create_reraises_unclassified_error)
    suite.run_test("Successful launch", test_create_returns_launched_driver)
    suite.run_test("Proxy extension package", test_proxy_extension_package_contents)
    suite.run_test("Old extensions cleared", test_old_extensions_cleared_once_per_process)

    return suite.finish_suite()


run_comprehensive_tests = create_standard_test_runner(module_tests)


if __name__ == "__main__":
    success = run_comprehensive_tests()
    sys.exit(0 if success else 1)
