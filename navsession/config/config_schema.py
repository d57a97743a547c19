#!/usr/bin/env python3

"""
Configuration Schema Definitions.

Type-safe configuration schemas for navigation sessions, built from
dataclasses that validate themselves in ``__post_init__``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any, Optional

from navsession.core.exceptions import ConfigValidationError
from navsession.core.retry import InteractionRetryPolicy

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_window_size(value: str) -> tuple[int, int]:
    parts = [part.strip() for part in value.split(",")]
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ConfigValidationError("window_size must be in format 'width,height'", config_section="browser")
    width, height = int(parts[0]), int(parts[1])
    if width <= 0 or height <= 0:
        raise ConfigValidationError("window_size dimensions must be positive", config_section="browser")
    return width, height


@dataclass
class BrowserLaunchConfig:
    """Browser/WebDriver launch configuration schema."""

    # Browser behaviour
    headless: bool = False
    incognito: bool = False
    disable_images: bool = False
    disable_extensions: bool = False
    disable_automation_flags: bool = False
    user_agent: Optional[str] = None
    window_size: Optional[str] = None

    # Proxy ("host:port") and optional credentials
    proxy: Optional[str] = None
    proxy_username: Optional[str] = None
    proxy_password: Optional[str] = None
    proxy_extension_dir: Path = Path("proxy_extension")

    # Persistent profile
    profile_location: Optional[Path] = None

    # Launcher
    use_undetected_driver: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.window_size:
            _parse_window_size(self.window_size)
        if self.proxy:
            host, sep, port = self.proxy.rpartition(":")
            if not sep or not host or not port.isdigit():
                raise ConfigValidationError("proxy must be in format 'host:port'", config_section="browser")
        if self.proxy_username and not self.proxy:
            raise ConfigValidationError("proxy_username requires proxy", config_section="browser")
        if self.profile_location is not None and not isinstance(self.profile_location, Path):
            self.profile_location = Path(self.profile_location)
        if not isinstance(self.proxy_extension_dir, Path):
            self.proxy_extension_dir = Path(self.proxy_extension_dir)

    @property
    def window_dimensions(self) -> Optional[tuple[int, int]]:
        return _parse_window_size(self.window_size) if self.window_size else None

    @property
    def uses_proxy_auth(self) -> bool:
        return bool(self.proxy and self.proxy_username)

    @property
    def proxy_host(self) -> Optional[str]:
        return self.proxy.rpartition(":")[0] if self.proxy else None

    @property
    def proxy_port(self) -> Optional[int]:
        return int(self.proxy.rpartition(":")[2]) if self.proxy else None


@dataclass
class InteractionRetryConfig:
    """Retry settings for element interactions."""

    max_attempts: int = 10
    retry_delay_ms: int = 500

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ConfigValidationError("max_attempts must be non-negative", config_section="retry")
        if self.retry_delay_ms < 0:
            raise ConfigValidationError("retry_delay_ms must be non-negative", config_section="retry")

    def to_policy(self) -> InteractionRetryPolicy:
        return InteractionRetryPolicy(max_attempts=self.max_attempts, retry_delay_ms=self.retry_delay_ms)


@dataclass
class SessionConfig:
    """Per-session behaviour."""

    close_on_complete: bool = True
    close_on_complete_async: bool = True
    timeout_coefficient: float = 1.0
    pause_poll_interval: float = 1.0
    worker_join_timeout: float = 30.0

    browser: BrowserLaunchConfig = field(default_factory=BrowserLaunchConfig)
    retry: InteractionRetryConfig = field(default_factory=InteractionRetryConfig)

    def __post_init__(self) -> None:
        if self.timeout_coefficient < 0:
            raise ConfigValidationError("timeout_coefficient must be >= 0", config_section="session")
        if self.pause_poll_interval <= 0:
            raise ConfigValidationError("pause_poll_interval must be positive", config_section="session")
        if self.worker_join_timeout < 0:
            raise ConfigValidationError("worker_join_timeout must be >= 0", config_section="session")
        if isinstance(self.browser, dict):
            self.browser = BrowserLaunchConfig(**self.browser)
        if isinstance(self.retry, dict):
            self.retry = InteractionRetryConfig(**self.retry)


@dataclass
class TeardownConfig:
    """Teardown gate settings."""

    max_concurrent_teardowns: Optional[int] = None
    poll_interval: float = 1.0

    def __post_init__(self) -> None:
        if self.max_concurrent_teardowns is not None and self.max_concurrent_teardowns <= 0:
            raise ConfigValidationError(
                "max_concurrent_teardowns must be a positive integer or unset", config_section="teardown"
            )
        if self.poll_interval <= 0:
            raise ConfigValidationError("poll_interval must be positive", config_section="teardown")


@dataclass
class LoggingConfig:
    """Logging configuration schema."""

    log_level: str = "INFO"
    log_file: str = "navsession.log"
    log_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self.log_level = self.log_level.upper()
        if self.log_level not in VALID_LOG_LEVELS:
            raise ConfigValidationError(f"log_level must be one of {VALID_LOG_LEVELS}", config_section="logging")
        if self.log_dir is not None and not isinstance(self.log_dir, Path):
            self.log_dir = Path(self.log_dir)


@dataclass
class ObservabilityConfig:
    """Prometheus metrics settings."""

    enable_prometheus_metrics: bool = False
    metrics_namespace: str = "navsession"

    def __post_init__(self) -> None:
        if not self.metrics_namespace.replace("_", "").isalnum():
            raise ConfigValidationError(
                "metrics_namespace may only contain letters, digits and underscores",
                config_section="observability",
            )


@dataclass
class ConfigSchema:
    """Main configuration schema that combines all sub-schemas."""

    environment: str = "development"

    session: SessionConfig = field(default_factory=SessionConfig)
    teardown: TeardownConfig = field(default_factory=TeardownConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a nested dictionary."""
        return _dataclass_to_dict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConfigSchema:
        """Create configuration from dictionary."""
        session_data = dict(data.get("session", {}))
        browser_data = session_data.pop("browser", {})
        retry_data = session_data.pop("retry", {})

        return cls(
            environment=data.get("environment", "development"),
            session=SessionConfig(
                browser=BrowserLaunchConfig(**browser_data),
                retry=InteractionRetryConfig(**retry_data),
                **session_data,
            ),
            teardown=TeardownConfig(**data.get("teardown", {})),
            logging=LoggingConfig(**data.get("logging", {})),
            observability=ObservabilityConfig(**data.get("observability", {})),
        )

    def validate(self) -> list[str]:
        """Cross-section checks that individual dataclasses cannot make."""
        errors: list[str] = []
        browser = self.session.browser
        if browser.uses_proxy_auth and browser.headless:
            logger.warning("headless is ignored when proxy credentials are set")
        if browser.uses_proxy_auth and not browser.proxy_password:
            errors.append("proxy_username is set without proxy_password")
        return errors


def _dataclass_to_dict(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _dataclass_to_dict(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Path):
        return str(value)
    return value


__all__ = [
    "BrowserLaunchConfig",
    "ConfigSchema",
    "ConfigValidationError",
    "InteractionRetryConfig",
    "LoggingConfig",
    "ObservabilityConfig",
    "SessionConfig",
    "TeardownConfig",
]
