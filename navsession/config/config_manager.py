#!/usr/bin/env python3

"""
Configuration Manager.

Loads navigation configuration from three layers (later layers win):

1. Schema defaults
2. An optional JSON configuration file
3. ``NAV_*`` environment variables (a ``.env`` file is loaded first via
   python-dotenv unless ``CONFIG_SKIP_DOTENV`` is truthy)
"""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

from dotenv import load_dotenv

from navsession.config.config_schema import (
    BrowserLaunchConfig,
    ConfigSchema,
    LoggingConfig,
    ObservabilityConfig,
    SessionConfig,
    TeardownConfig,
)
from navsession.core.exceptions import ConfigValidationError
from navsession.core.logging_config import setup_logging
from navsession.observability.metrics_registry import configure_metrics

logger = logging.getLogger(__name__)

_TRUTHY = {"true", "1", "yes", "on"}


class _ConfigManagerSingleton:
    """Container class for singleton instance to avoid global statement."""

    instance: Optional[ConfigManager] = None


def get_config_manager(
    config_file: Optional[Union[str, Path]] = None,
    force_new: bool = False,
) -> ConfigManager:
    """
    Get the shared ConfigManager instance.

    Args:
        config_file: Optional configuration file path (only used on first call)
        force_new: If True, create a new instance (for testing only)
    """
    if force_new or _ConfigManagerSingleton.instance is None:
        _ConfigManagerSingleton.instance = ConfigManager(config_file=config_file)
    return _ConfigManagerSingleton.instance


class ConfigManager:
    """
    Configuration manager with type-safe schemas and validation.

    Usage:
        from navsession.config.config_manager import get_config_manager
        config = get_config_manager().get_config()
        session = NavigationSession(config.session)
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None, auto_load: bool = True) -> None:
        skip_dotenv = os.getenv("CONFIG_SKIP_DOTENV", "").strip().lower()
        if skip_dotenv not in _TRUTHY:
            load_dotenv()

        self.config_file = Path(config_file) if config_file else None
        self._config_cache: Optional[ConfigSchema] = None

        if auto_load:
            self.load_config()

    def load_config(self) -> ConfigSchema:
        """
        Load and validate configuration from every source.

        Raises:
            ConfigValidationError: If configuration validation fails
        """
        config_data = ConfigSchema().to_dict()

        if self.config_file and self.config_file.exists():
            config_data = self._merge_configs(config_data, self._load_config_file())

        config_data = self._merge_configs(config_data, self._load_environment_variables())

        try:
            config = ConfigSchema.from_dict(config_data)
        except (TypeError, ValueError, ConfigValidationError) as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigValidationError(f"Configuration loading failed: {e}") from e

        validation_errors = config.validate()
        if validation_errors:
            raise ConfigValidationError(f"Configuration validation failed: {validation_errors}")

        configure_metrics(config.observability)

        self._config_cache = config
        logger.debug(f"Configuration loaded for environment: {config.environment}")
        return config

    def get_config(self) -> ConfigSchema:
        if self._config_cache is None:
            return self.load_config()
        return self._config_cache

    def reload_config(self) -> ConfigSchema:
        self._config_cache = None
        return self.load_config()

    def get_session_config(self) -> SessionConfig:
        return self.get_config().session

    def get_browser_config(self) -> BrowserLaunchConfig:
        return self.get_config().session.browser

    def get_teardown_config(self) -> TeardownConfig:
        return self.get_config().teardown

    def get_logging_config(self) -> LoggingConfig:
        return self.get_config().logging

    def configure_logging(self) -> logging.Logger:
        """Set up the ``navsession`` logger from the ``logging`` section."""
        logging_config = self.get_logging_config()
        return setup_logging(
            log_file=logging_config.log_file,
            log_level=logging_config.log_level,
            log_dir=logging_config.log_dir,
        )

    def get_observability_config(self) -> ObservabilityConfig:
        return self.get_config().observability

    def _load_config_file(self) -> dict[str, Any]:
        """Load configuration from a JSON file."""
        if not self.config_file or not self.config_file.exists():
            return {}

        suffix = self.config_file.suffix.lower()
        if suffix != ".json":
            logger.warning(f"Unsupported config file format: {suffix}")
            return {}

        try:
            with self.config_file.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigValidationError(f"Failed to read config file {self.config_file}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigValidationError(f"Config file {self.config_file} must contain a JSON object")
        return data

    def _load_environment_variables(self) -> dict[str, Any]:
        """Load configuration from environment variables."""
        config: dict[str, Any] = {}

        environment = os.getenv("ENVIRONMENT")
        if environment:
            config["environment"] = environment

        self._load_session_config_from_env(config)
        self._load_browser_config_from_env(config)
        self._load_teardown_config_from_env(config)
        self._load_logging_config_from_env(config)
        self._load_observability_config_from_env(config)
        return config

    def _load_session_config_from_env(self, config: dict[str, Any]) -> None:
        session = config.setdefault("session", {})
        self._set_bool(session, "close_on_complete", "NAV_CLOSE_ON_COMPLETE")
        self._set_bool(session, "close_on_complete_async", "NAV_CLOSE_ON_COMPLETE_ASYNC")
        self._set_float(session, "timeout_coefficient", "NAV_TIMEOUT_COEFFICIENT")
        self._set_float(session, "pause_poll_interval", "NAV_PAUSE_POLL_INTERVAL")
        self._set_float(session, "worker_join_timeout", "NAV_WORKER_JOIN_TIMEOUT")

        retry: dict[str, Any] = {}
        self._set_int(retry, "max_attempts", "NAV_INTERACTION_MAX_ATTEMPTS")
        self._set_int(retry, "retry_delay_ms", "NAV_INTERACTION_RETRY_DELAY_MS")
        if retry:
            session["retry"] = retry

    def _load_browser_config_from_env(self, config: dict[str, Any]) -> None:
        browser: dict[str, Any] = {}
        self._set_bool(browser, "headless", "NAV_HEADLESS")
        self._set_bool(browser, "incognito", "NAV_INCOGNITO")
        self._set_bool(browser, "disable_images", "NAV_DISABLE_IMAGES")
        self._set_bool(browser, "disable_extensions", "NAV_DISABLE_EXTENSIONS")
        self._set_bool(browser, "disable_automation_flags", "NAV_DISABLE_AUTOMATION_FLAGS")
        self._set_bool(browser, "use_undetected_driver", "NAV_USE_UNDETECTED_DRIVER")
        self._set_string(browser, "user_agent", "NAV_USER_AGENT")
        self._set_string(browser, "window_size", "NAV_WINDOW_SIZE")
        self._set_string(browser, "proxy", "NAV_PROXY")
        self._set_string(browser, "proxy_username", "NAV_PROXY_USERNAME")
        self._set_string(browser, "proxy_password", "NAV_PROXY_PASSWORD")
        self._set_string(browser, "profile_location", "NAV_PROFILE_LOCATION")
        self._set_string(browser, "proxy_extension_dir", "NAV_PROXY_EXTENSION_DIR")
        if browser:
            config.setdefault("session", {})["browser"] = browser

    def _load_teardown_config_from_env(self, config: dict[str, Any]) -> None:
        teardown: dict[str, Any] = {}
        self._set_int(teardown, "max_concurrent_teardowns", "NAV_MAX_CONCURRENT_TEARDOWNS")
        self._set_float(teardown, "poll_interval", "NAV_TEARDOWN_POLL_INTERVAL")
        if teardown:
            config["teardown"] = teardown

    def _load_logging_config_from_env(self, config: dict[str, Any]) -> None:
        logging_section: dict[str, Any] = {}
        self._set_string(logging_section, "log_level", "LOG_LEVEL")
        self._set_string(logging_section, "log_file", "LOG_FILE")
        self._set_string(logging_section, "log_dir", "LOG_DIR")
        if logging_section:
            config["logging"] = logging_section

    def _load_observability_config_from_env(self, config: dict[str, Any]) -> None:
        observability: dict[str, Any] = {}
        self._set_bool(observability, "enable_prometheus_metrics", "NAV_ENABLE_PROMETHEUS_METRICS")
        self._set_string(observability, "metrics_namespace", "NAV_METRICS_NAMESPACE")
        if observability:
            config["observability"] = observability

    @staticmethod
    def _set_string(section: dict[str, Any], key: str, env_var: str) -> None:
        value = os.getenv(env_var)
        if value:
            section[key] = value

    @staticmethod
    def _set_int(section: dict[str, Any], key: str, env_var: str) -> None:
        value = os.getenv(env_var)
        if value:
            try:
                section[key] = int(value)
            except ValueError:
                logger.warning(f"Invalid {env_var} value: {value}")

    @staticmethod
    def _set_float(section: dict[str, Any], key: str, env_var: str) -> None:
        value = os.getenv(env_var)
        if value:
            try:
                section[key] = float(value)
            except ValueError:
                logger.warning(f"Invalid {env_var} value: {value}")

    @staticmethod
    def _set_bool(section: dict[str, Any], key: str, env_var: str) -> None:
        value = os.getenv(env_var)
        if value is not None:
            section[key] = value.strip().lower() in _TRUTHY

    def _merge_configs(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge ``override`` into a copy of ``base``."""
        result = copy.deepcopy(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result
