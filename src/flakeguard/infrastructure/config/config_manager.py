"""Configuration manager for loading and validating .flakeguard.yml"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from flakeguard.domain.conditions import get_condition
from flakeguard.domain.config import (
    AppConfig,
    BackoffPolicy,
    EnvironmentConfig,
    RetryConfig,
    SmartRetryPolicy,
)
from flakeguard.domain.config.retry import OnRetry

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".flakeguard.yml"


class ConfigurationError(Exception):
    """Configuration validation error."""

    pass


def _env_int(name: str) -> Optional[int]:
    """Parse an integer environment variable, ignoring unset or malformed values."""
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {name}: {raw!r}")
        return None


class ConfigManager:
    """Manages configuration from .flakeguard.yml and environment variables

    Loads configuration with validation using Pydantic models. Configuration priority:
    1. Default values (defined in Pydantic models)
    2. .flakeguard.yml file (searched from current directory upwards)
    3. Environment variables (BASE_URL, TIMEOUT, RETRIES, CI, ..., FLAKEGUARD_*)
    4. CLI arguments (handled by CLI layer)
    """

    DEFAULT_CONFIG = {
        "retry": {
            "backoff": {
                "max_retries": 3,
                "base_delay": 1.0,
                "max_delay": 10.0,
                "factor": 2.0,
                "jitter": True,
            },
            "smart": {
                "max_retries": 3,
                "initial_timeout": None,
                "timeout_multiplier": 1.5,
                "condition": "always",
            },
        },
        "environment": {
            "base_url": "https://www.saucedemo.com",
            "action_timeout": 30000,
            "navigation_timeout": 30000,
            "retries": 0,
            "headless": True,
            "slow_mo": 0,
            "is_ci": False,
            "test_env": "production",
            "ignore_https_errors": True,
            "report_open": False,
        },
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config manager

        Args:
            config_path: Path to .flakeguard.yml (searches from current dir if None)

        Raises:
            ConfigurationError: If configuration validation fails
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.config_path = config_path or self._find_config_file()
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                msg = error["msg"]
                errors.append(f"  - {field}: {msg}")
            raise ConfigurationError(
                "Configuration validation failed:\n" + "\n".join(errors)
            ) from e

        # Fail fast on unknown condition names
        try:
            get_condition(self.config.retry.smart.condition)
        except ValueError as e:
            raise ConfigurationError(f"Configuration validation failed:\n  - retry.smart.condition: {e}") from e

    def _find_config_file(self) -> Optional[Path]:
        """Find .flakeguard.yml starting from current directory

        Returns:
            Path to config file or None if not found
        """
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_file = parent / CONFIG_FILE_NAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and validate with Pydantic

        Returns:
            Validated AppConfig instance

        Raises:
            ValidationError: If configuration is invalid
        """
        config_dict = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Failed to load config from {self.config_path}: {e}")
                logger.info("Using default configuration")
            else:
                if not isinstance(file_config, dict):
                    raise ConfigurationError(
                        f"Configuration file {self.config_path} must contain a mapping"
                    )
                config_dict = self._merge_config(config_dict, file_config)
                logger.info(f"Loaded configuration from {self.config_path}")

        config_dict = self._apply_env_overrides(config_dict)

        return AppConfig(**config_dict)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries

        Args:
            base: Base configuration
            override: Override configuration

        Returns:
            Merged configuration
        """
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides

        Args:
            config: Configuration dictionary

        Returns:
            Configuration with env overrides applied
        """
        env = config["environment"]

        if os.getenv("BASE_URL"):
            env["base_url"] = os.getenv("BASE_URL")

        timeout = _env_int("TIMEOUT")
        if timeout:
            env["action_timeout"] = timeout
            env["navigation_timeout"] = timeout

        is_ci = bool(os.getenv("CI"))
        if is_ci:
            env["is_ci"] = True
        # Runner-level retries only apply on CI
        if env.get("is_ci"):
            env["retries"] = _env_int("RETRIES") or env.get("retries") or 2
        else:
            env["retries"] = 0

        if os.getenv("HEADLESS") is not None:
            env["headless"] = os.getenv("HEADLESS") != "false"

        slow_mo = _env_int("SLOW_MO")
        if slow_mo is not None:
            env["slow_mo"] = slow_mo

        if os.getenv("TEST_ENV"):
            env["test_env"] = os.getenv("TEST_ENV")

        if os.getenv("REPORT_OPEN") is not None:
            env["report_open"] = os.getenv("REPORT_OPEN") == "true"

        max_retries = _env_int("FLAKEGUARD_MAX_RETRIES")
        if max_retries is not None:
            config["retry"]["backoff"]["max_retries"] = max_retries
            config["retry"]["smart"]["max_retries"] = max_retries

        return config

    def get_retry_config(self) -> RetryConfig:
        """Get retry configuration

        Returns:
            Retry configuration model
        """
        return self.config.retry

    def get_environment_config(self) -> EnvironmentConfig:
        """Get environment configuration

        Returns:
            Environment configuration model
        """
        return self.config.environment

    def build_backoff_policy(self, max_retries: Optional[int] = None) -> BackoffPolicy:
        """Build an exponential backoff policy from configuration

        Args:
            max_retries: Optional override of the configured retry budget

        Returns:
            Immutable BackoffPolicy
        """
        values = self.config.retry.backoff.model_dump()
        if max_retries is not None:
            values["max_retries"] = max_retries
        return BackoffPolicy(**values)

    def build_smart_policy(
        self,
        max_retries: Optional[int] = None,
        on_retry: Optional[OnRetry] = None,
    ) -> SmartRetryPolicy:
        """Build a smart retry policy from configuration

        The initial timeout falls back to the environment's action timeout.

        Args:
            max_retries: Optional override of the configured retry budget
            on_retry: Optional callback invoked before every retry

        Returns:
            Immutable SmartRetryPolicy
        """
        smart = self.config.retry.smart
        values: Dict[str, Any] = {
            "max_retries": smart.max_retries if max_retries is None else max_retries,
            "initial_timeout": smart.initial_timeout or self.config.environment.action_timeout,
            "timeout_multiplier": smart.timeout_multiplier,
            "retry_condition": get_condition(smart.condition),
        }
        if on_retry is not None:
            values["on_retry"] = on_retry
        return SmartRetryPolicy(**values)

    def log_config(self) -> None:
        """Log the effective environment when running on CI"""
        env = self.config.environment
        if env.is_ci:
            logger.info("Running in CI environment")
            logger.info(f"Environment: {env.test_env}")
            logger.info(f"Base URL: {env.base_url}")
            logger.info(f"Timeout: {env.action_timeout}ms")
            logger.info(f"Retries: {env.retries}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)

        Args:
            key: Configuration key (e.g., "retry.smart.max_retries" or "retry")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self.config.model_dump()
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value
