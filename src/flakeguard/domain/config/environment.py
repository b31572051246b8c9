"""Test environment configuration model."""

from typing import Any, Dict, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

_TEST_DATA: Dict[str, Dict[str, Any]] = {
    "development": {
        "users": {"standard": "dev_user", "admin": "dev_admin"},
        "features": {"debug_mode": True, "mock_data": True},
    },
    "staging": {
        "users": {"standard": "staging_user", "admin": "staging_admin"},
        "features": {"debug_mode": False, "mock_data": False},
    },
    "production": {
        "users": {"standard": "standard_user", "admin": "admin_user"},
        "features": {"debug_mode": False, "mock_data": False},
    },
}


class EnvironmentConfig(BaseModel):
    """Configuration of the system under test.

    Attributes:
        base_url: Root URL of the application under test
        action_timeout: Default action timeout in milliseconds
        navigation_timeout: Default navigation timeout in milliseconds
        retries: Runner-level retries for failed tests
        headless: Run browsers without a window
        slow_mo: Delay between browser operations in milliseconds
        is_ci: Running inside a CI pipeline
        test_env: Target environment name
        ignore_https_errors: Accept invalid TLS certificates
        report_open: Open the HTML report after the run
    """

    base_url: str = "https://www.saucedemo.com"
    action_timeout: int = Field(30000, gt=0)
    navigation_timeout: int = Field(30000, gt=0)
    retries: int = Field(0, ge=0)
    headless: bool = True
    slow_mo: int = Field(0, ge=0)
    is_ci: bool = False
    test_env: Literal["development", "staging", "production"] = "production"
    ignore_https_errors: bool = True
    report_open: bool = False

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        if not value:
            raise ValueError("Missing required configuration: base_url")
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"Invalid base_url format: {value}")
        return value

    def get_timeouts(self) -> Dict[str, int]:
        return {
            "action_timeout": self.action_timeout,
            "navigation_timeout": self.navigation_timeout,
        }

    def get_browser_config(self) -> Dict[str, Any]:
        return {
            "headless": self.headless,
            "slow_mo": self.slow_mo,
            "ignore_https_errors": self.ignore_https_errors,
        }

    def get_test_data(self) -> Dict[str, Any]:
        """Get environment-specific users and feature flags"""
        return _TEST_DATA.get(self.test_env, _TEST_DATA["production"])
