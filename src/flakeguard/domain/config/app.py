"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from flakeguard.domain.config.environment import EnvironmentConfig
from flakeguard.domain.config.retry import RetryConfig


class AppConfig(BaseModel):
    """Main application configuration.

    This is the root configuration model that aggregates all configuration sections.
    Validation is performed at load time to fail fast on configuration errors.

    Attributes:
        retry: Retry policy configuration
        environment: System-under-test configuration
    """

    retry: RetryConfig = Field(default_factory=RetryConfig)
    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)

    model_config = ConfigDict(
        validate_assignment=True,  # Validate on attribute assignment
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
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
                        "condition": "smart",
                    },
                },
                "environment": {
                    "base_url": "https://www.saucedemo.com",
                    "action_timeout": 30000,
                    "navigation_timeout": 30000,
                    "test_env": "production",
                },
            }
        },
    )
