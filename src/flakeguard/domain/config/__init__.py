"""Configuration models with Pydantic validation."""

from flakeguard.domain.config.app import AppConfig
from flakeguard.domain.config.environment import EnvironmentConfig
from flakeguard.domain.config.retry import (
    BackoffConfig,
    BackoffPolicy,
    RetryConfig,
    SmartRetryConfig,
    SmartRetryPolicy,
)

__all__ = [
    "AppConfig",
    "BackoffConfig",
    "BackoffPolicy",
    "EnvironmentConfig",
    "RetryConfig",
    "SmartRetryConfig",
    "SmartRetryPolicy",
]
