"""Retry configuration and policy models."""

from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from flakeguard.domain.conditions.retry_conditions import always

RetryCondition = Callable[[BaseException, int], bool]
OnRetry = Callable[[BaseException, int], Union[None, Awaitable[Any]]]


def _no_op(error: BaseException, attempt: int) -> None:
    return None


class BackoffConfig(BaseModel):
    """Configuration for exponential backoff retries.

    Attributes:
        max_retries: Re-attempts allowed after the first failure
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for the computed delay, in seconds
        factor: Exponential growth factor
        jitter: Add a random 0-1s term to every delay
    """

    max_retries: int = Field(3, ge=0, le=20)
    base_delay: float = Field(1.0, gt=0.0)
    max_delay: float = Field(10.0, gt=0.0)
    factor: float = Field(2.0, ge=1.0)
    jitter: bool = True

    @model_validator(mode="after")
    def _check_delay_bounds(self):
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be greater than or equal to base_delay")
        return self


class BackoffPolicy(BackoffConfig):
    """Immutable exponential backoff policy for a single invocation."""

    model_config = ConfigDict(frozen=True)


class SmartRetryConfig(BaseModel):
    """Configuration for strategy-based retries.

    Attributes:
        max_retries: Re-attempts allowed after the first failure
        initial_timeout: Timeout hint for the first attempt, in milliseconds
            (None = use the environment's action timeout)
        timeout_multiplier: Timeout growth per retry
        condition: Name of the retry condition (see flakeguard.domain.conditions)
    """

    max_retries: int = Field(3, ge=0, le=20)
    initial_timeout: Optional[float] = Field(None, gt=0.0)
    timeout_multiplier: float = Field(1.5, ge=1.0)
    condition: str = "always"


class SmartRetryPolicy(BaseModel):
    """Immutable strategy-based retry policy.

    The callables are invoked with the raised error and the 0-based attempt
    index. ``on_retry`` may return an awaitable, which is awaited before the
    recovery delay.
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(3, ge=0)
    initial_timeout: float = Field(30000.0, gt=0.0)
    timeout_multiplier: float = Field(1.5, ge=1.0)
    retry_condition: RetryCondition = always
    on_retry: OnRetry = _no_op


class RetryConfig(BaseModel):
    """Retry section of the application configuration."""

    backoff: BackoffConfig = Field(default_factory=BackoffConfig)
    smart: SmartRetryConfig = Field(default_factory=SmartRetryConfig)
