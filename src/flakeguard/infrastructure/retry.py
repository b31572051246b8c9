"""Retry orchestration for flaky asynchronous operations, built on tenacity.

Two loops are provided:

* ``with_exponential_backoff`` - retries every failure with a capped
  exponential delay and optional jitter.
* ``with_smart_retry`` - consults a retry condition, classifies the error
  into a recovery strategy, and escalates the timeout hint handed to the
  action on each attempt.

Both re-raise the exact error from the last failed attempt.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
import math
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)
from tenacity.retry import retry_base

from flakeguard.domain.config.retry import BackoffPolicy, SmartRetryPolicy
from flakeguard.domain.models.strategy import RetryStrategy, StrategyType, get_retry_strategy
from flakeguard.infrastructure.telemetry import TelemetrySink, emit, log_sink

logger = logging.getLogger(__name__)

# Upper bound of the random term added to backoff delays, in seconds
JITTER_MAX = 1.0

_RECOVERY_MESSAGES = {
    StrategyType.NETWORK: "Checking network connectivity...",
    StrategyType.ELEMENT: "Waiting for DOM stabilization...",
    StrategyType.NAVIGATION: "Waiting for navigation to complete...",
}

Sleep = Callable[[float], Awaitable[None]]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class AttemptState:
    """Per-invocation bookkeeping for a smart retry loop"""

    current_timeout: float
    attempt_index: int = 0
    last_error: Optional[BaseException] = None
    strategy: Optional[RetryStrategy] = None


class _retry_if_condition(retry_base):
    """Retry a failed attempt while budget remains and the condition allows it.

    On the final attempt the condition is not consulted. Cancellation and
    other non-Exception errors are never retried.
    """

    def __init__(self, policy: SmartRetryPolicy) -> None:
        self.policy = policy

    def __call__(self, retry_state: RetryCallState) -> bool:
        if retry_state.outcome is None or not retry_state.outcome.failed:
            return False
        error = retry_state.outcome.exception()
        if not isinstance(error, Exception):
            return False
        attempt = retry_state.attempt_number - 1
        if attempt >= self.policy.max_retries:
            return False
        return bool(self.policy.retry_condition(error, attempt))


class RetryHelper:
    """Runs fallible async actions under a retry policy.

    Args:
        sleep: Coroutine used for every delay (default: asyncio.sleep)
        sink: Telemetry callback receiving one message per retry event
    """

    def __init__(self, sleep: Optional[Sleep] = None, sink: Optional[TelemetrySink] = None):
        self._sleep = sleep or asyncio.sleep
        self._sink = sink or log_sink

    async def with_exponential_backoff(
        self,
        action: Callable[[], Awaitable[Any]],
        policy: Optional[BackoffPolicy] = None,
    ) -> Any:
        """Retry an action with exponential backoff

        Args:
            action: Zero-argument coroutine function
            policy: Backoff policy (defaults: 3 retries, 1s base, 10s cap, x2, jitter)

        Returns:
            Result of the first successful attempt

        Raises:
            Exception: The error of the last attempt once the budget is exhausted
        """
        if policy is None:
            policy = BackoffPolicy()

        # delay(k) = min(base_delay * factor ^ k, max_delay), k = failed attempts - 1
        wait = wait_exponential(
            multiplier=policy.base_delay,
            exp_base=policy.factor,
            min=0,
            max=policy.max_delay,
        )
        if policy.jitter:
            wait = wait + wait_random(0, JITTER_MAX)

        def _before_sleep(retry_state: RetryCallState) -> None:
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            emit(
                self._sink,
                f"Attempt {retry_state.attempt_number} failed, retrying in {delay:.2f}s...",
            )

        retrying = AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(policy.max_retries + 1),
            wait=wait,
            retry=retry_if_exception_type(Exception),
            reraise=True,
            before_sleep=_before_sleep,
        )
        return await retrying(action)

    async def with_smart_retry(
        self,
        action: Callable[..., Awaitable[Any]],
        policy: Optional[SmartRetryPolicy] = None,
    ) -> Any:
        """Retry an action with error-specific recovery and growing timeouts

        The action is called as ``action(timeout=<ms>)``. The hint starts at
        ``policy.initial_timeout`` and is multiplied by
        ``policy.timeout_multiplier`` after every retry.

        Args:
            action: Coroutine function accepting a ``timeout`` keyword
            policy: Smart retry policy

        Returns:
            Result of the first successful attempt

        Raises:
            Exception: The original error when the condition rejects it or
                the budget is exhausted, or whatever ``on_retry`` raises
        """
        if policy is None:
            policy = SmartRetryPolicy()

        max_attempts = policy.max_retries + 1
        state = AttemptState(current_timeout=policy.initial_timeout)

        async def _attempt() -> Any:
            return await action(timeout=_round_half_up(state.current_timeout))

        # tenacity calls: retry -> after -> wait -> before_sleep -> sleep
        def _classify(retry_state: RetryCallState) -> None:
            state.last_error = retry_state.outcome.exception()
            state.strategy = self.get_retry_strategy(state.last_error)

        def _wait(retry_state: RetryCallState) -> float:
            return state.strategy.delay if state.strategy else 0.0

        async def _before_sleep(retry_state: RetryCallState) -> None:
            attempt = state.attempt_index
            emit(self._sink, f"{state.strategy.reason}, attempt {attempt + 1}/{max_attempts}")

            result = policy.on_retry(state.last_error, attempt)
            if inspect.isawaitable(result):
                await result

        async def _recover(seconds: float) -> None:
            await self.execute_retry_strategy(state.strategy)
            state.current_timeout *= policy.timeout_multiplier
            state.attempt_index += 1

        retrying = AsyncRetrying(
            sleep=_recover,
            stop=stop_after_attempt(max_attempts),
            wait=_wait,
            retry=_retry_if_condition(policy),
            reraise=True,
            after=_classify,
            before_sleep=_before_sleep,
        )
        return await retrying(_attempt)

    def retry_step(
        self,
        operation: Callable[..., Awaitable[Any]],
        policy: Optional[SmartRetryPolicy] = None,
    ) -> Callable[..., Awaitable[Any]]:
        """Wrap a step so every call runs under ``with_smart_retry``.

        The returned coroutine function takes the step's own arguments; the
        step itself additionally receives the ``timeout`` keyword.
        """

        @functools.wraps(operation)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            async def _action(timeout: int) -> Any:
                return await operation(*args, timeout=timeout, **kwargs)

            return await self.with_smart_retry(_action, policy)

        return wrapper

    @staticmethod
    def get_retry_strategy(error: BaseException) -> RetryStrategy:
        """Classify an error into a recovery strategy"""
        return get_retry_strategy(error)

    async def execute_retry_strategy(self, strategy: RetryStrategy) -> None:
        """Announce the strategy category and pause for its delay"""
        emit(self._sink, _RECOVERY_MESSAGES.get(strategy.type, "Standard retry delay..."))
        await self._sleep(strategy.delay)
