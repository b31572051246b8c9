"""Retry-enabled test functions"""

import functools
import logging
from typing import Any, Awaitable, Callable, Optional

from flakeguard.domain.conditions import always, error_message
from flakeguard.domain.config.retry import RetryCondition, SmartRetryPolicy
from flakeguard.infrastructure.retry import RetryHelper

logger = logging.getLogger(__name__)


def retry_test(
    max_retries: int = 2,
    retry_condition: Optional[RetryCondition] = None,
    helper: Optional[RetryHelper] = None,
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """Run the whole body of an async test under smart retry.

    Usage::

        @pytest.mark.asyncio
        @retry_test(max_retries=3, retry_condition=smart)
        async def test_login(page):
            ...

    Args:
        max_retries: Re-attempts after the first failure
        retry_condition: Condition deciding which errors are retried (default: all)
        helper: Retry helper (a default one is created if None)
    """
    retry_helper = helper or RetryHelper()

    def decorator(test_fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        name = test_fn.__name__

        def _on_retry(error: BaseException, attempt: int) -> None:
            logger.warning(f'Test "{name}" retry {attempt + 1}: {error_message(error)}')

        policy = SmartRetryPolicy(
            max_retries=max_retries,
            retry_condition=retry_condition or always,
            on_retry=_on_retry,
        )

        @functools.wraps(test_fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            # The timeout hint is not forwarded to the test body
            async def _action(timeout: int) -> Any:
                return await test_fn(*args, **kwargs)

            return await retry_helper.with_smart_retry(_action, policy)

        return wrapper

    return decorator
