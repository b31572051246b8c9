"""Tests for RetryHelper"""

from __future__ import annotations

import asyncio

import pytest

from flakeguard.domain.conditions import smart
from flakeguard.domain.config import BackoffPolicy, SmartRetryPolicy
from flakeguard.domain.models.strategy import RetryStrategy, StrategyType
from flakeguard.infrastructure.retry import RetryHelper


class FlakyAction:
    """Fails with the given errors, then returns a result"""

    def __init__(self, errors=(), result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = []

    async def __call__(self, **kwargs):
        self.calls.append(kwargs)
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class AlwaysFails:
    def __init__(self, error: Exception):
        self.error = error
        self.calls = []

    async def __call__(self, **kwargs):
        self.calls.append(kwargs)
        raise self.error


class TestExponentialBackoff:
    """Tests for with_exponential_backoff"""

    @pytest.mark.asyncio
    async def test_first_attempt_success_has_no_delay(self, helper, fake_sleep):
        """An action that succeeds immediately runs once and never sleeps"""
        action = FlakyAction()

        result = await helper.with_exponential_backoff(action, BackoffPolicy(max_retries=5))

        assert result == "ok"
        assert len(action.calls) == 1
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_retries", [0, 1, 3])
    async def test_permanent_failure_runs_max_retries_plus_one(self, helper, max_retries):
        """A permanently failing action is attempted max_retries + 1 times"""
        error = RuntimeError("boom")
        action = AlwaysFails(error)

        with pytest.raises(RuntimeError) as exc_info:
            await helper.with_exponential_backoff(
                action, BackoffPolicy(max_retries=max_retries, jitter=False)
            )

        assert exc_info.value is error
        assert len(action.calls) == max_retries + 1

    @pytest.mark.asyncio
    async def test_delays_without_jitter(self, helper, fake_sleep):
        """Delay before attempt k is min(base * factor^(k-1), max)"""
        action = AlwaysFails(RuntimeError("boom"))
        policy = BackoffPolicy(max_retries=4, base_delay=1.0, max_delay=5.0, factor=2.0, jitter=False)

        with pytest.raises(RuntimeError):
            await helper.with_exponential_backoff(action, policy)

        assert fake_sleep.delays == [1.0, 2.0, 4.0, 5.0]

    @pytest.mark.asyncio
    async def test_delays_with_custom_factor(self, helper, fake_sleep):
        action = FlakyAction([RuntimeError("a"), RuntimeError("b")])
        policy = BackoffPolicy(max_retries=3, base_delay=0.5, max_delay=10.0, factor=3.0, jitter=False)

        result = await helper.with_exponential_backoff(action, policy)

        assert result == "ok"
        assert fake_sleep.delays == [pytest.approx(0.5), pytest.approx(1.5)]

    @pytest.mark.asyncio
    async def test_jitter_adds_up_to_one_second(self, helper, fake_sleep):
        """Jitter adds a random term in [0, 1) seconds"""
        action = AlwaysFails(RuntimeError("boom"))
        policy = BackoffPolicy(max_retries=3, base_delay=1.0, max_delay=10.0, factor=2.0, jitter=True)

        with pytest.raises(RuntimeError):
            await helper.with_exponential_backoff(action, policy)

        assert len(fake_sleep.delays) == 3
        for delay, base in zip(fake_sleep.delays, [1.0, 2.0, 4.0]):
            assert base <= delay <= base + 1.0

    @pytest.mark.asyncio
    async def test_reports_each_retry(self, helper, sink):
        action = FlakyAction([RuntimeError("a")])

        await helper.with_exponential_backoff(action, BackoffPolicy(jitter=False))

        assert sink.messages == ["Attempt 1 failed, retrying in 1.00s..."]

    @pytest.mark.asyncio
    async def test_default_policy(self, helper, fake_sleep):
        """Defaults: 3 retries starting at 1s"""
        action = AlwaysFails(RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await helper.with_exponential_backoff(action)

        assert len(action.calls) == 4
        assert len(fake_sleep.delays) == 3

    @pytest.mark.asyncio
    async def test_cancellation_is_not_retried(self, helper):
        action = AlwaysFails(asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await helper.with_exponential_backoff(action)

        assert len(action.calls) == 1


class TestSmartRetry:
    """Tests for with_smart_retry"""

    @pytest.mark.asyncio
    async def test_network_timeout_scenario(self, helper, fake_sleep):
        """Two 'Network timeout' failures, then success"""
        action = FlakyAction([RuntimeError("Network timeout"), RuntimeError("Network timeout")], "done")
        retries = []
        policy = SmartRetryPolicy(
            max_retries=3,
            on_retry=lambda error, attempt: retries.append((helper.get_retry_strategy(error).type, attempt)),
        )

        result = await helper.with_smart_retry(action, policy)

        assert result == "done"
        assert len(action.calls) == 3
        assert retries == [(StrategyType.TIMEOUT, 0), (StrategyType.TIMEOUT, 1)]
        assert fake_sleep.delays == [2.0, 2.0]

    @pytest.mark.asyncio
    async def test_cancellation_is_not_retried(self, helper, fake_sleep):
        action = AlwaysFails(asyncio.CancelledError())
        retries = []

        with pytest.raises(asyncio.CancelledError):
            await helper.with_smart_retry(
                action, SmartRetryPolicy(max_retries=3, on_retry=lambda e, a: retries.append(a))
            )

        assert len(action.calls) == 1
        assert retries == []
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_keyboard_interrupt_is_not_retried(self, helper):
        action = AlwaysFails(KeyboardInterrupt())

        with pytest.raises(KeyboardInterrupt):
            await helper.with_smart_retry(action, SmartRetryPolicy(max_retries=2))

        assert action.calls == [{"timeout": 30000}]

    @pytest.mark.asyncio
    async def test_first_attempt_success(self, helper, fake_sleep):
        action = FlakyAction()

        result = await helper.with_smart_retry(action, SmartRetryPolicy(max_retries=5))

        assert result == "ok"
        assert action.calls == [{"timeout": 30000}]
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_timeout_hint_escalates(self, helper):
        """The timeout hint grows by timeout_multiplier per attempt"""
        action = AlwaysFails(RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await helper.with_smart_retry(action, SmartRetryPolicy(max_retries=3))

        assert [call["timeout"] for call in action.calls] == [30000, 45000, 67500, 101250]

    @pytest.mark.asyncio
    async def test_initial_timeout_override(self, helper):
        action = FlakyAction([RuntimeError("boom")])
        policy = SmartRetryPolicy(initial_timeout=1000, timeout_multiplier=2.0)

        await helper.with_smart_retry(action, policy)

        assert [call["timeout"] for call in action.calls] == [1000, 2000]

    @pytest.mark.asyncio
    async def test_timeout_hint_rounds_half_up(self, helper):
        action = FlakyAction()

        await helper.with_smart_retry(action, SmartRetryPolicy(initial_timeout=1000.5))

        assert action.calls == [{"timeout": 1001}]

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self, helper, fake_sleep):
        """A rejected error is raised unchanged after a single attempt"""
        error = AssertionError("expect(received).toBe(expected) failed")
        action = AlwaysFails(error)
        retries = []
        policy = SmartRetryPolicy(
            max_retries=3,
            retry_condition=smart,
            on_retry=lambda e, a: retries.append(a),
        )

        with pytest.raises(AssertionError) as exc_info:
            await helper.with_smart_retry(action, policy)

        assert exc_info.value is error
        assert len(action.calls) == 1
        assert retries == []
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_budget_exhaustion_skips_condition_on_last_attempt(self, helper):
        """The condition is not consulted once the budget is spent"""
        error = RuntimeError("boom")
        action = AlwaysFails(error)
        consulted = []

        def condition(e, attempt):
            consulted.append(attempt)
            return True

        with pytest.raises(RuntimeError) as exc_info:
            await helper.with_smart_retry(action, SmartRetryPolicy(max_retries=2, retry_condition=condition))

        assert exc_info.value is error
        assert len(action.calls) == 3
        assert consulted == [0, 1]

    @pytest.mark.asyncio
    async def test_condition_receives_attempt_index(self, helper):
        """smart stops element errors from attempt 2"""
        action = AlwaysFails(RuntimeError("element not found"))

        with pytest.raises(RuntimeError):
            await helper.with_smart_retry(action, SmartRetryPolicy(max_retries=5, retry_condition=smart))

        assert len(action.calls) == 3

    @pytest.mark.asyncio
    async def test_async_on_retry_is_awaited(self, helper):
        action = FlakyAction([RuntimeError("boom")])
        seen = []

        async def on_retry(error, attempt):
            await asyncio.sleep(0)
            seen.append((str(error), attempt))

        await helper.with_smart_retry(action, SmartRetryPolicy(on_retry=on_retry))

        assert seen == [("boom", 0)]

    @pytest.mark.asyncio
    async def test_on_retry_failure_aborts_loop(self, helper, fake_sleep):
        action = AlwaysFails(RuntimeError("timeout"))

        def on_retry(error, attempt):
            raise ValueError("callback broke")

        with pytest.raises(ValueError, match="callback broke"):
            await helper.with_smart_retry(action, SmartRetryPolicy(on_retry=on_retry))

        assert len(action.calls) == 1
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_strategy_delay_per_category(self, helper, fake_sleep):
        action = FlakyAction(
            [
                RuntimeError("net::ERR_CONNECTION_RESET"),
                RuntimeError("Element is not attached to the DOM"),
                RuntimeError("page.goto: Navigation failed"),
            ]
        )

        await helper.with_smart_retry(action, SmartRetryPolicy(max_retries=3))

        assert fake_sleep.delays == [3.0, 1.5, 5.0]

    @pytest.mark.asyncio
    async def test_reports_reason_and_recovery(self, helper, sink):
        action = FlakyAction([RuntimeError("net::ERR_CONNECTION_RESET")])

        await helper.with_smart_retry(action, SmartRetryPolicy(max_retries=3))

        assert sink.messages == [
            "Network issue detected, waiting for recovery, attempt 1/4",
            "Checking network connectivity...",
        ]

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_abort(self, fake_sleep):
        def broken_sink(message):
            raise RuntimeError("sink down")

        helper = RetryHelper(sleep=fake_sleep, sink=broken_sink)
        action = FlakyAction([RuntimeError("timeout")])

        result = await helper.with_smart_retry(action)

        assert result == "ok"
        assert len(action.calls) == 2

    @pytest.mark.asyncio
    async def test_invocations_are_independent(self, helper):
        """Timeout escalation does not leak between invocations"""
        first = FlakyAction([RuntimeError("boom")])
        second = FlakyAction()
        policy = SmartRetryPolicy()

        await helper.with_smart_retry(first, policy)
        await helper.with_smart_retry(second, policy)

        assert second.calls == [{"timeout": 30000}]


class TestRetryStep:
    """Tests for retry_step"""

    @pytest.mark.asyncio
    async def test_binds_arguments_and_adds_timeout(self, helper):
        calls = []

        async def login(username, password, timeout=None):
            calls.append((username, password, timeout))
            if len(calls) == 1:
                raise RuntimeError("locator.fill: Timeout 30000ms exceeded")
            return f"logged in as {username}"

        retry_login = helper.retry_step(login, SmartRetryPolicy(max_retries=2))
        result = await retry_login("standard_user", "secret_sauce")

        assert result == "logged in as standard_user"
        assert calls == [
            ("standard_user", "secret_sauce", 30000),
            ("standard_user", "secret_sauce", 45000),
        ]

    @pytest.mark.asyncio
    async def test_forwards_keyword_arguments(self, helper):
        calls = []

        async def add_to_cart(product_id, quantity=1, timeout=None):
            calls.append((product_id, quantity, timeout))

        await helper.retry_step(add_to_cart)("sauce-labs-backpack", quantity=2)

        assert calls == [("sauce-labs-backpack", 2, 30000)]

    def test_preserves_name(self, helper):
        async def add_to_cart(product_id, timeout=None):
            return product_id

        assert helper.retry_step(add_to_cart).__name__ == "add_to_cart"


class TestExecuteRetryStrategy:
    """Tests for execute_retry_strategy"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "strategy_type,message",
        [
            (StrategyType.NETWORK, "Checking network connectivity..."),
            (StrategyType.ELEMENT, "Waiting for DOM stabilization..."),
            (StrategyType.NAVIGATION, "Waiting for navigation to complete..."),
            (StrategyType.TIMEOUT, "Standard retry delay..."),
            (StrategyType.GENERAL, "Standard retry delay..."),
        ],
    )
    async def test_logs_category_and_sleeps(self, helper, sink, fake_sleep, strategy_type, message):
        await helper.execute_retry_strategy(RetryStrategy(strategy_type, 1.25, "reason"))

        assert sink.messages == [message]
        assert fake_sleep.delays == [1.25]
