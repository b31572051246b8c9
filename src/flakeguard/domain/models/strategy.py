"""Retry strategy model - maps an error to a recovery category and delay"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from flakeguard.domain.conditions.retry_conditions import error_message


class StrategyType(str, Enum):
    """Category of a retryable failure"""

    TIMEOUT = "timeout"
    NETWORK = "network"
    ELEMENT = "element"
    NAVIGATION = "navigation"
    GENERAL = "general"


@dataclass(frozen=True)
class RetryStrategy:
    """Recovery plan for a failed attempt"""

    type: StrategyType
    delay: float  # Pause before the next attempt, in seconds
    reason: str


# Checked in order, first match wins
_STRATEGY_TABLE: Tuple[Tuple[Tuple[str, ...], RetryStrategy], ...] = (
    (
        ("timeout",),
        RetryStrategy(StrategyType.TIMEOUT, 2.0, "Timeout detected, waiting before retry"),
    ),
    (
        ("network", "connection"),
        RetryStrategy(StrategyType.NETWORK, 3.0, "Network issue detected, waiting for recovery"),
    ),
    (
        ("element", "locator"),
        RetryStrategy(StrategyType.ELEMENT, 1.5, "Element not found, waiting for DOM updates"),
    ),
    (
        ("navigation", "loading"),
        RetryStrategy(StrategyType.NAVIGATION, 5.0, "Navigation issue, waiting for page to stabilize"),
    ),
)

GENERAL_STRATEGY = RetryStrategy(StrategyType.GENERAL, 2.0, "General error, applying standard retry")


def get_retry_strategy(error: BaseException) -> RetryStrategy:
    """Classify an error into a retry strategy

    Args:
        error: Error raised by the failed attempt

    Returns:
        Strategy for the first matching category, GENERAL_STRATEGY otherwise
    """
    msg = error_message(error).lower()
    for needles, strategy in _STRATEGY_TABLE:
        if any(needle in msg for needle in needles):
            return strategy
    return GENERAL_STRATEGY
