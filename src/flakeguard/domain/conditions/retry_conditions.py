"""Retry conditions over (error, attempt) pairs.

Every condition classifies an error by case-insensitive substring search on
its message, so it works with any action regardless of the concrete
exception types it raises.
"""

from __future__ import annotations

from typing import Callable, Dict

Condition = Callable[[BaseException, int], bool]


def error_message(error: BaseException) -> str:
    """Return the human-readable message of an error.

    Playwright errors expose a ``message`` attribute; anything else falls back
    to ``str(error)``.
    """
    message = getattr(error, "message", None)
    if isinstance(message, str):
        return message
    return str(error)


def _contains_any(error: BaseException, *needles: str) -> bool:
    msg = error_message(error).lower()
    return any(needle in msg for needle in needles)


def always(error: BaseException, attempt: int = 0) -> bool:
    """Retry every error."""
    return True


def on_timeout_or_network(error: BaseException, attempt: int = 0) -> bool:
    """Retry only timeouts and network/connection failures."""
    return _contains_any(error, "timeout", "network", "connection")


def on_element_errors(error: BaseException, attempt: int = 0) -> bool:
    """Retry element lookup and visibility failures."""
    return _contains_any(error, "element", "locator", "visible")


def not_on_assertions(error: BaseException, attempt: int = 0) -> bool:
    """Retry anything except failed expectations."""
    return not _contains_any(error, "expect")


def smart(error: BaseException, attempt: int = 0) -> bool:
    """Combine message and attempt count into a retry decision.

    Assertion failures are never retried, element errors are retried at most
    twice, transient timeouts and network errors always are, and anything
    else is retried while ``attempt < 2``.
    """
    if _contains_any(error, "expect", "assertion"):
        return False

    if _contains_any(error, "element", "locator") and attempt >= 2:
        return False

    if _contains_any(error, "timeout", "network"):
        return True

    return attempt < 2


def all_of(*conditions: Condition) -> Condition:
    """Build a condition that holds only when every given condition holds."""

    def _all(error: BaseException, attempt: int = 0) -> bool:
        return all(condition(error, attempt) for condition in conditions)

    return _all


def any_of(*conditions: Condition) -> Condition:
    """Build a condition that holds when at least one given condition holds."""

    def _any(error: BaseException, attempt: int = 0) -> bool:
        return any(condition(error, attempt) for condition in conditions)

    return _any


CONDITIONS: Dict[str, Condition] = {
    "always": always,
    "on_timeout_or_network": on_timeout_or_network,
    "on_element_errors": on_element_errors,
    "not_on_assertions": not_on_assertions,
    "smart": smart,
}


def get_condition(name: str) -> Condition:
    """Look up a named retry condition

    Args:
        name: Condition name (case-insensitive, dashes accepted)

    Returns:
        Condition callable

    Raises:
        ValueError: If the name is unknown
    """
    key = name.lower().replace("-", "_")
    if key not in CONDITIONS:
        available = ", ".join(CONDITIONS.keys())
        raise ValueError(f"Unknown retry condition: {name}. Available conditions: {available}")
    return CONDITIONS[key]
