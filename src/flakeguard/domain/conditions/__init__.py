"""Retry conditions"""

from flakeguard.domain.conditions.retry_conditions import (
    CONDITIONS,
    all_of,
    always,
    any_of,
    error_message,
    get_condition,
    not_on_assertions,
    on_element_errors,
    on_timeout_or_network,
    smart,
)

__all__ = [
    "CONDITIONS",
    "all_of",
    "always",
    "any_of",
    "error_message",
    "get_condition",
    "not_on_assertions",
    "on_element_errors",
    "on_timeout_or_network",
    "smart",
]
