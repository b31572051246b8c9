"""Shared fixtures"""

from __future__ import annotations

from typing import List

import pytest

from flakeguard.infrastructure.retry import RetryHelper
from flakeguard.infrastructure.telemetry import RecordingSink

ENV_VARS = (
    "BASE_URL",
    "TIMEOUT",
    "RETRIES",
    "CI",
    "HEADLESS",
    "SLOW_MO",
    "TEST_ENV",
    "REPORT_OPEN",
    "FLAKEGUARD_MAX_RETRIES",
)


class FakeSleep:
    """Records requested delays instead of waiting"""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the runner's environment (CI, TIMEOUT, ...) out of the tests"""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def helper(fake_sleep, sink):
    return RetryHelper(sleep=fake_sleep, sink=sink)
