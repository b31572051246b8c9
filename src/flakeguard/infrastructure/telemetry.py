"""Telemetry sinks for retry notifications."""

from __future__ import annotations

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

TelemetrySink = Callable[[str], None]


def log_sink(message: str) -> None:
    """Default sink: write the event to the flakeguard log stream."""
    logger.info(message)


class RecordingSink:
    """Sink that keeps every event in memory (useful for reports and tests)"""

    def __init__(self) -> None:
        self.messages: List[str] = []

    def __call__(self, message: str) -> None:
        self.messages.append(message)


def emit(sink: TelemetrySink, message: str) -> None:
    """Send an event to a sink; a failing sink never aborts the caller."""
    try:
        sink(message)
    except Exception as e:
        logger.warning(f"Telemetry sink failed, event dropped: {e}")
