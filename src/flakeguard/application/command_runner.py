"""Command runner service - executes external commands under a retry policy"""

import logging
from typing import Any, Dict, Optional, Sequence

from flakeguard.domain.conditions import error_message
from flakeguard.infrastructure.command import CommandResult, run_command
from flakeguard.infrastructure.config.config_manager import ConfigManager
from flakeguard.infrastructure.retry import RetryHelper

logger = logging.getLogger(__name__)

MODES = ("smart", "backoff")


class CommandRunner:
    """Runs a command until it succeeds or the retry policy gives up"""

    def __init__(self, config_manager: ConfigManager, helper: Optional[RetryHelper] = None):
        """Initialize command runner

        Args:
            config_manager: Source of retry policies and timeouts
            helper: Retry helper (a default one is created if None)
        """
        self.config_manager = config_manager
        self.helper = helper or RetryHelper()
        self.stats: Dict[str, Any] = {"attempts": 0, "retries": 0}

    async def run(
        self,
        argv: Sequence[str],
        mode: str = "smart",
        max_retries: Optional[int] = None,
    ) -> CommandResult:
        """Run a command with retries

        Args:
            argv: Program and arguments
            mode: "smart" (strategy delays, growing timeout) or "backoff"
            max_retries: Optional override of the configured retry budget

        Returns:
            Result of the successful run

        Raises:
            ValueError: If mode is unknown
            CommandError: If the last attempt failed
        """
        mode = mode.lower()
        if mode not in MODES:
            raise ValueError(f"Unknown retry mode: {mode}. Available modes: {', '.join(MODES)}")

        self.stats = {"attempts": 0, "retries": 0}

        async def _run(timeout: Optional[int] = None) -> CommandResult:
            self.stats["attempts"] += 1
            return await run_command(argv, timeout=timeout)

        def _on_retry(error: BaseException, attempt: int) -> None:
            logger.warning(f"Command attempt {attempt + 1} failed: {error_message(error)}")

        try:
            if mode == "backoff":
                backoff = self.config_manager.build_backoff_policy(max_retries=max_retries)
                logger.info(f"Running with exponential backoff (max_retries={backoff.max_retries})")
                return await self.helper.with_exponential_backoff(_run, backoff)

            smart = self.config_manager.build_smart_policy(max_retries=max_retries, on_retry=_on_retry)
            logger.info(
                f"Running with smart retry (max_retries={smart.max_retries}, "
                f"initial_timeout={smart.initial_timeout}ms)"
            )
            return await self.helper.with_smart_retry(_run, smart)
        finally:
            self.stats["retries"] = max(self.stats["attempts"] - 1, 0)
