"""Subprocess action for retrying external commands (test runners, load scripts)."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

# Lines of stderr carried in the error message
STDERR_TAIL_LINES = 20


class CommandError(RuntimeError):
    """Raised when a command exits non-zero or exceeds its timeout"""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.message = message
        self.returncode = returncode
        self.stderr = stderr


@dataclass
class CommandResult:
    """Outcome of a successful command"""

    argv: Sequence[str]
    returncode: int
    stdout: str
    stderr: str


def _tail(text: str, lines: int = STDERR_TAIL_LINES) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


async def run_command(argv: Sequence[str], timeout: Optional[int] = None) -> CommandResult:
    """Run a command and fail on a non-zero exit status

    Args:
        argv: Program and arguments
        timeout: Hard limit in milliseconds (None = no limit)

    Returns:
        CommandResult with captured output

    Raises:
        CommandError: On non-zero exit status or timeout
        FileNotFoundError: If the program does not exist
    """
    if not argv:
        raise ValueError("argv must not be empty")

    command = " ".join(argv)
    logger.debug(f"Running: {command} (timeout={timeout}ms)")
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(),
            timeout=timeout / 1000 if timeout else None,
        )
    except asyncio.TimeoutError:
        raise CommandError(f"Timeout {timeout}ms exceeded running {command}") from None
    finally:
        # Never leave the child running on timeout or cancellation
        if process.returncode is None:
            process.kill()
            await process.wait()

    out = stdout.decode("utf-8", errors="replace")
    err = stderr.decode("utf-8", errors="replace")
    if process.returncode != 0:
        tail = _tail(err)
        message = f"Command {command} exited with status {process.returncode}"
        if tail:
            message = f"{message}: {tail}"
        raise CommandError(message, returncode=process.returncode, stderr=err)

    return CommandResult(argv=list(argv), returncode=process.returncode, stdout=out, stderr=err)
