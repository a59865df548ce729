"""Asynchronous execution of external commands."""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Base class for command execution failures."""

    def __init__(self, args: Sequence[str], message: str) -> None:
        self.args_list = list(args)
        super().__init__(f"`{' '.join(self.args_list)}` {message}")


class CommandNotFound(CommandError):
    """The executable does not exist or is not executable."""


class CommandTimeout(CommandError):
    """The command did not finish within its timeout and was killed."""


class CommandFailed(CommandError):
    """The command exited with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str) -> None:
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no output on stderr"
        super().__init__(args, f"exited with status {returncode}: {detail}")


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a successful command."""

    args: tuple[str, ...]
    stdout: str
    stderr: str


async def run_command(
    args: Sequence[str],
    cwd: Optional[Path] = None,
    timeout: Optional[float] = None,
    env: Optional[dict[str, str]] = None,
) -> CommandResult:
    """Run a command and capture its output.

    Args:
        args: Executable followed by its arguments.
        cwd: Working directory.
        timeout: Seconds before the process is killed. None waits forever.
        env: Extra environment variables layered over the current environment.

    Returns:
        CommandResult with decoded stdout and stderr.

    Raises:
        CommandNotFound: If the executable cannot be started.
        CommandTimeout: If the timeout elapsed.
        CommandFailed: If the exit status is non-zero.
    """
    logger.debug("Running %s (cwd=%s)", " ".join(args), cwd)

    full_env = None
    if env:
        full_env = {**os.environ, **env}

    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            cwd=cwd,
            env=full_env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise CommandNotFound(args, f"could not be started: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise CommandTimeout(args, f"timed out after {timeout}s") from e

    stdout_text = stdout.decode("utf-8", errors="replace")
    stderr_text = stderr.decode("utf-8", errors="replace")

    if proc.returncode != 0:
        raise CommandFailed(args, proc.returncode, stderr_text)

    return CommandResult(args=tuple(args), stdout=stdout_text, stderr=stderr_text)
