"""
Command Execution
=================

Runs a shell command with a hard timeout and captures its output.
Nothing here retries: a non-zero exit, a timeout, or a spawn failure is
reported once and left to the caller.
"""

import subprocess
from dataclasses import dataclass
from typing import Callable, Optional, Union


@dataclass(frozen=True)
class CommandResult:
    stdout: str
    stderr: str
    exit_code: Optional[int]
    timed_out: bool = False
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and self.error is None


# Signature of anything that can stand in for run_command (tests inject fakes).
CommandRunner = Callable[[str, int], CommandResult]


def _as_text(value: Union[str, bytes, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def run_command(command: str, timeout: int) -> CommandResult:
    """
    Run a command through the shell.

    Args:
        command: Shell command string
        timeout: Seconds before the process is killed

    Returns:
        CommandResult with captured stdout/stderr and exit code.
        exit_code is None when the process timed out or could not be started.
    """
    try:
        completed = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        return CommandResult(
            stdout=_as_text(e.stdout),
            stderr=_as_text(e.stderr),
            exit_code=None,
            timed_out=True,
            error=f"Command timed out after {timeout}s",
        )
    except OSError as e:
        return CommandResult(stdout="", stderr=str(e), exit_code=None, error=str(e))

    return CommandResult(
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        exit_code=completed.returncode,
    )
