"""Subprocess execution with Result-based error handling.

Every external tool go-workflow drives (git, gh, bun, npm, wrangler) goes
through this module.

Usage:
    result = run(["git", "status", "--porcelain"], cwd=repo_root)
    match result:
        case Ok(stdout):
            ...
        case Err(error):
            console.error(f"{error}: {error.stderr}")
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from gw.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run", "run_silent"]

# POSIX shells report "command not found" with 127
_NOT_FOUND_EXIT = 127


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: Exit code, -1 when the process never ran or timed out.
        stdout: Captured standard output (may be empty).
        stderr: Captured standard error.
        missing_executable: True when the executable could not be found.
        timed_out: True when the timeout expired.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    missing_executable: bool = False
    timed_out: bool = False

    @property
    def output(self) -> str:
        """stderr and stdout joined, for classification and display."""
        return "\n".join(part for part in (self.stderr.strip(), self.stdout.strip()) if part)

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        if self.missing_executable:
            return f"{cmd_str} failed (command not found)"
        return f"{cmd_str} failed (exit {self.returncode})"


def _merge_env(env: Mapping[str, str] | None) -> dict[str, str] | None:
    if env is None:
        return None
    merged = dict(os.environ)
    merged.update(env)
    return merged


def run(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Execute a command with captured output.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Variables layered on top of the current environment.
        timeout: Maximum seconds to wait (None for no limit).

    Returns:
        Ok(stdout) on success, Err(ProcessError) on failure.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=_merge_env(env),
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout=e.stdout if isinstance(e.stdout, str) else "",
                stderr=f"Command timed out after {timeout}s",
                timed_out=True,
            )
        )
    except FileNotFoundError as e:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout="",
                stderr=str(e),
                missing_executable=True,
            )
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
                missing_executable=proc.returncode == _NOT_FOUND_EXIT,
            )
        )

    return Ok(proc.stdout)


def run_silent(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[None, ProcessError]:
    """Execute a command with inherited stdio.

    Use this for commands whose output should stream to the terminal.
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=_merge_env(env),
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout="",
                stderr=f"Command timed out after {timeout}s",
                timed_out=True,
            )
        )
    except FileNotFoundError as e:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=-1,
                stdout="",
                stderr=str(e),
                missing_executable=True,
            )
        )
    except OSError as e:
        return Err(ProcessError(command=tuple(cmd), returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=tuple(cmd),
                returncode=proc.returncode,
                stdout="",
                stderr="",
                missing_executable=proc.returncode == _NOT_FOUND_EXIT,
            )
        )

    return Ok(None)
