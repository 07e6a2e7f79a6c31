"""Ordered command-candidate chains.

Quality gates and the build try several equivalent invocations
(``bun run build``, then ``npm run build``, ...). A candidate that is absent
(executable missing, package script missing) falls through to the next one;
a candidate that ran and failed stops the chain so the caller can surface it.

Classification prefers structured signals from ``ProcessError``
(``missing_executable``) and only falls back to the package managers' own
wording for missing scripts and empty test suites.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from gw.core.result import Err, Ok, Result
from gw.platform.process import ProcessError
from gw.platform.process import run as run_process

__all__ = [
    "ChainAttempt",
    "ChainFailure",
    "ChainSuccess",
    "FailureKind",
    "classify_failure",
    "format_command",
    "run_chain",
]

FailureKind = Literal["tool_missing", "script_missing", "no_tests", "failed"]

_MISSING_SCRIPT_MARKERS = (
    "missing script",
    "script not found",
    "command not found",
    "could not determine executable to run",
)

_NO_TESTS_MARKERS = (
    "no tests found",
    "no test files",
    "no tests to run",
    "no tests ran",
)


def format_command(command: Sequence[str]) -> str:
    return " ".join(command)


def classify_failure(error: ProcessError) -> FailureKind:
    """Decide whether a failed candidate was absent or actually ran and failed."""
    if error.missing_executable:
        return "tool_missing"

    text = error.output.lower()
    if any(marker in text for marker in _MISSING_SCRIPT_MARKERS):
        return "script_missing"
    if any(marker in text for marker in _NO_TESTS_MARKERS):
        return "no_tests"
    return "failed"


@dataclass(frozen=True, slots=True)
class ChainAttempt:
    command: tuple[str, ...]
    kind: FailureKind
    error: ProcessError


@dataclass(frozen=True, slots=True)
class ChainSuccess:
    command: tuple[str, ...]
    stdout: str
    attempts: tuple[ChainAttempt, ...] = ()

    @property
    def label(self) -> str:
        return self.command[0]


@dataclass(frozen=True, slots=True)
class ChainFailure:
    """Every candidate failed; ``attempts`` lists them in order."""

    attempts: tuple[ChainAttempt, ...]

    @property
    def all_absent(self) -> bool:
        """True when no candidate could run at all."""
        return all(a.kind in ("tool_missing", "script_missing") for a in self.attempts)

    @property
    def saw_no_tests(self) -> bool:
        return any(a.kind == "no_tests" for a in self.attempts)

    @property
    def failure(self) -> ChainAttempt | None:
        """The candidate that ran and failed, if any."""
        for attempt in self.attempts:
            if attempt.kind == "failed":
                return attempt
        return None

    @property
    def tried(self) -> str:
        return ", ".join(format_command(a.command) for a in self.attempts) or "(none)"


def run_chain(
    candidates: Sequence[Sequence[str]],
    *,
    cwd: Path,
    timeout: float | None = None,
    on_attempt: Callable[[tuple[str, ...]], None] | None = None,
) -> Result[ChainSuccess, ChainFailure]:
    """Run candidates in order until one succeeds or one really fails.

    Args:
        candidates: Command lines in priority order.
        cwd: Working directory for every candidate.
        timeout: Per-candidate timeout in seconds.
        on_attempt: Called with each command before it runs.

    Returns:
        Ok(ChainSuccess) for the first successful candidate, otherwise
        Err(ChainFailure) with every attempt made.
    """
    attempts: list[ChainAttempt] = []
    for candidate in candidates:
        command = tuple(candidate)
        if on_attempt is not None:
            on_attempt(command)

        result = run_process(list(command), cwd=cwd, timeout=timeout)
        if isinstance(result, Ok):
            return Ok(ChainSuccess(command=command, stdout=result.value, attempts=tuple(attempts)))

        kind = classify_failure(result.error)
        attempts.append(ChainAttempt(command=command, kind=kind, error=result.error))
        if kind == "failed":
            break

    return Err(ChainFailure(attempts=tuple(attempts)))
