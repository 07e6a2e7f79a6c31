"""Quality gates: lint auto-fix, type check, tests.

Each gate walks a command chain from the config. Lint is best effort, a real
type error or test failure is fatal, and a test suite reporting "no tests"
counts as a pass.
"""

from __future__ import annotations

from collections.abc import Callable

from gw.core.result import Err, Ok, Result
from gw.engine.record import StepReporter
from gw.engine.step import StepError
from gw.platform.commands import ChainFailure, format_command, run_chain
from gw.release.context import RunContext
from gw.release.timeouts import QUALITY_TIMEOUT_SECONDS

__all__ = ["lint_task", "output_tail", "tests_task", "typecheck_task"]


def output_tail(text: str, lines: int = 15) -> str:
    kept = [ln for ln in text.strip().splitlines() if ln.strip()]
    return "\n".join(kept[-lines:])


def _trying(reporter: StepReporter) -> Callable[[tuple[str, ...]], None]:
    def report(command: tuple[str, ...]) -> None:
        reporter.set_output(f"Trying {format_command(command)}...")

    return report


def _failure_output(failure: ChainFailure) -> str:
    attempt = failure.failure
    return output_tail(attempt.error.output) if attempt is not None else ""


def lint_task(ctx: RunContext, reporter: StepReporter) -> Result[None, StepError]:
    chain = run_chain(
        ctx.config.quality.lint,
        cwd=ctx.root,
        timeout=QUALITY_TIMEOUT_SECONDS,
        on_attempt=_trying(reporter),
    )
    match chain:
        case Ok(success):
            ctx.quality.lint_passed = True
            reporter.set_title(f"Auto-fix linting issues - fixed ({format_command(success.command)})")
        case Err(failure) if failure.failure is not None:
            ctx.quality.lint_passed = False
            reporter.set_output("Lint command ran but some issues could not be auto-fixed")
            reporter.warn(f"some issues remain ({format_command(failure.failure.command)})")
        case Err(failure):
            reporter.warn(f"no lint command available (tried: {failure.tried})")
    return Ok(None)


def typecheck_task(ctx: RunContext, reporter: StepReporter) -> Result[None, StepError]:
    chain = run_chain(
        ctx.config.quality.typecheck_commands,
        cwd=ctx.root,
        timeout=QUALITY_TIMEOUT_SECONDS,
        on_attempt=_trying(reporter),
    )
    match chain:
        case Ok(success):
            ctx.quality.typecheck_passed = True
            reporter.set_title(f"Type checking - passed ({format_command(success.command)})")
            return Ok(None)
        case Err(failure) if failure.failure is not None:
            ctx.quality.typecheck_passed = False
            detail = _failure_output(failure)
            if detail:
                reporter.set_output(detail)
            return Err(
                StepError(
                    message="Type errors found. Please fix before releasing.",
                    hint=f"Run: {format_command(failure.failure.command)}",
                )
            )
        case Err(failure):
            ctx.quality.typecheck_passed = False
            return Err(
                StepError(
                    message=f"No type check command available (tried: {failure.tried})",
                    hint="Add a typecheck script, or set quality.typecheck = false in go-workflow.toml",
                )
            )


def tests_task(ctx: RunContext, reporter: StepReporter) -> Result[None, StepError]:
    chain = run_chain(
        ctx.config.quality.test,
        cwd=ctx.root,
        timeout=QUALITY_TIMEOUT_SECONDS,
        on_attempt=_trying(reporter),
    )
    match chain:
        case Ok(success):
            ctx.quality.tests_passed = True
            reporter.set_title(f"Running tests - all tests passed ({format_command(success.command)})")
            return Ok(None)
        case Err(failure) if failure.failure is not None:
            ctx.quality.tests_passed = False
            output = failure.failure.error.output
            summary = next(
                (ln.strip() for ln in output.splitlines() if "fail" in ln.lower()),
                format_command(failure.failure.command),
            )
            tail = _failure_output(failure)
            if tail:
                reporter.set_output(tail)
            return Err(
                StepError(
                    message=f"Tests failed: {summary}",
                    hint="Fix the failing tests, or re-run with --skip-tests",
                )
            )
        case Err(failure):
            ctx.quality.tests_passed = True
            label = "no tests found" if failure.saw_no_tests else "no test command found"
            reporter.set_title(f"Running tests - {label} (skipping)")
            return Ok(None)
