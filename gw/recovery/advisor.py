"""Error recovery advisor.

Classifies a failure by keywords and, for the categories a machine can fix
(lint, build, dependencies), runs a short remedial step list on its own
``TaskEngine`` with ``exit_on_error=False``. Type errors, authentication
problems and unknown errors only get guidance.

The advisor never raises. It is injected into the release engine as its
``RecoveryHook`` and handed failed-workflow logs by post-release monitoring.
"""

from __future__ import annotations

import shutil
import traceback
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from gw.core.result import Err, Ok, Result
from gw.engine.engine import EngineOptions, ExecutionError, RunReport, TaskEngine
from gw.engine.record import StepRenderer, StepReporter
from gw.engine.render import NullRenderer
from gw.engine.step import Step, StepError
from gw.git.repository import Repository
from gw.output.console import ConsoleProtocol, Style
from gw.platform.commands import format_command
from gw.platform.process import run as run_process

__all__ = [
    "Category",
    "ErrorAnalysis",
    "RecoveryAdvisor",
    "RecoveryContext",
    "Severity",
    "classify_error",
]

Category = Literal["linting", "type_system", "build", "authentication", "dependency", "unknown"]
Severity = Literal["critical", "warning", "minor"]

LINT_FIX_COMMIT = "fix: automated lint error fixes"


@dataclass(frozen=True, slots=True)
class ErrorAnalysis:
    category: Category
    severity: Severity
    fixable: bool
    description: str
    suggested_fixes: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class _Rule:
    analysis: ErrorAnalysis
    message_keywords: tuple[str, ...]
    trace_keywords: tuple[str, ...] = ()

    def matches(self, message: str, trace: str) -> bool:
        return any(k in message for k in self.message_keywords) or any(k in trace for k in self.trace_keywords)


# Checked in order; the first match wins
_RULES: tuple[_Rule, ...] = (
    _Rule(
        ErrorAnalysis(
            "linting",
            "warning",
            True,
            "ESLint or style-related errors detected",
            (
                "Run lint:fix to automatically fix issues",
                "Apply common lint pattern fixes",
                "Add eslint-disable comments for unfixable issues",
            ),
        ),
        message_keywords=("eslint", "lint", "style"),
        trace_keywords=("eslint",),
    ),
    _Rule(
        ErrorAnalysis(
            "type_system",
            "critical",
            False,
            "TypeScript compilation errors",
            ("Fix type annotations", "Add missing imports", "Update tsconfig.json if needed"),
        ),
        message_keywords=("typescript", "tsc", "type"),
        trace_keywords=("typescript",),
    ),
    _Rule(
        ErrorAnalysis(
            "build",
            "critical",
            True,
            "Build or compilation errors",
            ("Clean and rebuild project", "Update dependencies", "Fix import paths"),
        ),
        message_keywords=("build", "compile", "bundl"),
    ),
    _Rule(
        ErrorAnalysis(
            "authentication",
            "critical",
            False,
            "Authentication or authorization errors",
            ("Check npm token", "Re-authenticate with npm login", "Verify repository permissions"),
        ),
        message_keywords=("401", "authentication", "unauthorized", "token"),
    ),
    _Rule(
        ErrorAnalysis(
            "dependency",
            "warning",
            True,
            "Missing or incompatible dependencies",
            (
                "Install missing dependencies",
                "Update package versions",
                "Clear node_modules and reinstall",
            ),
        ),
        message_keywords=("module", "package", "dependency", "import"),
    ),
)

_UNKNOWN = ErrorAnalysis(
    "unknown",
    "critical",
    False,
    "Unknown error type",
    (
        "Check error logs manually",
        "Search for similar issues online",
        "Contact support if needed",
    ),
)


def classify_error(message: str, trace: str = "") -> ErrorAnalysis:
    lowered_message = message.lower()
    lowered_trace = trace.lower()
    for rule in _RULES:
        if rule.matches(lowered_message, lowered_trace):
            return rule.analysis
    return _UNKNOWN


@dataclass(frozen=True, slots=True)
class RecoveryContext:
    root: Path
    dry_run: bool = False


type _RecoveryTask = Step[RecoveryContext]
type _RecoveryFn = Callable[[RecoveryContext, StepReporter], Result[None, StepError]]


def _run_first(
    ctx: RecoveryContext,
    reporter: StepReporter,
    commands: Sequence[Sequence[str]],
) -> Result[tuple[str, ...], None]:
    for command in commands:
        argv = list(command)
        if ctx.dry_run:
            reporter.set_output(f"dry-run: would run {format_command(argv)}")
            return Ok(tuple(argv))
        reporter.set_output(f"Running {format_command(argv)}...")
        if isinstance(run_process(argv, cwd=ctx.root), Ok):
            return Ok(tuple(argv))
    return Err(None)


def _command_step(
    title: str,
    commands: Sequence[Sequence[str]],
    *,
    done: str,
    failed: str,
) -> _RecoveryTask:
    def task(ctx: RecoveryContext, reporter: StepReporter) -> Result[None, StepError]:
        match _run_first(ctx, reporter, commands):
            case Ok(_):
                reporter.set_title(f"{title} - {done}")
            case Err(_):
                reporter.warn(failed)
        return Ok(None)

    return Step(title=title, task=task)


def _commit_lint_fixes(ctx: RecoveryContext, reporter: StepReporter) -> Result[None, StepError]:
    repo = Repository(ctx.root)
    match repo.has_uncommitted_changes():
        case Err(_):
            reporter.warn("could not read repository status")
            return Ok(None)
        case Ok(False):
            reporter.set_title("Commit lint fixes - no changes to commit")
            return Ok(None)
        case Ok(True):
            pass

    if ctx.dry_run:
        reporter.set_output(f"dry-run: would commit '{LINT_FIX_COMMIT}'")
        return Ok(None)

    staged = repo.stage()
    committed = repo.commit(LINT_FIX_COMMIT) if isinstance(staged, Ok) else staged
    if isinstance(committed, Err):
        reporter.warn("could not commit changes")
        return Ok(None)
    reporter.set_title("Commit lint fixes - changes committed")
    return Ok(None)


def _remove_node_modules(ctx: RecoveryContext, reporter: StepReporter) -> Result[None, StepError]:
    target = ctx.root / "node_modules"
    if ctx.dry_run:
        reporter.set_output(f"dry-run: would remove {target}")
    elif target.exists():
        reporter.set_output(f"Removing {target}...")
        shutil.rmtree(target, ignore_errors=True)
    return Ok(None)


def lint_recovery_steps() -> list[_RecoveryTask]:
    return [
        _command_step(
            "Run lint:fix",
            [["bun", "run", "lint:fix"], ["npm", "run", "lint:fix"]],
            done="auto-fixes applied",
            failed="no lint:fix script available",
        ),
        _command_step(
            "Verify linting",
            [["bun", "run", "lint"]],
            done="all issues resolved",
            failed="manual fixes may be needed",
        ),
        Step(title="Commit lint fixes", task=_commit_lint_fixes),
    ]


def build_recovery_steps() -> list[_RecoveryTask]:
    return [
        _command_step(
            "Clean build directory",
            [["bun", "run", "clean"]],
            done="build artifacts cleaned",
            failed="no clean script available",
        ),
        Step(title="Remove node_modules", task=_remove_node_modules),
        _command_step(
            "Reinstall dependencies",
            [["bun", "install"], ["npm", "install"]],
            done="dependencies reinstalled",
            failed="could not reinstall dependencies",
        ),
        _command_step(
            "Rebuild project",
            [["bun", "run", "build"], ["npm", "run", "build"]],
            done="build completed",
            failed="build still failing",
        ),
    ]


def dependency_recovery_steps() -> list[_RecoveryTask]:
    return [
        _command_step(
            "Update dependencies",
            [["bun", "update"], ["npm", "update"]],
            done="dependencies updated",
            failed="could not update dependencies",
        ),
        _command_step(
            "Install missing dependencies",
            [["bun", "install"], ["npm", "install"]],
            done="installation completed",
            failed="installation failed",
        ),
    ]


_ADVISORIES: dict[Category, tuple[str, str]] = {
    "type_system": ("TypeScript error advisory", "Type errors cannot be fixed automatically; review them manually"),
    "authentication": (
        "Authentication error advisory",
        "Authentication needs manual setup: check your npm token or run npm login / gh auth login",
    ),
    "unknown": ("Unknown error advisory", "Unknown error type; investigate manually"),
}


class RecoveryAdvisor:
    """Explicitly constructed recovery collaborator.

    Attributes:
        last_report: Step outcomes of the most recent remediation run
    """

    def __init__(
        self,
        console: ConsoleProtocol,
        root: Path,
        *,
        renderer: StepRenderer | None = None,
        dry_run: bool = False,
    ) -> None:
        self._console = console
        self._root = root
        self._renderer: StepRenderer = renderer or NullRenderer()
        self._dry_run = dry_run
        self.last_report: RunReport[RecoveryContext] | None = None

    def recover(self, error: ExecutionError[Any], context: Any) -> None:
        """Engine hook: advise on a failed run."""
        trace = ""
        exc = error.exception
        if exc is not None:
            trace = "".join(traceback.format_exception(exc))
        self.advise(error.message, trace)

    def advise(self, message: str, trace: str = "") -> ErrorAnalysis | None:
        """Classify ``message`` and run the matching remediation. Never raises."""
        try:
            analysis = classify_error(message, trace)
            self._show(analysis)
            steps = self.recovery_steps(analysis)
            engine: TaskEngine[RecoveryContext] = TaskEngine(
                EngineOptions(exit_on_error=False, auto_recovery=False),
                renderer=self._renderer,
            )
            self.last_report = engine.run(steps, RecoveryContext(root=self._root, dry_run=self._dry_run))
            self._console.print("Consider running the release again to verify fixes", Style.DIM)
            return analysis
        except Exception as e:
            self._console.error(str(e) or type(e).__name__)
            self._console.error("Automated recovery failed. Manual intervention required.")
            return None

    def recovery_steps(self, analysis: ErrorAnalysis) -> list[_RecoveryTask]:
        match analysis.category:
            case "linting":
                steps = lint_recovery_steps()
            case "build":
                steps = build_recovery_steps()
            case "dependency":
                steps = dependency_recovery_steps()
            case category:
                title, text = _ADVISORIES[category]
                steps = [Step(title=title, task=_advisory(text))]
        steps.append(Step(title="Recovery verification", task=_verification(analysis)))
        return steps

    def _show(self, analysis: ErrorAnalysis) -> None:
        fixable = "yes" if analysis.fixable else "no"
        self._console.panel(
            "Automated error recovery",
            f"Error type: {analysis.category} | Severity: {analysis.severity} | Fixable: {fixable}\n"
            f"{analysis.description}",
            items=analysis.suggested_fixes,
            style=Style.WARNING,
        )


def _advisory(text: str) -> _RecoveryFn:
    def task(ctx: RecoveryContext, reporter: StepReporter) -> Result[None, StepError]:
        reporter.set_output(text)
        reporter.set_title(f"{reporter.title} - manual intervention required")
        return Ok(None)

    return task


def _verification(analysis: ErrorAnalysis) -> _RecoveryFn:
    def task(ctx: RecoveryContext, reporter: StepReporter) -> Result[None, StepError]:
        if not analysis.fixable or ctx.dry_run:
            reporter.set_title("Recovery verification - completed")
            return Ok(None)
        for label, command in (("Lint", ["bun", "run", "lint"]), ("Type", ["bun", "run", "typecheck"])):
            passed = isinstance(run_process(command, cwd=ctx.root), Ok)
            reporter.set_output(f"{label} check passed" if passed else f"{label} issues may still exist")
        reporter.set_title("Recovery verification - completed")
        return Ok(None)

    return task
