"""Task orchestration engine.

Runs a tree of ``Step`` definitions against one shared context:

    engine = TaskEngine(EngineOptions(), renderer=ConsoleRenderer(console))
    match engine.execute(steps, context):
        case Ok(ctx):
            ...
        case Err(error):
            console.error(error.message)

Steps run depth-first in list order. A group flagged ``concurrent`` dispatches
all of its enabled children at once on a thread pool; siblings in such a
group must not write the same context fields.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Protocol

from gw.core.result import Err, Ok, Result
from gw.engine.record import StepRecord, StepRenderer, StepReporter, StepStatus
from gw.engine.render import NullRenderer
from gw.engine.step import Step, StepError

__all__ = [
    "EngineOptions",
    "ExecutionError",
    "RecoveryHook",
    "RunReport",
    "StepFailure",
    "TaskEngine",
]


@dataclass(frozen=True, slots=True)
class EngineOptions:
    exit_on_error: bool = True
    concurrent: bool = False
    auto_recovery: bool = True


@dataclass(frozen=True, slots=True)
class StepFailure:
    """A step that failed after all retries."""

    title: str
    error: StepError
    attempts: int = 1
    exception: BaseException | None = None


@dataclass(frozen=True, slots=True)
class ExecutionError[C]:
    """The first unrecovered failure of a run, with the partial context."""

    message: str
    context: C
    step: str | None = None
    failures: tuple[StepFailure, ...] = ()

    @property
    def exception(self) -> BaseException | None:
        return self.failures[0].exception if self.failures else None


def _empty_records() -> list[StepRecord]:
    return []


def _empty_failures() -> list[StepFailure]:
    return []


@dataclass
class RunReport[C]:
    context: C
    records: list[StepRecord] = field(default_factory=_empty_records)
    failures: list[StepFailure] = field(default_factory=_empty_failures)

    @property
    def ok(self) -> bool:
        return not self.failures

    def all_records(self) -> list[StepRecord]:
        found: list[StepRecord] = []
        for record in self.records:
            found.extend(record.walk())
        return found

    def find(self, title: str) -> StepRecord | None:
        """First record whose current title starts with ``title``."""
        for record in self.all_records():
            if record.title.startswith(title):
                return record
        return None


class RecoveryHook(Protocol):
    """Receives a failed top-level run before ``execute`` returns."""

    def recover(self, error: ExecutionError[Any], context: Any) -> None: ...


class _RunState:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.failures: list[StepFailure] = []

    def add(self, failure: StepFailure) -> None:
        with self._lock:
            self.failures.append(failure)


class TaskEngine[C]:
    def __init__(
        self,
        options: EngineOptions | None = None,
        *,
        renderer: StepRenderer | None = None,
        recovery: RecoveryHook | None = None,
    ) -> None:
        self._options = options or EngineOptions()
        self._renderer: StepRenderer = renderer or NullRenderer()
        self._recovery = recovery

    @property
    def options(self) -> EngineOptions:
        return self._options

    def execute(self, steps: Sequence[Step[C]], context: C) -> Result[C, ExecutionError[C]]:
        """Run ``steps`` and return the context, or the first failure.

        With auto-recovery enabled and a hook injected, the hook sees the
        failure before the Err is returned.
        """
        report = self.run(steps, context)
        if report.ok:
            return Ok(context)

        first = report.failures[0]
        error = ExecutionError(
            message=f"{first.title}: {first.error.message}",
            context=context,
            step=first.title,
            failures=tuple(report.failures),
        )
        if self._options.auto_recovery and self._recovery is not None:
            self._recovery.recover(error, context)
        return Err(error)

    def run(self, steps: Sequence[Step[C]], context: C) -> RunReport[C]:
        """Run ``steps`` and report every step outcome."""
        report: RunReport[C] = RunReport(context=context)
        state = _RunState()
        self._run_group(steps, context, report.records, 0, self._options.concurrent, state)
        report.failures = state.failures
        return report

    # -- internals -----------------------------------------------------------

    def _run_group(
        self,
        steps: Sequence[Step[C]],
        context: C,
        records: list[StepRecord],
        depth: int,
        concurrent: bool,
        state: _RunState,
    ) -> bool:
        if concurrent:
            return self._run_concurrent(steps, context, records, depth, state)

        ok = True
        for step in steps:
            enabled, raised = self._enabled(step, context)
            if not enabled:
                continue
            record = self._new_record(step, depth, records)
            if not self._run_step(step, record, context, state, raised):
                ok = False
                if self._options.exit_on_error:
                    break
        return ok

    def _run_concurrent(
        self,
        steps: Sequence[Step[C]],
        context: C,
        records: list[StepRecord],
        depth: int,
        state: _RunState,
    ) -> bool:
        active: list[tuple[Step[C], StepRecord, Exception | None]] = []
        for step in steps:
            enabled, raised = self._enabled(step, context)
            if enabled:
                active.append((step, self._new_record(step, depth, records), raised))
        if not active:
            return True

        with ThreadPoolExecutor(max_workers=len(active)) as executor:
            futures = [
                executor.submit(self._run_step, step, record, context, state, raised)
                for step, record, raised in active
            ]
            results = [future.result() for future in futures]
        return all(results)

    def _new_record(self, step: Step[C], depth: int, records: list[StepRecord]) -> StepRecord:
        record = StepRecord(title=step.title, depth=depth, is_group=step.is_group)
        records.append(record)
        return record

    def _enabled(self, step: Step[C], context: C) -> tuple[bool, Exception | None]:
        """Evaluate ``enabled``; a raising predicate yields a step that fails."""
        try:
            return step.is_enabled(context), None
        except Exception as e:
            return True, e

    def _fail(
        self,
        record: StepRecord,
        error: StepError,
        exception: BaseException | None,
        attempts: int,
        state: _RunState,
    ) -> bool:
        record.status = StepStatus.FAILED
        record.error = error.message
        state.add(StepFailure(title=record.title, error=error, attempts=attempts, exception=exception))
        self._renderer.finished(record)
        return False

    def _run_step(
        self,
        step: Step[C],
        record: StepRecord,
        context: C,
        state: _RunState,
        raised: Exception | None = None,
    ) -> bool:
        reason: str | None = None
        if raised is None:
            try:
                reason = step.skip_reason(context)
            except Exception as e:
                raised = e
        if raised is not None:
            message = f"step predicate raised: {str(raised) or type(raised).__name__}"
            return self._fail(record, StepError(message=message), raised, 0, state)

        if reason is not None:
            record.status = StepStatus.SKIPPED
            record.reason = reason or None
            self._renderer.finished(record)
            return True

        record.status = StepStatus.RUNNING
        self._renderer.started(record)

        if step.is_group:
            ok = self._run_group(step.subtasks, context, record.children, record.depth + 1, step.concurrent, state)
            if not ok:
                record.status = StepStatus.FAILED
            elif any(child.status is StepStatus.WARNED for child in record.children):
                record.status = StepStatus.WARNED
            else:
                record.status = StepStatus.SUCCEEDED
            self._renderer.finished(record)
            return ok

        if step.task is None:
            record.status = StepStatus.SUCCEEDED
            self._renderer.finished(record)
            return True

        total_attempts = step.retry + 1
        error: StepError | None = None
        exception: BaseException | None = None
        for attempt in range(1, total_attempts + 1):
            record.attempts = attempt
            record.status = StepStatus.RUNNING
            error, exception = self._invoke(step, record, context)
            if error is None:
                if record.status is not StepStatus.WARNED:
                    record.status = StepStatus.SUCCEEDED
                self._renderer.finished(record)
                return True
            if attempt < total_attempts:
                record.output.append(f"{error.message} (retrying {attempt}/{step.retry})")
                self._renderer.updated(record)

        assert error is not None
        return self._fail(record, error, exception, total_attempts, state)

    def _invoke(
        self, step: Step[C], record: StepRecord, context: C
    ) -> tuple[StepError | None, BaseException | None]:
        assert step.task is not None
        reporter = StepReporter(record, self._renderer)
        try:
            result = step.task(context, reporter)
        except Exception as e:  # task bodies may raise; treated like Err
            return StepError(message=str(e) or type(e).__name__), e

        match result:
            case Err(error):
                return _as_step_error(error), None
            case _:
                return None, None


def _as_step_error(error: object) -> StepError:
    if isinstance(error, StepError):
        return error
    message = getattr(error, "message", None)
    hint = getattr(error, "hint", None)
    return StepError(
        message=message if isinstance(message, str) else str(error),
        hint=hint if isinstance(hint, str) else None,
    )
