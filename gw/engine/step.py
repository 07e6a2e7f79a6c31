"""Declarative step definitions.

A step is either a leaf with a ``task`` or a group with ``subtasks``.
``enabled`` and ``skip`` accept a literal or a callable evaluated against the
run context when the engine reaches the step:

    Step(
        title="Run tests",
        task=run_tests,
        skip=lambda ctx: "skipped by --skip-tests" if ctx.options.skip_tests else False,
        retry=1,
    )

A task receives the context and a ``StepReporter``. It signals failure by
returning ``Err(StepError(...))`` or by raising; returning ``Ok(None)`` (or
nothing) is success.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from gw.core.result import Result

if TYPE_CHECKING:
    from gw.engine.record import StepReporter

__all__ = [
    "EnabledPredicate",
    "SkipPredicate",
    "Step",
    "StepError",
    "Task",
]


@dataclass(frozen=True, slots=True)
class StepError:
    """Task-level failure value."""

    message: str
    hint: str | None = None

    def __str__(self) -> str:
        return self.message


type EnabledPredicate[C] = bool | Callable[[C], bool]
type SkipPredicate[C] = bool | str | Callable[[C], bool | str]
type Task[C] = Callable[[C, StepReporter], Result[None, StepError] | None]


@dataclass(frozen=True, slots=True)
class Step[C]:
    title: str
    task: Task[C] | None = None
    subtasks: tuple[Step[C], ...] = ()
    enabled: EnabledPredicate[C] = True
    skip: SkipPredicate[C] = False
    retry: int = 0
    concurrent: bool = False

    def __post_init__(self) -> None:
        if self.retry < 0:
            raise ValueError(f"retry must be >= 0, got {self.retry}")

    @property
    def is_group(self) -> bool:
        return bool(self.subtasks)

    def is_enabled(self, context: C) -> bool:
        if callable(self.enabled):
            return bool(self.enabled(context))
        return self.enabled

    def skip_reason(self, context: C) -> str | None:
        """None when the step should run, otherwise the reason (possibly empty)."""
        value = self.skip(context) if callable(self.skip) else self.skip
        if value is True:
            return ""
        if isinstance(value, str) and value:
            return value
        return None
