"""Run records and the reporter handed to tasks."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol

__all__ = [
    "StepRecord",
    "StepRenderer",
    "StepReporter",
    "StepStatus",
]


class StepStatus(Enum):
    PENDING = auto()
    RUNNING = auto()
    SUCCEEDED = auto()
    SKIPPED = auto()
    WARNED = auto()  # failed but the run continued
    FAILED = auto()

    def __str__(self) -> str:
        return self.name.lower()


def _empty_records() -> list[StepRecord]:
    return []


def _empty_lines() -> list[str]:
    return []


@dataclass
class StepRecord:
    """Live state of one executed (or skipped) step.

    Steps that were not enabled never get a record.
    """

    title: str
    depth: int = 0
    is_group: bool = False
    status: StepStatus = StepStatus.PENDING
    reason: str | None = None
    output: list[str] = field(default_factory=_empty_lines)
    progress: tuple[float, float | None] | None = None
    attempts: int = 0
    error: str | None = None
    children: list[StepRecord] = field(default_factory=_empty_records)

    @property
    def last_output(self) -> str | None:
        return self.output[-1] if self.output else None

    def walk(self) -> list[StepRecord]:
        """This record and all descendants, depth-first."""
        found = [self]
        for child in self.children:
            found.extend(child.walk())
        return found


class StepRenderer(Protocol):
    """Presentation of a run. Called from worker threads for concurrent groups."""

    def started(self, record: StepRecord) -> None: ...

    def updated(self, record: StepRecord) -> None: ...

    def finished(self, record: StepRecord) -> None: ...


class StepReporter:
    """Handle a task uses to update its own step.

    Title, output and progress only change presentation. ``warn`` marks the
    step WARNED: it finishes without failing the run.
    """

    def __init__(self, record: StepRecord, renderer: StepRenderer) -> None:
        self._record = record
        self._renderer = renderer

    @property
    def title(self) -> str:
        return self._record.title

    def set_title(self, title: str) -> None:
        self._record.title = title
        self._renderer.updated(self._record)

    def set_output(self, text: str) -> None:
        self._record.output.append(text)
        self._renderer.updated(self._record)

    def set_progress(self, current: float, total: float | None = None) -> None:
        """Report ``current`` of ``total``, or a fraction in [0, 1] without total."""
        self._record.progress = (current, total)
        self._renderer.updated(self._record)

    def warn(self, reason: str) -> None:
        self._record.status = StepStatus.WARNED
        self._record.reason = reason
        self._renderer.updated(self._record)
