"""Step renderers."""

from __future__ import annotations

import threading

from gw.engine.record import StepRecord, StepStatus
from gw.output.console import ConsoleProtocol, Style

__all__ = ["ConsoleRenderer", "NullRenderer"]


class NullRenderer:
    """Renders nothing."""

    def started(self, record: StepRecord) -> None:
        pass

    def updated(self, record: StepRecord) -> None:
        pass

    def finished(self, record: StepRecord) -> None:
        pass


class ConsoleRenderer:
    """Hierarchical progress through a ``ConsoleProtocol``.

    Groups print a header line when they start; every step prints a status
    line when it finishes. Task output lines are printed dimmed as they come.
    """

    _MARKERS = {
        StepStatus.SUCCEEDED: "[ok]",
        StepStatus.SKIPPED: "[skip]",
        StepStatus.WARNED: "[warn]",
        StepStatus.FAILED: "[fail]",
    }

    def __init__(self, console: ConsoleProtocol, *, show_progress: bool = True) -> None:
        self._console = console
        self._show_progress = show_progress
        self._lock = threading.Lock()
        self._seen_output: dict[int, int] = {}
        self._seen_progress: dict[int, tuple[float, float | None]] = {}

    def started(self, record: StepRecord) -> None:
        if not record.is_group:
            return
        with self._lock:
            self._console.print(f"{self._indent(record)}{record.title}", Style.BOLD)

    def updated(self, record: StepRecord) -> None:
        key = id(record)
        indent = self._indent(record)
        with self._lock:
            seen = self._seen_output.get(key, 0)
            for line in record.output[seen:]:
                self._console.print(f"{indent}  {line}", Style.DIM)
            self._seen_output[key] = len(record.output)

            progress = record.progress
            if self._show_progress and progress is not None and progress != self._seen_progress.get(key):
                self._seen_progress[key] = progress
                current, total = progress
                shown = f"{current:g}/{total:g}" if total is not None else f"{current:.0%}"
                self._console.print(f"{indent}  {record.title} ({shown})", Style.DIM)

    def finished(self, record: StepRecord) -> None:
        marker = self._MARKERS.get(record.status, "")
        line = f"{self._indent(record)}{marker} {record.title}"
        with self._lock:
            match record.status:
                case StepStatus.SUCCEEDED:
                    self._console.print(line, Style.SUCCESS)
                case StepStatus.SKIPPED:
                    suffix = f" ({record.reason})" if record.reason else ""
                    self._console.print(line + suffix, Style.DIM)
                case StepStatus.WARNED:
                    suffix = f": {record.reason}" if record.reason else ""
                    self._console.print(line + suffix, Style.WARNING)
                case StepStatus.FAILED:
                    suffix = f": {record.error}" if record.error and not record.is_group else ""
                    self._console.print(line + suffix, Style.ERROR)
                case _:
                    self._console.print(line)

    @staticmethod
    def _indent(record: StepRecord) -> str:
        return "  " * record.depth
