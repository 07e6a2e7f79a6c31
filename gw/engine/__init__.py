"""Task orchestration engine."""

from .engine import EngineOptions, ExecutionError, RecoveryHook, RunReport, StepFailure, TaskEngine
from .record import StepRecord, StepRenderer, StepReporter, StepStatus
from .render import ConsoleRenderer, NullRenderer
from .step import Step, StepError

__all__ = [
    "ConsoleRenderer",
    "EngineOptions",
    "ExecutionError",
    "NullRenderer",
    "RecoveryHook",
    "RunReport",
    "Step",
    "StepError",
    "StepFailure",
    "StepRecord",
    "StepRenderer",
    "StepReporter",
    "StepStatus",
    "TaskEngine",
]
