"""Error recovery advisor."""

from .advisor import ErrorAnalysis, RecoveryAdvisor, RecoveryContext, classify_error

__all__ = [
    "ErrorAnalysis",
    "RecoveryAdvisor",
    "RecoveryContext",
    "classify_error",
]
