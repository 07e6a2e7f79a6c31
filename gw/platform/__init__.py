"""Platform layer: process execution, command chains, files."""

from .commands import ChainFailure, ChainSuccess, classify_failure, run_chain
from .files import atomic_write_text
from .process import ProcessError, run, run_silent

__all__ = [
    "ChainFailure",
    "ChainSuccess",
    "ProcessError",
    "atomic_write_text",
    "classify_failure",
    "run",
    "run_chain",
    "run_silent",
]
