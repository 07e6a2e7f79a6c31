"""Process exit codes.

The release command exits 1 on any fatal failure, including the forced exit
for unresolved uncommitted changes in non-interactive mode. Usage errors keep
the click/typer convention of 2.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands. Values are stable."""

    OK = 0
    FAILURE = 1
    USAGE = 2

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
