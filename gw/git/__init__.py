"""Git operations."""

from .commits import Commit, ConventionalHeader, parse_header, parse_log
from .repository import GitError, GitStatus, Repository, StatusEntry

__all__ = [
    "Commit",
    "ConventionalHeader",
    "GitError",
    "GitStatus",
    "Repository",
    "StatusEntry",
    "parse_header",
    "parse_log",
]
