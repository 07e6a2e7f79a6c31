"""Commit records and conventional-commit header parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = [
    "Commit",
    "ConventionalHeader",
    "LOG_FORMAT",
    "parse_header",
    "parse_log",
    "strip_header",
]

_HEADER_RE = re.compile(r"^(\w+)(?:\(([^)]+)\))?(!)?: (.+)$")

# Fields separated by US (0x1f), records terminated by RS (0x1e)
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
LOG_FORMAT = "%H%x1f%s%x1f%an%x1f%aI%x1e"


@dataclass(frozen=True, slots=True)
class ConventionalHeader:
    """Parsed ``type(scope)!: description`` subject line."""

    type: str
    scope: str | None
    breaking: bool
    description: str


@dataclass(frozen=True, slots=True)
class Commit:
    """One commit as reported by ``git log``.

    ``header`` is None when the subject does not follow the
    conventional-commit grammar.
    """

    hash: str
    message: str
    author: str
    timestamp: str
    header: ConventionalHeader | None = None

    @property
    def type(self) -> str | None:
        return self.header.type if self.header else None

    @property
    def breaking(self) -> bool:
        return self.header.breaking if self.header else False

    @property
    def short_hash(self) -> str:
        return self.hash[:7]


def parse_header(message: str) -> ConventionalHeader | None:
    m = _HEADER_RE.match(message.strip())
    if m is None:
        return None
    return ConventionalHeader(
        type=m.group(1),
        scope=m.group(2),
        breaking=m.group(3) is not None,
        description=m.group(4),
    )


def strip_header(message: str) -> str:
    """Return the description of a conventional subject, or the subject unchanged."""
    header = parse_header(message)
    return header.description if header else message.strip()


def parse_log(output: str) -> list[Commit]:
    """Parse ``git log --format=LOG_FORMAT`` output, preserving order."""
    commits: list[Commit] = []
    for record in output.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record.strip():
            continue
        parts = record.split(_FIELD_SEP)
        if len(parts) != 4:
            continue
        sha, subject, author, timestamp = parts
        commits.append(
            Commit(
                hash=sha.strip(),
                message=subject,
                author=author,
                timestamp=timestamp.strip(),
                header=parse_header(subject),
            )
        )
    return commits
