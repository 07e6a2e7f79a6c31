"""Changelog entries and release notes.

Both group commits the same way: features, then bug fixes, then everything
else. Feature and fix lines drop their conventional prefix; other lines keep
the full subject.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from pathlib import Path

from gw.git.commits import Commit
from gw.platform.files import atomic_write_text, read_text_or_none

__all__ = [
    "CommitGroups",
    "changelog_entry",
    "group_commits",
    "insert_entry",
    "release_notes",
    "write_changelog",
]

_DEFAULT_HEADER = "# Changelog"


@dataclass(frozen=True, slots=True)
class CommitGroups:
    features: tuple[str, ...]
    fixes: tuple[str, ...]
    other: tuple[str, ...]


def group_commits(commits: Sequence[Commit]) -> CommitGroups:
    features: list[str] = []
    fixes: list[str] = []
    other: list[str] = []
    for commit in commits:
        header = commit.header
        if header is not None and header.type == "feat":
            features.append(header.description)
        elif header is not None and header.type == "fix":
            fixes.append(header.description)
        else:
            other.append(commit.message.strip())
    return CommitGroups(tuple(features), tuple(fixes), tuple(other))


def changelog_entry(version: str, commits: Sequence[Commit], *, today: date | None = None) -> str:
    """Render one ``## [version] - date`` section."""
    day = (today or date.today()).isoformat()
    groups = group_commits(commits)

    lines = [f"## [{version}] - {day}", ""]
    for title, items in (
        ("Features", groups.features),
        ("Bug Fixes", groups.fixes),
        ("Other Changes", groups.other),
    ):
        if not items:
            continue
        lines.append(f"### {title}")
        lines.append("")
        lines.extend(f"- {item}" for item in items)
        lines.append("")
    return "\n".join(lines).rstrip("\n") + "\n"


def insert_entry(existing: str, entry: str) -> str:
    """Insert ``entry`` directly under the top-level heading.

    Prior entries are kept below it. Without a ``# `` heading one is added.
    """
    lines = existing.split("\n")
    header_index = next((i for i, line in enumerate(lines) if line.startswith("# ")), None)
    if header_index is None:
        return f"{_DEFAULT_HEADER}\n\n{entry}\n{existing}"

    head = lines[: header_index + 1]
    rest = lines[header_index + 1 :]
    while rest and not rest[0].strip():
        rest.pop(0)
    if not rest:
        return "\n".join(head) + f"\n\n{entry}"
    return "\n".join(head) + f"\n\n{entry}\n" + "\n".join(rest)


def write_changelog(path: Path, version: str, commits: Sequence[Commit], *, today: date | None = None) -> bool:
    """Add an entry for ``version``. Returns True when the file was created."""
    entry = changelog_entry(version, commits, today=today)
    existing = read_text_or_none(path)
    if existing is None:
        atomic_write_text(path, f"{_DEFAULT_HEADER}\n\n{entry}")
        return True
    atomic_write_text(path, insert_entry(existing, entry))
    return False


def release_notes(tag: str, commits: Sequence[Commit]) -> str:
    """Release body for ``tag``, headed with the tag as created."""
    groups = group_commits(commits)
    parts = [f"Release {tag}", ""]
    if groups.features:
        parts.append("## Features")
        parts.extend(f"- {item}" for item in groups.features)
        parts.append("")
    if groups.fixes:
        parts.append("## Bug Fixes")
        parts.extend(f"- {item}" for item in groups.fixes)
        parts.append("")
    if groups.other:
        count = len(groups.other)
        noun = "commit" if count == 1 else "commits"
        parts.append("## Other Changes")
        parts.append(f"{count} other {noun} included in this release.")
        parts.append("")
    return "\n".join(parts)
