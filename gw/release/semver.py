from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

from gw.core.result import Err, Ok, Result
from gw.git.commits import Commit
from gw.release.errors import ReleaseError

__all__ = [
    "BumpKind",
    "SemVer",
    "infer_bump",
    "next_version",
    "parse_version",
]

BumpKind = Literal["major", "minor", "patch"]

_VERSION_RE = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


@dataclass(frozen=True, slots=True)
class SemVer:
    major: int
    minor: int
    patch: int
    prerelease: str | None = None

    def __str__(self) -> str:
        core = f"{self.major}.{self.minor}.{self.patch}"
        return f"{core}-{self.prerelease}" if self.prerelease else core

    @property
    def core(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def sort_key(self) -> tuple[int, int, int, int]:
        # A prerelease sorts before its release
        return (*self.core, 0 if self.prerelease else 1)

    def to_tag(self, prefix: str = "v") -> str:
        return f"{prefix}{self}"

    def bump(self, kind: BumpKind) -> SemVer:
        """Strict increment; a prerelease is promoted to its own release first."""
        match kind:
            case "major":
                if self.prerelease and self.minor == 0 and self.patch == 0:
                    return SemVer(self.major, 0, 0)
                return SemVer(self.major + 1, 0, 0)
            case "minor":
                if self.prerelease and self.patch == 0:
                    return SemVer(self.major, self.minor, 0)
                return SemVer(self.major, self.minor + 1, 0)
            case "patch":
                if self.prerelease:
                    return SemVer(self.major, self.minor, self.patch)
                return SemVer(self.major, self.minor, self.patch + 1)
            case _:
                raise AssertionError(f"unexpected bump kind: {kind}")


def parse_version(text: str) -> SemVer | None:
    """Parse ``1.2.3`` or ``v1.2.3`` (prerelease allowed, build metadata dropped)."""
    m = _VERSION_RE.match(text.strip())
    if m is None:
        return None
    return SemVer(int(m.group(1)), int(m.group(2)), int(m.group(3)), m.group(4))


def next_version(current: str, bump: BumpKind) -> Result[str, ReleaseError]:
    parsed = parse_version(current)
    if parsed is None:
        return Err(
            ReleaseError(
                kind="version_invalid",
                message=f"invalid semantic version: {current!r}",
                hint="Expected MAJOR.MINOR.PATCH, e.g. 1.2.3",
            )
        )
    return Ok(str(parsed.bump(bump)))


def infer_bump(commits: Iterable[Commit]) -> BumpKind:
    """major if any commit is breaking, else minor if any is a feat, else patch."""
    has_feat = False
    for commit in commits:
        if commit.breaking:
            return "major"
        if commit.type == "feat":
            has_feat = True
    return "minor" if has_feat else "patch"
