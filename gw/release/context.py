"""Run context shared by every step of one release run."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from gw.core.config import WorkflowConfig
from gw.git.commits import Commit
from gw.git.repository import Repository
from gw.release.options import ReleaseOptions
from gw.release.semver import BumpKind

__all__ = [
    "DeploymentRecord",
    "GitSnapshot",
    "QualitySnapshot",
    "RunContext",
    "VersionSnapshot",
]


@dataclass(slots=True)
class GitSnapshot:
    branch: str
    has_changes: bool = False
    remote: str | None = None
    repository: str | None = None
    commits: list[Commit] = field(default_factory=list)


@dataclass(slots=True)
class VersionSnapshot:
    current: str
    next: str | None = None
    bump: BumpKind | None = None
    strategy: Literal["semantic", "manual"] = "semantic"


@dataclass(slots=True)
class QualitySnapshot:
    lint_passed: bool | None = None
    typecheck_passed: bool | None = None
    tests_passed: bool | None = None


@dataclass(frozen=True, slots=True)
class DeploymentRecord:
    """Written only when a target succeeded."""

    target: str
    environment: str | None = None
    url: str | None = None
    registry: str | None = None
    tag: str | None = None
    access: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class RunContext:
    """Mutable state threaded by reference through the release steps.

    Snapshots start as None and are filled by the step that owns them.
    ``extras`` is for step-local data with no dedicated field.
    """

    root: Path
    repo: Repository
    config: WorkflowConfig
    options: ReleaseOptions
    git: GitSnapshot | None = None
    version: VersionSnapshot | None = None
    quality: QualitySnapshot = field(default_factory=QualitySnapshot)
    deployments: dict[str, DeploymentRecord] = field(default_factory=dict)
    release_url: str | None = None
    extras: dict[str, object] = field(default_factory=dict)

    @property
    def tag_name(self) -> str | None:
        if self.version is None or self.version.next is None:
            return None
        return f"{self.config.git.tag_prefix}{self.version.next}"

    @property
    def manifest_path(self) -> Path:
        return self.root / self.config.release.manifest

    @property
    def changelog_path(self) -> Path:
        return self.root / self.config.release.changelog
