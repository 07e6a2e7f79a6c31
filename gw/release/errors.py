from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "uncommitted_changes",
    "not_a_repository",
    "version_invalid",
    "manifest_invalid",
    "tag_exists",
    "lint_failed",
    "type_errors",
    "tests_failed",
    "build_failed",
    "git_failed",
    "prompt_unavailable",
    "config_invalid",
    "gh_missing",
    "gh_auth_required",
    "gh_failed",
]

DeploymentReason = Literal["missing_config", "auth", "permission", "tool_missing", "unknown"]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    kind: ReleaseErrorKind
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class DeploymentError:
    """A target-scoped failure; never aborts the pipeline."""

    target: str
    reason: DeploymentReason
    message: str
    detail: str = ""

    def __str__(self) -> str:
        return f"{self.target}: {self.message}"
