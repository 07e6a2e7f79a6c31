"""Feature command - feature branch workflow (announced, not implemented)."""

from __future__ import annotations

from enum import Enum

import typer

from gw.output.console import RichConsole, Style


class BranchType(str, Enum):
    feature = "feature"
    bugfix = "bugfix"
    hotfix = "hotfix"


def feature(
    name: str | None = typer.Argument(None, help="Branch name (without the type prefix)"),
    branch_type: BranchType = typer.Option(
        BranchType.feature,
        "--type",
        "-t",
        help="Branch type",
        case_sensitive=False,
    ),
    base: str = typer.Option("main", "--base", "-b", help="Base branch"),
    auto_merge: bool = typer.Option(False, "--auto-merge", help="Merge automatically once checks pass"),
) -> None:
    """Start a feature branch workflow (coming soon)."""
    console = RichConsole()
    target = f"{branch_type.value}/{name}" if name else f"{branch_type.value}/<name>"
    console.header("go-workflow feature")
    console.info(f"Feature workflow is not available yet ({target} from {base})")
    if auto_merge:
        console.print("--auto-merge will apply once the workflow ships", Style.DIM)
    console.print("Use 'go-workflow release' to publish a new version", Style.DIM)
