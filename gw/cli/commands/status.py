"""Status command - show what a release would work with."""

from __future__ import annotations

import shutil
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from gw import __version__
from gw.cli.context import project_root
from gw.core.config import CONFIG_FILE_NAME, WorkflowConfig, load_config_or_default
from gw.core.result import Err, Ok
from gw.git.repository import Repository
from gw.release.manifest import current_version, read_manifest
from gw.release.preflight import detect_cloudflare


_console = Console(legacy_windows=False)

_TOOLS = ("git", "gh", "bun", "npm", "npx")

_CAPABILITIES = (
    "Quality gates: lint auto-fix, type check, tests",
    "Semantic version bump from conventional commits",
    "Changelog, release commit, annotated tag, push",
    "Cloudflare deployment and npm publishing",
    "GitHub release and publish workflow monitoring",
    "Automated error recovery",
)


def _row(text: Text, label: str, value: str, style: str = "") -> None:
    text.append(f"{label:<12}", style="dim")
    text.append(value, style=style)
    text.append("\n")


def _render_project(root: Path, config: WorkflowConfig, config_error: str | None) -> Text:
    text = Text()
    _row(text, "directory", str(root))

    if config_error is not None:
        _row(text, "config", f"{CONFIG_FILE_NAME}: {config_error} (showing defaults)", "red")
    else:
        config_path = root / CONFIG_FILE_NAME
        _row(text, "config", CONFIG_FILE_NAME if config_path.exists() else "defaults", "cyan")

    manifest_path = root / config.release.manifest
    repo = Repository(root)
    if not repo.is_repository():
        _row(text, "git", "not a repository", "red")
    else:
        match repo.current_branch():
            case Ok(branch):
                _row(text, "branch", branch, "blue")
            case Err(e):
                _row(text, "branch", e.message, "yellow")
        version = current_version(repo, manifest_path, tag_prefix=config.git.tag_prefix)
        _row(text, "version", version, "green")

    match read_manifest(manifest_path):
        case Ok(manifest) if manifest.publishable:
            _row(text, "npm", f"{manifest.name} ({config.release.publish_mode})", "green")
        case Ok(_):
            _row(text, "npm", "private or unnamed package", "dim")
        case Err(_):
            _row(text, "npm", "no manifest", "dim")

    cloudflare = detect_cloudflare(root)
    _row(text, "cloudflare", cloudflare or "not configured", "green" if cloudflare else "dim")

    text.append(f"{'tools':<12}", style="dim")
    for i, tool in enumerate(_TOOLS):
        if i > 0:
            text.append(" ")
        text.append(tool, style="green" if shutil.which(tool) else "red dim")
    return text


def status() -> None:
    """Show version, project detection and available tools. Always exits 0."""
    root = project_root()
    config_error: str | None = None
    match load_config_or_default(root):
        case Ok(loaded):
            config = loaded
        case Err(e):
            config = WorkflowConfig()
            config_error = e.message

    _console.print(
        Panel(
            _render_project(root, config, config_error),
            title=f"[bold blue]go-workflow[/bold blue] [dim]{__version__}[/dim]",
            title_align="left",
            border_style="blue",
            padding=(0, 1),
        )
    )

    capabilities = Text("\n".join(f"- {line}" for line in _CAPABILITIES), style="dim")
    _console.print(
        Panel(
            capabilities,
            title="[bold]release[/bold]",
            title_align="left",
            border_style="dim",
            padding=(0, 1),
        )
    )
