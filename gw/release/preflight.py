"""Pre-flight: every operator decision is taken here, before any step runs.

A prompt in the middle of the step tree would freeze an otherwise unattended
run, so the pipeline only reads the resulting ``PreflightPlan``. In
non-interactive mode the CLI flags are the answers; a dirty working tree
without ``--force`` is an immediate failure, and Cloudflare is only deployed
with ``--cloudflare``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from gw.core.config import WorkflowConfig
from gw.core.result import Err, Ok, Result
from gw.git.repository import Repository
from gw.output.console import ConsoleProtocol, Style
from gw.prompt.prompter import Choice, PromptError, PromptProtocol
from gw.release.errors import ReleaseError
from gw.release.gh import list_workflow_names
from gw.release.manifest import read_manifest
from gw.release.options import ReleaseOptions

__all__ = [
    "DEFAULT_PRE_RELEASE_COMMIT",
    "PRE_RELEASE_STASH",
    "DetectedTargets",
    "PreflightPlan",
    "UncommittedAction",
    "detect_cloudflare",
    "detect_publish_workflow",
    "detect_targets",
    "resolve_preflight",
    "workflow_publishes_npm",
]

UncommittedAction = Literal["clean", "commit", "stash", "force"]

DEFAULT_PRE_RELEASE_COMMIT = "chore: commit changes before release"
PRE_RELEASE_STASH = "Pre-release stash"

_WRANGLER_FILES = ("wrangler.toml", "wrangler.json", "wrangler.jsonc")
_NPM_PUBLISH_MARKERS = ("npm publish", "registry.npmjs.org", "npmjs_token", "npm_token")
_NPM_WORKFLOW_NAMES = frozenset({"publish to npm", "npm publish", "publish npm", "npm"})


@dataclass(frozen=True, slots=True)
class DetectedTargets:
    cloudflare_config: str | None = None
    npm_package: str | None = None
    publish_workflow: bool = False


@dataclass(frozen=True, slots=True)
class PreflightPlan:
    targets: DetectedTargets
    deploy_cloudflare: bool = False
    publish_npm: bool = False
    watch_publish: bool = False
    uncommitted: UncommittedAction = "clean"
    changed_files: tuple[str, ...] = ()

    def summary(self) -> str:
        parts: list[str] = []
        if self.deploy_cloudflare:
            parts.append("Cloudflare")
        if self.publish_npm:
            parts.append("npm")
        head = f"Will deploy to: {', '.join(parts)}" if parts else "No direct deployments"
        if self.targets.publish_workflow and not self.publish_npm:
            return f"{head} | npm: GitHub Actions"
        return head


# -- detection ---------------------------------------------------------------


def detect_cloudflare(root: Path) -> str | None:
    for name in _WRANGLER_FILES:
        if (root / name).is_file():
            return name
    return None


def workflow_publishes_npm(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in _NPM_PUBLISH_MARKERS)


def _is_npm_workflow_name(name: str) -> bool:
    lowered = name.lower()
    return ("publish" in lowered and "npm" in lowered) or lowered in _NPM_WORKFLOW_NAMES


def detect_publish_workflow(root: Path, repo: str | None, console: ConsoleProtocol) -> bool:
    """Local workflow files first, then the workflows GitHub knows about."""
    workflows = root / ".github" / "workflows"
    if workflows.is_dir():
        for path in sorted([*workflows.glob("*.yml"), *workflows.glob("*.yaml")]):
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            if workflow_publishes_npm(text):
                console.debug(f"publish workflow: {path.name}")
                return True

    match list_workflow_names(root=root, repo=repo):
        case Ok(names):
            return any(_is_npm_workflow_name(n) for n in names)
        case Err(e):
            console.debug(f"workflow lookup skipped: {e.message}")
            return False


def detect_targets(
    root: Path,
    config: WorkflowConfig,
    console: ConsoleProtocol,
    *,
    repo: str | None = None,
) -> DetectedTargets:
    npm_package: str | None = None
    match read_manifest(root / config.release.manifest):
        case Ok(manifest) if manifest.publishable:
            npm_package = manifest.name
        case _:
            pass

    return DetectedTargets(
        cloudflare_config=detect_cloudflare(root),
        npm_package=npm_package,
        publish_workflow=npm_package is not None and detect_publish_workflow(root, repo, console),
    )


# -- resolution --------------------------------------------------------------


def _prompt_failed(error: PromptError) -> ReleaseError:
    return ReleaseError(
        kind="prompt_unavailable",
        message=error.message,
        hint="Re-run with --non-interactive and explicit flags",
    )


def _ask(
    prompter: PromptProtocol, message: str, *, non_interactive: bool, default: bool = True
) -> Result[bool, ReleaseError]:
    if non_interactive:
        return Ok(default)
    match prompter.confirm(message, default=default):
        case Ok(answer):
            return Ok(answer)
        case Err(e):
            return Err(_prompt_failed(e))


def _choose_uncommitted(
    prompter: PromptProtocol,
    console: ConsoleProtocol,
    changed: list[str],
) -> Result[tuple[UncommittedAction, str], ReleaseError]:
    console.panel("Uncommitted changes", "The following files have uncommitted changes:", items=changed)
    choices: list[Choice[UncommittedAction]] = [
        Choice("commit", "Commit all changes now"),
        Choice("stash", "Stash changes for later"),
        Choice("force", "Continue anyway (--force)"),
    ]
    match prompter.select("How would you like to proceed?", choices, default="commit"):
        case Err(e):
            return Err(_prompt_failed(e))
        case Ok(action):
            pass

    if action != "commit":
        return Ok((action, ""))

    match prompter.text("Commit message", default=DEFAULT_PRE_RELEASE_COMMIT):
        case Err(e):
            return Err(_prompt_failed(e))
        case Ok(message):
            return Ok(("commit", message.strip() or DEFAULT_PRE_RELEASE_COMMIT))


def _apply_uncommitted(
    action: UncommittedAction,
    commit_message: str,
    repo: Repository,
    console: ConsoleProtocol,
    *,
    dry_run: bool,
) -> Result[None, ReleaseError]:
    match action:
        case "commit":
            if dry_run:
                console.info(f"dry-run: would commit all changes ({commit_message})")
                return Ok(None)
            staged = repo.stage()
            if isinstance(staged, Err):
                return Err(ReleaseError(kind="git_failed", message=staged.error.message))
            committed = repo.commit(commit_message)
            if isinstance(committed, Err):
                return Err(ReleaseError(kind="git_failed", message=committed.error.message))
            console.success("Changes committed")
        case "stash":
            if dry_run:
                console.info(f"dry-run: would stash changes ({PRE_RELEASE_STASH})")
                return Ok(None)
            stashed = repo.stash(PRE_RELEASE_STASH)
            if isinstance(stashed, Err):
                return Err(ReleaseError(kind="git_failed", message=stashed.error.message))
            console.success("Changes stashed")
        case "force":
            console.warning("Continuing with uncommitted changes")
        case "clean":
            pass
    return Ok(None)


def resolve_preflight(
    *,
    root: Path,
    repo: Repository,
    config: WorkflowConfig,
    options: ReleaseOptions,
    prompter: PromptProtocol,
    console: ConsoleProtocol,
) -> Result[PreflightPlan, ReleaseError]:
    """Answer every question of the run, then apply the uncommitted-change choice.

    Returns Err(kind="uncommitted_changes") for a dirty tree in
    non-interactive mode without ``--force``.
    """
    changed: list[str] = []
    match repo.changed_files():
        case Ok(files):
            changed = files
        case Err(e):
            # Repository analysis reports this as a fatal step
            console.debug(f"status unavailable: {e.message}")

    action: UncommittedAction = "clean"
    if changed and options.force:
        action = "force"
    elif changed and options.non_interactive:
        return Err(
            ReleaseError(
                kind="uncommitted_changes",
                message="Cannot proceed with uncommitted changes in non-interactive mode",
                hint="Use --force to override, or commit/stash changes first",
            )
        )

    repository: str | None = None
    match repo.repository_name(config.git.remote):
        case Ok(name):
            repository = name
        case Err(_):
            pass

    targets = detect_targets(root, config, console, repo=repository)
    ni = options.non_interactive

    # Production deploys are opt-in when nobody is asked
    deploy_cloudflare = False
    if targets.cloudflare_config and not options.skip_cloudflare:
        asked = _ask(
            prompter,
            f"Deploy to Cloudflare ({targets.cloudflare_config})?",
            non_interactive=ni,
            default=options.cloudflare if ni else True,
        )
        if isinstance(asked, Err):
            return asked
        deploy_cloudflare = asked.value

    publish_npm = False
    inline = config.release.publish_mode == "inline"
    if inline and targets.npm_package and not options.skip_npm:
        asked = _ask(prompter, f"Publish {targets.npm_package} to npm?", non_interactive=ni)
        if isinstance(asked, Err):
            return asked
        publish_npm = asked.value

    watch_publish = False
    if not inline and targets.publish_workflow and not options.skip_npm and not ni:
        asked = _ask(prompter, "Watch the publish workflow after the release?", non_interactive=False)
        if isinstance(asked, Err):
            return asked
        watch_publish = asked.value

    commit_message = ""
    if changed and action == "clean":
        chosen = _choose_uncommitted(prompter, console, changed)
        if isinstance(chosen, Err):
            return chosen
        action, commit_message = chosen.value

    applied = _apply_uncommitted(action, commit_message, repo, console, dry_run=options.dry_run)
    if isinstance(applied, Err):
        return applied

    if changed:
        console.print(f"{len(changed)} changed file(s): {action}", Style.DIM)

    return Ok(
        PreflightPlan(
            targets=targets,
            deploy_cloudflare=deploy_cloudflare,
            publish_npm=publish_npm,
            watch_publish=watch_publish,
            uncommitted=action,
            changed_files=tuple(changed),
        )
    )
