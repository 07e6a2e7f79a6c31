"""Release execution: manifest, changelog, commit, tag, push, GitHub release.

The first five steps are fatal and strictly ordered; nothing is tagged
before the release commit exists and nothing is pushed before the tag.
Publishing the GitHub release afterwards is best effort.
"""

from __future__ import annotations

from gw.core.result import Err, Ok, Result
from gw.engine.record import StepReporter
from gw.engine.step import StepError
from gw.git.repository import GitError
from gw.release.changelog import release_notes, write_changelog
from gw.release.context import RunContext
from gw.release.errors import ReleaseError
from gw.release.gh import create_release
from gw.release.manifest import update_manifest_version

__all__ = [
    "commit_task",
    "github_release_task",
    "manifest_task",
    "changelog_task",
    "push_task",
    "release_commit_message",
    "tag_task",
]


def release_commit_message(tag: str) -> str:
    return f"chore: release {tag}"


def _git_failed(error: GitError) -> ReleaseError:
    if error.kind == "tag_exists":
        return ReleaseError(
            kind="tag_exists",
            message=error.message,
            hint="Delete the tag or choose another version with --type",
        )
    if error.kind == "not_a_repository":
        return ReleaseError(kind="not_a_repository", message=error.message)
    return ReleaseError(kind="git_failed", message=error.message)


def _planned(ctx: RunContext) -> tuple[str, str]:
    """(version, tag) computed by the version step."""
    if ctx.version is None or ctx.version.next is None or ctx.tag_name is None:
        raise RuntimeError("next version not computed")
    return ctx.version.next, ctx.tag_name


def manifest_task(ctx: RunContext, reporter: StepReporter) -> Result[None, ReleaseError]:
    version, _ = _planned(ctx)
    name = ctx.config.release.manifest
    if ctx.options.dry_run:
        reporter.set_title(f"Update {name} - dry-run: would set version {version}")
        return Ok(None)

    result = update_manifest_version(ctx.manifest_path, version)
    if isinstance(result, Err):
        return result
    reporter.set_title(f"Update {name} - version {version}")
    return Ok(None)


def changelog_task(ctx: RunContext, reporter: StepReporter) -> Result[None, ReleaseError]:
    version, _ = _planned(ctx)
    name = ctx.config.release.changelog
    commits = ctx.git.commits if ctx.git else []
    if ctx.options.dry_run:
        reporter.set_title(f"Update {name} - dry-run: would add {len(commits)} commit(s)")
        return Ok(None)

    created = write_changelog(ctx.changelog_path, version, commits)
    reporter.set_title(f"Update {name} - {'created' if created else 'entry added'}")
    return Ok(None)


def commit_task(ctx: RunContext, reporter: StepReporter) -> Result[None, ReleaseError]:
    _, tag = _planned(ctx)
    message = release_commit_message(tag)
    if ctx.options.dry_run:
        reporter.set_title(f"Commit release - dry-run: would commit '{message}'")
        return Ok(None)

    staged = ctx.repo.stage([ctx.config.release.manifest, ctx.config.release.changelog])
    if isinstance(staged, Err):
        return Err(_git_failed(staged.error))
    committed = ctx.repo.commit(message)
    if isinstance(committed, Err):
        return Err(_git_failed(committed.error))
    reporter.set_title(f"Commit release - {message}")
    return Ok(None)


def tag_task(ctx: RunContext, reporter: StepReporter) -> Result[None, ReleaseError]:
    version, tag = _planned(ctx)
    if ctx.options.dry_run:
        reporter.set_title(f"Create tag - dry-run: would create {tag}")
        return Ok(None)

    created = ctx.repo.create_tag(tag, f"Release {version}")
    if isinstance(created, Err):
        return Err(_git_failed(created.error))
    reporter.set_title(f"Create tag - {tag}")
    return Ok(None)


def push_task(ctx: RunContext, reporter: StepReporter) -> Result[None, ReleaseError]:
    _, tag = _planned(ctx)
    remote = ctx.config.git.remote
    branch = ctx.git.branch if ctx.git else None
    if ctx.options.dry_run:
        reporter.set_title(f"Push to {remote} - dry-run: would push {branch or 'HEAD'} and {tag}")
        return Ok(None)

    reporter.set_output(f"Pushing {branch or 'HEAD'} to {remote}...")
    pushed = ctx.repo.push(remote, branch)
    if isinstance(pushed, Err):
        return Err(_git_failed(pushed.error))

    reporter.set_output(f"Pushing tag {tag}...")
    pushed = ctx.repo.push_tag(tag, remote)
    if isinstance(pushed, Err):
        return Err(_git_failed(pushed.error))
    reporter.set_title(f"Push to {remote} - {branch or 'HEAD'} and {tag}")
    return Ok(None)


def github_release_task(ctx: RunContext, reporter: StepReporter) -> Result[None, StepError]:
    _, tag = _planned(ctx)
    title = f"Release {tag}"
    if ctx.options.dry_run:
        reporter.set_title(f"Create GitHub release - dry-run: would create '{title}'")
        return Ok(None)

    notes = release_notes(tag, ctx.git.commits if ctx.git else [])
    match create_release(root=ctx.root, tag=tag, title=title, notes=notes):
        case Ok(url):
            ctx.release_url = url or None
            reporter.set_title(f"Create GitHub release - {url or tag}")
        case Err(e):
            if e.hint:
                reporter.set_output(e.hint)
            reporter.warn(f"could not create release: {e.message}")
    return Ok(None)
