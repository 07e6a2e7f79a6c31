"""Git repository abstraction.

This module provides the Repository class used by the release pipeline.
All operations that can fail return Result types; error messages are
prefixed with the operation that failed.

Usage:
    repo = Repository(Path("/path/to/repo"))

    match repo.current_branch():
        case Ok(branch):
            print(f"Branch: {branch}")
        case Err(e):
            print(e.message)  # "Failed to get current branch: ..."

    match repo.create_tag("v1.2.0", "Release 1.2.0"):
        case Err(GitError(kind="tag_exists")):
            print("already released")
        case Err(e):
            print(e.message)
        case Ok():
            pass
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from gw.core.result import Err, Ok, Result
from gw.git.commits import LOG_FORMAT, Commit, parse_log
from gw.platform.process import ProcessError
from gw.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "clone"})

_REMOTE_PATH_RE = re.compile(r"[:/]([^/:]+/[^/]+?)(?:\.git)?/?$")

__all__ = [
    "GitError",
    "GitErrorKind",
    "GitStatus",
    "Repository",
    "StatusEntry",
]

GitErrorKind = Literal["failed", "tag_exists", "not_a_repository"]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        kind: ``tag_exists`` and ``not_a_repository`` are distinguishable
            from generic ``failed`` errors so callers can special-case them
        message: Human-readable message, prefixed by the failed operation
        command: The git subcommand that failed
        returncode: Process return code
    """

    kind: GitErrorKind
    message: str
    command: str = ""
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """A single entry in git status.

    Attributes:
        xy: Two-character status code (e.g., "M ", " M", "??")
        path: File path
    """

    xy: str
    path: str

    @property
    def is_staged(self) -> bool:
        return self.xy != "??" and self.xy[0] != " "

    @property
    def is_unstaged(self) -> bool:
        return self.xy != "??" and self.xy[1] != " "

    @property
    def is_untracked(self) -> bool:
        return self.xy == "??"


@dataclass(frozen=True, slots=True)
class GitStatus:
    """Parsed ``git status --porcelain=v1 -b`` output."""

    branch: str
    upstream: str | None = None
    entries: tuple[StatusEntry, ...] = field(default_factory=tuple)

    @property
    def is_clean(self) -> bool:
        return len(self.entries) == 0

    @property
    def paths(self) -> list[str]:
        """Changed paths in status order."""
        return [e.path for e in self.entries]

    @property
    def untracked(self) -> list[StatusEntry]:
        return [e for e in self.entries if e.is_untracked]


class Repository:
    """Git repository abstraction.

    Attributes:
        path: Path to the repository root (or any directory inside it)
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    # -- queries -------------------------------------------------------------

    def is_repository(self) -> bool:
        """True when ``path`` is inside a work tree. Never raises."""
        result = self._run(["rev-parse", "--is-inside-work-tree"])
        match result:
            case Ok(stdout):
                return stdout.strip() == "true"
            case Err(_):
                return False

    def status(self) -> Result[GitStatus, GitError]:
        result = self._run(["status", "--porcelain=v1", "-b"])
        match result:
            case Err(e):
                return Err(self._error("get repository status", "status", e))
            case Ok(stdout):
                return Ok(self._parse_status(stdout))

    def has_uncommitted_changes(self) -> Result[bool, GitError]:
        match self.status():
            case Err(e):
                return Err(e)
            case Ok(status):
                return Ok(not status.is_clean)

    def changed_files(self) -> Result[list[str], GitError]:
        match self.status():
            case Err(e):
                return Err(e)
            case Ok(status):
                return Ok(status.paths)

    def current_branch(self) -> Result[str, GitError]:
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Err(e):
                return Err(self._error("get current branch", "rev-parse", e))
            case Ok(stdout):
                branch = stdout.strip()
                if branch == "HEAD":
                    return Err(
                        GitError(
                            kind="failed",
                            message="Failed to get current branch: HEAD is detached",
                            command="rev-parse",
                        )
                    )
                return Ok(branch)

    def remote_url(self, remote: str = "origin") -> Result[str, GitError]:
        result = self._run(["remote", "get-url", remote])
        match result:
            case Err(e):
                return Err(self._error(f"get remote url for '{remote}'", "remote", e))
            case Ok(stdout):
                return Ok(stdout.strip())

    def repository_name(self, remote: str = "origin") -> Result[str, GitError]:
        """Return ``owner/name`` parsed from the remote URL.

        Works for both ``git@host:owner/name.git`` and
        ``https://host/owner/name(.git)`` forms.
        """
        match self.remote_url(remote):
            case Err(e):
                return Err(e)
            case Ok(url):
                m = _REMOTE_PATH_RE.search(url)
                if m is None:
                    return Err(
                        GitError(
                            kind="failed",
                            message=f"Failed to get repository name: cannot parse remote url '{url}'",
                            command="remote",
                        )
                    )
                return Ok(m.group(1))

    def tags(self, pattern: str | None = None, *, merged: bool = False) -> Result[list[str], GitError]:
        """Tags, highest version first; ``merged`` limits to tags reachable from HEAD.

        A prerelease (``v1.0.0-rc.1``) sorts below its release (``v1.0.0``).
        """
        args = ["tag", "--list"]
        if pattern is not None:
            args.append(pattern)
        args.append("--sort=-version:refname")
        if merged:
            args.extend(["--merged", "HEAD"])
        result = self._run(args, config=("versionsort.suffix=-",))
        match result:
            case Err(e):
                return Err(self._error("list tags", "tag", e))
            case Ok(stdout):
                return Ok([t.strip() for t in stdout.splitlines() if t.strip()])

    def tag_exists(self, name: str) -> bool:
        result = self._run(["rev-parse", "-q", "--verify", f"refs/tags/{name}"])
        return isinstance(result, Ok)

    def latest_tag(self, pattern: str = "v*") -> Result[str | None, GitError]:
        """Newest tag matching ``pattern`` reachable from HEAD, or None."""
        match self.tags(pattern, merged=True):
            case Err(e):
                return Err(
                    GitError(
                        kind=e.kind,
                        message=e.message.replace("list tags", "get latest tag", 1),
                        command=e.command,
                        returncode=e.returncode,
                    )
                )
            case Ok(found):
                return Ok(found[0] if found else None)

    def commits_since(self, tag_pattern: str = "v*", limit: int = 50) -> Result[list[Commit], GitError]:
        """Commits after the latest matching tag, newest first.

        Without a matching tag the full history is returned, up to ``limit``.
        """
        match self.latest_tag(tag_pattern):
            case Err(e):
                return Err(
                    GitError(
                        kind=e.kind,
                        message=f"Failed to get commits since tag: {e.message}",
                        command=e.command,
                        returncode=e.returncode,
                    )
                )
            case Ok(tag):
                pass

        args = ["log", f"--format={LOG_FORMAT}", f"--max-count={limit}"]
        if tag is not None:
            args.append(f"{tag}..HEAD")
        result = self._run(args)
        match result:
            case Err(e):
                return Err(self._error("get commits", "log", e))
            case Ok(stdout):
                return Ok(parse_log(stdout))

    # -- mutations -----------------------------------------------------------

    def stage(self, paths: Sequence[str] | None = None) -> Result[None, GitError]:
        """Stage the given paths, or everything when ``paths`` is None."""
        args = ["add", "-A"] if paths is None else ["add", "--", *paths]
        return self._unit(args, "stage changes")

    def commit(self, message: str) -> Result[None, GitError]:
        return self._unit(["commit", "-m", message], "commit")

    def create_tag(self, name: str, message: str | None = None) -> Result[None, GitError]:
        """Create a tag (annotated when ``message`` is given)."""
        if self.tag_exists(name):
            return Err(
                GitError(
                    kind="tag_exists",
                    message=f"Failed to create tag: tag '{name}' already exists",
                    command="tag",
                )
            )

        args = ["tag", "-a", name, "-m", message] if message is not None else ["tag", name]
        result = self._run(args)
        match result:
            case Err(e):
                if "already exists" in e.stderr:
                    return Err(
                        GitError(
                            kind="tag_exists",
                            message=f"Failed to create tag: tag '{name}' already exists",
                            command="tag",
                            returncode=e.returncode,
                        )
                    )
                return Err(self._error("create tag", "tag", e))
            case Ok(_):
                return Ok(None)

    def push(self, remote: str = "origin", branch: str | None = None) -> Result[None, GitError]:
        args = ["push", remote] if branch is None else ["push", remote, branch]
        return self._unit(args, "push")

    def push_tag(self, tag: str, remote: str = "origin") -> Result[None, GitError]:
        return self._unit(["push", remote, f"refs/tags/{tag}"], f"push tag {tag}")

    def stash(self, message: str) -> Result[None, GitError]:
        return self._unit(["stash", "push", "--include-untracked", "-m", message], "stash changes")

    # -- internals -----------------------------------------------------------

    def _unit(self, args: list[str], operation: str) -> Result[None, GitError]:
        result = self._run(args)
        match result:
            case Err(e):
                return Err(self._error(operation, args[0], e))
            case Ok(_):
                return Ok(None)

    def _error(self, operation: str, command: str, e: ProcessError) -> GitError:
        detail = e.stderr.strip() or e.stdout.strip() or str(e)
        kind: GitErrorKind = "not_a_repository" if "not a git repository" in detail.lower() else "failed"
        return GitError(
            kind=kind,
            message=f"Failed to {operation}: {detail}",
            command=command,
            returncode=e.returncode,
        )

    def _run(self, args: list[str], *, config: tuple[str, ...] = ()) -> Result[str, ProcessError]:
        """Run a git command in this repository, with optional ``-c key=value`` overrides."""
        command = args[0] if args else ""
        timeout = _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        overrides = [part for item in config for part in ("-c", item)]
        return run_process(["git", "-C", str(self.path), *overrides, *args], cwd=self.path, timeout=timeout)

    def _parse_status(self, output: str) -> GitStatus:
        lines = [ln for ln in output.splitlines() if ln.strip()]
        if not lines:
            return GitStatus(branch="")

        branch = ""
        upstream: str | None = None
        if lines[0].startswith("##"):
            branch, upstream = self._parse_branch_line(lines.pop(0))

        entries: list[StatusEntry] = []
        for line in lines:
            entry = self._parse_entry(line)
            if entry:
                entries.append(entry)

        return GitStatus(branch=branch, upstream=upstream, entries=tuple(entries))

    def _parse_branch_line(self, line: str) -> tuple[str, str | None]:
        """Parse branch line: ## branch...upstream [info]"""
        s = line.strip()[2:].lstrip()
        s = s.split(" [", 1)[0].strip()
        if "..." in s:
            left, right = s.split("...", 1)
            return (left.strip(), right.strip())
        return (s, None)

    def _parse_entry(self, line: str) -> StatusEntry | None:
        if len(line) < 4:
            return None
        if line.startswith("?? "):
            return StatusEntry(xy="??", path=line[3:])
        return StatusEntry(xy=line[:2], path=line[3:])
