"""Failure presentation for the release command.

One place decides how a fatal failure looks: the message, a remediation
hint and, with ``--verbose``, the traceback.
"""

from __future__ import annotations

import traceback
from typing import TYPE_CHECKING

from gw.output.console import Style

if TYPE_CHECKING:
    from gw.output.console import ConsoleProtocol

__all__ = ["failure_hint", "print_release_failure"]


_KIND_HINTS: dict[str, str] = {
    "uncommitted_changes": "Commit or stash your changes first, or re-run with --force",
    "not_a_repository": "Run go-workflow from inside a git checkout, or pass --directory",
    "tests_failed": "Fix the failing tests, or re-run with --skip-tests",
    "type_errors": "Run your type checker directly to see every error",
    "tag_exists": "The release tag already exists; delete it or choose another version with --type",
    "gh_missing": "Install GitHub CLI: https://cli.github.com/",
    "gh_auth_required": "Run: gh auth login",
    "prompt_unavailable": "Re-run with --non-interactive and explicit flags",
    "config_invalid": "Check go-workflow.toml",
}

# Checked in order against the lowercased message
_MESSAGE_HINTS: tuple[tuple[str, str], ...] = (
    ("tests failed", _KIND_HINTS["tests_failed"]),
    ("uncommitted changes", _KIND_HINTS["uncommitted_changes"]),
    ("type errors", _KIND_HINTS["type_errors"]),
    ("already exists", _KIND_HINTS["tag_exists"]),
    ("not a git repository", _KIND_HINTS["not_a_repository"]),
    ("not authenticated", _KIND_HINTS["gh_auth_required"]),
)


def failure_hint(message: str, kind: str | None = None) -> str | None:
    """Remediation hint by error kind, then by recognizable message text."""
    if kind is not None and kind in _KIND_HINTS:
        return _KIND_HINTS[kind]
    lowered = message.lower()
    for needle, hint in _MESSAGE_HINTS:
        if needle in lowered:
            return hint
    return None


def print_release_failure(
    console: ConsoleProtocol,
    message: str,
    *,
    kind: str | None = None,
    hint: str | None = None,
    exception: BaseException | None = None,
    verbose: bool = False,
) -> None:
    """Print a fatal release failure.

    An explicit ``hint`` wins over the derived one.
    """
    console.newline()
    console.error(f"Release failed: {message}")
    resolved = hint or failure_hint(message, kind)
    if resolved:
        console.print(f"hint: {resolved}", Style.DIM)
    if verbose and exception is not None:
        console.print("".join(traceback.format_exception(exception)).rstrip(), Style.DIM)
