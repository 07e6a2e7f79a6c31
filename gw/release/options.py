from __future__ import annotations

from dataclasses import dataclass

from gw.release.semver import BumpKind


@dataclass(frozen=True, slots=True)
class ReleaseOptions:
    """Flags of one ``release`` invocation.

    ``bump`` None means infer it from the commits since the last tag.
    ``cloudflare`` opts into Cloudflare deployment when nothing is asked.
    """

    bump: BumpKind | None = None
    skip_tests: bool = False
    skip_lint: bool = False
    skip_cloudflare: bool = False
    cloudflare: bool = False
    skip_npm: bool = False
    non_interactive: bool = False
    force: bool = False
    dry_run: bool = False
    verbose: bool = False
