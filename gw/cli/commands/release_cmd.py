"""Release command - run the full release pipeline."""

from __future__ import annotations

from enum import Enum

import typer

from gw.cli.commands._helpers import exit_with_code
from gw.cli.context import project_root
from gw.output.console import RichConsole
from gw.prompt.prompter import NonInteractivePrompter, PromptProtocol, TyperPrompter, is_interactive_terminal
from gw.release.options import ReleaseOptions
from gw.release.pipeline import run_release


class BumpType(str, Enum):
    patch = "patch"
    minor = "minor"
    major = "major"


def release(
    bump: BumpType | None = typer.Option(
        None,
        "--type",
        "-t",
        help="Force the version bump (default: inferred from commits)",
        case_sensitive=False,
    ),
    skip_tests: bool = typer.Option(False, "--skip-tests", help="Skip the test suite"),
    skip_lint: bool = typer.Option(False, "--skip-lint", help="Skip lint auto-fix"),
    skip_cloudflare: bool = typer.Option(False, "--skip-cloudflare", help="Never deploy to Cloudflare"),
    cloudflare: bool = typer.Option(
        False,
        "--cloudflare",
        help="Deploy to Cloudflare in non-interactive mode",
    ),
    skip_npm: bool = typer.Option(False, "--skip-npm", help="Never publish or watch npm publishing"),
    non_interactive: bool = typer.Option(
        False,
        "--non-interactive",
        "-y",
        help="Never prompt; flags answer every question",
    ),
    force: bool = typer.Option(False, "--force", help="Continue with uncommitted changes"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would happen without changing anything"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug output and tracebacks"),
) -> None:
    """Release a new version: quality gates, tag, push, deploy, publish."""
    options = ReleaseOptions(
        bump=bump.value if bump is not None else None,
        skip_tests=skip_tests,
        skip_lint=skip_lint,
        skip_cloudflare=skip_cloudflare,
        cloudflare=cloudflare,
        skip_npm=skip_npm,
        non_interactive=non_interactive,
        force=force,
        dry_run=dry_run,
        verbose=verbose,
    )
    console = RichConsole(verbose=verbose)
    prompter: PromptProtocol
    if non_interactive or not is_interactive_terminal():
        prompter = NonInteractivePrompter()
    else:
        prompter = TyperPrompter(console)

    code = run_release(project_root(), options, console, prompter)
    exit_with_code(code)
