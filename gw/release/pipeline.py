"""The release pipeline.

``build_release_steps`` turns the options of one invocation and its resolved
``PreflightPlan`` into the step tree; ``run_release`` is the whole command:
config, pre-flight, engine run and failure presentation.

Order is fixed: quality gates, repository analysis, version calculation,
deployment summary, release execution, build, deployments, GitHub release,
post-release monitoring.
"""

from __future__ import annotations

from pathlib import Path

from gw.core.config import load_config_or_default
from gw.core.errors import ErrorCode
from gw.core.result import Err, Ok, Result
from gw.engine import ConsoleRenderer, EngineOptions, Step, StepReporter, TaskEngine
from gw.git.repository import Repository
from gw.output.console import ConsoleProtocol, Style
from gw.output.errors import print_release_failure
from gw.prompt.prompter import PromptProtocol
from gw.recovery.advisor import RecoveryAdvisor
from gw.release.context import GitSnapshot, RunContext, VersionSnapshot
from gw.release.deploy import build_task, cloudflare_task, npm_publish_task
from gw.release.errors import ReleaseError
from gw.release.manifest import current_version
from gw.release.monitor import (
    PUBLISH_FAILED,
    PUBLISH_RUN,
    find_publish_run_task,
    make_watch_task,
    verify_package_task,
)
from gw.release.options import ReleaseOptions
from gw.release.preflight import PreflightPlan, resolve_preflight
from gw.release.publish import (
    changelog_task,
    commit_task,
    github_release_task,
    manifest_task,
    push_task,
    tag_task,
)
from gw.release.quality import lint_task, tests_task, typecheck_task
from gw.release.semver import infer_bump, next_version

__all__ = [
    "analyze_repository_task",
    "build_release_steps",
    "calculate_version_task",
    "run_release",
]

type ReleaseStep = Step[RunContext]


# -- analysis ----------------------------------------------------------------


def analyze_repository_task(ctx: RunContext, reporter: StepReporter) -> Result[None, ReleaseError]:
    if not ctx.repo.is_repository():
        return Err(
            ReleaseError(
                kind="not_a_repository",
                message=f"Not a git repository: {ctx.root}",
                hint="Run go-workflow from inside a git checkout, or pass --directory",
            )
        )

    match ctx.repo.current_branch():
        case Err(e):
            return Err(ReleaseError(kind="git_failed", message=e.message))
        case Ok(branch):
            pass

    has_changes = ctx.repo.has_uncommitted_changes().unwrap_or(False)
    remote = ctx.config.git.remote
    repository = ctx.repo.repository_name(remote).unwrap_or("") or None

    ctx.git = GitSnapshot(
        branch=branch,
        has_changes=has_changes,
        remote=remote,
        repository=repository,
    )
    current = current_version(ctx.repo, ctx.manifest_path, tag_prefix=ctx.config.git.tag_prefix)
    ctx.version = VersionSnapshot(current=current)

    if repository:
        reporter.set_output(f"Repository: {repository}")
    reporter.set_title(f"Git repository analysis - {branch} @ {current}")
    return Ok(None)


def calculate_version_task(ctx: RunContext, reporter: StepReporter) -> Result[None, ReleaseError]:
    if ctx.git is None or ctx.version is None:
        raise RuntimeError("repository analysis has not run")

    prefix = ctx.config.git.tag_prefix
    match ctx.repo.commits_since(f"{prefix}*", ctx.config.release.commit_limit):
        case Err(e):
            return Err(ReleaseError(kind="git_failed", message=e.message))
        case Ok(commits):
            ctx.git.commits = commits

    forced = ctx.options.bump
    bump = forced or infer_bump(ctx.git.commits)
    match next_version(ctx.version.current, bump):
        case Err(e):
            return Err(e)
        case Ok(version):
            pass

    tag = f"{prefix}{version}"
    if ctx.repo.tag_exists(tag):
        return Err(
            ReleaseError(
                kind="tag_exists",
                message=f"Tag {tag} already exists",
                hint="Delete the tag or choose another version with --type",
            )
        )

    ctx.version.next = version
    ctx.version.bump = bump
    ctx.version.strategy = "manual" if forced else "semantic"

    reporter.set_output(f"{len(ctx.git.commits)} commit(s) since the last release")
    reporter.set_title(f"Version calculation - {ctx.version.current} -> {version} ({bump})")
    return Ok(None)


# -- step tree ---------------------------------------------------------------


def _verify_skip(ctx: RunContext) -> str | bool:
    if ctx.extras.get(PUBLISH_FAILED):
        return "publish workflow failed"
    if PUBLISH_RUN not in ctx.extras:
        return "no publish workflow found"
    return False


def _lint_skip(options: ReleaseOptions) -> str | bool:
    # The auto-fixer rewrites sources
    if options.skip_lint:
        return "--skip-lint"
    if options.dry_run:
        return "dry-run"
    return False


def build_release_steps(
    options: ReleaseOptions,
    plan: PreflightPlan,
    advisor: RecoveryAdvisor | None = None,
) -> list[ReleaseStep]:
    """The ordered step tree for one run.

    Every operator decision is already in ``plan``; predicates only read
    the options and the context.
    """

    def summary_task(ctx: RunContext, reporter: StepReporter) -> None:
        reporter.set_title(f"Deployment configuration - {plan.summary()}")

    watch = make_watch_task(advisor.advise if advisor is not None else None)

    return [
        Step(
            title="Quality Gates",
            subtasks=(
                Step(
                    title="Auto-fix linting issues",
                    task=lint_task,
                    skip=_lint_skip(options),
                ),
                Step(
                    title="Type checking",
                    task=typecheck_task,
                    enabled=lambda ctx: ctx.config.quality.typecheck,
                ),
                Step(
                    title="Running tests",
                    task=tests_task,
                    skip="--skip-tests" if options.skip_tests else False,
                ),
            ),
        ),
        Step(title="Git repository analysis", task=analyze_repository_task),
        Step(title="Version calculation", task=calculate_version_task),
        Step(title="Deployment configuration", task=summary_task),
        Step(
            title="Release execution",
            subtasks=(
                Step(title="Update manifest", task=manifest_task),
                Step(title="Update changelog", task=changelog_task),
                Step(title="Commit release", task=commit_task),
                Step(title="Create tag", task=tag_task),
                Step(title="Push to remote", task=push_task),
            ),
        ),
        Step(title="Build project", task=build_task),
        Step(
            title="Deployments",
            concurrent=True,
            enabled=plan.deploy_cloudflare or plan.publish_npm,
            subtasks=(
                Step(title="Deploy to Cloudflare", task=cloudflare_task, enabled=plan.deploy_cloudflare),
                Step(title="Publish to npm", task=npm_publish_task, enabled=plan.publish_npm),
            ),
        ),
        Step(title="Create GitHub release", task=github_release_task),
        Step(
            title="Post-release monitoring",
            enabled=plan.watch_publish,
            skip="dry-run" if options.dry_run else False,
            subtasks=(
                Step(title="Find publishing workflow", task=find_publish_run_task),
                Step(title="Monitor workflow execution", task=watch),
                Step(title="Verify npm package availability", task=verify_package_task, skip=_verify_skip),
            ),
        ),
    ]


# -- command -----------------------------------------------------------------


def _print_summary(ctx: RunContext, console: ConsoleProtocol) -> None:
    items: list[str] = []
    if ctx.version is not None:
        items.append(f"Version: {ctx.version.current} -> {ctx.version.next}")
    if ctx.git is not None:
        items.append(f"Branch: {ctx.git.branch}")
    for record in ctx.deployments.values():
        where = record.url or record.registry or record.environment or "done"
        items.append(f"{record.target}: {where}")
    if ctx.release_url:
        items.append(f"GitHub release: {ctx.release_url}")

    if ctx.options.dry_run:
        console.panel("Dry run complete", f"Nothing was changed for {ctx.tag_name}", items=items)
        return
    console.panel("Release complete", f"Released {ctx.tag_name}", items=items, style=Style.SUCCESS)


def run_release(
    root: Path,
    options: ReleaseOptions,
    console: ConsoleProtocol,
    prompter: PromptProtocol,
) -> ErrorCode:
    """Run one release end to end and return the process exit code."""
    match load_config_or_default(root):
        case Err(e):
            print_release_failure(console, e.message, kind="config_invalid")
            return ErrorCode.FAILURE
        case Ok(config):
            pass

    repo = Repository(root)
    console.header("go-workflow release")
    if options.dry_run:
        console.warning("Dry run: only the build runs; sources and the repository stay untouched")

    match resolve_preflight(
        root=root,
        repo=repo,
        config=config,
        options=options,
        prompter=prompter,
        console=console,
    ):
        case Err(e):
            print_release_failure(console, e.message, kind=e.kind, hint=e.hint)
            return ErrorCode.FAILURE
        case Ok(plan):
            pass

    ctx = RunContext(root=root, repo=repo, config=config, options=options)
    if plan.targets.npm_package:
        ctx.extras["npm_package"] = plan.targets.npm_package

    renderer = ConsoleRenderer(console)
    advisor = RecoveryAdvisor(console, root, renderer=renderer, dry_run=options.dry_run)
    engine: TaskEngine[RunContext] = TaskEngine(EngineOptions(), renderer=renderer, recovery=advisor)
    console.newline()

    match engine.execute(build_release_steps(options, plan, advisor), ctx):
        case Ok(_):
            console.newline()
            _print_summary(ctx, console)
            return ErrorCode.OK
        case Err(error):
            first = error.failures[0] if error.failures else None
            print_release_failure(
                console,
                error.message,
                hint=first.error.hint if first else None,
                exception=error.exception,
                verbose=options.verbose,
            )
            return ErrorCode.FAILURE
