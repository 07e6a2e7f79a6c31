"""Post-release monitoring of the publish workflow.

Every outcome here is advisory: tasks warn instead of failing so the release
itself, already pushed and published, is never reported as failed.
Polling is bounded by attempt counts from ``[monitor]`` in the config.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from time import sleep

from gw.core.result import Err, Ok, Result
from gw.engine.record import StepReporter
from gw.engine.step import StepError
from gw.platform.process import run as run_process
from gw.release.context import RunContext
from gw.release.gh import RunState, WorkflowRun, failed_run_log, list_release_runs, run_url, view_run
from gw.release.timeouts import NPM_VIEW_TIMEOUT_SECONDS

__all__ = [
    "PUBLISH_FAILED",
    "PUBLISH_RUN",
    "make_watch_task",
    "find_publish_run_task",
    "pick_publish_run",
    "verify_package_task",
]

PUBLISH_RUN = "publish_run"
PUBLISH_FAILED = "publish_failed"

_RECENT_WINDOW = timedelta(minutes=5)
_LOG_EXCERPT_CHARS = 2000

type FailureHandler = Callable[[str], None]


def _now() -> datetime:
    return datetime.now(UTC)


def _is_publish_workflow(name: str) -> bool:
    lowered = name.lower()
    return "publish" in lowered or "npm" in lowered


def pick_publish_run(runs: Sequence[WorkflowRun], now: datetime) -> WorkflowRun | None:
    """First publish-looking run created within the last five minutes."""
    for run in runs:
        if not _is_publish_workflow(run.workflow_name):
            continue
        if run.created_at is not None and run.created_at >= now - _RECENT_WINDOW:
            return run
    return None


def _repository(ctx: RunContext) -> str | None:
    return ctx.git.repository if ctx.git else None


def find_publish_run_task(ctx: RunContext, reporter: StepReporter) -> Result[None, StepError]:
    attempts = max(1, ctx.config.monitor.find_attempts)
    reporter.set_output(f"Searching for workflows triggered by {ctx.tag_name}...")

    for attempt in range(1, attempts + 1):
        reporter.set_progress(attempt, attempts)
        match list_release_runs(root=ctx.root, repo=_repository(ctx)):
            case Err(e):
                reporter.warn(f"cannot list workflow runs: {e.message}")
                return Ok(None)
            case Ok(runs):
                found = pick_publish_run(runs, _now())
                if found is not None:
                    ctx.extras[PUBLISH_RUN] = found
                    reporter.set_title(f"Find publishing workflow - {found.workflow_name}")
                    return Ok(None)
        if attempt < attempts:
            sleep(ctx.config.monitor.find_interval)

    reporter.set_output("No publishing workflow found - check GitHub manually")
    reporter.warn("no workflow found")
    return Ok(None)


def _handle_completed(
    ctx: RunContext,
    reporter: StepReporter,
    run: WorkflowRun,
    state: RunState,
    on_failure: FailureHandler | None,
) -> None:
    if state.succeeded:
        reporter.set_title(f"Monitor workflow execution - {run.workflow_name} completed successfully")
        return

    ctx.extras[PUBLISH_FAILED] = True
    url = run_url(_repository(ctx), run.database_id)
    if url:
        reporter.set_output(f"View logs: {url}")
    reporter.warn(f"{run.workflow_name} failed ({state.conclusion or 'unknown'})")

    if on_failure is None:
        return
    match failed_run_log(root=ctx.root, repo=_repository(ctx), run_id=run.database_id):
        case Ok(log) if log.strip():
            on_failure(f"GitHub Actions workflow failed: {log.strip()[:_LOG_EXCERPT_CHARS]}")
        case Ok(_):
            on_failure(f"GitHub Actions workflow failed: {run.workflow_name} ({state.conclusion})")
        case Err(e):
            reporter.set_output(f"Could not fetch failure logs: {e.message}")


def make_watch_task(
    on_failure: FailureHandler | None = None,
) -> Callable[[RunContext, StepReporter], Result[None, StepError]]:
    """Build the watch task; ``on_failure`` receives the failed run's log excerpt."""

    def watch_task(ctx: RunContext, reporter: StepReporter) -> Result[None, StepError]:
        run = ctx.extras.get(PUBLISH_RUN)
        if not isinstance(run, WorkflowRun):
            reporter.warn("no workflow to monitor")
            return Ok(None)

        reporter.set_output(f"Monitoring workflow: {run.workflow_name} (#{run.number or run.database_id})")
        if run.completed:
            _handle_completed(ctx, reporter, run, RunState(run.status, run.conclusion), on_failure)
            return Ok(None)

        attempts = max(1, ctx.config.monitor.watch_attempts)
        last_status = ""
        for attempt in range(1, attempts + 1):
            match view_run(root=ctx.root, repo=_repository(ctx), run_id=run.database_id):
                case Err(e):
                    reporter.warn(f"monitoring error: {e.message}")
                    return Ok(None)
                case Ok(state):
                    pass

            if state.status != last_status:
                last_status = state.status
                if state.status == "in_progress":
                    reporter.set_output("Workflow is running...")
                    if state.jobs:
                        reporter.set_output(f"Jobs: {state.job_summary()}")

            if state.completed:
                _handle_completed(ctx, reporter, run, state, on_failure)
                return Ok(None)

            reporter.set_progress(attempt, attempts)
            if attempt < attempts:
                sleep(ctx.config.monitor.watch_interval)

        reporter.warn(f"monitoring timed out after {attempts} checks")
        return Ok(None)

    return watch_task


def _package_name(ctx: RunContext) -> str | None:
    name = ctx.extras.get("npm_package")
    if isinstance(name, str) and name:
        return name
    repository = _repository(ctx)
    return f"@{repository}" if repository else None


def verify_package_task(ctx: RunContext, reporter: StepReporter) -> Result[None, StepError]:
    name = _package_name(ctx)
    if name is None:
        reporter.warn("package name unknown")
        return Ok(None)

    reporter.set_output(f"Checking {name}...")
    result = run_process(["npm", "view", name, "version"], cwd=ctx.root, timeout=NPM_VIEW_TIMEOUT_SECONDS)
    match result:
        case Ok(stdout):
            published = stdout.strip()
            expected = ctx.version.next if ctx.version else None
            if expected and published != expected:
                reporter.warn(f"registry reports {name}@{published}, expected {expected}")
                return Ok(None)
            reporter.set_title(f"Verify npm package availability - {name}@{published}")
            reporter.set_output(f"Install with: npm install {name}")
        case Err(e):
            text = e.output.lower()
            if "404" in text or "not found" in text:
                reporter.warn("package not found; it may not be published yet")
            elif "network" in text or e.timed_out or "timeout" in text:
                reporter.warn("network error reaching the npm registry")
            else:
                reporter.warn(f"verification failed: {e}")
    return Ok(None)
