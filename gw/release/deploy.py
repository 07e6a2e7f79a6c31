"""Build and deployment targets.

Deployments are best effort: a failure is categorized into a
``DeploymentError`` and the step ends WARNED, never failed. Only the build
can stop the run, since nothing should be deployed from a broken build.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from functools import wraps

from gw.core.result import Err, Ok, Result
from gw.engine.record import StepReporter
from gw.engine.step import StepError
from gw.platform.commands import format_command, run_chain
from gw.platform.process import ProcessError
from gw.platform.process import run as run_process
from gw.release.context import DeploymentRecord, RunContext
from gw.release.errors import DeploymentError
from gw.release.quality import output_tail
from gw.release.timeouts import (
    DEPLOY_TIMEOUT_SECONDS,
    NPM_PUBLISH_TIMEOUT_SECONDS,
    QUALITY_TIMEOUT_SECONDS,
)

__all__ = [
    "best_effort",
    "build_task",
    "categorize_deploy_failure",
    "cloudflare_task",
    "npm_publish_task",
]

_URL_RE = re.compile(r"https?://\S+")

_MISSING_CONFIG_MARKERS = ("missing entry-point", "could not find a wrangler", "no wrangler config")
_AUTH_MARKERS = (
    "not authenticated",
    "not logged in",
    "authentication",
    "unauthorized",
    "eneedauth",
    "e401",
    "401",
    "wrangler login",
    "npm login",
)
_PERMISSION_MARKERS = ("permission", "forbidden", "e403", "403")

type DeployTask = Callable[[RunContext, StepReporter], Result[None, StepError]]


def categorize_deploy_failure(target: str, error: ProcessError) -> DeploymentError:
    text = error.output.lower()
    detail = output_tail(error.output, 5)
    if error.missing_executable:
        return DeploymentError(target, "tool_missing", f"{error.command[0]}: command not found", detail)
    if error.timed_out:
        return DeploymentError(target, "unknown", "timed out", detail)
    if any(marker in text for marker in _MISSING_CONFIG_MARKERS):
        return DeploymentError(target, "missing_config", "no deployment config", detail)
    if any(marker in text for marker in _AUTH_MARKERS):
        return DeploymentError(target, "auth", "not authenticated", detail)
    if any(marker in text for marker in _PERMISSION_MARKERS):
        return DeploymentError(target, "permission", "permission denied", detail)
    return DeploymentError(target, "unknown", f"failed (exit {error.returncode})", detail)


def _warn_failed(reporter: StepReporter, failure: DeploymentError) -> None:
    if failure.detail:
        reporter.set_output(failure.detail)
    reporter.warn(f"Failed: {failure.message} (continuing)")


def best_effort(target: str) -> Callable[[DeployTask], DeployTask]:
    """Turn anything a deployment task raises into a WARNED step."""

    def decorate(task: DeployTask) -> DeployTask:
        @wraps(task)
        def wrapper(ctx: RunContext, reporter: StepReporter) -> Result[None, StepError]:
            try:
                return task(ctx, reporter)
            except Exception as e:
                _warn_failed(reporter, DeploymentError(target, "unknown", str(e) or type(e).__name__))
                return Ok(None)

        return wrapper

    return decorate


def build_task(ctx: RunContext, reporter: StepReporter) -> Result[None, StepError]:
    chain = run_chain(
        ctx.config.quality.build,
        cwd=ctx.root,
        timeout=QUALITY_TIMEOUT_SECONDS,
        on_attempt=lambda command: reporter.set_output(f"Trying {format_command(command)}..."),
    )
    match chain:
        case Ok(success):
            reporter.set_title(f"Build project - build complete ({format_command(success.command)})")
            return Ok(None)
        case Err(failure) if failure.failure is not None:
            tail = output_tail(failure.failure.error.output)
            if tail:
                reporter.set_output(tail)
            return Err(
                StepError(
                    message=f"Build failed ({format_command(failure.failure.command)}). Cannot proceed with deployment.",
                )
            )
        case Err(_):
            reporter.set_title("Build project - no build script found (skipping)")
            return Ok(None)


@best_effort("cloudflare")
def cloudflare_task(ctx: RunContext, reporter: StepReporter) -> Result[None, StepError]:
    command = ["npx", "wrangler", "deploy"]
    if ctx.options.dry_run:
        reporter.set_title(f"Deploy to Cloudflare - dry-run: would run {format_command(command)}")
        return Ok(None)

    reporter.set_output("Deploying to Cloudflare...")
    result = run_process(command, cwd=ctx.root, timeout=DEPLOY_TIMEOUT_SECONDS)
    match result:
        case Err(e):
            _warn_failed(reporter, categorize_deploy_failure("cloudflare", e))
        case Ok(stdout):
            m = _URL_RE.search(stdout)
            url = m.group(0) if m else None
            ctx.deployments["cloudflare"] = DeploymentRecord(
                target="cloudflare",
                environment="production",
                url=url,
            )
            reporter.set_title(f"Deploy to Cloudflare - {url or 'deployed'}")
    return Ok(None)


@best_effort("npm")
def npm_publish_task(ctx: RunContext, reporter: StepReporter) -> Result[None, StepError]:
    package = ctx.extras.get("npm_package")
    name = package if isinstance(package, str) else None
    access = "public" if name is not None and name.startswith("@") else None
    command = ["npm", "publish", *(["--access", access] if access else [])]

    if ctx.options.dry_run:
        reporter.set_title(f"Publish to npm - dry-run: would run {format_command(command)}")
        return Ok(None)

    reporter.set_output(f"Publishing {name or 'package'} to npm...")
    result = run_process(command, cwd=ctx.root, timeout=NPM_PUBLISH_TIMEOUT_SECONDS)
    match result:
        case Err(e):
            _warn_failed(reporter, categorize_deploy_failure("npm", e))
        case Ok(_):
            version = ctx.version.next if ctx.version else None
            ctx.deployments["npm"] = DeploymentRecord(
                target="npm",
                registry="https://registry.npmjs.org",
                tag="latest",
                access=access,
                metadata={"package": name or "", "version": version or ""},
            )
            reporter.set_title(f"Publish to npm - {name}@{version}")
    return Ok(None)
