from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from time import sleep

from gw.core.result import Err, Ok, Result
from gw.core.structured import as_obj_list, as_str_dict, get_int, get_str
from gw.platform.process import ProcessError
from gw.platform.process import run as run_process
from gw.release.errors import ReleaseError, ReleaseErrorKind
from gw.release.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
)

_AUTH_MARKERS = ("not authenticated", "gh auth login", "http 401", "bad credentials", "authentication")


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "tls handshake timeout",
        "network is unreachable",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    if error.timed_out:
        return True
    return any(marker in text for marker in markers)


def _error_kind(error: ProcessError) -> ReleaseErrorKind:
    if error.missing_executable:
        return "gh_missing"
    text = error.output.lower()
    if any(marker in text for marker in _AUTH_MARKERS):
        return "gh_auth_required"
    return "gh_failed"


def _to_release_error(error: ProcessError, message: str) -> ReleaseError:
    kind = _error_kind(error)
    match kind:
        case "gh_missing":
            hint = "Install GitHub CLI: https://cli.github.com/"
        case "gh_auth_required":
            hint = "Run: gh auth login"
        case _:
            hint = error.stderr.strip() or None
    return ReleaseError(kind=kind, message=message, hint=hint)


def _repo_args(repo: str | None) -> list[str]:
    return ["--repo", repo] if repo else []


def run_gh_read(
    *,
    root: Path,
    cmd: list[str],
    message: str,
    timeout: float = GH_TIMEOUT_SECONDS,
    retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
) -> Result[str, ReleaseError]:
    """Run an idempotent gh query, retrying transient network failures."""
    attempts = max(1, retry_attempts)
    for attempt in range(attempts):
        result = run_process(cmd, cwd=root, timeout=timeout)
        if isinstance(result, Ok):
            return result

        error = result.error
        if attempt < attempts - 1 and _is_transient_gh_error(error):
            sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue

        return Err(_to_release_error(error, message))

    return Err(ReleaseError(kind="gh_failed", message=message))


def _parse_json(text: str, what: str) -> Result[object, ReleaseError]:
    try:
        obj: object = json.loads(text)
    except json.JSONDecodeError as e:
        return Err(ReleaseError(kind="gh_failed", message=f"gh returned invalid JSON for {what}: {e}"))
    return Ok(obj)


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


# -- releases ----------------------------------------------------------------


def create_release(*, root: Path, tag: str, title: str, notes: str) -> Result[str, ReleaseError]:
    """Create a GitHub release for an already pushed tag. Returns its URL."""
    result = run_process(
        ["gh", "release", "create", tag, "--title", title, "--notes", notes],
        cwd=root,
        timeout=GH_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return Err(_to_release_error(result.error, f"gh release create failed for {tag}"))
    return Ok(result.value.strip())


# -- workflows ---------------------------------------------------------------


def list_workflow_names(*, root: Path, repo: str | None = None) -> Result[list[str], ReleaseError]:
    text = run_gh_read(
        root=root,
        cmd=["gh", "workflow", "list", *_repo_args(repo), "--json", "name"],
        message="gh workflow list failed",
    )
    if isinstance(text, Err):
        return text

    obj = _parse_json(text.value, "workflow list")
    if isinstance(obj, Err):
        return obj

    names: list[str] = []
    for item in as_obj_list(obj.value) or []:
        data = as_str_dict(item)
        name = get_str(data, "name") if data is not None else None
        if name:
            names.append(name)
    return Ok(names)


@dataclass(frozen=True, slots=True)
class WorkflowRun:
    database_id: int
    workflow_name: str
    status: str
    conclusion: str | None = None
    number: int | None = None
    created_at: datetime | None = None

    @property
    def completed(self) -> bool:
        return self.status == "completed"


@dataclass(frozen=True, slots=True)
class JobState:
    name: str
    status: str
    conclusion: str | None = None

    @property
    def marker(self) -> str:
        if self.conclusion == "success":
            return "ok"
        if self.conclusion == "failure":
            return "x"
        if self.status == "in_progress":
            return ".."
        return "-"


@dataclass(frozen=True, slots=True)
class RunState:
    status: str
    conclusion: str | None
    jobs: tuple[JobState, ...] = ()

    @property
    def completed(self) -> bool:
        return self.status == "completed"

    @property
    def succeeded(self) -> bool:
        return self.completed and self.conclusion == "success"

    def job_summary(self) -> str:
        return ", ".join(f"{job.marker} {job.name}" for job in self.jobs)


def list_release_runs(*, root: Path, repo: str | None, limit: int = 5) -> Result[list[WorkflowRun], ReleaseError]:
    """Most recent workflow runs triggered by a release event."""
    text = run_gh_read(
        root=root,
        cmd=[
            "gh",
            "run",
            "list",
            *_repo_args(repo),
            "--event",
            "release",
            "--limit",
            str(limit),
            "--json",
            "status,conclusion,name,workflowName,createdAt,number,databaseId",
        ],
        message="gh run list failed",
    )
    if isinstance(text, Err):
        return text

    obj = _parse_json(text.value, "run list")
    if isinstance(obj, Err):
        return obj

    runs: list[WorkflowRun] = []
    for item in as_obj_list(obj.value) or []:
        data = as_str_dict(item)
        if data is None:
            continue
        run_id = get_int(data, "databaseId")
        if run_id is None:
            continue
        runs.append(
            WorkflowRun(
                database_id=run_id,
                workflow_name=get_str(data, "workflowName") or get_str(data, "name") or "",
                status=get_str(data, "status") or "",
                conclusion=get_str(data, "conclusion") or None,
                number=get_int(data, "number"),
                created_at=_parse_time(get_str(data, "createdAt")),
            )
        )
    return Ok(runs)


def view_run(*, root: Path, repo: str | None, run_id: int) -> Result[RunState, ReleaseError]:
    text = run_gh_read(
        root=root,
        cmd=["gh", "run", "view", str(run_id), *_repo_args(repo), "--json", "status,conclusion,jobs"],
        message=f"gh run view failed for run {run_id}",
    )
    if isinstance(text, Err):
        return text

    obj = _parse_json(text.value, f"run {run_id}")
    if isinstance(obj, Err):
        return obj

    data = as_str_dict(obj.value)
    if data is None:
        return Err(ReleaseError(kind="gh_failed", message=f"unexpected run payload for run {run_id}"))

    jobs: list[JobState] = []
    for item in as_obj_list(data.get("jobs")) or []:
        job = as_str_dict(item)
        if job is None:
            continue
        jobs.append(
            JobState(
                name=get_str(job, "name") or "?",
                status=get_str(job, "status") or "",
                conclusion=get_str(job, "conclusion") or None,
            )
        )

    return Ok(
        RunState(
            status=get_str(data, "status") or "",
            conclusion=get_str(data, "conclusion") or None,
            jobs=tuple(jobs),
        )
    )


def failed_run_log(*, root: Path, repo: str | None, run_id: int) -> Result[str, ReleaseError]:
    return run_gh_read(
        root=root,
        cmd=["gh", "run", "view", str(run_id), *_repo_args(repo), "--log-failed"],
        message=f"gh run view --log-failed failed for run {run_id}",
    )


def run_url(repo: str | None, run_id: int) -> str | None:
    if not repo:
        return None
    return f"https://github.com/{repo}/actions/runs/{run_id}"
