from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from gw.core.result import Err, Ok
from gw.release import gh as gh_mod
from gw.test.fakes import FakeCommands, no_sleep, process_error


@pytest.fixture
def gh(commands: FakeCommands, monkeypatch: pytest.MonkeyPatch) -> FakeCommands:
    monkeypatch.setattr(gh_mod, "run_process", commands)
    monkeypatch.setattr(gh_mod, "sleep", no_sleep)
    return commands


def test_read_retries_transient_error(gh: FakeCommands, tmp_path: Path) -> None:
    gh.on(
        "gh",
        result=[
            Err(process_error(("gh",), stderr="HTTP 503 Service Unavailable")),
            Ok('[{"name": "Publish to npm"}]'),
        ],
    )

    result = gh_mod.list_workflow_names(root=tmp_path, repo="acme/widgets")

    assert result == Ok(["Publish to npm"])
    assert gh.count("gh", "workflow", "list") == 2
    assert gh.calls[0] == ("gh", "workflow", "list", "--repo", "acme/widgets", "--json", "name")


def test_read_does_not_retry_non_transient(gh: FakeCommands, tmp_path: Path) -> None:
    gh.fail("gh", stderr="HTTP 404 Not Found")

    result = gh_mod.list_workflow_names(root=tmp_path)

    assert isinstance(result, Err)
    assert result.error.kind == "gh_failed"
    assert len(gh.calls) == 1


def test_missing_gh(gh: FakeCommands, tmp_path: Path) -> None:
    gh.missing("gh")
    result = gh_mod.create_release(root=tmp_path, tag="v1.0.0", title="Release v1.0.0", notes="n")
    assert isinstance(result, Err)
    assert result.error.kind == "gh_missing"
    assert result.error.hint is not None and "cli.github.com" in result.error.hint


def test_auth_required(gh: FakeCommands, tmp_path: Path) -> None:
    gh.fail("gh", stderr="To get started with GitHub CLI, please run:  gh auth login")
    result = gh_mod.create_release(root=tmp_path, tag="v1.0.0", title="t", notes="n")
    assert isinstance(result, Err)
    assert result.error.kind == "gh_auth_required"


def test_create_release_returns_url(gh: FakeCommands, tmp_path: Path) -> None:
    gh.ok("gh", "release", "create", stdout="https://github.com/acme/widgets/releases/tag/v1.1.0\n")

    result = gh_mod.create_release(root=tmp_path, tag="v1.1.0", title="Release v1.1.0", notes="notes")

    assert result == Ok("https://github.com/acme/widgets/releases/tag/v1.1.0")
    assert gh.calls[0] == (
        "gh", "release", "create", "v1.1.0", "--title", "Release v1.1.0", "--notes", "notes",
    )


def test_list_release_runs(gh: FakeCommands, tmp_path: Path) -> None:
    payload = [
        {
            "databaseId": 42,
            "workflowName": "Publish to npm",
            "name": "v1.1.0",
            "status": "in_progress",
            "conclusion": "",
            "number": 7,
            "createdAt": "2026-03-14T10:00:00Z",
        },
        {"workflowName": "no id"},
    ]
    gh.ok("gh", "run", "list", stdout=json.dumps(payload))

    result = gh_mod.list_release_runs(root=tmp_path, repo=None)

    assert isinstance(result, Ok)
    [run] = result.value
    assert run.database_id == 42
    assert run.workflow_name == "Publish to npm"
    assert run.conclusion is None
    assert run.completed is False
    assert run.created_at == datetime(2026, 3, 14, 10, 0, tzinfo=UTC)


def test_list_release_runs_invalid_json(gh: FakeCommands, tmp_path: Path) -> None:
    gh.ok("gh", "run", "list", stdout="not json")
    result = gh_mod.list_release_runs(root=tmp_path, repo=None)
    assert isinstance(result, Err)
    assert "invalid JSON" in result.error.message


def test_view_run(gh: FakeCommands, tmp_path: Path) -> None:
    payload = {
        "status": "completed",
        "conclusion": "failure",
        "jobs": [
            {"name": "build", "status": "completed", "conclusion": "success"},
            {"name": "publish", "status": "completed", "conclusion": "failure"},
        ],
    }
    gh.ok("gh", "run", "view", stdout=json.dumps(payload))

    result = gh_mod.view_run(root=tmp_path, repo="acme/widgets", run_id=42)

    assert isinstance(result, Ok)
    state = result.value
    assert state.completed and not state.succeeded
    assert state.job_summary() == "ok build, x publish"


def test_run_url() -> None:
    assert gh_mod.run_url("acme/widgets", 42) == "https://github.com/acme/widgets/actions/runs/42"
    assert gh_mod.run_url(None, 42) is None
