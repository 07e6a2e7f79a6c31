from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from gw.core.config import MonitorConfig, WorkflowConfig
from gw.core.result import Ok
from gw.engine.record import StepStatus
from gw.release import monitor
from gw.release.gh import WorkflowRun
from gw.test.fakes import ContextFactory, FakeCommands, make_reporter

NOW = datetime(2026, 3, 14, 10, 5, tzinfo=UTC)


@pytest.fixture(autouse=True)
def frozen_now(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(monitor, "_now", lambda: NOW)


def _run(name: str = "Publish to npm", *, minutes_ago: int = 1, status: str = "in_progress", **kw) -> WorkflowRun:
    return WorkflowRun(
        database_id=kw.pop("database_id", 42),
        workflow_name=name,
        status=status,
        created_at=NOW - timedelta(minutes=minutes_ago),
        **kw,
    )


def _runs_json(*runs: WorkflowRun) -> str:
    return json.dumps(
        [
            {
                "databaseId": r.database_id,
                "workflowName": r.workflow_name,
                "status": r.status,
                "conclusion": r.conclusion or "",
                "createdAt": r.created_at.isoformat() if r.created_at else "",
            }
            for r in runs
        ]
    )


def _fast(**overrides: object) -> WorkflowConfig:
    return WorkflowConfig(monitor=MonitorConfig(**{"find_attempts": 3, "watch_attempts": 3, **overrides}))


class TestPickPublishRun:
    def test_recent_publish_run(self) -> None:
        runs = [_run("CI"), _run("Publish to npm")]
        assert monitor.pick_publish_run(runs, NOW) == runs[1]

    def test_ignores_old_runs(self) -> None:
        assert monitor.pick_publish_run([_run(minutes_ago=10)], NOW) is None

    def test_ignores_runs_without_timestamp(self) -> None:
        run = WorkflowRun(database_id=1, workflow_name="npm", status="queued")
        assert monitor.pick_publish_run([run], NOW) is None


class TestFindPublishRun:
    def test_found_after_polling(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        tools.on("gh", "run", "list", result=[Ok("[]"), Ok(_runs_json(_run()))])
        ctx = make_context(config=_fast(), planned=True)
        reporter, record = make_reporter("Find publishing workflow")

        assert monitor.find_publish_run_task(ctx, reporter) == Ok(None)

        assert ctx.extras[monitor.PUBLISH_RUN] == _run()
        assert record.title == "Find publishing workflow - Publish to npm"
        assert tools.count("gh", "run", "list") == 2

    def test_not_found_warns(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        tools.ok("gh", "run", "list", stdout="[]")
        ctx = make_context(config=_fast(), planned=True)
        reporter, record = make_reporter()

        assert monitor.find_publish_run_task(ctx, reporter) == Ok(None)

        assert record.status is StepStatus.WARNED
        assert monitor.PUBLISH_RUN not in ctx.extras
        assert tools.count("gh", "run", "list") == 3


class TestWatch:
    def test_success(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        tools.on(
            "gh",
            "run",
            "view",
            result=[
                Ok('{"status": "in_progress", "conclusion": "", "jobs": [{"name": "publish", "status": "in_progress"}]}'),
                Ok('{"status": "completed", "conclusion": "success", "jobs": []}'),
            ],
        )
        ctx = make_context(config=_fast(), planned=True)
        ctx.extras[monitor.PUBLISH_RUN] = _run()
        reporter, record = make_reporter("Monitor workflow execution")

        assert monitor.make_watch_task()(ctx, reporter) == Ok(None)

        assert record.title == "Monitor workflow execution - Publish to npm completed successfully"
        assert "Jobs: .. publish" in record.output
        assert monitor.PUBLISH_FAILED not in ctx.extras

    def test_failure_hands_log_to_advisor(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        tools.ok("gh", "run", "view", stdout='{"status": "completed", "conclusion": "failure", "jobs": []}')
        tools.ok("gh", "run", "view", "42", "--repo", "acme/widgets", "--log-failed", stdout="npm ERR! code E401\n")
        ctx = make_context(config=_fast(), planned=True)
        ctx.extras[monitor.PUBLISH_RUN] = _run()
        advised: list[str] = []
        reporter, record = make_reporter()

        assert monitor.make_watch_task(advised.append)(ctx, reporter) == Ok(None)

        assert record.status is StepStatus.WARNED
        assert ctx.extras[monitor.PUBLISH_FAILED] is True
        assert "View logs: https://github.com/acme/widgets/actions/runs/42" in record.output
        assert advised == ["GitHub Actions workflow failed: npm ERR! code E401"]

    def test_already_completed_run_is_not_polled(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        ctx = make_context(config=_fast(), planned=True)
        ctx.extras[monitor.PUBLISH_RUN] = _run(status="completed", conclusion="success")

        monitor.make_watch_task()(ctx, make_reporter()[0])

        assert not tools.ran("gh", "run", "view")

    def test_times_out(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        tools.ok("gh", "run", "view", stdout='{"status": "queued", "conclusion": "", "jobs": []}')
        ctx = make_context(config=_fast(), planned=True)
        ctx.extras[monitor.PUBLISH_RUN] = _run()
        reporter, record = make_reporter()

        monitor.make_watch_task()(ctx, reporter)

        assert record.reason == "monitoring timed out after 3 checks"
        assert tools.count("gh", "run", "view") == 3

    def test_nothing_to_watch(self, make_context: ContextFactory) -> None:
        reporter, record = make_reporter()
        monitor.make_watch_task()(make_context(), reporter)
        assert record.reason == "no workflow to monitor"


class TestVerifyPackage:
    def test_published_version_matches(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        tools.ok("npm", "view", stdout="1.1.0\n")
        ctx = make_context(planned=True)
        ctx.extras["npm_package"] = "@acme/widgets"
        reporter, record = make_reporter("Verify npm package availability")

        monitor.verify_package_task(ctx, reporter)

        assert record.title == "Verify npm package availability - @acme/widgets@1.1.0"
        assert tools.calls[-1] == ("npm", "view", "@acme/widgets", "version")

    def test_falls_back_to_repository_scope(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        tools.ok("npm", "view", stdout="1.1.0\n")
        monitor.verify_package_task(make_context(planned=True), make_reporter()[0])
        assert tools.calls[-1] == ("npm", "view", "@acme/widgets", "version")

    def test_stale_version_warns(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        tools.ok("npm", "view", stdout="1.0.0\n")
        reporter, record = make_reporter()

        monitor.verify_package_task(make_context(planned=True), reporter)

        assert record.reason == "registry reports @acme/widgets@1.0.0, expected 1.1.0"

    def test_not_found_warns(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        tools.fail("npm", "view", stderr="npm ERR! code E404 Not Found")
        reporter, record = make_reporter()

        monitor.verify_package_task(make_context(planned=True), reporter)

        assert record.reason == "package not found; it may not be published yet"
