from __future__ import annotations

from pathlib import Path

import pytest

from gw.core.config import WorkflowConfig
from gw.git import repository as repository_mod
from gw.git.repository import Repository
from gw.platform import commands as commands_mod
from gw.recovery import advisor as advisor_mod
from gw.release import deploy as deploy_mod
from gw.release import gh as gh_mod
from gw.release import monitor as monitor_mod
from gw.release.context import GitSnapshot, RunContext, VersionSnapshot
from gw.release.options import ReleaseOptions
from gw.test.fakes import CLEAN_STATUS, ContextFactory, FakeCommands, no_sleep


@pytest.fixture
def tools(commands: FakeCommands, monkeypatch: pytest.MonkeyPatch) -> FakeCommands:
    """Every external tool faked: a clean ``main`` checkout of acme/widgets without tags."""
    for module in (repository_mod, commands_mod, gh_mod, deploy_mod, monitor_mod, advisor_mod):
        monkeypatch.setattr(module, "run_process", commands)
    monkeypatch.setattr(gh_mod, "sleep", no_sleep)
    monkeypatch.setattr(monitor_mod, "sleep", no_sleep)

    commands.ok("git", "rev-parse", "--is-inside-work-tree", stdout="true\n")
    commands.ok("git", "rev-parse", "--abbrev-ref", "HEAD", stdout="main\n")
    commands.fail("git", "rev-parse", "-q", "--verify", returncode=1)
    commands.ok("git", "remote", "get-url", stdout="git@github.com:acme/widgets.git\n")
    commands.ok("git", "status", stdout=CLEAN_STATUS)
    commands.ok("gh", "workflow", "list", stdout="[]")
    return commands


@pytest.fixture
def make_context(tmp_path: Path) -> ContextFactory:
    """RunContext for ``tmp_path``; ``planned=True`` fills git and version like the analysis steps do."""

    def factory(
        *,
        options: ReleaseOptions | None = None,
        config: WorkflowConfig | None = None,
        planned: bool = False,
    ) -> RunContext:
        ctx = RunContext(
            root=tmp_path,
            repo=Repository(tmp_path),
            config=config or WorkflowConfig(),
            options=options or ReleaseOptions(),
        )
        if planned:
            ctx.git = GitSnapshot(branch="main", remote="origin", repository="acme/widgets")
            ctx.version = VersionSnapshot(current="1.0.0", next="1.1.0", bump="minor")
        return ctx

    return factory
