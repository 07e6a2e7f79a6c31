from __future__ import annotations

import json
from pathlib import Path

from gw.core.config import GitConfig, WorkflowConfig
from gw.core.result import Err, Ok
from gw.engine.record import StepStatus
from gw.git.commits import parse_log
from gw.release.options import ReleaseOptions
from gw.release.publish import (
    changelog_task,
    commit_task,
    github_release_task,
    manifest_task,
    push_task,
    release_commit_message,
    tag_task,
)
from gw.test.fakes import ContextFactory, FakeCommands, git_log, make_reporter, write_package


def test_release_commit_message() -> None:
    assert release_commit_message("v1.1.0") == "chore: release v1.1.0"


class TestFiles:
    def test_manifest_version_is_rewritten(self, tmp_path: Path, make_context: ContextFactory) -> None:
        write_package(tmp_path)
        reporter, record = make_reporter("Update package.json")

        assert manifest_task(make_context(planned=True), reporter) == Ok(None)

        assert json.loads((tmp_path / "package.json").read_text(encoding="utf-8"))["version"] == "1.1.0"
        assert record.title == "Update package.json - version 1.1.0"

    def test_missing_manifest_is_fatal(self, make_context: ContextFactory) -> None:
        result = manifest_task(make_context(planned=True), make_reporter()[0])
        assert isinstance(result, Err)
        assert result.error.kind == "manifest_invalid"

    def test_changelog_created(self, tmp_path: Path, make_context: ContextFactory) -> None:
        ctx = make_context(planned=True)
        assert ctx.git is not None
        ctx.git.commits = parse_log(git_log("feat: add widgets"))
        reporter, record = make_reporter("Update CHANGELOG.md")

        assert changelog_task(ctx, reporter) == Ok(None)

        text = (tmp_path / "CHANGELOG.md").read_text(encoding="utf-8")
        assert text.startswith("# Changelog\n\n## [1.1.0] - ")
        assert "- add widgets" in text
        assert record.title == "Update CHANGELOG.md - created"

    def test_dry_run_writes_nothing(self, tmp_path: Path, make_context: ContextFactory) -> None:
        write_package(tmp_path)
        ctx = make_context(options=ReleaseOptions(dry_run=True), planned=True)
        reporter, record = make_reporter()

        manifest_task(ctx, reporter)
        changelog_task(ctx, reporter)

        assert json.loads((tmp_path / "package.json").read_text(encoding="utf-8"))["version"] == "1.0.0"
        assert not (tmp_path / "CHANGELOG.md").exists()
        assert "dry-run: would add 0 commit(s)" in record.title


class TestGit:
    def test_commit_tag_push_order(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        ctx = make_context(planned=True)

        for task in (commit_task, tag_task, push_task):
            assert task(ctx, make_reporter()[0]) == Ok(None)

        mutations = [c for c in tools.calls if c[1] in ("add", "commit", "tag", "push")]
        assert mutations == [
            ("git", "add", "--", "package.json", "CHANGELOG.md"),
            ("git", "commit", "-m", "chore: release v1.1.0"),
            ("git", "tag", "-a", "v1.1.0", "-m", "Release 1.1.0"),
            ("git", "push", "origin", "main"),
            ("git", "push", "origin", "refs/tags/v1.1.0"),
        ]

    def test_existing_tag(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        tools.fail("git", "tag", stderr="fatal: tag 'v1.1.0' already exists", returncode=128)

        result = tag_task(make_context(planned=True), make_reporter()[0])

        assert isinstance(result, Err)
        assert result.error.kind == "tag_exists"
        assert result.error.hint == "Delete the tag or choose another version with --type"

    def test_push_failure_is_fatal(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        tools.fail("git", "push", stderr="! [rejected] main -> main (fetch first)")

        result = push_task(make_context(planned=True), make_reporter()[0])

        assert isinstance(result, Err)
        assert result.error.kind == "git_failed"
        assert not tools.ran("git", "push", "origin", "refs/tags/v1.1.0")

    def test_dry_run_mutates_nothing(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        ctx = make_context(options=ReleaseOptions(dry_run=True), planned=True)
        reporter, record = make_reporter()

        for task in (commit_task, tag_task, push_task, github_release_task):
            assert task(ctx, reporter) == Ok(None)

        assert tools.calls == []
        assert record.title == "Create GitHub release - dry-run: would create 'Release v1.1.0'"


class TestGithubRelease:
    def test_created(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        url = "https://github.com/acme/widgets/releases/tag/v1.1.0"
        tools.ok("gh", "release", "create", stdout=url + "\n")
        ctx = make_context(planned=True)

        assert github_release_task(ctx, make_reporter()[0]) == Ok(None)

        assert ctx.release_url == url
        call = tools.calls[-1]
        assert call[:6] == ("gh", "release", "create", "v1.1.0", "--title", "Release v1.1.0")

    def test_notes_follow_the_tag_prefix(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        config = WorkflowConfig(git=GitConfig(tag_prefix="release-"))
        ctx = make_context(config=config, planned=True)

        assert github_release_task(ctx, make_reporter()[0]) == Ok(None)

        call = tools.calls[-1]
        assert call[3:6] == ("release-1.1.0", "--title", "Release release-1.1.0")
        notes = call[call.index("--notes") + 1]
        assert notes.startswith("Release release-1.1.0\n")

    def test_failure_only_warns(self, tools: FakeCommands, make_context: ContextFactory) -> None:
        tools.fail("gh", "release", "create", stderr="HTTP 401: Bad credentials")
        ctx = make_context(planned=True)
        reporter, record = make_reporter()

        assert github_release_task(ctx, reporter) == Ok(None)

        assert record.status is StepStatus.WARNED
        assert record.output == ["Run: gh auth login"]
        assert ctx.release_url is None
