from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

import pytest

from gw.core.result import Err, Ok
from gw.engine import (
    ConsoleRenderer,
    EngineOptions,
    ExecutionError,
    Step,
    StepError,
    StepReporter,
    StepStatus,
    TaskEngine,
)
from gw.output.console import MockConsole


@dataclass
class Ctx:
    ran: list[str] = field(default_factory=list)
    flag: bool = False
    deployments: dict[str, str] = field(default_factory=dict)


def record(name: str):
    def task(ctx: Ctx, reporter: StepReporter) -> None:
        ctx.ran.append(name)

    return task


def fail(message: str, hint: str | None = None):
    def task(ctx: Ctx, reporter: StepReporter):
        ctx.ran.append(message)
        return Err(StepError(message, hint))

    return task


class TestSequential:
    def test_runs_in_order_and_returns_context(self) -> None:
        ctx = Ctx()
        steps = [Step("a", task=record("a")), Step("b", task=record("b"))]

        assert TaskEngine[Ctx]().execute(steps, ctx) == Ok(ctx)
        assert ctx.ran == ["a", "b"]

    def test_groups_run_depth_first(self) -> None:
        ctx = Ctx()
        steps = [
            Step("g", subtasks=(Step("a", task=record("a")), Step("b", task=record("b")))),
            Step("c", task=record("c")),
        ]

        report = TaskEngine[Ctx]().run(steps, ctx)

        assert ctx.ran == ["a", "b", "c"]
        assert [r.title for r in report.all_records()] == ["g", "a", "b", "c"]
        assert report.records[0].status is StepStatus.SUCCEEDED

    def test_first_failure_stops_the_run(self) -> None:
        ctx = Ctx()
        steps = [Step("a", task=fail("boom", "try again")), Step("b", task=record("b"))]

        result = TaskEngine[Ctx]().execute(steps, ctx)

        assert isinstance(result, Err)
        assert result.error.message == "a: boom"
        assert result.error.step == "a"
        assert result.error.failures[0].error.hint == "try again"
        assert result.error.context is ctx
        assert ctx.ran == ["boom"]

    def test_exit_on_error_false_keeps_going(self) -> None:
        ctx = Ctx()
        steps = [Step("a", task=fail("boom")), Step("b", task=record("b"))]

        report = TaskEngine[Ctx](EngineOptions(exit_on_error=False)).run(steps, ctx)

        assert ctx.ran == ["boom", "b"]
        assert [f.title for f in report.failures] == ["a"]
        assert not report.ok

    def test_failed_child_fails_its_group(self) -> None:
        steps = [Step("g", subtasks=(Step("a", task=fail("boom")),))]
        report = TaskEngine[Ctx]().run(steps, Ctx())
        assert report.records[0].status is StepStatus.FAILED


class TestPredicates:
    def test_disabled_steps_leave_no_record(self) -> None:
        ctx = Ctx()
        steps = [
            Step("off", task=record("off"), enabled=False),
            Step("dynamic", task=record("dynamic"), enabled=lambda c: c.flag),
            Step("on", task=record("on")),
        ]

        report = TaskEngine[Ctx]().run(steps, ctx)

        assert ctx.ran == ["on"]
        assert [r.title for r in report.records] == ["on"]

    def test_skip_reason_is_recorded(self) -> None:
        ctx = Ctx()
        steps = [
            Step("literal", task=record("literal"), skip="--skip-tests"),
            Step("callable", task=record("callable"), skip=lambda c: "flag unset" if not c.flag else False),
            Step("bare", task=record("bare"), skip=True),
        ]

        report = TaskEngine[Ctx]().run(steps, ctx)

        assert ctx.ran == []
        assert [(r.status, r.reason) for r in report.records] == [
            (StepStatus.SKIPPED, "--skip-tests"),
            (StepStatus.SKIPPED, "flag unset"),
            (StepStatus.SKIPPED, None),
        ]

    def test_predicates_see_earlier_mutations(self) -> None:
        def turn_on(ctx: Ctx, reporter: StepReporter) -> None:
            ctx.flag = True

        ctx = Ctx()
        steps = [Step("on", task=turn_on), Step("later", task=record("later"), enabled=lambda c: c.flag)]

        TaskEngine[Ctx]().run(steps, ctx)

        assert ctx.ran == ["later"]

    def test_raising_predicates_fail_the_step(self) -> None:
        hook = TestRecovery.Hook()
        ctx = Ctx()
        steps = [
            Step("first", task=record("first")),
            Step("broken skip", task=record("broken skip"), skip=lambda c: 1 / 0),
            Step("later", task=record("later")),
        ]

        result = TaskEngine[Ctx](recovery=hook).execute(steps, ctx)

        assert isinstance(result, Err)
        assert result.error.step == "broken skip"
        assert result.error.context is ctx
        assert isinstance(result.error.exception, ZeroDivisionError)
        assert result.error.failures[0].attempts == 0
        assert ctx.ran == ["first"]
        assert [e.step for e in hook.seen] == ["broken skip"]

    def test_raising_enabled_predicate_is_recorded(self) -> None:
        def broken(ctx: Ctx) -> bool:
            raise KeyError("deployments")

        steps = [
            Step(
                "g",
                concurrent=True,
                subtasks=(Step("a", task=record("a"), enabled=broken), Step("b", task=record("b"))),
            )
        ]
        ctx = Ctx()

        report = TaskEngine[Ctx]().run(steps, ctx)

        assert ctx.ran == ["b"]
        a, b = report.records[0].children
        assert a.status is StepStatus.FAILED
        assert a.error is not None and a.error.startswith("step predicate raised")
        assert b.status is StepStatus.SUCCEEDED


class TestRetryAndExceptions:
    def test_retry_until_success(self) -> None:
        attempts: list[int] = []

        def flaky(ctx: Ctx, reporter: StepReporter):
            attempts.append(1)
            return Err(StepError("not yet")) if len(attempts) < 3 else Ok(None)

        report = TaskEngine[Ctx]().run([Step("flaky", task=flaky, retry=2)], Ctx())

        assert report.ok
        assert report.records[0].attempts == 3
        assert report.records[0].output == ["not yet (retrying 1/2)", "not yet (retrying 2/2)"]

    def test_retries_exhausted(self) -> None:
        report = TaskEngine[Ctx]().run([Step("x", task=fail("nope"), retry=1)], Ctx())
        assert report.failures[0].attempts == 2
        assert report.records[0].error == "nope"

    def test_exception_becomes_failure(self) -> None:
        def explode(ctx: Ctx, reporter: StepReporter) -> None:
            raise ValueError("bad value")

        result = TaskEngine[Ctx]().execute([Step("x", task=explode)], Ctx())

        assert isinstance(result, Err)
        assert result.error.message == "x: bad value"
        assert isinstance(result.error.exception, ValueError)

    def test_foreign_error_values_keep_hint(self) -> None:
        @dataclass(frozen=True)
        class Other:
            kind: str
            message: str
            hint: str | None = None

        def task(ctx: Ctx, reporter: StepReporter):
            return Err(Other("tag_exists", "Tag v1.0.0 already exists", "pick another"))

        result = TaskEngine[Ctx]().execute([Step("x", task=task)], Ctx())

        assert isinstance(result, Err)
        assert result.error.failures[0].error == StepError("Tag v1.0.0 already exists", "pick another")

    def test_invalid_retry(self) -> None:
        with pytest.raises(ValueError):
            Step("x", retry=-1)

    def test_subtasks_take_precedence_over_task(self) -> None:
        ctx = Ctx()
        report = TaskEngine[Ctx]().run([Step("x", task=record("x"), subtasks=(Step("y", task=record("y")),))], ctx)

        assert report.ok
        assert ctx.ran == ["y"]
        assert report.records[0].is_group


class TestWarnings:
    def test_warned_step_does_not_fail_the_run(self) -> None:
        def shaky(ctx: Ctx, reporter: StepReporter) -> None:
            reporter.warn("Failed: not authenticated (continuing)")

        steps = [Step("g", subtasks=(Step("shaky", task=shaky), Step("next", task=record("next"))))]
        ctx = Ctx()

        report = TaskEngine[Ctx]().run(steps, ctx)

        assert report.ok
        assert ctx.ran == ["next"]
        group = report.records[0]
        assert group.status is StepStatus.WARNED
        assert group.children[0].status is StepStatus.WARNED
        assert group.children[0].reason == "Failed: not authenticated (continuing)"


class TestConcurrent:
    def test_siblings_run_together(self) -> None:
        barrier = threading.Barrier(2, timeout=5)

        def meet(name: str):
            def task(ctx: Ctx, reporter: StepReporter) -> None:
                barrier.wait()
                ctx.ran.append(name)

            return task

        ctx = Ctx()
        steps = [Step("g", concurrent=True, subtasks=(Step("a", task=meet("a")), Step("b", task=meet("b"))))]

        report = TaskEngine[Ctx]().run(steps, ctx)

        assert report.ok
        assert sorted(ctx.ran) == ["a", "b"]
        assert [r.title for r in report.records[0].children] == ["a", "b"]

    def test_siblings_writing_disjoint_keys_both_land(self) -> None:
        barrier = threading.Barrier(2, timeout=5)

        def deploy(target: str, url: str):
            def task(ctx: Ctx, reporter: StepReporter) -> None:
                barrier.wait()
                ctx.deployments[target] = url

            return task

        ctx = Ctx()
        steps = [
            Step(
                "Deployments",
                concurrent=True,
                subtasks=(
                    Step("cloudflare", task=deploy("cloudflare", "https://widgets.pages.dev")),
                    Step("npm", task=deploy("npm", "https://registry.npmjs.org/")),
                ),
            )
        ]

        result = TaskEngine[Ctx]().execute(steps, ctx)

        assert result == Ok(ctx)
        assert ctx.deployments == {
            "cloudflare": "https://widgets.pages.dev",
            "npm": "https://registry.npmjs.org/",
        }

    def test_failing_sibling_does_not_cancel_the_other(self) -> None:
        ctx = Ctx()
        steps = [Step("g", concurrent=True, subtasks=(Step("a", task=fail("boom")), Step("b", task=record("b"))))]

        report = TaskEngine[Ctx]().run(steps, ctx)

        assert "b" in ctx.ran
        assert [f.title for f in report.failures] == ["a"]
        assert report.records[0].status is StepStatus.FAILED


class TestRecovery:
    @dataclass
    class Hook:
        seen: list[ExecutionError[Any]] = field(default_factory=list)

        def recover(self, error: ExecutionError[Any], context: Any) -> None:
            self.seen.append(error)

    def test_hook_sees_failure_before_err(self) -> None:
        hook = self.Hook()

        result = TaskEngine[Ctx](recovery=hook).execute([Step("x", task=fail("boom"))], Ctx())

        assert isinstance(result, Err)
        assert [e.message for e in hook.seen] == ["x: boom"]

    def test_hook_not_called_on_success_or_when_disabled(self) -> None:
        hook = self.Hook()
        TaskEngine[Ctx](recovery=hook).execute([Step("x", task=record("x"))], Ctx())
        TaskEngine[Ctx](EngineOptions(auto_recovery=False), recovery=hook).execute(
            [Step("x", task=fail("boom"))], Ctx()
        )
        assert hook.seen == []


class TestConsoleRenderer:
    def test_status_lines(self) -> None:
        console = MockConsole()

        def noisy(ctx: Ctx, reporter: StepReporter) -> None:
            reporter.set_output("working...")
            reporter.set_title("noisy - done")

        steps = [
            Step(
                "Quality Gates",
                subtasks=(
                    Step("noisy", task=noisy),
                    Step("Running tests", task=record("t"), skip="--skip-tests"),
                    Step("broken", task=fail("boom")),
                ),
            )
        ]

        TaskEngine[Ctx](renderer=ConsoleRenderer(console)).run(steps, Ctx())

        assert console.messages == [
            "Quality Gates",
            "    working...",
            "  [ok] noisy - done",
            "  [skip] Running tests (--skip-tests)",
            "  [fail] broken: boom",
            "[fail] Quality Gates",
        ]
