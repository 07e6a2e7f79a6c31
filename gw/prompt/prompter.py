"""Interactive prompt adapter.

Pipelines ask every question through ``PromptProtocol`` before any step
runs. Three implementations:

- ``TyperPrompter``: terminal prompts via typer (numbered choice lists).
- ``NonInteractivePrompter``: every question fails with ``unavailable``;
  callers must fall back to pre-resolved flags.
- ``ScriptedPrompter``: replays canned answers (tests).
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal, Protocol

import typer

from gw.core.result import Err, Ok, Result
from gw.output.console import ConsoleProtocol, Style

__all__ = [
    "Choice",
    "NonInteractivePrompter",
    "PromptError",
    "PromptProtocol",
    "ScriptedPrompter",
    "TyperPrompter",
    "is_interactive_terminal",
]


def is_interactive_terminal() -> bool:
    return bool(sys.stdin.isatty() and sys.stdout.isatty())


@dataclass(frozen=True, slots=True)
class PromptError:
    kind: Literal["unavailable", "aborted"]
    message: str


@dataclass(frozen=True, slots=True)
class Choice[T]:
    value: T
    label: str
    detail: str | None = None


class PromptProtocol(Protocol):
    def confirm(self, message: str, *, default: bool = False) -> Result[bool, PromptError]: ...

    def select[T](
        self, message: str, choices: Sequence[Choice[T]], *, default: T | None = None
    ) -> Result[T, PromptError]: ...

    def multiselect[T](
        self, message: str, choices: Sequence[Choice[T]], *, defaults: Sequence[T] = ()
    ) -> Result[list[T], PromptError]: ...

    def text(self, message: str, *, default: str = "") -> Result[str, PromptError]: ...


class TyperPrompter:
    """Terminal prompts. Ctrl-C / EOF become ``Err(kind="aborted")``."""

    def __init__(self, console: ConsoleProtocol) -> None:
        self._console = console

    def confirm(self, message: str, *, default: bool = False) -> Result[bool, PromptError]:
        try:
            return Ok(bool(typer.confirm(message, default=default)))
        except typer.Abort:
            return Err(PromptError(kind="aborted", message=f"aborted: {message}"))

    def select[T](
        self, message: str, choices: Sequence[Choice[T]], *, default: T | None = None
    ) -> Result[T, PromptError]:
        if not choices:
            raise ValueError("select() needs at least one choice")

        default_idx = 1
        for i, choice in enumerate(choices, start=1):
            if choice.value == default:
                default_idx = i
        self._show(message, choices)

        while True:
            try:
                raw = typer.prompt("Choose", default=str(default_idx))
            except typer.Abort:
                return Err(PromptError(kind="aborted", message=f"aborted: {message}"))
            idx = self._parse_index(str(raw), len(choices))
            if idx is not None:
                return Ok(choices[idx - 1].value)

    def multiselect[T](
        self, message: str, choices: Sequence[Choice[T]], *, defaults: Sequence[T] = ()
    ) -> Result[list[T], PromptError]:
        self._show(message, choices)
        preset = ",".join(str(i) for i, c in enumerate(choices, start=1) if c.value in defaults)

        while True:
            try:
                raw = str(typer.prompt("Choose (comma separated, empty for none)", default=preset))
            except typer.Abort:
                return Err(PromptError(kind="aborted", message=f"aborted: {message}"))

            picked: list[T] = []
            valid = True
            for part in (p.strip() for p in raw.split(",")):
                if not part:
                    continue
                idx = self._parse_index(part, len(choices))
                if idx is None:
                    valid = False
                    break
                if choices[idx - 1].value not in picked:
                    picked.append(choices[idx - 1].value)
            if valid:
                return Ok(picked)

    def text(self, message: str, *, default: str = "") -> Result[str, PromptError]:
        try:
            return Ok(str(typer.prompt(message, default=default)))
        except typer.Abort:
            return Err(PromptError(kind="aborted", message=f"aborted: {message}"))

    def _show[T](self, message: str, choices: Sequence[Choice[T]]) -> None:
        self._console.print(message, Style.BOLD)
        for i, choice in enumerate(choices, start=1):
            detail = f"  {choice.detail}" if choice.detail else ""
            self._console.print(f"{i:2}. {choice.label}{detail}", Style.DIM)

    def _parse_index(self, raw: str, count: int) -> int | None:
        try:
            idx = int(raw)
        except ValueError:
            self._console.error("invalid number")
            return None
        if idx < 1 or idx > count:
            self._console.error("out of range")
            return None
        return idx


class NonInteractivePrompter:
    """Refuses every question."""

    def _unavailable(self, message: str) -> PromptError:
        return PromptError(kind="unavailable", message=f"cannot prompt in non-interactive mode: {message}")

    def confirm(self, message: str, *, default: bool = False) -> Result[bool, PromptError]:
        return Err(self._unavailable(message))

    def select[T](
        self, message: str, choices: Sequence[Choice[T]], *, default: T | None = None
    ) -> Result[T, PromptError]:
        return Err(self._unavailable(message))

    def multiselect[T](
        self, message: str, choices: Sequence[Choice[T]], *, defaults: Sequence[T] = ()
    ) -> Result[list[T], PromptError]:
        return Err(self._unavailable(message))

    def text(self, message: str, *, default: str = "") -> Result[str, PromptError]:
        return Err(self._unavailable(message))


def _empty_answers() -> list[object]:
    return []


def _empty_questions() -> list[str]:
    return []


@dataclass
class ScriptedPrompter:
    """Answers questions from a list, in order.

    ``None`` in the answer list means "accept the default". Running out of
    answers is an ``unavailable`` error. Every question asked is recorded.
    """

    answers: list[object] = field(default_factory=_empty_answers)
    asked: list[str] = field(default_factory=_empty_questions)

    def _next(self, message: str) -> Result[object, PromptError]:
        self.asked.append(message)
        if not self.answers:
            return Err(PromptError(kind="unavailable", message=f"no scripted answer for: {message}"))
        return Ok(self.answers.pop(0))

    def confirm(self, message: str, *, default: bool = False) -> Result[bool, PromptError]:
        match self._next(message):
            case Err(e):
                return Err(e)
            case Ok(answer):
                return Ok(default if answer is None else bool(answer))

    def select[T](
        self, message: str, choices: Sequence[Choice[T]], *, default: T | None = None
    ) -> Result[T, PromptError]:
        match self._next(message):
            case Err(e):
                return Err(e)
            case Ok(answer):
                wanted = default if answer is None else answer
                for choice in choices:
                    if choice.value == wanted:
                        return Ok(choice.value)
                raise AssertionError(f"scripted answer {wanted!r} is not a choice for: {message}")

    def multiselect[T](
        self, message: str, choices: Sequence[Choice[T]], *, defaults: Sequence[T] = ()
    ) -> Result[list[T], PromptError]:
        match self._next(message):
            case Err(e):
                return Err(e)
            case Ok(answer):
                if answer is None:
                    return Ok(list(defaults))
                assert isinstance(answer, list | tuple)
                return Ok([c.value for c in choices if c.value in answer])

    def text(self, message: str, *, default: str = "") -> Result[str, PromptError]:
        match self._next(message):
            case Err(e):
                return Err(e)
            case Ok(answer):
                return Ok(default if answer is None else str(answer))
