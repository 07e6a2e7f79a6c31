"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import NoReturn

import typer

from gw.core.errors import ErrorCode


def exit_with_code(code: int | ErrorCode) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=int(code))
