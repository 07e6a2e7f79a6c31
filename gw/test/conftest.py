from __future__ import annotations

import pytest

from gw.test.fakes import FakeCommands


@pytest.fixture
def commands() -> FakeCommands:
    return FakeCommands()
