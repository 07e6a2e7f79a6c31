from __future__ import annotations

import os
from pathlib import Path

ROOT_ENV_VAR = "GO_WORKFLOW_ROOT"


def project_root() -> Path:
    """``--directory`` when given (exported by the root callback), else the cwd."""
    env = os.environ.get(ROOT_ENV_VAR)
    if env:
        return Path(env)
    return Path.cwd().resolve()
