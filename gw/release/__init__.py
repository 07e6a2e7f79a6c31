"""Release pipeline.

- preflight: target detection and every operator decision, before any step
- quality: lint, type check and test gates
- publish: manifest, changelog, commit, tag, push, GitHub release
- deploy: build and best-effort deployment targets
- monitor: post-release publish workflow monitoring
- pipeline: the step tree and the ``release`` command
"""

from __future__ import annotations
