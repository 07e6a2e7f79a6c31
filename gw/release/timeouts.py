from __future__ import annotations

# gh reads and writes (run list, run view, release create, workflow list)
GH_TIMEOUT_SECONDS = 60.0

# Idempotent gh read retry policy
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0

# Authenticated registry publish
NPM_PUBLISH_TIMEOUT_SECONDS = 5 * 60.0

# Registry lookup after publish
NPM_VIEW_TIMEOUT_SECONDS = 60.0

# Edge deploy (wrangler)
DEPLOY_TIMEOUT_SECONDS = 10 * 60.0

# Lint / typecheck / test / build run without a limit
QUALITY_TIMEOUT_SECONDS: float | None = None
