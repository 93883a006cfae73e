"""GitHub token resolution with gh CLI fallback.

Public repositories sync without a token, but anonymous requests are limited
to 60 per hour; a token raises that to 5,000 and unlocks private repositories.

Resolution order (stops at first success):
  1. MINDPALACE_GITHUB_TOKEN environment variable (app-specific override)
  2. GITHUB_TOKEN environment variable
  3. `gh auth token` (GitHub CLI session — works after `gh auth login`)
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

_ENV_VARS = ("MINDPALACE_GITHUB_TOKEN", "GITHUB_TOKEN")


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no source is available.

    Never raises — a missing token only lowers the rate limit for public
    repositories.
    """
    for var in _ENV_VARS:
        token = os.environ.get(var)
        if token:
            return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            gh_token = result.stdout.strip()
            if gh_token:
                logger.debug("Resolved GitHub token via gh CLI session.")
                return gh_token
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh is not installed or timed out.
        pass

    return None
