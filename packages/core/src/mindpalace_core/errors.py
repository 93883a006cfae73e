"""Sync error taxonomy.

Every failure the sync engine can surface derives from SyncError so callers
can catch one type. The subclasses tell them what to do about it: retry
(TransportError), fix credentials (AuthError), wait (RateLimitError), or fix
the repository reference (NotFoundError).
"""

from __future__ import annotations

from datetime import datetime


class SyncError(Exception):
    """Base class for everything that aborts a repository sync."""


class TransportError(SyncError):
    """Connectivity failure talking to GitHub. Safe to retry."""


class AuthError(SyncError):
    """Missing or rejected credential. Never retried automatically."""

    def __init__(self, message: str = "GitHub rejected the credential."):
        super().__init__(
            f"{message}\nSet GITHUB_TOKEN (or MINDPALACE_GITHUB_TOKEN) or run `gh auth login`.\n"
            "Create a token at https://github.com/settings/tokens"
        )


class RateLimitError(SyncError):
    """GitHub API budget exhausted. Never retried automatically."""

    def __init__(self, reset_at: datetime | None = None):
        self.reset_at = reset_at
        when = reset_at.astimezone().strftime("%H:%M") if reset_at else "an unknown time"
        super().__init__(
            f"GitHub API rate limit exceeded. Limit resets at {when}.\n"
            "Without a token: 60 requests/hour. With a token: 5,000 requests/hour."
        )


class NotFoundError(SyncError):
    """Repository, branch or path does not exist (or is invisible to the token)."""


class DecodingError(SyncError):
    """GitHub returned something we could not decode (bad archive, non-UTF-8 text)."""


class SyncCancelledError(SyncError):
    """The caller cancelled the sync between two files."""
