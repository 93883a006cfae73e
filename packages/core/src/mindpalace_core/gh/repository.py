"""GitHub remote content provider.

Every call the sync engine makes to GitHub goes through GitHubContentProvider,
which translates PyGithub and requests failures into the SyncError taxonomy.
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

import requests
from github import (
    Auth,
    BadCredentialsException,
    Github,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)

from mindpalace_core.errors import AuthError, DecodingError, NotFoundError, RateLimitError, TransportError
from mindpalace_core.utils.markdown import decode_text

logger = logging.getLogger(__name__)

_REPO_URL_RE = re.compile(r"^(?:https?://github\.com/|git@github\.com:)?([\w.-]+)/([\w.-]+?)(?:\.git)?/?$")


@dataclass
class TreeEntry:
    """One entry of a recursive git tree listing."""

    path: str
    type: str  # "blob" | "tree" | "commit"
    sha: str
    size: int = 0


def parse_repo_url(url: str) -> tuple[str, str]:
    """Return (owner, name) from "owner/name" or a GitHub HTTPS/SSH URL."""
    match = _REPO_URL_RE.match(url.strip())
    if match is None:
        raise ValueError(f"Not a GitHub repository reference: {url!r}")
    return match.group(1), match.group(2)


def _reset_time(headers) -> datetime | None:
    """Read the rate-limit reset time from response headers, if present."""
    if not headers:
        return None
    lowered = {k.lower(): v for k, v in headers.items()}
    value = lowered.get("x-ratelimit-reset")
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError):
        return None


def _is_budget_exhausted(headers) -> bool:
    if not headers:
        return False
    lowered = {k.lower(): v for k, v in headers.items()}
    return str(lowered.get("x-ratelimit-remaining", "")) == "0"


@contextmanager
def _translate_errors(what: str):
    """Map PyGithub/requests failures for ``what`` onto SyncError subclasses."""
    try:
        yield
    except BadCredentialsException as e:
        raise AuthError(f"GitHub rejected the credential while fetching {what}.") from e
    except RateLimitExceededException as e:
        raise RateLimitError(_reset_time(e.headers)) from e
    except UnknownObjectException as e:
        raise NotFoundError(f"Not found on GitHub: {what}") from e
    except GithubException as e:
        if e.status == 403 and _is_budget_exhausted(e.headers):
            raise RateLimitError(_reset_time(e.headers)) from e
        if e.status in (401, 403):
            raise AuthError(f"Access to {what} was denied (HTTP {e.status}).") from e
        if e.status == 404:
            raise NotFoundError(f"Not found on GitHub: {what}") from e
        raise TransportError(f"GitHub request for {what} failed (HTTP {e.status}).") from e
    except requests.RequestException as e:
        raise TransportError(f"Network error while fetching {what}: {e}") from e


def _check_response(response: requests.Response, what: str) -> None:
    status = response.status_code
    if 200 <= status < 300:
        return
    if status == 401:
        raise AuthError(f"GitHub rejected the credential while fetching {what}.")
    if status == 403:
        if _is_budget_exhausted(response.headers):
            raise RateLimitError(_reset_time(response.headers))
        raise AuthError(f"Access to {what} was denied (HTTP 403).")
    if status == 404:
        raise NotFoundError(f"Not found on GitHub: {what}")
    raise TransportError(f"GitHub request for {what} failed (HTTP {status}).")


class GitHubContentProvider:
    """Fetches repository metadata, trees, file contents and snapshots from GitHub.

    Calls are made serially; no internal retry. ``timeout`` (seconds) is passed
    to every HTTP request.
    """

    def __init__(self, token: str | None = None, timeout: int = 30):
        self._token = token
        self._timeout = timeout
        auth = Auth.Token(token) if token else None
        self._gh = Github(auth=auth, timeout=timeout)
        self._repos: dict[str, object] = {}

    def _repo(self, owner: str, name: str):
        full_name = f"{owner}/{name}"
        if full_name not in self._repos:
            with _translate_errors(f"repository {full_name}"):
                self._repos[full_name] = self._gh.get_repo(full_name)
        return self._repos[full_name]

    def get_default_branch(self, owner: str, name: str) -> str:
        return self._repo(owner, name).default_branch

    def get_tree(self, owner: str, name: str, branch: str) -> list[TreeEntry]:
        """List every entry of ``branch`` with one recursive tree call."""
        repo = self._repo(owner, name)
        with _translate_errors(f"tree of {owner}/{name}@{branch}"):
            tree = repo.get_git_tree(branch, recursive=True)
            elements = list(tree.tree)
        if (getattr(tree, "raw_data", None) or {}).get("truncated"):
            logger.warning("Tree listing for %s/%s was truncated by GitHub; some files may be missing.", owner, name)
        return [TreeEntry(path=e.path, type=e.type, sha=e.sha, size=e.size or 0) for e in elements]

    def get_file_content(self, owner: str, name: str, path: str, ref: str) -> str:
        repo = self._repo(owner, name)
        with _translate_errors(f"{owner}/{name}:{path}"):
            contents = repo.get_contents(path, ref=ref)
        if isinstance(contents, list):
            raise DecodingError(f"Expected a file but got a directory: {path}")
        try:
            data = contents.decoded_content
        except (AssertionError, TypeError) as e:
            raise DecodingError(f"Could not decode the content of {path}: {e}") from e
        if not isinstance(data, bytes):
            raise DecodingError(f"GitHub returned no content for {path}")
        return decode_text(data, path)

    def download_archive(self, owner: str, name: str, ref: str) -> bytes:
        """Download a zipball of ``ref`` in a single request."""
        repo = self._repo(owner, name)
        what = f"snapshot of {owner}/{name}@{ref}"
        with _translate_errors(what):
            url = repo.get_archive_link("zipball", ref=ref)
            headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
            response = requests.get(url, headers=headers, timeout=self._timeout)
        _check_response(response, what)
        logger.debug("Downloaded %s (%d bytes)", what, len(response.content))
        return response.content
