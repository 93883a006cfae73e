"""GistProgressStore — zero-infrastructure backup of review progress via GitHub Gist.

Why a Gist for progress:
- Zero infra: the same GitHub token used to read study repositories can own
  a private Gist; no server or bucket to manage.
- Portable: records are keyed by section natural key (repo:path:title:order),
  not by local database ids, so progress can be restored into a fresh
  database on another machine after the content is synced there.

Data format: a single JSON file named `mindpalace_progress.json` inside the
Gist, holding a JSON array of ProgressRecord dicts. Each save() replaces the
file with the full export.
"""

from __future__ import annotations

import json
import logging

from mindpalace_store.models import ProgressRecord

logger = logging.getLogger(__name__)

_GIST_FILENAME = "mindpalace_progress.json"
_GIST_DESCRIPTION = "Mind Palace - Learning Progress Sync"


class GistProgressStore:
    """Stores exported review progress in a GitHub Gist.

    The Gist ID is stored in .mindpalace.yml under `gist_id`. Running
    `mindpalace progress push` without one creates a private Gist and prints
    its ID.
    """

    def __init__(self, gist_id: str | None, token: str):
        try:
            from github import Auth, Github
        except ImportError:
            raise ImportError("PyGithub is required for GistProgressStore.")
        self._gist_id = gist_id
        self._gh = Github(auth=Auth.Token(token))

    @property
    def gist_id(self) -> str | None:
        return self._gist_id

    def _get_gist(self):
        return self._gh.get_gist(self._gist_id)

    def create(self) -> str:
        """Create a private Gist holding an empty progress file and return its ID."""
        from github import InputFileContent

        gist = self._gh.get_user().create_gist(
            False,
            {_GIST_FILENAME: InputFileContent("[]")},
            _GIST_DESCRIPTION,
        )
        self._gist_id = gist.id
        return gist.id

    def save(self, records: list[ProgressRecord]) -> bool:
        """Replace the Gist progress file with ``records``.

        Returns False (after logging a warning) instead of raising: local
        progress is the source of truth and must never be lost because a
        backup failed.
        """
        from github import InputFileContent

        try:
            gist = self._get_gist()
            content = json.dumps([self._to_dict(r) for r in records], indent=2)
            gist.edit(files={_GIST_FILENAME: InputFileContent(content)})
            return True
        except Exception as e:
            logger.warning("GistProgressStore.save() failed (%s): %s", type(e).__name__, e)
            return False

    def load(self) -> list[ProgressRecord]:
        """Return the backed-up records, or [] when the Gist is missing or unreadable."""
        try:
            gist = self._get_gist()
            raw = self._read_records(gist)
        except Exception as e:
            logger.warning("GistProgressStore.load() failed: %s", e)
            return []
        return [self._from_dict(d) for d in raw if isinstance(d, dict) and d.get("section_key")]

    def _read_records(self, gist) -> list[dict]:
        """Read the current JSON array from the Gist file, or return []."""
        file_obj = gist.files.get(_GIST_FILENAME)
        if file_obj is None:
            return []
        try:
            data = json.loads(file_obj.content)
        except (json.JSONDecodeError, AttributeError, TypeError):
            return []
        return data if isinstance(data, list) else []

    @staticmethod
    def _to_dict(record: ProgressRecord) -> dict:
        return {
            "section_key": record.section_key,
            "reviewed_at": record.reviewed_at,
            "quality": record.quality,
        }

    @staticmethod
    def _from_dict(d: dict) -> ProgressRecord:
        return ProgressRecord(
            section_key=d.get("section_key", ""),
            reviewed_at=d.get("reviewed_at", ""),
            quality=d.get("quality", 3),
        )
