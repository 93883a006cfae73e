"""Repository → local store synchronisation.

Two strategies, chosen per repository:

- snapshot: the repository has no documents yet. One zipball download replaces
  what would otherwise be one request per file.
- incremental: one recursive tree listing, then a content fetch only for files
  whose blob SHA differs from the stored version token.

Each file is committed on its own. A failure aborts the pass and propagates,
but files committed before it stay committed; only a fully successful pass
advances the repository's last-sync timestamp.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Callable

from mindpalace_core.errors import SyncCancelledError
from mindpalace_core.utils.archive import blob_sha, extract_snapshot, iter_snapshot_files
from mindpalace_core.utils.markdown import decode_text, is_markdown_file, sectionize
from mindpalace_core.utils.paths import should_include_path
from mindpalace_store.base import BaseStore
from mindpalace_store.models import Repository

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]
CancelCheck = Callable[[], bool]

MODE_SNAPSHOT = "snapshot"
MODE_INCREMENTAL = "incremental"


@dataclass
class SyncResult:
    """What one sync pass did to one repository."""

    repository: str
    mode: str  # "snapshot" | "incremental"
    fetched: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def documents(self) -> int:
        return len(self.fetched) + len(self.skipped)


class _Progress:
    """Forwards fractions to the caller's callback, never going backwards."""

    def __init__(self, callback: ProgressCallback | None):
        self._callback = callback
        self._value = 0.0

    def __call__(self, value: float) -> None:
        value = min(1.0, max(self._value, value))
        self._value = value
        if self._callback is not None:
            self._callback(value)


class ContentSyncEngine:
    """Keeps stored documents and sections in step with GitHub.

    ``provider`` is a GitHubContentProvider (or anything with the same four
    methods). Instances hold no per-sync state, so one engine can be reused
    for every repository.
    """

    def __init__(
        self,
        store: BaseStore,
        provider,
        staging_dir: str | None = None,
        preserve_history: bool = False,
        clock: Callable[[], datetime] | None = None,
    ):
        self._store = store
        self._provider = provider
        self._staging_dir = staging_dir
        self._preserve_history = preserve_history
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def sync_all(
        self,
        on_progress: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> list[SyncResult]:
        """Sync every stored repository in turn; the first failure propagates."""
        repositories = self._store.list_repositories()
        results = []
        for index, repository in enumerate(repositories):
            def scaled(value: float, index=index) -> None:
                if on_progress is not None:
                    on_progress((index + value) / len(repositories))

            results.append(self.sync_repository(repository, on_progress=scaled, should_cancel=should_cancel))
        return results

    def sync_repository(
        self,
        repository: Repository,
        on_progress: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> SyncResult:
        progress = _Progress(on_progress)
        progress(0.0)

        branch = self._provider.get_default_branch(repository.owner, repository.name)
        progress(0.1)

        if self._store.list_documents(repository.id):
            logger.info("Incremental sync for %s@%s", repository.full_name, branch)
            result = self._sync_incremental(repository, branch, progress, should_cancel)
        else:
            logger.info("First sync for %s@%s: downloading snapshot", repository.full_name, branch)
            result = self._sync_snapshot(repository, branch, progress, should_cancel)

        repository.default_branch = branch
        repository.last_synced_at = self._clock()
        self._store.save_repository(repository)
        progress(1.0)

        logger.info(
            "Synced %s: %d fetched, %d unchanged, %d removed",
            repository.full_name,
            len(result.fetched),
            len(result.skipped),
            len(result.removed),
        )
        return result

    # ------------------------------------------------------------------ #
    # Strategies                                                           #
    # ------------------------------------------------------------------ #

    def _sync_snapshot(
        self,
        repository: Repository,
        branch: str,
        progress: _Progress,
        should_cancel: CancelCheck | None,
    ) -> SyncResult:
        result = SyncResult(repository=repository.full_name, mode=MODE_SNAPSHOT)

        data = self._provider.download_archive(repository.owner, repository.name, branch)
        progress(0.4)

        with tempfile.TemporaryDirectory(prefix="mindpalace-", dir=self._staging_dir) as staging:
            root = extract_snapshot(data, Path(staging))
            progress(0.5)

            candidates = [path for path in iter_snapshot_files(root) if self._wanted(repository, path)]
            logger.debug("%d markdown file(s) selected from snapshot", len(candidates))

            for index, path in enumerate(candidates, 1):
                self._check_cancelled(should_cancel, repository)
                raw = (root / path).read_bytes()
                text = decode_text(raw, path)
                self._upsert(repository, path, text, blob_sha(raw))
                result.fetched.append(path)
                progress(0.5 + 0.5 * index / len(candidates))

        return result

    def _sync_incremental(
        self,
        repository: Repository,
        branch: str,
        progress: _Progress,
        should_cancel: CancelCheck | None,
    ) -> SyncResult:
        result = SyncResult(repository=repository.full_name, mode=MODE_INCREMENTAL)

        entries = self._provider.get_tree(repository.owner, repository.name, branch)
        progress(0.2)

        remote_paths = {e.path for e in entries if e.type == "blob"}
        candidates = [e for e in entries if e.type == "blob" and self._wanted(repository, e.path)]
        stored = {d.path: d for d in self._store.list_documents(repository.id)}

        for index, entry in enumerate(candidates, 1):
            self._check_cancelled(should_cancel, repository)
            existing = stored.get(entry.path)
            if existing is not None and existing.version_token == entry.sha:
                result.skipped.append(entry.path)
            else:
                text = self._provider.get_file_content(repository.owner, repository.name, entry.path, branch)
                self._upsert(repository, entry.path, text, entry.sha)
                result.fetched.append(entry.path)
            progress(0.2 + 0.7 * index / len(candidates))

        # Files deleted upstream. Excluded-but-present files are kept; the
        # scheduler hides them while they stay excluded.
        for path, document in stored.items():
            if path not in remote_paths:
                self._store.delete_document(document.id)
                result.removed.append(path)

        return result

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _wanted(repository: Repository, path: str) -> bool:
        return is_markdown_file(path) and should_include_path(
            path, repository.include_paths, repository.exclude_paths
        )

    @staticmethod
    def _check_cancelled(should_cancel: CancelCheck | None, repository: Repository) -> None:
        if should_cancel is not None and should_cancel():
            raise SyncCancelledError(f"Sync of {repository.full_name} cancelled.")

    def _upsert(self, repository: Repository, path: str, text: str, version_token: str | None) -> None:
        sections = sectionize(text)
        self._store.upsert_document(
            repository_id=repository.id,
            path=path,
            name=PurePosixPath(path).name,
            raw_text=text,
            version_token=version_token,
            sections=sections,
            updated_at=self._clock(),
            preserve_history=self._preserve_history,
        )
        logger.debug("Processed %s: %d section(s)", path, len(sections))
