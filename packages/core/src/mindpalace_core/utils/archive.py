"""Stage a GitHub zipball on disk for the first (bulk) sync of a repository."""

from __future__ import annotations

import hashlib
import io
import logging
import zipfile
from pathlib import Path
from typing import Iterator

from mindpalace_core.errors import DecodingError

logger = logging.getLogger(__name__)


def blob_sha(data: bytes) -> str:
    """Return the git blob SHA-1 of ``data`` — the same value GitHub's tree API reports."""
    header = f"blob {len(data)}\0".encode()
    return hashlib.sha1(header + data).hexdigest()


def extract_snapshot(data: bytes, staging_dir: Path) -> Path:
    """Unzip a GitHub zipball into ``staging_dir`` and return the content root.

    GitHub wraps the tree in a single "<repo>-<sha>/" folder; when present,
    that folder is returned as the root so relative paths match the repository.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise DecodingError(f"Snapshot is not a valid zip archive: {e}") from e

    root = staging_dir.resolve()
    with archive:
        for member in archive.namelist():
            target = (root / member).resolve()
            if target != root and root not in target.parents:
                raise DecodingError(f"Snapshot member escapes the staging area: {member}")
        try:
            archive.extractall(root)
        except (zipfile.BadZipFile, OSError) as e:
            raise DecodingError(f"Could not extract snapshot: {e}") from e

    entries = [p for p in root.iterdir() if not p.name.startswith(".")]
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return root


def iter_snapshot_files(root: Path) -> Iterator[str]:
    """Yield repository-relative POSIX paths of every regular file, dot-folders included.

    Selection is left to the caller so snapshot and tree listings go through
    the same filter.
    """
    for path in sorted(root.rglob("*")):
        if path.is_file():
            yield path.relative_to(root).as_posix()
