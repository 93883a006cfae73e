"""SQLiteStore — local file-based store for study content and review history.

Why SQLite as the local store:
- Batteries included: ships with Python, no extra dependencies.
- Cascading deletes come for free with foreign keys, which is exactly the
  Repository → Document → Section → ReviewEvent ownership chain.
- Each document upsert runs in its own transaction, so an interrupted sync
  never leaves a half-written document behind.

Schema:
  repositories   — one row per studied GitHub repository (path lists as JSON)
  documents      — one row per Markdown file, unique per (repository, path)
  sections       — heading sections of a document, in document order
  review_events  — append-only review log
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Sequence

from mindpalace_store.base import BaseStore
from mindpalace_store.models import Document, Repository, ReviewEvent, Section

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS repositories (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    owner           TEXT NOT NULL,
    name            TEXT NOT NULL,
    url             TEXT DEFAULT '',
    default_branch  TEXT DEFAULT 'main',
    include_paths   TEXT DEFAULT '[]',
    exclude_paths   TEXT DEFAULT '[]',
    favorite_paths  TEXT DEFAULT '[]',
    last_synced_at  TEXT,
    UNIQUE (owner, name)
);
CREATE TABLE IF NOT EXISTS documents (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    repository_id   INTEGER NOT NULL REFERENCES repositories (id) ON DELETE CASCADE,
    path            TEXT NOT NULL,
    name            TEXT NOT NULL,
    raw_text        TEXT,
    version_token   TEXT,
    updated_at      TEXT,
    UNIQUE (repository_id, path)
);
CREATE TABLE IF NOT EXISTS sections (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id     INTEGER NOT NULL REFERENCES documents (id) ON DELETE CASCADE,
    title           TEXT NOT NULL,
    body            TEXT NOT NULL,
    level           INTEGER NOT NULL,
    start_line      INTEGER NOT NULL,
    end_line        INTEGER NOT NULL,
    order_index     INTEGER NOT NULL,
    ignored         INTEGER DEFAULT 0,
    favorite        INTEGER DEFAULT 0
);
CREATE TABLE IF NOT EXISTS review_events (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    section_id      INTEGER NOT NULL REFERENCES sections (id) ON DELETE CASCADE,
    reviewed_at     TEXT NOT NULL,
    quality         INTEGER DEFAULT 3
);
CREATE INDEX IF NOT EXISTS idx_documents_repo   ON documents (repository_id);
CREATE INDEX IF NOT EXISTS idx_sections_doc     ON sections (document_id, order_index);
CREATE INDEX IF NOT EXISTS idx_events_section   ON review_events (section_id);
"""


def _dt_to_text(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _text_to_dt(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SQLiteStore(BaseStore):
    """Stores study content and review history in a local SQLite database file.

    The database file path defaults to `.mindpalace.db` in the current working
    directory. Configure via .mindpalace.yml: `store_path: /path/to/mindpalace.db`.
    """

    def __init__(self, db_path: str = ".mindpalace.db"):
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    # ------------------------------------------------------------------ #
    # Repositories                                                         #
    # ------------------------------------------------------------------ #

    def add_repository(self, repository: Repository) -> Repository:
        cursor = self._conn.execute(
            """
            INSERT INTO repositories
              (owner, name, url, default_branch, include_paths, exclude_paths,
               favorite_paths, last_synced_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                repository.owner,
                repository.name,
                repository.url,
                repository.default_branch,
                json.dumps(repository.include_paths),
                json.dumps(repository.exclude_paths),
                json.dumps(repository.favorite_paths),
                _dt_to_text(repository.last_synced_at),
            ),
        )
        self._conn.commit()
        repository.id = cursor.lastrowid
        return repository

    def save_repository(self, repository: Repository) -> None:
        self._conn.execute(
            """
            UPDATE repositories
               SET url=?, default_branch=?, include_paths=?, exclude_paths=?,
                   favorite_paths=?, last_synced_at=?
             WHERE id=?
            """,
            (
                repository.url,
                repository.default_branch,
                json.dumps(repository.include_paths),
                json.dumps(repository.exclude_paths),
                json.dumps(repository.favorite_paths),
                _dt_to_text(repository.last_synced_at),
                repository.id,
            ),
        )
        self._conn.commit()

    def get_repository(self, repository_id: int) -> Repository | None:
        row = self._conn.execute("SELECT * FROM repositories WHERE id=?", (repository_id,)).fetchone()
        return self._row_to_repository(row) if row else None

    def find_repository(self, owner: str, name: str) -> Repository | None:
        row = self._conn.execute(
            "SELECT * FROM repositories WHERE owner=? AND name=?",
            (owner, name),
        ).fetchone()
        return self._row_to_repository(row) if row else None

    def list_repositories(self) -> list[Repository]:
        rows = self._conn.execute("SELECT * FROM repositories ORDER BY owner, name").fetchall()
        return [self._row_to_repository(r) for r in rows]

    def delete_repository(self, repository_id: int) -> None:
        self._conn.execute("DELETE FROM repositories WHERE id=?", (repository_id,))
        self._conn.commit()

    # ------------------------------------------------------------------ #
    # Documents                                                            #
    # ------------------------------------------------------------------ #

    def list_documents(self, repository_id: int) -> list[Document]:
        rows = self._conn.execute(
            "SELECT * FROM documents WHERE repository_id=? ORDER BY path",
            (repository_id,),
        ).fetchall()
        return [self._row_to_document(r) for r in rows]

    def get_document(self, repository_id: int, path: str) -> Document | None:
        row = self._conn.execute(
            "SELECT * FROM documents WHERE repository_id=? AND path=?",
            (repository_id, path),
        ).fetchone()
        return self._row_to_document(row) if row else None

    def get_document_by_id(self, document_id: int) -> Document | None:
        row = self._conn.execute("SELECT * FROM documents WHERE id=?", (document_id,)).fetchone()
        return self._row_to_document(row) if row else None

    def upsert_document(
        self,
        repository_id: int,
        path: str,
        name: str,
        raw_text: str,
        version_token: str | None,
        sections: Sequence,
        updated_at: datetime,
        preserve_history: bool = False,
    ) -> Document:
        # One transaction per file: commits on success, rolls back on error.
        with self._conn:
            row = self._conn.execute(
                "SELECT id FROM documents WHERE repository_id=? AND path=?",
                (repository_id, path),
            ).fetchone()

            carried: list[sqlite3.Row] = []
            if row is not None:
                document_id = row["id"]
                if preserve_history:
                    carried = self._conn.execute(
                        """
                        SELECT s.title, s.order_index, e.reviewed_at, e.quality
                          FROM review_events e JOIN sections s ON s.id = e.section_id
                         WHERE s.document_id=?
                        """,
                        (document_id,),
                    ).fetchall()
                self._conn.execute(
                    "UPDATE documents SET name=?, raw_text=?, version_token=?, updated_at=? WHERE id=?",
                    (name, raw_text, version_token, _dt_to_text(updated_at), document_id),
                )
                self._conn.execute("DELETE FROM sections WHERE document_id=?", (document_id,))
            else:
                cursor = self._conn.execute(
                    """
                    INSERT INTO documents (repository_id, path, name, raw_text, version_token, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (repository_id, path, name, raw_text, version_token, _dt_to_text(updated_at)),
                )
                document_id = cursor.lastrowid

            new_ids: dict[tuple[str, int], int] = {}
            for parsed in sections:
                cursor = self._conn.execute(
                    """
                    INSERT INTO sections
                      (document_id, title, body, level, start_line, end_line, order_index)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        document_id,
                        parsed.title,
                        parsed.body,
                        parsed.level,
                        parsed.start_line,
                        parsed.end_line,
                        parsed.order_index,
                    ),
                )
                new_ids[(parsed.title, parsed.order_index)] = cursor.lastrowid

            for event in carried:
                section_id = new_ids.get((event["title"], event["order_index"]))
                if section_id is None:
                    continue
                self._conn.execute(
                    "INSERT INTO review_events (section_id, reviewed_at, quality) VALUES (?, ?, ?)",
                    (section_id, event["reviewed_at"], event["quality"]),
                )
            if carried:
                logger.debug("Carried %d review event(s) over for %s", len(carried), path)

        return Document(
            id=document_id,
            repository_id=repository_id,
            path=path,
            name=name,
            raw_text=raw_text,
            version_token=version_token,
            updated_at=updated_at,
        )

    def delete_document(self, document_id: int) -> None:
        self._conn.execute("DELETE FROM documents WHERE id=?", (document_id,))
        self._conn.commit()

    # ------------------------------------------------------------------ #
    # Sections                                                             #
    # ------------------------------------------------------------------ #

    def list_sections(self, document_id: int | None = None) -> list[Section]:
        if document_id is not None:
            rows = self._conn.execute(
                "SELECT * FROM sections WHERE document_id=? ORDER BY order_index",
                (document_id,),
            ).fetchall()
        else:
            rows = self._conn.execute("SELECT * FROM sections ORDER BY document_id, order_index").fetchall()
        return [self._row_to_section(r) for r in rows]

    def get_section(self, section_id: int) -> Section | None:
        row = self._conn.execute("SELECT * FROM sections WHERE id=?", (section_id,)).fetchone()
        return self._row_to_section(row) if row else None

    def set_section_flags(
        self, section_id: int, ignored: bool | None = None, favorite: bool | None = None
    ) -> None:
        if ignored is not None:
            self._conn.execute("UPDATE sections SET ignored=? WHERE id=?", (int(ignored), section_id))
        if favorite is not None:
            self._conn.execute("UPDATE sections SET favorite=? WHERE id=?", (int(favorite), section_id))
        self._conn.commit()

    # ------------------------------------------------------------------ #
    # Review events                                                        #
    # ------------------------------------------------------------------ #

    def add_review_event(self, event: ReviewEvent) -> ReviewEvent:
        cursor = self._conn.execute(
            "INSERT INTO review_events (section_id, reviewed_at, quality) VALUES (?, ?, ?)",
            (event.section_id, _dt_to_text(event.reviewed_at), event.quality),
        )
        self._conn.commit()
        event.id = cursor.lastrowid
        return event

    def list_review_events(self, section_id: int | None = None) -> list[ReviewEvent]:
        if section_id is not None:
            rows = self._conn.execute(
                "SELECT * FROM review_events WHERE section_id=? ORDER BY reviewed_at",
                (section_id,),
            ).fetchall()
        else:
            rows = self._conn.execute("SELECT * FROM review_events ORDER BY reviewed_at").fetchall()
        return [
            ReviewEvent(
                id=r["id"],
                section_id=r["section_id"],
                reviewed_at=_text_to_dt(r["reviewed_at"]),
                quality=r["quality"],
            )
            for r in rows
        ]

    def last_review_times(self) -> dict[int, datetime]:
        # Timestamps are stored normalised to UTC, so MAX() on the text is chronological.
        rows = self._conn.execute(
            "SELECT section_id, MAX(reviewed_at) AS last FROM review_events GROUP BY section_id"
        ).fetchall()
        return {r["section_id"]: _text_to_dt(r["last"]) for r in rows}

    def delete_all_review_events(self) -> int:
        cursor = self._conn.execute("DELETE FROM review_events")
        self._conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------ #
    # Row mapping                                                          #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _row_to_repository(row: sqlite3.Row) -> Repository:
        return Repository(
            id=row["id"],
            owner=row["owner"],
            name=row["name"],
            url=row["url"] or "",
            default_branch=row["default_branch"] or "main",
            include_paths=json.loads(row["include_paths"] or "[]"),
            exclude_paths=json.loads(row["exclude_paths"] or "[]"),
            favorite_paths=json.loads(row["favorite_paths"] or "[]"),
            last_synced_at=_text_to_dt(row["last_synced_at"]),
        )

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Document:
        return Document(
            id=row["id"],
            repository_id=row["repository_id"],
            path=row["path"],
            name=row["name"],
            raw_text=row["raw_text"],
            version_token=row["version_token"],
            updated_at=_text_to_dt(row["updated_at"]),
        )

    @staticmethod
    def _row_to_section(row: sqlite3.Row) -> Section:
        return Section(
            id=row["id"],
            document_id=row["document_id"],
            title=row["title"],
            body=row["body"],
            level=row["level"],
            start_line=row["start_line"],
            end_line=row["end_line"],
            order_index=row["order_index"],
            ignored=bool(row["ignored"]),
            favorite=bool(row["favorite"]),
        )
