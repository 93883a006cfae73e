"""Study data models.

Decoupled from mindpalace_core so the store layer can be used independently.
The core reads and writes these records through a BaseStore; it never talks
to a database directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Repository:
    """A GitHub repository the user studies from.

    Path lists are repository-relative prefixes. ``include_paths`` empty means
    "everything"; see mindpalace_core.utils.paths for the full rule.
    """

    owner: str
    name: str
    url: str = ""
    default_branch: str = "main"
    include_paths: list[str] = field(default_factory=list)
    exclude_paths: list[str] = field(default_factory=list)
    favorite_paths: list[str] = field(default_factory=list)
    last_synced_at: datetime | None = None
    id: int | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass
class Document:
    """One Markdown file of a repository."""

    repository_id: int
    path: str
    name: str
    raw_text: str | None = None
    version_token: str | None = None  # git blob SHA
    updated_at: datetime | None = None
    id: int | None = None


@dataclass
class Section:
    """A heading-delimited slice of a Document — the unit of review."""

    document_id: int
    title: str
    body: str
    level: int
    start_line: int
    end_line: int
    order_index: int
    ignored: bool = False
    favorite: bool = False
    id: int | None = None


@dataclass
class ReviewEvent:
    """A single "mark reviewed" action. Never edited after creation."""

    section_id: int
    reviewed_at: datetime
    quality: int = 3
    id: int | None = None


@dataclass
class ProgressRecord:
    """A ReviewEvent in portable form, keyed by section natural key.

    Used by the Gist progress backup, where database ids are meaningless.
    """

    section_key: str
    reviewed_at: str  # ISO-8601 UTC timestamp
    quality: int = 3
