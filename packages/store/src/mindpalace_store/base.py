"""Abstract store interface.

The sync engine, review history and scheduler depend on BaseStore — not on a
concrete backend — so storage is swappable without touching core code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from datetime import datetime

    from mindpalace_store.models import Document, Repository, ReviewEvent, Section


class BaseStore(ABC):
    """Typed persistence for repositories, documents, sections and review events.

    Deleting a repository cascades to its documents, their sections and the
    sections' review events. Deleting or replacing a document's sections
    cascades to their review events.
    """

    # ------------------------------------------------------------------ #
    # Repositories                                                         #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def add_repository(self, repository: Repository) -> Repository:
        """Insert a repository and return it with its id set."""

    @abstractmethod
    def save_repository(self, repository: Repository) -> None:
        """Persist changes to an existing repository (paths, branch, sync time)."""

    @abstractmethod
    def get_repository(self, repository_id: int) -> Repository | None:
        """Return a repository by id, or None."""

    @abstractmethod
    def find_repository(self, owner: str, name: str) -> Repository | None:
        """Return a repository by owner/name, or None."""

    @abstractmethod
    def list_repositories(self) -> list[Repository]:
        """Return all repositories. Never raises for an empty store."""

    @abstractmethod
    def delete_repository(self, repository_id: int) -> None:
        """Delete a repository and everything it owns."""

    # ------------------------------------------------------------------ #
    # Documents                                                            #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def list_documents(self, repository_id: int) -> list[Document]:
        """Return all documents of a repository ordered by path."""

    @abstractmethod
    def get_document(self, repository_id: int, path: str) -> Document | None:
        """Return the document at ``path`` in a repository, or None."""

    @abstractmethod
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
        """Create or replace a document and all of its sections in one commit.

        ``sections`` are parsed sections (title, level, body, start_line,
        end_line, order_index). Existing sections are deleted first, which
        removes their review events unless ``preserve_history`` is set, in
        which case events move to the new section with the same
        (title, order_index).
        """

    @abstractmethod
    def delete_document(self, document_id: int) -> None:
        """Delete a document and everything it owns."""

    # ------------------------------------------------------------------ #
    # Sections                                                             #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def list_sections(self, document_id: int | None = None) -> list[Section]:
        """Return sections of one document, or of every document, in document order."""

    @abstractmethod
    def get_section(self, section_id: int) -> Section | None:
        """Return a section by id, or None."""

    @abstractmethod
    def get_document_by_id(self, document_id: int) -> Document | None:
        """Return a document by id, or None."""

    @abstractmethod
    def set_section_flags(
        self, section_id: int, ignored: bool | None = None, favorite: bool | None = None
    ) -> None:
        """Update the ignored/favorite flags; None leaves a flag unchanged."""

    # ------------------------------------------------------------------ #
    # Review events                                                        #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def add_review_event(self, event: ReviewEvent) -> ReviewEvent:
        """Append a review event and return it with its id set."""

    @abstractmethod
    def list_review_events(self, section_id: int | None = None) -> list[ReviewEvent]:
        """Return review events, oldest first, optionally for one section."""

    @abstractmethod
    def last_review_times(self) -> dict[int, datetime]:
        """Map section id → most recent review time, for reviewed sections only."""

    @abstractmethod
    def delete_all_review_events(self) -> int:
        """Delete every review event and return how many were removed."""

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional — subclasses that need cleanup should override this.
        Default is a no-op so callers can always call close() safely.
        """
