"""Append-only review history and the statistics derived from it."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable

from mindpalace_store.base import BaseStore
from mindpalace_store.models import Document, ProgressRecord, Repository, ReviewEvent, Section

logger = logging.getLogger(__name__)

MIN_QUALITY = 0
MAX_QUALITY = 5
DEFAULT_QUALITY = 3


@dataclass
class ReviewStatistics:
    total_sections: int
    reviewed_sections: int
    new_sections: int
    reviewed_today: int
    current_streak: int
    daily_goal: int

    @property
    def progress(self) -> float:
        if self.total_sections <= 0:
            return 0.0
        return self.reviewed_sections / self.total_sections

    @property
    def daily_progress(self) -> float:
        if self.daily_goal <= 0:
            return 0.0
        return min(1.0, self.reviewed_today / self.daily_goal)


def section_key(repository: Repository, document: Document, section: Section) -> str:
    """Natural key of a section that survives re-syncs and database rebuilds."""
    return f"{repository.full_name}:{document.path}:{section.title}:{section.order_index}"


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ReviewHistoryStore:
    """Records review events and answers recency and streak questions.

    Calendar days are evaluated in ``tz`` (the local timezone when None).
    """

    def __init__(
        self,
        store: BaseStore,
        clock: Callable[[], datetime] | None = None,
        tz: tzinfo | None = None,
    ):
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tz = tz

    def _day(self, moment: datetime) -> date:
        return _to_utc(moment).astimezone(self._tz).date()

    def record(self, section_id: int, quality: int = DEFAULT_QUALITY, reviewed_at: datetime | None = None) -> ReviewEvent:
        if not MIN_QUALITY <= quality <= MAX_QUALITY:
            raise ValueError(f"quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}")
        event = ReviewEvent(section_id=section_id, reviewed_at=reviewed_at or self._clock(), quality=quality)
        return self._store.add_review_event(event)

    def last_reviewed_at(self, section_id: int) -> datetime | None:
        events = self._store.list_review_events(section_id=section_id)
        if not events:
            return None
        return max(_to_utc(e.reviewed_at) for e in events)

    def last_reviewed_map(self) -> dict[int, datetime]:
        return self._store.last_review_times()

    def reviewed_today_count(self) -> int:
        today = self._day(self._clock())
        return len({e.section_id for e in self._store.list_review_events() if self._day(e.reviewed_at) == today})

    def current_streak(self) -> int:
        """Consecutive days with at least one review, ending today.

        A streak is still alive when the latest review was yesterday; it is
        counted from yesterday in that case.
        """
        days = {self._day(e.reviewed_at) for e in self._store.list_review_events()}
        if not days:
            return 0

        today = self._day(self._clock())
        if (today - max(days)).days > 1:
            return 0

        cursor = today if today in days else today - timedelta(days=1)
        streak = 0
        while cursor in days:
            streak += 1
            cursor -= timedelta(days=1)
        return streak

    def statistics(self, daily_goal: int = 10) -> ReviewStatistics:
        sections = self._store.list_sections()
        reviewed_ids = set(self._store.last_review_times())
        reviewed = sum(1 for s in sections if s.id in reviewed_ids)
        return ReviewStatistics(
            total_sections=len(sections),
            reviewed_sections=reviewed,
            new_sections=len(sections) - reviewed,
            reviewed_today=self.reviewed_today_count(),
            current_streak=self.current_streak(),
            daily_goal=daily_goal,
        )

    def reset(self) -> int:
        """Delete every review event (full progress reset)."""
        removed = self._store.delete_all_review_events()
        logger.info("Progress reset: %d review event(s) deleted", removed)
        return removed

    # ------------------------------------------------------------------ #
    # Portable progress                                                    #
    # ------------------------------------------------------------------ #

    def _section_keys(self) -> dict[int, str]:
        keys: dict[int, str] = {}
        for repository in self._store.list_repositories():
            for document in self._store.list_documents(repository.id):
                for section in self._store.list_sections(document.id):
                    keys[section.id] = section_key(repository, document, section)
        return keys

    def export_progress(self) -> list[ProgressRecord]:
        keys = self._section_keys()
        return [
            ProgressRecord(
                section_key=keys[e.section_id],
                reviewed_at=_to_utc(e.reviewed_at).isoformat(),
                quality=e.quality,
            )
            for e in self._store.list_review_events()
            if e.section_id in keys
        ]

    def import_progress(self, records: list[ProgressRecord]) -> int:
        """Add backed-up events for sections that exist locally; return how many were added.

        Records for unknown sections and events already present are skipped,
        so importing the same backup twice is harmless.
        """
        ids_by_key = {key: section_id for section_id, key in self._section_keys().items()}
        existing = {(e.section_id, _to_utc(e.reviewed_at)) for e in self._store.list_review_events()}

        added = 0
        for record in records:
            section_id = ids_by_key.get(record.section_key)
            if section_id is None:
                continue
            try:
                reviewed_at = _to_utc(datetime.fromisoformat(record.reviewed_at))
                quality = min(MAX_QUALITY, max(MIN_QUALITY, int(record.quality)))
            except (TypeError, ValueError):
                logger.warning("Skipping malformed progress record for %s", record.section_key)
                continue
            if (section_id, reviewed_at) in existing:
                continue
            self._store.add_review_event(ReviewEvent(section_id=section_id, reviewed_at=reviewed_at, quality=quality))
            existing.add((section_id, reviewed_at))
            added += 1
        return added
