"""Review scheduling: which section to study next.

A rebuild runs these steps over every stored section:

    collect_candidates()      path rules + ignored flag
    reduce_to_leaves()        innermost sections only (falls back to all)
    passes_content_filters()  too short / mostly bullets and links
    score_section()           1000 when new, else days since last review,
                              times the favorite or favorite-folder boost
    shuffle_top()             shuffle the K best of each list
    weighted_interleave()     merge favorites and regulars by probability

The resulting queue is cached and served one section at a time until it is
exhausted or older than the freshness window. Recording a review does not
invalidate it; priorities may be up to one window stale.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from mindpalace_core.history import ReviewHistoryStore
from mindpalace_core.utils.outline import leaf_ids
from mindpalace_core.utils.paths import is_favorite_path, should_include_path
from mindpalace_store.base import BaseStore
from mindpalace_store.models import Document, Repository, Section

logger = logging.getLogger(__name__)

NEW_SECTION_SCORE = 1000.0
SECONDS_PER_DAY = 86400.0

# Bullet items ("- x", "* x", "+ x", "1. x") and lines that are only a link.
_LIST_LINE_RE = re.compile(r"^\s*(?:[-*+]\s+|\d+[.)]\s+|\[[^\]]*\]\([^)]*\)\s*$)")


@dataclass
class SchedulerSettings:
    favorite_boost: float
    favorite_folder_boost: float
    favorite_weight: float
    min_content_length: int
    list_ratio_threshold: float
    shuffle_top_k: int
    cache_seconds: float

    @classmethod
    def from_config(cls, config: dict) -> SchedulerSettings:
        return cls(
            favorite_boost=float(config["favorite_boost"]),
            favorite_folder_boost=float(config["favorite_folder_boost"]),
            favorite_weight=float(config["favorite_weight"]),
            min_content_length=int(config["min_content_length"]),
            list_ratio_threshold=float(config["list_ratio_threshold"]),
            shuffle_top_k=int(config["shuffle_top_k"]),
            cache_seconds=float(config["cache_seconds"]),
        )


@dataclass
class Candidate:
    """A section together with the context needed to score it."""

    section: Section
    document: Document
    repository: Repository
    score: float = 0.0
    boosted: bool = False


@dataclass
class QueueState:
    remaining: int
    built_at: datetime | None
    expires_at: datetime | None


# ---------------------------------------------------------------------- #
# Rebuild steps                                                            #
# ---------------------------------------------------------------------- #


def collect_candidates(store: BaseStore) -> tuple[list[Candidate], list[Section]]:
    """Return (kept candidates, every section) across all repositories.

    Dropped: sections of documents excluded by their repository's current
    path rules, and sections flagged ignored. All sections are returned too,
    because leafness depends on neighbours that may themselves be dropped.
    """
    candidates: list[Candidate] = []
    all_sections: list[Section] = []
    for repository in store.list_repositories():
        for document in store.list_documents(repository.id):
            sections = store.list_sections(document.id)
            all_sections.extend(sections)
            if not should_include_path(document.path, repository.include_paths, repository.exclude_paths):
                continue
            candidates.extend(Candidate(s, document, repository) for s in sections if not s.ignored)
    return candidates, all_sections


def reduce_to_leaves(candidates: list[Candidate], all_sections: list[Section]) -> list[Candidate]:
    """Keep leaf sections only; fall back to every candidate if none is a leaf."""
    leaves = leaf_ids(all_sections)
    reduced = [c for c in candidates if c.section.id in leaves]
    return reduced or candidates


def list_line_ratio(body: str) -> float:
    lines = [line for line in body.splitlines() if line.strip()]
    if not lines:
        return 0.0
    return sum(1 for line in lines if _LIST_LINE_RE.match(line)) / len(lines)


def passes_content_filters(section: Section, settings: SchedulerSettings) -> bool:
    """Drop sections too short to study and table-of-contents-like link lists."""
    if len(section.body.strip()) < settings.min_content_length:
        return False
    return list_line_ratio(section.body) <= settings.list_ratio_threshold


def score_section(
    candidate: Candidate,
    last_reviewed: datetime | None,
    now: datetime,
    settings: SchedulerSettings,
) -> tuple[float, bool]:
    """Return (score, boosted). Higher scores are served first."""
    if last_reviewed is None:
        score = NEW_SECTION_SCORE
    else:
        score = max(0.0, (now - last_reviewed).total_seconds() / SECONDS_PER_DAY)

    if candidate.section.favorite:
        return score * settings.favorite_boost, True
    if is_favorite_path(candidate.document.path, candidate.repository.favorite_paths):
        return score * settings.favorite_folder_boost, True
    return score, False


def shuffle_top(items: list, k: int, rng: random.Random) -> list:
    """Shuffle the first ``k`` items in place of a sorted list, keep the rest in order."""
    head = items[:k]
    rng.shuffle(head)
    return head + items[k:]


def weighted_interleave(favorites: list, regulars: list, p: float, rng: random.Random) -> list:
    """Merge two lists, drawing the next favorite with probability ``p``.

    Each list keeps its internal order; when one runs out the other is
    appended as is. Every input item appears exactly once in the output.
    """
    merged = []
    i = j = 0
    while i < len(favorites) and j < len(regulars):
        if rng.random() < p:
            merged.append(favorites[i])
            i += 1
        else:
            merged.append(regulars[j])
            j += 1
    merged.extend(favorites[i:])
    merged.extend(regulars[j:])
    return merged


# ---------------------------------------------------------------------- #
# Scheduler                                                                #
# ---------------------------------------------------------------------- #


class ReviewScheduler:
    """Serves sections one at a time from a cached, priority-ordered queue.

    Returns None — never raises — when there is nothing to review.
    """

    def __init__(
        self,
        store: BaseStore,
        history: ReviewHistoryStore,
        settings: SchedulerSettings,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ):
        self._store = store
        self._history = history
        self._settings = settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._rng = rng or random.Random()
        self._queue: list[int] = []
        self._built_at: datetime | None = None

    @property
    def settings(self) -> SchedulerSettings:
        return self._settings

    def _expired(self, now: datetime) -> bool:
        if self._built_at is None:
            return True
        return (now - self._built_at).total_seconds() > self._settings.cache_seconds

    def build_queue(self) -> list[Section]:
        """Run a full rebuild and return the ordered sections (does not touch the cache)."""
        now = self._clock()
        settings = self._settings

        candidates, all_sections = collect_candidates(self._store)
        candidates = reduce_to_leaves(candidates, all_sections)
        candidates = [c for c in candidates if passes_content_filters(c.section, settings)]

        last_reviewed = self._history.last_reviewed_map()
        for candidate in candidates:
            candidate.score, candidate.boosted = score_section(
                candidate, last_reviewed.get(candidate.section.id), now, settings
            )

        def by_priority(c: Candidate):
            return (-c.score, c.section.id)

        favorites = sorted((c for c in candidates if c.boosted), key=by_priority)
        regulars = sorted((c for c in candidates if not c.boosted), key=by_priority)

        favorites = shuffle_top(favorites, settings.shuffle_top_k, self._rng)
        regulars = shuffle_top(regulars, settings.shuffle_top_k, self._rng)
        merged = weighted_interleave(favorites, regulars, settings.favorite_weight, self._rng)

        logger.debug(
            "Rebuilt review queue: %d favorite, %d regular, %d total",
            len(favorites),
            len(regulars),
            len(merged),
        )
        return [c.section for c in merged]

    def _rebuild(self) -> None:
        self._queue = [s.id for s in self.build_queue()]
        self._built_at = self._clock()

    def invalidate(self) -> None:
        self._queue = []
        self._built_at = None

    def next_section(self) -> Section | None:
        """Pop and return the next section, rebuilding the queue when needed."""
        rebuilt = False
        if not self._queue or self._expired(self._clock()):
            self._rebuild()
            rebuilt = True

        while True:
            while self._queue:
                section = self._store.get_section(self._queue.pop(0))
                # Gone (re-synced) or ignored since the queue was built.
                if section is not None and not section.ignored:
                    return section
            if rebuilt:
                return None
            self._rebuild()
            rebuilt = True

    def mark_reviewed(self, section: Section, quality: int = 3):
        return self._history.record(section.id, quality=quality)

    def queue_state(self) -> QueueState:
        expires_at = None
        if self._built_at is not None:
            expires_at = self._built_at + timedelta(seconds=self._settings.cache_seconds)
        return QueueState(remaining=len(self._queue), built_at=self._built_at, expires_at=expires_at)
