from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime

from src.errors import ConcurrentModificationError
from src.normalize.schema import Scholarship

logger = logging.getLogger(__name__)

INITIAL_VERSION = 1


@dataclass(frozen=True, slots=True)
class SavedState:
    saved: bool
    version: int
    saved_at: datetime | None = None
    collection: str | None = None


def _clean_collection(collection: str | None) -> str | None:
    if collection is None:
        return None
    cleaned = " ".join(collection.split())
    return cleaned or None


def matches_saved_query(scholarship: Scholarship, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    haystacks = [scholarship.title, scholarship.provider, *scholarship.field_of_study]
    return any(needle in text.lower() for text in haystacks)


class SavedScholarships:
    """Bookmark flags with optimistic versioning.

    Every toggle carries the version the caller last read; a stale version is
    rejected instead of silently flipping the flag a second time. Saving
    stamps `saved_at` and an optional collection; unsaving clears both.
    """

    def __init__(self) -> None:
        self._states: dict[str, SavedState] = {}
        self._lock = threading.Lock()

    def get(self, scholarship_id: str) -> SavedState:
        with self._lock:
            return self._states.get(scholarship_id, SavedState(saved=False, version=INITIAL_VERSION))

    def toggle(
        self,
        scholarship_id: str,
        expected_version: int,
        *,
        now: datetime,
        collection: str | None = None,
    ) -> SavedState:
        with self._lock:
            current = self._states.get(scholarship_id, SavedState(saved=False, version=INITIAL_VERSION))
            if expected_version != current.version:
                logger.info(
                    "Stale saved toggle for %s (expected %d, current %d)",
                    scholarship_id,
                    expected_version,
                    current.version,
                )
                raise ConcurrentModificationError(scholarship_id, expected_version, current.version)
            if current.saved:
                updated = SavedState(saved=False, version=current.version + 1)
            else:
                updated = SavedState(
                    saved=True,
                    version=current.version + 1,
                    saved_at=now,
                    collection=_clean_collection(collection),
                )
            self._states[scholarship_id] = updated
            return updated

    def saved_ids(self, *, collection: str | None = None) -> list[str]:
        """Saved ids, most recently saved first; ties by id."""
        wanted = _clean_collection(collection)
        with self._lock:
            saved = [
                (scholarship_id, state)
                for scholarship_id, state in self._states.items()
                if state.saved
                and (wanted is None or state.collection == wanted)
            ]
        saved.sort(key=lambda item: item[0])
        saved.sort(key=lambda item: item[1].saved_at, reverse=True)
        return [scholarship_id for scholarship_id, _ in saved]

    def collection_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        with self._lock:
            for state in self._states.values():
                if state.saved and state.collection:
                    counts[state.collection] = counts.get(state.collection, 0) + 1
        return dict(sorted(counts.items()))
