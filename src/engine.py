from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Callable, Iterator
from uuid import uuid4

from src.config import EngineConfig
from src.errors import ValidationError
from src.io.repositories import ApplicationStore, CatalogReader, ProfileReader, find_scholarship
from src.match.eligibility import ensure_profile
from src.match.scoring import MatchResult
from src.rank.ranker import (
    SORT_MATCH,
    RecommendationFilters,
    get_recommendations,
    summarize_recommendations,
)
from src.tracking.checklist import DocumentChecklist
from src.tracking.models import Application, ApplicationStatus
from src.tracking.saved import SavedScholarships, SavedState, matches_saved_query
from src.tracking.tracker import (
    advance,
    filter_applications,
    submit_application,
    summarize_applications,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _new_application_id() -> str:
    return uuid4().hex


def coerce_status(value: ApplicationStatus | str) -> ApplicationStatus:
    if isinstance(value, ApplicationStatus):
        return value
    try:
        return ApplicationStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown application status '{value}'.") from None


@dataclass(slots=True)
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class ScholarshipEngine:
    """Operations offered to the presentation layer.

    Scoring is stateless. Every mutation of an application runs under that
    application's own lock: it loads a private copy, applies the change and
    saves it, so a rejected request persists nothing. Locks are per id;
    different applications never wait on each other.
    """

    def __init__(
        self,
        *,
        profiles: ProfileReader,
        catalog: CatalogReader,
        applications: ApplicationStore,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = _new_application_id,
    ) -> None:
        self.profiles = profiles
        self.catalog = catalog
        self.applications = applications
        self.config = config or EngineConfig.baseline()
        self.saved = SavedScholarships()
        self._clock = clock
        self._id_factory = id_factory
        self._locks: dict[str, _LockEntry] = {}
        self._locks_guard = threading.Lock()

    def _now(self, now: datetime | None) -> datetime:
        return now if now is not None else self._clock()

    @contextmanager
    def _locked(self, application_id: str) -> Iterator[None]:
        # Entries live only while some caller holds or waits on them.
        with self._locks_guard:
            entry = self._locks.setdefault(application_id, _LockEntry())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[application_id]

    def get_recommendations(
        self,
        applicant_id: str,
        filters: RecommendationFilters | None = None,
        now: datetime | None = None,
        *,
        sort_by: str = SORT_MATCH,
    ) -> list[MatchResult]:
        profile = self.profiles.read_profile(applicant_id)
        return get_recommendations(
            profile,
            self.catalog.list_scholarships(),
            filters,
            self._now(now),
            config=self.config,
            sort_by=sort_by,
        )

    def recommendation_summary(self, results: list[MatchResult]) -> dict[str, int]:
        return summarize_recommendations(results, high_match_threshold=self.config.high_match_threshold)

    def submit_application(
        self,
        applicant_id: str,
        scholarship_id: str,
        now: datetime | None = None,
    ) -> Application:
        ensure_profile(self.profiles.read_profile(applicant_id))
        scholarship = find_scholarship(self.catalog, scholarship_id)
        application_id = self._id_factory()
        with self._locked(application_id):
            application = submit_application(
                application_id=application_id,
                applicant_id=applicant_id,
                scholarship=scholarship,
                now=self._now(now),
            )
            self.applications.save(application)
        return application

    def get_application(self, application_id: str) -> Application:
        return self.applications.get(application_id)

    def advance_status(
        self,
        application_id: str,
        target: ApplicationStatus | str,
        now: datetime | None = None,
    ) -> Application:
        target_status = coerce_status(target)
        with self._locked(application_id):
            application = self.applications.get(application_id)
            advance(application, target_status, self._now(now))
            self.applications.save(application)
        return application

    def record_document_upload(
        self,
        application_id: str,
        document_name: str,
        now: datetime | None = None,
    ) -> Application:
        with self._locked(application_id):
            application = self.applications.get(application_id)
            DocumentChecklist(application).record_upload(document_name, self._now(now))
            self.applications.save(application)
        return application

    def expire_documents(self, application_id: str, now: datetime | None = None) -> Application:
        """Apply deadline expiry to pending documents and validity expiry to old uploads."""
        resolved_now = self._now(now)
        with self._locked(application_id):
            application = self.applications.get(application_id)
            checklist = DocumentChecklist(application)
            expired = checklist.expire_if_past_deadline(resolved_now)
            expired += checklist.expire_stale_uploads(resolved_now, self.config.document_validity)
            if expired:
                self.applications.save(application)
        return application

    def list_applications(
        self,
        applicant_id: str,
        *,
        status: ApplicationStatus | str | None = None,
        query: str | None = None,
    ) -> list[Application]:
        return filter_applications(
            self.applications.list_for_applicant(applicant_id),
            status=coerce_status(status) if status is not None else None,
            query=query,
        )

    def application_summary(self, applicant_id: str) -> dict[str, int]:
        return summarize_applications(self.applications.list_for_applicant(applicant_id))

    def toggle_saved(
        self,
        scholarship_id: str,
        expected_version: int,
        *,
        collection: str | None = None,
        now: datetime | None = None,
    ) -> SavedState:
        find_scholarship(self.catalog, scholarship_id)
        state = self.saved.toggle(
            scholarship_id,
            expected_version,
            now=self._now(now),
            collection=collection,
        )
        logger.info("Scholarship %s saved=%s version=%d", scholarship_id, state.saved, state.version)
        return state

    def saved_state(self, scholarship_id: str) -> SavedState:
        return self.saved.get(scholarship_id)

    def list_saved(self, *, collection: str | None = None, query: str | None = None) -> list[str]:
        """Saved ids, newest first; `query` searches title, provider and field of study."""
        saved_ids = self.saved.saved_ids(collection=collection)
        if not query or not query.strip():
            return saved_ids
        by_id = {scholarship.scholarship_id: scholarship for scholarship in self.catalog.list_scholarships()}
        return [
            scholarship_id
            for scholarship_id in saved_ids
            if scholarship_id in by_id and matches_saved_query(by_id[scholarship_id], query)
        ]

    def saved_collections(self) -> dict[str, int]:
        return self.saved.collection_counts()
