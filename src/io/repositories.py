from __future__ import annotations

import copy
import threading
from typing import Any, Mapping, Protocol, Sequence

from src.errors import NotFoundError
from src.normalize.schema import Scholarship
from src.tracking.models import Application


class ProfileReader(Protocol):
    def read_profile(self, applicant_id: str) -> Mapping[str, Any]:
        """Return the applicant's attributes; raise NotFoundError for unknown ids."""


class CatalogReader(Protocol):
    def list_scholarships(self) -> list[Scholarship]:
        """Return the current catalog snapshot in catalog order."""


class ApplicationStore(Protocol):
    def get(self, application_id: str) -> Application:
        """Return a private copy of the application; raise NotFoundError for unknown ids."""

    def save(self, application: Application) -> None:
        """Persist the application, replacing any previous state with the same id."""

    def list_for_applicant(self, applicant_id: str) -> list[Application]:
        """Return the applicant's applications ordered by creation time."""


def find_scholarship(catalog: CatalogReader, scholarship_id: str) -> Scholarship:
    for scholarship in catalog.list_scholarships():
        if scholarship.scholarship_id == scholarship_id:
            return scholarship
    raise NotFoundError("scholarship", scholarship_id)


class InMemoryProfileReader:
    def __init__(self, profiles: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._profiles = dict(profiles or {})

    def read_profile(self, applicant_id: str) -> Mapping[str, Any]:
        try:
            return dict(self._profiles[applicant_id])
        except KeyError:
            raise NotFoundError("applicant", applicant_id) from None


class InMemoryCatalogReader:
    def __init__(self, scholarships: Sequence[Scholarship] = ()) -> None:
        self._scholarships = list(scholarships)

    def list_scholarships(self) -> list[Scholarship]:
        return list(self._scholarships)


class InMemoryApplicationStore:
    """Dict-backed store that hands out deep copies, so unsaved mutations stay private."""

    def __init__(self) -> None:
        self._applications: dict[str, Application] = {}
        self._lock = threading.Lock()

    def get(self, application_id: str) -> Application:
        with self._lock:
            try:
                return copy.deepcopy(self._applications[application_id])
            except KeyError:
                raise NotFoundError("application", application_id) from None

    def save(self, application: Application) -> None:
        with self._lock:
            self._applications[application.application_id] = copy.deepcopy(application)

    def list_for_applicant(self, applicant_id: str) -> list[Application]:
        with self._lock:
            owned = [
                copy.deepcopy(application)
                for application in self._applications.values()
                if application.applicant_id == applicant_id
            ]
        return sorted(owned, key=lambda item: (item.created_at, item.application_id))
