from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable

from src.errors import DocumentExpiredError, NotFoundError
from src.match.deadlines import is_past
from src.tracking.models import Application, DocumentRequirement, DocumentStatus

logger = logging.getLogger(__name__)


def build_requirements(document_names: Iterable[str]) -> list[DocumentRequirement]:
    """Snapshot a scholarship's required-document list; duplicate names collapse."""
    seen: set[str] = set()
    requirements: list[DocumentRequirement] = []
    for name in document_names:
        cleaned = name.strip()
        if not cleaned or cleaned.lower() in seen:
            continue
        seen.add(cleaned.lower())
        requirements.append(DocumentRequirement(name=cleaned))
    return requirements


class DocumentChecklist:
    """Document status tracking for a single application.

    Pending -> Uploaded on upload, Pending -> Expired once the application
    deadline has passed, Uploaded -> Expired once an upload outlives the
    validity window.
    """

    def __init__(self, application: Application) -> None:
        self._application = application

    @property
    def documents(self) -> list[DocumentRequirement]:
        return self._application.documents

    def get(self, name: str) -> DocumentRequirement:
        wanted = name.strip().lower()
        for document in self.documents:
            if document.name.lower() == wanted:
                return document
        raise NotFoundError("document", name)

    def record_upload(self, name: str, now: datetime) -> DocumentStatus:
        document = self.get(name)
        if document.status is DocumentStatus.UPLOADED:
            return document.status
        if document.status is DocumentStatus.EXPIRED:
            raise DocumentExpiredError(document.name, current_status=self._application.status)
        document.status = DocumentStatus.UPLOADED
        document.uploaded_at = now
        logger.info(
            "Application %s: document '%s' uploaded", self._application.application_id, document.name
        )
        return document.status

    def expire_if_past_deadline(self, now: datetime) -> list[str]:
        if not is_past(self._application.deadline, now):
            return []
        expired: list[str] = []
        for document in self.documents:
            if document.status is DocumentStatus.PENDING:
                document.status = DocumentStatus.EXPIRED
                expired.append(document.name)
        if expired:
            logger.info(
                "Application %s: deadline passed, expired pending documents %s",
                self._application.application_id,
                expired,
            )
        return expired

    def expire_stale_uploads(self, now: datetime, validity: timedelta) -> list[str]:
        expired: list[str] = []
        for document in self.documents:
            if document.status is not DocumentStatus.UPLOADED or document.uploaded_at is None:
                continue
            if now >= document.uploaded_at + validity:
                document.status = DocumentStatus.EXPIRED
                expired.append(document.name)
        if expired:
            logger.info(
                "Application %s: uploads outside validity window expired %s",
                self._application.application_id,
                expired,
            )
        return expired

    def pending_names(self) -> list[str]:
        return [document.name for document in self.documents if document.status is DocumentStatus.PENDING]

    def pending_count(self) -> int:
        return len(self.pending_names())
