from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from src.errors import ValidationError
from src.normalize.schema import coerce_instant


class ApplicationStatus(str, Enum):
    APPLIED = "Applied"
    UNDER_REVIEW = "UnderReview"
    SHORTLISTED = "Shortlisted"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED)


class DocumentStatus(str, Enum):
    PENDING = "Pending"
    UPLOADED = "Uploaded"
    EXPIRED = "Expired"


class TimelineStatus(str, Enum):
    COMPLETED = "Completed"
    CURRENT = "Current"
    UPCOMING = "Upcoming"


@dataclass(slots=True)
class DocumentRequirement:
    name: str
    status: DocumentStatus = DocumentStatus.PENDING
    uploaded_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> DocumentRequirement:
        uploaded_at = payload.get("uploaded_at")
        return cls(
            name=str(payload["name"]),
            status=DocumentStatus(payload.get("status", DocumentStatus.PENDING.value)),
            uploaded_at=coerce_instant(uploaded_at) if uploaded_at else None,
        )


@dataclass(slots=True)
class TimelineEvent:
    label: str
    timestamp: datetime | None
    status: TimelineStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> TimelineEvent:
        timestamp = payload.get("timestamp")
        return cls(
            label=str(payload["label"]),
            timestamp=coerce_instant(timestamp) if timestamp else None,
            status=TimelineStatus(payload["status"]),
        )


@dataclass(slots=True)
class Application:
    """A submitted application; mutated only through the tracker.

    `deadline` is copied from the scholarship at submission and never follows
    later catalog edits.
    """

    application_id: str
    scholarship_id: str
    applicant_id: str
    status: ApplicationStatus
    created_at: datetime
    deadline: datetime
    timeline: list[TimelineEvent] = field(default_factory=list)
    documents: list[DocumentRequirement] = field(default_factory=list)
    title: str = ""
    provider: str = ""

    @property
    def current_event(self) -> TimelineEvent | None:
        for event in self.timeline:
            if event.status is TimelineStatus.CURRENT:
                return event
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "application_id": self.application_id,
            "scholarship_id": self.scholarship_id,
            "applicant_id": self.applicant_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "deadline": self.deadline.isoformat(),
            "timeline": [event.to_dict() for event in self.timeline],
            "documents": [document.to_dict() for document in self.documents],
            "title": self.title,
            "provider": self.provider,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Application:
        try:
            return cls(
                application_id=str(payload["application_id"]),
                scholarship_id=str(payload["scholarship_id"]),
                applicant_id=str(payload["applicant_id"]),
                status=ApplicationStatus(payload["status"]),
                created_at=coerce_instant(payload["created_at"]),
                deadline=coerce_instant(payload["deadline"]),
                timeline=[TimelineEvent.from_dict(item) for item in payload.get("timeline", [])],
                documents=[DocumentRequirement.from_dict(item) for item in payload.get("documents", [])],
                title=str(payload.get("title") or ""),
                provider=str(payload.get("provider") or ""),
            )
        except (KeyError, ValueError) as exc:
            raise ValidationError(f"Malformed application record: {exc}") from exc
