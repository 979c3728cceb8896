from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Sequence

from src.errors import InvalidTransitionError, MissingDocumentsError
from src.normalize.schema import Scholarship
from src.tracking.checklist import DocumentChecklist, build_requirements
from src.tracking.models import (
    Application,
    ApplicationStatus,
    TimelineEvent,
    TimelineStatus,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[ApplicationStatus, frozenset[ApplicationStatus]] = {
    ApplicationStatus.APPLIED: frozenset({ApplicationStatus.UNDER_REVIEW, ApplicationStatus.REJECTED}),
    ApplicationStatus.UNDER_REVIEW: frozenset({ApplicationStatus.SHORTLISTED, ApplicationStatus.REJECTED}),
    ApplicationStatus.SHORTLISTED: frozenset({ApplicationStatus.ACCEPTED, ApplicationStatus.REJECTED}),
    ApplicationStatus.ACCEPTED: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}

HAPPY_PATH: tuple[ApplicationStatus, ...] = (
    ApplicationStatus.APPLIED,
    ApplicationStatus.UNDER_REVIEW,
    ApplicationStatus.SHORTLISTED,
    ApplicationStatus.ACCEPTED,
)

PENDING_STATUSES = frozenset({ApplicationStatus.APPLIED, ApplicationStatus.UNDER_REVIEW})


def allowed_targets(status: ApplicationStatus) -> frozenset[ApplicationStatus]:
    return ALLOWED_TRANSITIONS[status]


def event_label(status: ApplicationStatus) -> str:
    return status.value


def submit_application(
    *,
    application_id: str,
    applicant_id: str,
    scholarship: Scholarship,
    now: datetime,
) -> Application:
    application = Application(
        application_id=application_id,
        scholarship_id=scholarship.scholarship_id,
        applicant_id=applicant_id,
        status=ApplicationStatus.APPLIED,
        created_at=now,
        deadline=scholarship.deadline,
        timeline=[
            TimelineEvent(
                label=event_label(ApplicationStatus.APPLIED),
                timestamp=now,
                status=TimelineStatus.CURRENT,
            )
        ],
        documents=build_requirements(scholarship.required_documents),
        title=scholarship.title,
        provider=scholarship.provider,
    )
    logger.info(
        "Application %s submitted for scholarship %s by applicant %s",
        application_id,
        scholarship.scholarship_id,
        applicant_id,
    )
    return application


def advance(application: Application, target: ApplicationStatus, now: datetime) -> Application:
    """Move `application` to `target`, appending a timeline event.

    Every check runs before the first mutation, so a rejected request leaves
    the application untouched.
    """
    source = application.status
    if target not in ALLOWED_TRANSITIONS[source]:
        logger.info(
            "Application %s: rejected transition %s -> %s",
            application.application_id,
            source.value,
            target.value,
        )
        raise InvalidTransitionError(source, target)

    if target is ApplicationStatus.ACCEPTED:
        pending = DocumentChecklist(application).pending_names()
        if pending:
            logger.info(
                "Application %s: accept blocked by pending documents %s",
                application.application_id,
                pending,
            )
            raise MissingDocumentsError(pending, current_status=source)

    for event in application.timeline:
        if event.status is TimelineStatus.CURRENT:
            event.status = TimelineStatus.COMPLETED
    application.status = target
    application.timeline.append(
        TimelineEvent(
            label=event_label(target),
            timestamp=now,
            status=TimelineStatus.COMPLETED if target.is_terminal else TimelineStatus.CURRENT,
        )
    )
    logger.info(
        "Application %s: %s -> %s", application.application_id, source.value, target.value
    )
    return application


def projected_timeline(application: Application) -> list[TimelineEvent]:
    """Stored timeline plus Upcoming milestones for the rest of the happy path."""
    events = [
        TimelineEvent(label=event.label, timestamp=event.timestamp, status=event.status)
        for event in application.timeline
    ]
    if application.status.is_terminal:
        return events
    position = HAPPY_PATH.index(application.status)
    for status in HAPPY_PATH[position + 1 :]:
        events.append(
            TimelineEvent(label=event_label(status), timestamp=None, status=TimelineStatus.UPCOMING)
        )
    return events


def filter_applications(
    applications: Iterable[Application],
    *,
    status: ApplicationStatus | None = None,
    query: str | None = None,
) -> list[Application]:
    needle = (query or "").strip().lower()
    kept: list[Application] = []
    for application in applications:
        if status is not None and application.status is not status:
            continue
        if needle and needle not in application.title.lower() and needle not in application.provider.lower():
            continue
        kept.append(application)
    return kept


def summarize_applications(applications: Sequence[Application]) -> dict[str, int]:
    return {
        "total": len(applications),
        "pending": sum(1 for item in applications if item.status in PENDING_STATUSES),
        "shortlisted": sum(1 for item in applications if item.status is ApplicationStatus.SHORTLISTED),
        "accepted": sum(1 for item in applications if item.status is ApplicationStatus.ACCEPTED),
        "rejected": sum(1 for item in applications if item.status is ApplicationStatus.REJECTED),
    }
