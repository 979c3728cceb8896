"""Application lifecycle: document checklist, state machine and saved flags."""

from src.tracking.checklist import DocumentChecklist
from src.tracking.models import (
    Application,
    ApplicationStatus,
    DocumentRequirement,
    DocumentStatus,
    TimelineEvent,
    TimelineStatus,
)
from src.tracking.saved import SavedScholarships, SavedState
from src.tracking.tracker import ALLOWED_TRANSITIONS, advance, projected_timeline, submit_application

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Application",
    "ApplicationStatus",
    "DocumentChecklist",
    "DocumentRequirement",
    "DocumentStatus",
    "SavedScholarships",
    "SavedState",
    "TimelineEvent",
    "TimelineStatus",
    "advance",
    "projected_timeline",
    "submit_application",
]
