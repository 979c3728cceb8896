from __future__ import annotations

from typing import Any, Iterable


class EngineError(Exception):
    """Base class for errors raised by the matching and tracking engine."""


class ValidationError(EngineError, ValueError):
    """Malformed profile, criterion definition or catalog row."""


class NotFoundError(EngineError, LookupError):
    def __init__(self, kind: str, identifier: str) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"Unknown {kind} id '{identifier}'.")


class TrackingError(EngineError):
    """State-machine errors; `current_status` is the unchanged status of the application."""

    def __init__(self, message: str, *, current_status: Any) -> None:
        self.current_status = current_status
        super().__init__(message)


class InvalidTransitionError(TrackingError):
    def __init__(self, from_status: Any, to_status: Any) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Transition {_label(from_status)} -> {_label(to_status)} is not allowed.",
            current_status=from_status,
        )


class MissingDocumentsError(TrackingError):
    def __init__(self, pending_names: Iterable[str], *, current_status: Any) -> None:
        self.pending_names = list(pending_names)
        super().__init__(
            "Required documents still pending: " + ", ".join(self.pending_names),
            current_status=current_status,
        )


class DocumentExpiredError(TrackingError):
    def __init__(self, document_name: str, *, current_status: Any) -> None:
        self.document_name = document_name
        super().__init__(
            f"Document '{document_name}' has expired and can no longer be uploaded.",
            current_status=current_status,
        )


class ConcurrentModificationError(EngineError):
    def __init__(self, key: str, expected_version: int, current_version: int) -> None:
        self.key = key
        self.expected_version = expected_version
        self.current_version = current_version
        super().__init__(
            f"Stale version for '{key}' (expected {expected_version}, current {current_version})."
        )


def _label(status: Any) -> str:
    return str(getattr(status, "value", status))
