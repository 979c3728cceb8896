from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from enum import Enum
from typing import Any, Mapping

from src.errors import ValidationError
from src.normalize.canonical_id import generate_scholarship_id

OPERATORS = frozenset({"equals", "one_of", "at_least", "at_most", "is_true", "contains", "any_of"})
_LIST_OPERATORS = frozenset({"one_of", "any_of"})
_NUMERIC_OPERATORS = frozenset({"at_least", "at_most"})


class CoverageType(str, Enum):
    FULL = "Full"
    PARTIAL = "Partial"
    STIPEND = "Stipend"


@dataclass(frozen=True, slots=True)
class EligibilityCriterion:
    """One independently evaluated condition on a single profile attribute."""

    label: str
    attribute: str
    operator: str
    value: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.label, str) or not self.label.strip():
            raise ValidationError("Eligibility criterion requires a non-empty label.")
        if not isinstance(self.attribute, str) or not self.attribute.strip():
            raise ValidationError(f"Criterion '{self.label}' requires a profile attribute name.")
        if self.operator not in OPERATORS:
            raise ValidationError(
                f"Criterion '{self.label}' uses unknown operator '{self.operator}'."
            )
        if self.operator in _LIST_OPERATORS:
            if isinstance(self.value, (str, bytes)) or not isinstance(self.value, (list, tuple, set, frozenset)):
                raise ValidationError(f"Criterion '{self.label}' requires a list value.")
            object.__setattr__(self, "value", tuple(self.value))
        if self.operator in _NUMERIC_OPERATORS:
            if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
                raise ValidationError(f"Criterion '{self.label}' requires a numeric threshold.")

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> EligibilityCriterion:
        if not isinstance(payload, Mapping):
            raise ValidationError("Eligibility criterion must be a mapping.")
        return cls(
            label=payload.get("label"),
            attribute=payload.get("attribute"),
            operator=payload.get("operator"),
            value=payload.get("value"),
        )

    def to_dict(self) -> dict[str, Any]:
        value = list(self.value) if isinstance(self.value, tuple) else self.value
        return {
            "label": self.label,
            "attribute": self.attribute,
            "operator": self.operator,
            "value": value,
        }


@dataclass(frozen=True, slots=True)
class Scholarship:
    """Catalog snapshot entry; immutable for the duration of a scoring run."""

    scholarship_id: str
    title: str
    provider: str
    amount: float
    currency: str
    coverage_type: CoverageType
    deadline: datetime
    criteria: tuple[EligibilityCriterion, ...] = ()
    required_documents: tuple[str, ...] = ()
    field_of_study: tuple[str, ...] = ()
    level: str | None = None
    location: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "scholarship_id": self.scholarship_id,
            "title": self.title,
            "provider": self.provider,
            "amount": self.amount,
            "currency": self.currency,
            "coverage_type": self.coverage_type.value,
            "deadline": self.deadline.isoformat(),
            "criteria": [criterion.to_dict() for criterion in self.criteria],
            "required_documents": list(self.required_documents),
            "field_of_study": list(self.field_of_study),
            "level": self.level,
            "location": self.location,
        }


def coerce_instant(value: Any) -> datetime:
    """Coerce a date, datetime or ISO string into a timezone-aware UTC instant.

    Bare dates are taken as midnight UTC; naive datetimes are assumed to be UTC.
    """
    if isinstance(value, datetime):
        resolved = value
    elif isinstance(value, date):
        resolved = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        cleaned = value.strip().replace("Z", "+00:00")
        try:
            resolved = datetime.fromisoformat(cleaned)
        except ValueError as exc:
            raise ValidationError(f"Unparsable deadline '{value}'.") from exc
    else:
        raise ValidationError(f"Unparsable deadline '{value}'.")

    if resolved.tzinfo is None:
        return resolved.replace(tzinfo=UTC)
    return resolved.astimezone(UTC)


def _coerce_amount(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValidationError(f"Unparsable award amount '{value}'.")
    if isinstance(value, (int, float)):
        amount = float(value)
    else:
        cleaned = str(value).replace(",", "").strip()
        if not cleaned:
            return 0.0
        try:
            amount = float(cleaned)
        except ValueError as exc:
            raise ValidationError(f"Unparsable award amount '{value}'.") from exc
    if not math.isfinite(amount) or amount < 0.0:
        raise ValidationError(f"Award amount must be a non-negative number (got {value!r}).")
    return amount


def _coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coerce_str_list(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        cleaned = value.strip()
        return (cleaned,) if cleaned else ()
    if isinstance(value, (list, tuple, set)):
        return tuple(text for text in (_coerce_text(item) for item in value) if text)
    raise ValidationError(f"Expected a list of strings, got {type(value).__name__}.")


def _coerce_coverage(value: Any) -> CoverageType:
    if isinstance(value, CoverageType):
        return value
    text = _coerce_text(value)
    if text is None:
        return CoverageType.PARTIAL
    for member in CoverageType:
        if member.value.lower() == text.lower():
            return member
    raise ValidationError(f"Unknown coverage type '{value}'.")


def scholarship_from_mapping(record: Mapping[str, Any]) -> Scholarship:
    """Build a Scholarship from a loosely typed catalog row."""

    title = _coerce_text(record.get("title") or record.get("name"))
    if title is None:
        raise ValidationError("Scholarship row is missing a title.")
    provider = _coerce_text(record.get("provider")) or ""
    amount = _coerce_amount(record.get("amount"))
    currency = (_coerce_text(record.get("currency")) or "USD").upper()
    deadline = coerce_instant(record.get("deadline"))

    raw_criteria = record.get("criteria") or []
    if not isinstance(raw_criteria, (list, tuple)):
        raise ValidationError(f"Scholarship '{title}' criteria must be a list.")
    criteria = tuple(EligibilityCriterion.from_mapping(item) for item in raw_criteria)

    scholarship_id = _coerce_text(record.get("scholarship_id") or record.get("id"))
    if scholarship_id is None:
        scholarship_id = generate_scholarship_id(
            title=title,
            provider=provider,
            amount=amount,
            currency=currency,
            deadline=deadline,
        )

    return Scholarship(
        scholarship_id=scholarship_id,
        title=title,
        provider=provider,
        amount=amount,
        currency=currency,
        coverage_type=_coerce_coverage(record.get("coverage_type")),
        deadline=deadline,
        criteria=criteria,
        required_documents=_coerce_str_list(
            record.get("required_documents", record.get("documents"))
        ),
        field_of_study=_coerce_str_list(record.get("field_of_study")),
        level=_coerce_text(record.get("level")),
        location=_coerce_text(record.get("location")),
    )
