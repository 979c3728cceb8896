from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from src.errors import ValidationError
from src.normalize.schema import EligibilityCriterion

_TRUTHY_TEXT = frozenset({"true", "yes", "y", "1"})


@dataclass(frozen=True, slots=True)
class EvaluatedCriterion:
    criterion: EligibilityCriterion
    matched: bool

    @property
    def label(self) -> str:
        return self.criterion.label


def ensure_profile(profile: Any) -> Mapping[str, Any]:
    if not isinstance(profile, Mapping):
        raise ValidationError(
            f"Applicant profile must be a key/value mapping, got {type(profile).__name__}."
        )
    return profile


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _normalize_text(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("Boolean is not a numeric profile value.")
    number = float(value)
    if math.isnan(number):
        raise ValueError("NaN is not comparable.")
    return number


def _as_collection(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_normalize_text(item) for item in value if not _is_missing(item)]
    return [_normalize_text(value)]


def _is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_TEXT
    raise TypeError(f"Unreadable flag value of type {type(value).__name__}.")


def _matches(criterion: EligibilityCriterion, profile_value: Any) -> bool:
    operator = criterion.operator
    expected = criterion.value
    if operator == "equals":
        return _normalize_text(profile_value) == _normalize_text(expected)
    if operator == "one_of":
        return _normalize_text(profile_value) in {_normalize_text(item) for item in expected}
    if operator == "at_least":
        return _as_number(profile_value) >= float(expected)
    if operator == "at_most":
        return _as_number(profile_value) <= float(expected)
    if operator == "is_true":
        return _is_truthy(profile_value)
    if operator == "contains":
        return _normalize_text(expected) in _as_collection(profile_value)
    if operator == "any_of":
        wanted = {_normalize_text(item) for item in expected}
        return any(item in wanted for item in _as_collection(profile_value))
    return False


def evaluate_criterion(profile: Mapping[str, Any], criterion: EligibilityCriterion) -> EvaluatedCriterion:
    try:
        profile_value = profile.get(criterion.attribute)
    except (KeyError, TypeError, ValueError):
        return EvaluatedCriterion(criterion=criterion, matched=False)
    if _is_missing(profile_value):
        return EvaluatedCriterion(criterion=criterion, matched=False)
    try:
        matched = bool(_matches(criterion, profile_value))
    except (TypeError, ValueError):
        matched = False
    return EvaluatedCriterion(criterion=criterion, matched=matched)


def evaluate_criteria(
    profile: Mapping[str, Any], criteria: Iterable[EligibilityCriterion]
) -> list[EvaluatedCriterion]:
    """Evaluate each criterion independently; missing or unreadable attributes fail closed."""

    resolved = ensure_profile(profile)
    return [evaluate_criterion(resolved, criterion) for criterion in criteria]
