from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Sequence

from src.match.eligibility import EvaluatedCriterion

DEFAULT_MAX_REASONS = 3


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Explainable match of one scholarship against one profile.

    `reasons` is truncated for display; `eligible_count`/`total_count` always
    reflect every evaluated criterion.
    """

    scholarship_id: str
    score: int
    reasons: tuple[str, ...]
    eligible_count: int
    total_count: int
    days_remaining: int | None = None
    closing_soon: bool = False

    @property
    def fully_eligible(self) -> bool:
        return self.eligible_count == self.total_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "scholarship_id": self.scholarship_id,
            "score": self.score,
            "reasons": list(self.reasons),
            "eligible_count": self.eligible_count,
            "total_count": self.total_count,
            "days_remaining": self.days_remaining,
            "closing_soon": self.closing_soon,
        }


def compute_match_score(matched_count: int, total_count: int) -> int:
    if total_count <= 0:
        return 0
    # Half-up so 2.5 -> 3, unlike round()'s banker's rounding.
    ratio = Decimal(100 * matched_count) / Decimal(total_count)
    score = int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(0, min(100, score))


def score_match(
    scholarship_id: str,
    evaluated: Sequence[EvaluatedCriterion],
    *,
    max_reasons: int = DEFAULT_MAX_REASONS,
) -> MatchResult:
    matched_labels = [item.label for item in evaluated if item.matched]
    total_count = len(evaluated)
    return MatchResult(
        scholarship_id=scholarship_id,
        score=compute_match_score(len(matched_labels), total_count),
        reasons=tuple(matched_labels[: max(0, max_reasons)]),
        eligible_count=len(matched_labels),
        total_count=total_count,
    )
