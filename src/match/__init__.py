"""Eligibility evaluation, match scoring and deadline arithmetic."""

from src.match.deadlines import days_remaining, is_closing_soon
from src.match.eligibility import EvaluatedCriterion, evaluate_criteria
from src.match.scoring import MatchResult, compute_match_score, score_match

__all__ = [
    "EvaluatedCriterion",
    "MatchResult",
    "compute_match_score",
    "days_remaining",
    "evaluate_criteria",
    "is_closing_soon",
    "score_match",
]
