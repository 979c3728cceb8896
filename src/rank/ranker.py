from __future__ import annotations

import concurrent.futures
import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd

from src.config import EngineConfig
from src.errors import ValidationError
from src.match.deadlines import days_remaining, is_closing_soon
from src.match.eligibility import ensure_profile, evaluate_criteria
from src.match.scoring import DEFAULT_MAX_REASONS, MatchResult, score_match
from src.normalize.schema import CoverageType, Scholarship
from src.rank.currency import normalize_amounts

logger = logging.getLogger(__name__)

_SORT_COLUMNS = ["_expired", "score", "days_remaining", "_amount_sort", "catalog_position"]
_SORT_ASCENDING = [True, False, True, False, True]
_TIE_GROUP_COLUMNS = ["_expired", "score", "days_remaining"]

SORT_MATCH = "match"
SORT_DEADLINE = "deadline"
SORT_AMOUNT = "amount"
SORT_OPTIONS = (SORT_MATCH, SORT_DEADLINE, SORT_AMOUNT)

_TRUE_TEXT = frozenset({"true", "1", "yes"})
_FALSE_TEXT = frozenset({"false", "0", "no"})


def _parse_flag(name: str, value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_TEXT:
            return True
        if text in _FALSE_TEXT:
            return False
    raise ValidationError(f"Filter '{name}' must be a boolean (got {value!r}).")


def _parse_optional_int(name: str, value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Filter '{name}' must be an integer (got {value!r}).")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Filter '{name}' must be an integer (got {value!r}).") from exc


@dataclass(frozen=True, slots=True)
class RecommendationFilters:
    """Composable predicates applied before ranking; `limit` is applied after."""

    min_score: int | None = None
    fully_eligible_only: bool = False
    closing_soon_only: bool = False
    query: str | None = None
    coverage_types: tuple[CoverageType, ...] = ()
    limit: int | None = None

    def __post_init__(self) -> None:
        if self.min_score is not None and not 0 <= self.min_score <= 100:
            raise ValidationError("min_score must be between 0 and 100.")
        if self.limit is not None and self.limit < 0:
            raise ValidationError("limit must be non-negative.")

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> RecommendationFilters:
        values = payload or {}
        try:
            coverage_types = tuple(CoverageType(item) for item in values.get("coverage_types") or ())
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        return cls(
            min_score=_parse_optional_int("min_score", values.get("min_score")),
            fully_eligible_only=_parse_flag("fully_eligible_only", values.get("fully_eligible_only")),
            closing_soon_only=_parse_flag("closing_soon_only", values.get("closing_soon_only")),
            query=values.get("query") or None,
            coverage_types=coverage_types,
            limit=_parse_optional_int("limit", values.get("limit")),
        )


def score_scholarship(
    profile: Mapping[str, Any],
    scholarship: Scholarship,
    *,
    max_reasons: int = DEFAULT_MAX_REASONS,
) -> MatchResult:
    evaluated = evaluate_criteria(profile, scholarship.criteria)
    return score_match(scholarship.scholarship_id, evaluated, max_reasons=max_reasons)


def score_catalog(
    profile: Mapping[str, Any],
    catalog: Sequence[Scholarship],
    *,
    max_reasons: int = DEFAULT_MAX_REASONS,
    max_workers: int = 1,
) -> list[MatchResult]:
    """Score every scholarship; results are returned in catalog order."""

    resolved = ensure_profile(profile)
    scorer = partial(score_scholarship, resolved, max_reasons=max_reasons)
    if max_workers <= 1 or len(catalog) <= 1:
        return [scorer(scholarship) for scholarship in catalog]

    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        return list(executor.map(scorer, catalog))


def _with_deadline(
    result: MatchResult,
    scholarship: Scholarship,
    now: datetime,
    closing_soon_days: int,
) -> MatchResult:
    return dataclasses.replace(
        result,
        days_remaining=days_remaining(scholarship.deadline, now),
        closing_soon=is_closing_soon(scholarship.deadline, now, closing_soon_days),
    )


def _matches_query(scholarship: Scholarship, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    return needle in scholarship.title.lower() or needle in scholarship.provider.lower()


def passes_filters(result: MatchResult, scholarship: Scholarship, filters: RecommendationFilters) -> bool:
    if filters.min_score is not None and result.score < filters.min_score:
        return False
    if filters.fully_eligible_only and not result.fully_eligible:
        return False
    if filters.closing_soon_only and not result.closing_soon:
        return False
    if filters.coverage_types and scholarship.coverage_type not in filters.coverage_types:
        return False
    if filters.query and not _matches_query(scholarship, filters.query):
        return False
    return True


def rank_results(
    pairs: Sequence[tuple[MatchResult, Scholarship]],
    *,
    exchange_rates: Mapping[str, float],
) -> list[MatchResult]:
    """Order by score, urgency, normalized award, then catalog order.

    Results must already carry `days_remaining`. Past-deadline entries sort
    after every open one. Within a (score, days) tie group the award only
    breaks ties when every member's currency can be normalized.
    """
    return [pairs[position][0] for position in _ranked_positions(pairs, exchange_rates)]


def _ranked_positions(
    pairs: Sequence[tuple[MatchResult, Scholarship]],
    exchange_rates: Mapping[str, float],
) -> list[int]:
    if not pairs:
        return []

    results = [result for result, _ in pairs]
    scholarships = [scholarship for _, scholarship in pairs]
    if any(result.days_remaining is None for result in results):
        raise ValueError("Ranking requires results annotated with days_remaining.")

    ranked_df = pd.DataFrame(
        {
            "catalog_position": np.arange(len(results)),
            "score": [result.score for result in results],
            "days_remaining": [result.days_remaining for result in results],
            "amount_reference": normalize_amounts(
                [scholarship.amount for scholarship in scholarships],
                [scholarship.currency for scholarship in scholarships],
                exchange_rates,
            ),
        }
    )
    ranked_df["_expired"] = ranked_df["days_remaining"] <= 0
    ranked_df["_amount_missing"] = ranked_df["amount_reference"].isna()
    group_missing = ranked_df.groupby(_TIE_GROUP_COLUMNS)["_amount_missing"].transform("max")
    ranked_df["_amount_sort"] = np.where(group_missing, 0.0, ranked_df["amount_reference"].fillna(0.0))

    ranked_df = ranked_df.sort_values(
        by=_SORT_COLUMNS,
        ascending=_SORT_ASCENDING,
        kind="mergesort",
    )
    return [int(position) for position in ranked_df["catalog_position"].tolist()]


def display_order(
    pairs: Sequence[tuple[MatchResult, Scholarship]],
    *,
    sort_by: str,
    exchange_rates: Mapping[str, float],
) -> list[tuple[MatchResult, Scholarship]]:
    """Re-sort ranked pairs for display; ties keep their ranked order.

    `deadline` lists open scholarships soonest first with closed ones last.
    `amount` lists the largest normalized award first with unconvertible
    currencies last.
    """
    if sort_by == SORT_MATCH or not pairs:
        return list(pairs)

    display_df = pd.DataFrame({"rank": np.arange(len(pairs))})
    if sort_by == SORT_DEADLINE:
        display_df["_expired"] = [(result.days_remaining or 0) <= 0 for result, _ in pairs]
        display_df["_key"] = [scholarship.deadline.timestamp() for _, scholarship in pairs]
        by, ascending = ["_expired", "_key", "rank"], [True, True, True]
    else:
        amounts = normalize_amounts(
            [scholarship.amount for _, scholarship in pairs],
            [scholarship.currency for _, scholarship in pairs],
            exchange_rates,
        )
        display_df["_missing"] = np.isnan(amounts)
        display_df["_key"] = np.nan_to_num(amounts, nan=0.0)
        by, ascending = ["_missing", "_key", "rank"], [True, False, True]

    display_df = display_df.sort_values(by=by, ascending=ascending, kind="mergesort")
    return [pairs[int(position)] for position in display_df["rank"].tolist()]


def get_recommendations(
    profile: Mapping[str, Any],
    catalog: Sequence[Scholarship],
    filters: RecommendationFilters | None,
    now: datetime,
    *,
    config: EngineConfig | None = None,
    sort_by: str = SORT_MATCH,
) -> list[MatchResult]:
    """Score, filter and rank a catalog snapshot for one profile.

    Pure over its inputs: the same profile, catalog, filters and `now` always
    give the same ordered output. `sort_by` only changes the display order;
    `limit` is applied after it.
    """
    if sort_by not in SORT_OPTIONS:
        raise ValidationError(f"Unknown sort order '{sort_by}'; expected one of {', '.join(SORT_OPTIONS)}.")
    active_config = config or EngineConfig.baseline()
    active_filters = filters or RecommendationFilters()

    scored = score_catalog(
        profile,
        catalog,
        max_reasons=active_config.max_reasons,
        max_workers=active_config.max_workers,
    )
    pairs = [
        (_with_deadline(result, scholarship, now, active_config.closing_soon_days), scholarship)
        for result, scholarship in zip(scored, catalog, strict=True)
    ]
    kept = [pair for pair in pairs if passes_filters(pair[0], pair[1], active_filters)]
    ranked_pairs = [kept[position] for position in _ranked_positions(kept, active_config.exchange_rates)]
    ordered = display_order(ranked_pairs, sort_by=sort_by, exchange_rates=active_config.exchange_rates)
    ranked = [result for result, _ in ordered]
    logger.debug("Ranked %d of %d scholarships (sort_by=%s)", len(ranked), len(catalog), sort_by)

    if active_filters.limit is not None:
        return ranked[: active_filters.limit]
    return ranked


def summarize_recommendations(
    results: Sequence[MatchResult],
    *,
    high_match_threshold: int = 80,
) -> dict[str, int]:
    return {
        "total": len(results),
        "high_match": sum(1 for result in results if result.score >= high_match_threshold),
        "fully_eligible": sum(1 for result in results if result.fully_eligible),
        "closing_soon": sum(1 for result in results if result.closing_soon),
    }
