from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from src.config import EngineConfig
from src.errors import ValidationError
from src.match.scoring import MatchResult
from src.normalize.schema import CoverageType, EligibilityCriterion, Scholarship
from src.rank.ranker import (
    RecommendationFilters,
    get_recommendations,
    rank_results,
    summarize_recommendations,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _flag_criteria(matched: int, total: int) -> tuple[EligibilityCriterion, ...]:
    return tuple(
        EligibilityCriterion(
            label=f"Requirement {index}",
            attribute="yes" if index < matched else "no",
            operator="is_true",
        )
        for index in range(total)
    )


def _scholarship(
    scholarship_id: str,
    *,
    days: float,
    matched: int = 1,
    total: int = 1,
    amount: float = 1000.0,
    currency: str = "USD",
    title: str | None = None,
    provider: str = "Acme Foundation",
    coverage_type: CoverageType = CoverageType.PARTIAL,
) -> Scholarship:
    return Scholarship(
        scholarship_id=scholarship_id,
        title=title or f"Scholarship {scholarship_id}",
        provider=provider,
        amount=amount,
        currency=currency,
        coverage_type=coverage_type,
        deadline=NOW + timedelta(days=days),
        criteria=_flag_criteria(matched, total),
    )


PROFILE = {"yes": True, "no": False}


def _ids(results: list[MatchResult]) -> list[str]:
    return [result.scholarship_id for result in results]


def test_equal_scores_rank_the_more_urgent_deadline_first() -> None:
    catalog = [
        _scholarship("B", days=40, matched=41, total=50),
        _scholarship("A", days=10, matched=41, total=50),
    ]

    results = get_recommendations(PROFILE, catalog, None, NOW)

    assert [result.score for result in results] == [82, 82]
    assert _ids(results) == ["A", "B"]
    assert [result.days_remaining for result in results] == [10, 40]


def test_score_outranks_urgency() -> None:
    catalog = [
        _scholarship("urgent-low", days=2, matched=1, total=2),
        _scholarship("later-high", days=60, matched=2, total=2),
    ]

    results = get_recommendations(PROFILE, catalog, None, NOW)

    assert _ids(results) == ["later-high", "urgent-low"]


def test_past_deadlines_sort_last_regardless_of_score() -> None:
    catalog = [
        _scholarship("closed-perfect", days=-3, matched=4, total=4),
        _scholarship("open-weak", days=20, matched=1, total=4),
        _scholarship("closing-today", days=0, matched=4, total=4),
    ]

    results = get_recommendations(PROFILE, catalog, None, NOW)

    assert _ids(results) == ["open-weak", "closed-perfect", "closing-today"]


def test_award_breaks_ties_in_reference_currency() -> None:
    config = EngineConfig(exchange_rates={"USD": 1.0, "GHS": 0.08, "GBP": 1.25})
    catalog = [
        _scholarship("ghs", days=15, amount=50_000, currency="GHS"),
        _scholarship("gbp", days=15, amount=4_000, currency="GBP"),
        _scholarship("usd", days=15, amount=4_500, currency="USD"),
    ]

    results = get_recommendations(PROFILE, catalog, None, NOW, config=config)

    assert _ids(results) == ["gbp", "usd", "ghs"]


def test_unknown_currency_treats_tied_group_as_equal() -> None:
    catalog = [
        _scholarship("first", days=15, amount=100, currency="USD"),
        _scholarship("second", days=15, amount=9_000, currency="XYZ"),
        _scholarship("third", days=15, amount=5_000, currency="USD"),
        _scholarship("other-group", days=16, amount=1, currency="USD"),
    ]

    results = get_recommendations(PROFILE, catalog, None, NOW)

    assert _ids(results) == ["first", "second", "third", "other-group"]


def test_identical_keys_keep_catalog_order() -> None:
    catalog = [_scholarship(name, days=12, amount=2000) for name in ("c-id", "a-id", "b-id")]

    results = get_recommendations(PROFILE, catalog, None, NOW)

    assert _ids(results) == ["c-id", "a-id", "b-id"]


def test_repeated_calls_are_byte_identical() -> None:
    catalog = [
        _scholarship(f"s{index}", days=(index * 7) % 45 - 5, matched=index % 4, total=3, amount=500 * (index % 5))
        for index in range(25)
    ]

    first = get_recommendations(PROFILE, catalog, None, NOW)
    second = get_recommendations(PROFILE, catalog, None, NOW)

    assert json.dumps([result.to_dict() for result in first]) == json.dumps(
        [result.to_dict() for result in second]
    )


def test_parallel_scoring_matches_sequential_ordering() -> None:
    catalog = [
        _scholarship(f"s{index}", days=(index * 11) % 50 - 3, matched=index % 5, total=4, amount=250 * (index % 7))
        for index in range(40)
    ]

    sequential = get_recommendations(PROFILE, catalog, None, NOW, config=EngineConfig(max_workers=1))
    parallel = get_recommendations(PROFILE, catalog, None, NOW, config=EngineConfig(max_workers=8))

    assert sequential == parallel


def test_filters_compose_before_ranking() -> None:
    catalog = [
        _scholarship("full-soon", days=5, matched=3, total=3),
        _scholarship("full-later", days=90, matched=3, total=3),
        _scholarship("partial-soon", days=3, matched=2, total=3),
        _scholarship("weak-soon", days=4, matched=1, total=3),
    ]

    high = get_recommendations(PROFILE, catalog, RecommendationFilters(min_score=60), NOW)
    eligible = get_recommendations(PROFILE, catalog, RecommendationFilters(fully_eligible_only=True), NOW)
    soon = get_recommendations(PROFILE, catalog, RecommendationFilters(closing_soon_only=True), NOW)
    combined = get_recommendations(
        PROFILE,
        catalog,
        RecommendationFilters(fully_eligible_only=True, closing_soon_only=True),
        NOW,
    )

    assert _ids(high) == ["full-soon", "full-later", "partial-soon"]
    assert _ids(eligible) == ["full-soon", "full-later"]
    assert _ids(soon) == ["full-soon", "partial-soon", "weak-soon"]
    assert _ids(combined) == ["full-soon"]


def test_query_coverage_and_limit_filters() -> None:
    catalog = [
        _scholarship("mtn", days=10, title="MTN Foundation Scholarship", provider="MTN Ghana"),
        _scholarship(
            "chevening",
            days=20,
            title="Chevening Award",
            provider="UK Government",
            coverage_type=CoverageType.FULL,
        ),
        _scholarship("gnpc", days=30, title="GNPC Oil & Gas Scholarship", provider="GNPC", coverage_type=CoverageType.FULL),
    ]

    by_provider = get_recommendations(PROFILE, catalog, RecommendationFilters(query="ghana"), NOW)
    full_only = get_recommendations(
        PROFILE, catalog, RecommendationFilters(coverage_types=(CoverageType.FULL,)), NOW
    )
    limited = get_recommendations(PROFILE, catalog, RecommendationFilters(limit=2), NOW)

    assert _ids(by_provider) == ["mtn"]
    assert _ids(full_only) == ["chevening", "gnpc"]
    assert _ids(limited) == ["mtn", "chevening"]


def test_results_carry_deadline_annotations_and_reasons() -> None:
    config = EngineConfig(max_reasons=2, closing_soon_days=14)
    catalog = [_scholarship("s", days=9.5, matched=3, total=4)]

    (result,) = get_recommendations(PROFILE, catalog, None, NOW, config=config)

    assert result.days_remaining == 10
    assert result.closing_soon is True
    assert result.reasons == ("Requirement 0", "Requirement 1")
    assert (result.eligible_count, result.total_count) == (3, 4)


def test_filters_from_mapping_validates_input() -> None:
    filters = RecommendationFilters.from_mapping(
        {"min_score": "80", "fully_eligible_only": True, "coverage_types": ["Full"], "limit": 5}
    )

    assert filters.min_score == 80
    assert filters.fully_eligible_only is True
    assert filters.coverage_types == (CoverageType.FULL,)

    text_flags = RecommendationFilters.from_mapping(
        {"fully_eligible_only": "false", "closing_soon_only": "0", "limit": None}
    )
    assert text_flags.fully_eligible_only is False
    assert text_flags.closing_soon_only is False
    assert RecommendationFilters.from_mapping({"closing_soon_only": "Yes"}).closing_soon_only is True

    for bad_payload in (
        {"coverage_types": ["Tuition"]},
        {"min_score": "high"},
        {"limit": "ten"},
        {"limit": True},
        {"fully_eligible_only": "maybe"},
        {"closing_soon_only": 2},
    ):
        with pytest.raises(ValidationError):
            RecommendationFilters.from_mapping(bad_payload)
    with pytest.raises(ValidationError):
        RecommendationFilters(min_score=120)


def test_sort_by_changes_display_order_only() -> None:
    config = EngineConfig(exchange_rates={"USD": 1.0, "GHS": 0.08})
    catalog = [
        _scholarship("best", days=40, matched=3, total=3, amount=1_000),
        _scholarship("soonest", days=5, matched=1, total=3, amount=2_000),
        _scholarship("richest", days=20, matched=2, total=3, amount=100_000, currency="GHS"),
        _scholarship("closed", days=-2, matched=3, total=3, amount=50_000),
        _scholarship("unpriced", days=10, matched=2, total=3, amount=900_000, currency="XYZ"),
    ]

    by_match = get_recommendations(PROFILE, catalog, None, NOW, config=config)
    by_deadline = get_recommendations(PROFILE, catalog, None, NOW, config=config, sort_by="deadline")
    by_amount = get_recommendations(PROFILE, catalog, None, NOW, config=config, sort_by="amount")
    top_two = get_recommendations(
        PROFILE, catalog, RecommendationFilters(limit=2), NOW, config=config, sort_by="amount"
    )

    assert _ids(by_match) == ["best", "unpriced", "richest", "soonest", "closed"]
    assert _ids(by_deadline) == ["soonest", "unpriced", "richest", "best", "closed"]
    assert _ids(by_amount) == ["closed", "richest", "soonest", "best", "unpriced"]
    assert _ids(top_two) == ["closed", "richest"]
    with pytest.raises(ValidationError):
        get_recommendations(PROFILE, catalog, None, NOW, sort_by="popularity")


def test_rank_results_requires_deadline_annotations() -> None:
    scholarship = _scholarship("s", days=5)
    bare = MatchResult(scholarship_id="s", score=50, reasons=(), eligible_count=1, total_count=2)

    with pytest.raises(ValueError):
        rank_results([(bare, scholarship)], exchange_rates={"USD": 1.0})
    assert rank_results([], exchange_rates={"USD": 1.0}) == []


def test_summarize_recommendations_counts_dashboard_tiles() -> None:
    catalog = [
        _scholarship("a", days=5, matched=5, total=5),
        _scholarship("b", days=45, matched=4, total=5),
        _scholarship("c", days=12, matched=1, total=5),
    ]
    results = get_recommendations(PROFILE, catalog, None, NOW)

    assert summarize_recommendations(results) == {
        "total": 3,
        "high_match": 2,
        "fully_eligible": 1,
        "closing_soon": 2,
    }
