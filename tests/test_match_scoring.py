from __future__ import annotations

import itertools

from src.match.eligibility import EvaluatedCriterion
from src.match.scoring import compute_match_score, score_match
from src.normalize.schema import EligibilityCriterion


def _evaluated(flags: list[bool]) -> list[EvaluatedCriterion]:
    return [
        EvaluatedCriterion(
            criterion=EligibilityCriterion(label=f"Criterion {index}", attribute=f"attr_{index}", operator="is_true"),
            matched=flag,
        )
        for index, flag in enumerate(flags)
    ]


def test_three_of_four_matched_scores_75() -> None:
    result = score_match("s-1", _evaluated([True, True, False, True]))

    assert result.score == 75
    assert (result.eligible_count, result.total_count) == (3, 4)
    assert result.reasons == ("Criterion 0", "Criterion 1", "Criterion 3")
    assert not result.fully_eligible


def test_no_criteria_scores_zero() -> None:
    result = score_match("empty", [])

    assert result.score == 0
    assert (result.eligible_count, result.total_count) == (0, 0)
    assert result.reasons == ()


def test_reasons_truncate_without_changing_counts() -> None:
    result = score_match("s-2", _evaluated([True] * 5), max_reasons=2)

    assert result.reasons == ("Criterion 0", "Criterion 1")
    assert result.eligible_count == 5
    assert result.total_count == 5
    assert result.score == 100


def test_score_rounds_half_up() -> None:
    assert compute_match_score(1, 8) == 13
    assert compute_match_score(1, 3) == 33
    assert compute_match_score(2, 3) == 67


def test_score_is_bounded_and_monotonic_for_every_flag_combination() -> None:
    for size in range(1, 7):
        for flags in itertools.product([False, True], repeat=size):
            base = score_match("s", _evaluated(list(flags))).score
            assert 0 <= base <= 100
            for index, flag in enumerate(flags):
                if flag:
                    continue
                flipped = list(flags)
                flipped[index] = True
                assert score_match("s", _evaluated(flipped)).score >= base
