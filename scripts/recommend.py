from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from src.config import load_engine_config
from src.engine import utcnow
from src.errors import EngineError
from src.io.snapshotting import SnapshotCatalogReader, load_catalog_json
from src.normalize.schema import CoverageType, Scholarship, coerce_instant
from src.rank.ranker import (
    SORT_MATCH,
    SORT_OPTIONS,
    RecommendationFilters,
    get_recommendations,
    summarize_recommendations,
)

logger = logging.getLogger("recommend")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rank scholarships for one applicant profile.")
    parser.add_argument("--profile", type=Path, required=True, help="Applicant profile JSON object.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--catalog", type=Path, help="Catalog JSON list of scholarships.")
    source.add_argument(
        "--processed-dir",
        type=Path,
        help="Directory holding scholarships_snapshot_YYYYMMDD.parquet files.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Engine config JSON.")
    parser.add_argument(
        "--now",
        type=str,
        default=None,
        help="Evaluation instant (ISO 8601). Defaults to the current UTC time.",
    )
    parser.add_argument("--min-score", type=int, default=None)
    parser.add_argument("--fully-eligible-only", action="store_true")
    parser.add_argument("--closing-soon-only", action="store_true")
    parser.add_argument("--query", type=str, default=None)
    parser.add_argument("--limit", type=int, default=None)
    parser.add_argument(
        "--coverage",
        action="append",
        default=[],
        choices=[member.value for member in CoverageType],
        help="Keep only this coverage type; repeat to allow several.",
    )
    parser.add_argument(
        "--sort-by",
        choices=SORT_OPTIONS,
        default=SORT_MATCH,
        help="Display order: best match (default), soonest deadline or largest award.",
    )
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text.")
    return parser.parse_args(argv)


def format_award(amount: float, currency: str) -> str:
    if amount <= 0:
        return "Unknown"
    return f"{currency} {amount:,.0f}"


def format_days(days_remaining: int | None) -> str:
    if days_remaining is None:
        return "no deadline"
    if days_remaining <= 0:
        return "closed"
    if days_remaining == 1:
        return "1 day left"
    return f"{days_remaining} days left"


def _load_profile(path: Path) -> Any:
    if not path.exists():
        raise FileNotFoundError(f"Profile file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def _load_catalog(args: argparse.Namespace) -> list[Scholarship]:
    if args.catalog is not None:
        return load_catalog_json(args.catalog)
    return SnapshotCatalogReader(args.processed_dir).list_scholarships()


def _resolve_now(value: str | None) -> datetime:
    if value is None:
        return utcnow()
    return coerce_instant(value)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    config = load_engine_config(args.config)

    try:
        filters = RecommendationFilters(
            min_score=args.min_score,
            fully_eligible_only=args.fully_eligible_only,
            closing_soon_only=args.closing_soon_only,
            query=args.query,
            coverage_types=tuple(CoverageType(value) for value in args.coverage),
            limit=args.limit,
        )
        profile = _load_profile(args.profile)
        catalog = _load_catalog(args)
        results = get_recommendations(
            profile,
            catalog,
            filters,
            _resolve_now(args.now),
            config=config,
            sort_by=args.sort_by,
        )
    except EngineError as exc:
        logger.error("Could not compute recommendations: %s", exc)
        return 1

    if args.json:
        print(json.dumps([result.to_dict() for result in results], indent=2))
        return 0

    by_id = {scholarship.scholarship_id: scholarship for scholarship in catalog}
    for rank, result in enumerate(results, start=1):
        scholarship = by_id[result.scholarship_id]
        print(
            f"{rank:>3}. [{result.score:>3}%] {scholarship.title} ({scholarship.provider}) "
            f"- {format_award(scholarship.amount, scholarship.currency)}, "
            f"{format_days(result.days_remaining)}, "
            f"{result.eligible_count}/{result.total_count} criteria"
        )
        if result.reasons:
            print(f"       {', '.join(result.reasons)}")

    summary = summarize_recommendations(results, high_match_threshold=config.high_match_threshold)
    print(
        "Summary: "
        f"total={summary['total']}, "
        f"high_match={summary['high_match']}, "
        f"fully_eligible={summary['fully_eligible']}, "
        f"closing_soon={summary['closing_soon']}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
