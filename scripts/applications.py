from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from src.config import load_engine_config
from src.engine import ScholarshipEngine
from src.errors import EngineError, TrackingError
from src.io.repositories import InMemoryProfileReader
from src.io.snapshotting import JsonApplicationStore, JsonCatalogReader
from src.normalize.schema import coerce_instant
from src.tracking.models import Application
from src.tracking.tracker import projected_timeline

logger = logging.getLogger("applications")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Submit and track scholarship applications.")
    parser.add_argument("--store-dir", type=Path, default=ROOT_DIR / "data" / "applications")
    parser.add_argument("--catalog", type=Path, default=ROOT_DIR / "data" / "catalog.json")
    parser.add_argument(
        "--profiles",
        type=Path,
        default=ROOT_DIR / "data" / "profiles.json",
        help="JSON object mapping applicant id to profile attributes.",
    )
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--now", type=str, default=None, help="Override the current instant (ISO 8601).")

    commands = parser.add_subparsers(dest="command", required=True)

    submit = commands.add_parser("submit", help="Submit an application.")
    submit.add_argument("applicant_id")
    submit.add_argument("scholarship_id")

    advance = commands.add_parser("advance", help="Move an application to a new status.")
    advance.add_argument("application_id")
    advance.add_argument("status")

    upload = commands.add_parser("upload", help="Record an uploaded document.")
    upload.add_argument("application_id")
    upload.add_argument("document")

    expire = commands.add_parser("expire", help="Expire overdue or stale documents.")
    expire.add_argument("application_id")

    show = commands.add_parser("show", help="Print one application with its projected timeline.")
    show.add_argument("application_id")

    listing = commands.add_parser("list", help="List an applicant's applications.")
    listing.add_argument("applicant_id")
    listing.add_argument("--status", default=None)
    listing.add_argument("--query", default=None)
    return parser.parse_args(argv)


def _load_profiles(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"Profiles file '{path}' must contain a JSON object.")
    return payload


def build_engine(args: argparse.Namespace) -> ScholarshipEngine:
    return ScholarshipEngine(
        profiles=InMemoryProfileReader(_load_profiles(args.profiles)),
        catalog=JsonCatalogReader(args.catalog),
        applications=JsonApplicationStore(args.store_dir),
        config=load_engine_config(args.config),
    )


def _render(application: Application) -> dict[str, Any]:
    payload = application.to_dict()
    payload["projected_timeline"] = [event.to_dict() for event in projected_timeline(application)]
    return payload


def run(engine: ScholarshipEngine, args: argparse.Namespace) -> Any:
    now = coerce_instant(args.now) if args.now else None
    if args.command == "submit":
        return _render(engine.submit_application(args.applicant_id, args.scholarship_id, now))
    if args.command == "advance":
        return _render(engine.advance_status(args.application_id, args.status, now))
    if args.command == "upload":
        return _render(engine.record_document_upload(args.application_id, args.document, now))
    if args.command == "expire":
        return _render(engine.expire_documents(args.application_id, now))
    if args.command == "show":
        return _render(engine.get_application(args.application_id))
    applications = engine.list_applications(args.applicant_id, status=args.status, query=args.query)
    return {
        "summary": engine.application_summary(args.applicant_id),
        "applications": [application.to_dict() for application in applications],
    }


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    engine = build_engine(args)
    try:
        payload = run(engine, args)
    except TrackingError as exc:
        logger.error("%s (current status: %s)", exc, getattr(exc.current_status, "value", exc.current_status))
        return 2
    except EngineError as exc:
        logger.error("%s", exc)
        return 1

    print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
