from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from src.errors import EngineError
from src.ingest.catalog_api import RestCatalogReader, build_auth_headers
from src.ingest.http import PoliteHttpClient
from src.io.snapshotting import load_catalog_json, write_catalog_snapshot
from src.normalize.schema import Scholarship

logger = logging.getLogger("build_snapshot")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Write a dated parquet snapshot of the scholarship catalog.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--catalog", type=Path, help="Catalog JSON list of scholarships.")
    source.add_argument("--api-url", type=str, help="Base URL of the REST catalog service.")
    parser.add_argument("--table", type=str, default="scholarships")
    parser.add_argument("--source", type=str, default=None, help="Only rows whose `source` column matches.")
    parser.add_argument(
        "--api-key-env",
        type=str,
        default="CATALOG_API_KEY",
        help="Environment variable holding the REST API key.",
    )
    parser.add_argument("--processed-dir", type=Path, default=ROOT_DIR / "data" / "processed")
    parser.add_argument(
        "--date",
        type=str,
        default=None,
        help="Run date in YYYYMMDD format. Defaults to current UTC date.",
    )
    parser.add_argument("--rps", type=float, default=1.0, help="Requests per second for the REST client.")
    return parser.parse_args(argv)


def fetch_catalog(args: argparse.Namespace) -> list[Scholarship]:
    if args.catalog is not None:
        return load_catalog_json(args.catalog)

    headers = build_auth_headers(os.environ.get(args.api_key_env))
    with PoliteHttpClient(requests_per_second=args.rps, default_headers=headers) as client:
        reader = RestCatalogReader(client, base_url=args.api_url, table=args.table, source=args.source)
        catalog = reader.list_scholarships()
    if reader.skipped_rows:
        logger.warning("Skipped %d malformed catalog rows", reader.skipped_rows)
    return catalog


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    args = parse_args(argv)
    try:
        catalog = fetch_catalog(args)
    except EngineError:
        logger.exception("Could not load the catalog.")
        return 1

    snapshot_path = write_catalog_snapshot(catalog, processed_dir=args.processed_dir, run_date=args.date)
    print(f"Wrote snapshot: {snapshot_path}")
    print(f"Scholarships: {len(catalog)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
