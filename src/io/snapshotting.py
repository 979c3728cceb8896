from __future__ import annotations

import json
import re
import threading
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Sequence
from uuid import uuid4

import pandas as pd

from src.errors import NotFoundError, ValidationError
from src.normalize.schema import Scholarship, scholarship_from_mapping
from src.tracking.models import Application

SNAPSHOT_PREFIX = "scholarships_snapshot_"
SNAPSHOT_PATTERN = re.compile(r"^scholarships_snapshot_(\d{8})\.parquet$")
_APPLICATION_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

SNAPSHOT_COLUMNS = [
    "scholarship_id",
    "title",
    "provider",
    "amount",
    "currency",
    "coverage_type",
    "deadline",
    "criteria",
    "required_documents",
    "field_of_study",
    "level",
    "location",
]
_JSON_COLUMNS = ("criteria", "required_documents", "field_of_study")


def _coerce_output_date(run_date: date | str | None) -> date:
    if run_date is None:
        return datetime.now(tz=UTC).date()
    if isinstance(run_date, date):
        return run_date
    return datetime.strptime(run_date, "%Y%m%d").date()


def _snapshot_filename(run_date: date) -> str:
    return f"{SNAPSHOT_PREFIX}{run_date.strftime('%Y%m%d')}.parquet"


def list_snapshot_files(processed_dir: Path) -> list[Path]:
    snapshots: list[tuple[datetime, Path]] = []
    for candidate in processed_dir.glob("scholarships_snapshot_*.parquet"):
        match = SNAPSHOT_PATTERN.match(candidate.name)
        if not match:
            continue
        snapshot_date = datetime.strptime(match.group(1), "%Y%m%d")
        snapshots.append((snapshot_date, candidate))

    snapshots.sort(key=lambda item: item[0])
    return [item[1] for item in snapshots]


def get_latest_snapshot_path(processed_dir: Path) -> Path | None:
    snapshots = list_snapshot_files(processed_dir)
    if not snapshots:
        return None
    return snapshots[-1]


def load_latest_snapshot_df(processed_dir: Path) -> pd.DataFrame:
    latest_path = get_latest_snapshot_path(processed_dir)
    if latest_path is None:
        raise FileNotFoundError(
            f"No snapshot parquet found in '{processed_dir}'. "
            "Write one with write_catalog_snapshot() first."
        )
    return pd.read_parquet(latest_path)


def catalog_to_frame(scholarships: Sequence[Scholarship]) -> pd.DataFrame:
    rows: list[dict[str, Any]] = []
    for scholarship in scholarships:
        record = scholarship.to_dict()
        for column in _JSON_COLUMNS:
            record[column] = json.dumps(record[column], sort_keys=True)
        rows.append(record)
    return pd.DataFrame(rows, columns=SNAPSHOT_COLUMNS)


def _cell(value: Any) -> Any:
    if value is None:
        return None
    if not isinstance(value, (list, dict, str)) and pd.isna(value):
        return None
    return value


def catalog_from_frame(df: pd.DataFrame) -> list[Scholarship]:
    scholarships: list[Scholarship] = []
    for record in df.to_dict(orient="records"):
        cleaned = {key: _cell(value) for key, value in record.items()}
        for column in _JSON_COLUMNS:
            raw = cleaned.get(column)
            if isinstance(raw, str):
                try:
                    cleaned[column] = json.loads(raw)
                except json.JSONDecodeError as exc:
                    raise ValidationError(f"Snapshot column '{column}' is not valid JSON.") from exc
        scholarships.append(scholarship_from_mapping(cleaned))
    return scholarships


def write_parquet_atomic(df: pd.DataFrame, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = output_path.parent / f"{output_path.name}.{uuid4().hex}.tmp"
    try:
        df.to_parquet(temp_path, index=False, engine="pyarrow")
        temp_path.replace(output_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()


def write_json_atomic(payload: Any, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = output_path.parent / f"{output_path.name}.{uuid4().hex}.tmp"
    try:
        temp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        temp_path.replace(output_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()


def write_catalog_snapshot(
    scholarships: Sequence[Scholarship],
    *,
    processed_dir: Path,
    run_date: date | str | None = None,
) -> Path:
    snapshot_path = processed_dir / _snapshot_filename(_coerce_output_date(run_date))
    write_parquet_atomic(catalog_to_frame(scholarships), snapshot_path)
    return snapshot_path


def load_catalog_json(input_path: Path) -> list[Scholarship]:
    if not input_path.exists():
        raise FileNotFoundError(f"Catalog file not found: {input_path}")
    payload = json.loads(input_path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValidationError(f"Catalog file '{input_path}' must contain a JSON list.")
    return [scholarship_from_mapping(item) for item in payload]


class SnapshotCatalogReader:
    """Catalog reader over the most recent parquet snapshot in `processed_dir`."""

    def __init__(self, processed_dir: Path) -> None:
        self.processed_dir = processed_dir

    def list_scholarships(self) -> list[Scholarship]:
        return catalog_from_frame(load_latest_snapshot_df(self.processed_dir))


class JsonCatalogReader:
    def __init__(self, input_path: Path) -> None:
        self.input_path = input_path

    def list_scholarships(self) -> list[Scholarship]:
        return load_catalog_json(self.input_path)


class JsonApplicationStore:
    """One JSON document per application, written atomically."""

    def __init__(self, root_dir: Path) -> None:
        self.root_dir = root_dir
        self._lock = threading.Lock()

    def _path_for(self, application_id: str) -> Path:
        if not _APPLICATION_ID_PATTERN.match(application_id):
            raise NotFoundError("application", application_id)
        return self.root_dir / f"{application_id}.json"

    def get(self, application_id: str) -> Application:
        path = self._path_for(application_id)
        if not path.exists():
            raise NotFoundError("application", application_id)
        return Application.from_dict(json.loads(path.read_text(encoding="utf-8")))

    def save(self, application: Application) -> None:
        path = self._path_for(application.application_id)
        with self._lock:
            write_json_atomic(application.to_dict(), path)

    def list_for_applicant(self, applicant_id: str) -> list[Application]:
        if not self.root_dir.exists():
            return []
        owned: list[Application] = []
        for path in sorted(self.root_dir.glob("*.json")):
            application = Application.from_dict(json.loads(path.read_text(encoding="utf-8")))
            if application.applicant_id == applicant_id:
                owned.append(application)
        return sorted(owned, key=lambda item: (item.created_at, item.application_id))
