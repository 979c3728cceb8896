from __future__ import annotations

import json
from pathlib import Path

import pytest

from scripts import applications, build_snapshot, recommend

FIXTURE_PATH = Path(__file__).resolve().parent / "resources" / "catalog_sample.json"
NOW = "2026-03-01T12:00:00Z"
PROFILES = {
    "kofi": {
        "citizenship": "Ghana",
        "gpa": 3.4,
        "financial_need": True,
        "work_experience_years": 1,
    }
}


def test_format_helpers() -> None:
    assert recommend.format_award(5000.0, "GHS") == "GHS 5,000"
    assert recommend.format_award(0.0, "USD") == "Unknown"
    assert recommend.format_days(1) == "1 day left"
    assert recommend.format_days(0) == "closed"
    assert recommend.format_days(14) == "14 days left"


def test_recommend_emits_ranked_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    profile_path = tmp_path / "profile.json"
    profile_path.write_text(json.dumps(PROFILES["kofi"]), encoding="utf-8")

    exit_code = recommend.main(
        ["--profile", str(profile_path), "--catalog", str(FIXTURE_PATH), "--now", NOW, "--json"]
    )

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert [item["scholarship_id"] for item in payload][0] == "mtn-foundation-2026"
    assert payload[0]["score"] == 100
    assert payload[0]["days_remaining"] == 14
    assert payload[1]["score"] == 50


def test_recommend_returns_error_code_for_invalid_profile(tmp_path: Path) -> None:
    profile_path = tmp_path / "profile.json"
    profile_path.write_text("[]", encoding="utf-8")

    exit_code = recommend.main(["--profile", str(profile_path), "--catalog", str(FIXTURE_PATH), "--now", NOW])

    assert exit_code == 1


def test_applications_cli_tracks_lifecycle(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    profiles_path = tmp_path / "profiles.json"
    profiles_path.write_text(json.dumps(PROFILES), encoding="utf-8")
    common = [
        "--store-dir",
        str(tmp_path / "applications"),
        "--catalog",
        str(FIXTURE_PATH),
        "--profiles",
        str(profiles_path),
        "--now",
        NOW,
    ]

    assert applications.main([*common, "submit", "kofi", "mtn-foundation-2026"]) == 0
    submitted = json.loads(capsys.readouterr().out)
    application_id = submitted["application_id"]
    assert [event["status"] for event in submitted["projected_timeline"]] == [
        "Current",
        "Upcoming",
        "Upcoming",
        "Upcoming",
    ]

    assert applications.main([*common, "advance", application_id, "Accepted"]) == 2
    capsys.readouterr()
    assert applications.main([*common, "advance", application_id, "UnderReview"]) == 0
    capsys.readouterr()
    assert applications.main([*common, "show", "missing-id"]) == 1
    capsys.readouterr()

    assert applications.main([*common, "list", "kofi", "--status", "UnderReview"]) == 0
    listing = json.loads(capsys.readouterr().out)
    assert listing["summary"]["pending"] == 1
    assert [item["application_id"] for item in listing["applications"]] == [application_id]


def test_build_snapshot_writes_dated_parquet(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = build_snapshot.main(
        ["--catalog", str(FIXTURE_PATH), "--processed-dir", str(tmp_path), "--date", "20260301"]
    )

    assert exit_code == 0
    assert (tmp_path / "scholarships_snapshot_20260301.parquet").exists()
    assert "Scholarships: 2" in capsys.readouterr().out


def test_recommend_rejects_out_of_range_filters(tmp_path: Path) -> None:
    profile_path = tmp_path / "profile.json"
    profile_path.write_text(json.dumps(PROFILES["kofi"]), encoding="utf-8")
    base = ["--profile", str(profile_path), "--catalog", str(FIXTURE_PATH), "--now", NOW]

    assert recommend.main([*base, "--min-score", "150"]) == 1
    assert recommend.main([*base, "--limit", "-1"]) == 1


def test_recommend_coverage_and_sort_options(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    profile_path = tmp_path / "profile.json"
    profile_path.write_text(json.dumps(PROFILES["kofi"]), encoding="utf-8")
    base = ["--profile", str(profile_path), "--catalog", str(FIXTURE_PATH), "--now", NOW, "--json"]

    assert recommend.main([*base, "--coverage", "Full"]) == 0
    full_only = json.loads(capsys.readouterr().out)
    assert len(full_only) == 1
    assert full_only[0]["scholarship_id"] != "mtn-foundation-2026"

    assert recommend.main([*base, "--sort-by", "amount"]) == 0
    by_amount = json.loads(capsys.readouterr().out)
    assert [item["scholarship_id"] for item in by_amount][-1] == "mtn-foundation-2026"
    assert by_amount[0]["scholarship_id"] == full_only[0]["scholarship_id"]
