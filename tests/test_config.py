from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import pytest

from src.config import EngineConfig, load_engine_config


def test_baseline_defaults() -> None:
    config = EngineConfig.baseline()

    assert config.max_reasons == 3
    assert config.closing_soon_days == 30
    assert config.high_match_threshold == 80
    assert config.document_validity == timedelta(days=365)
    assert config.exchange_rates == {"USD": 1.0}


def test_exchange_rates_are_normalized_and_reference_is_present() -> None:
    config = EngineConfig(reference_currency="ghs", exchange_rates={"usd": 12.5})

    assert config.reference_currency == "GHS"
    assert config.exchange_rates == {"USD": 12.5, "GHS": 1.0}


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_reasons": -1},
        {"closing_soon_days": -1},
        {"document_validity_days": 0},
        {"max_workers": 0},
        {"high_match_threshold": 101},
        {"exchange_rates": {"GHS": 0.0}},
        {"exchange_rates": {"GHS": float("nan")}},
        {"max_reasons": True},
    ],
)
def test_invalid_config_values_raise(overrides: dict) -> None:
    with pytest.raises(ValueError):
        EngineConfig(**overrides)


def test_load_engine_config_round_trips_json(tmp_path: Path) -> None:
    config_path = tmp_path / "engine.json"
    config_path.write_text(
        json.dumps({"closing_soon_days": 14, "exchange_rates": {"GHS": 0.08}, "max_workers": 4}),
        encoding="utf-8",
    )

    config = load_engine_config(config_path)

    assert config.closing_soon_days == 14
    assert config.max_workers == 4
    assert config.exchange_rates == {"GHS": 0.08, "USD": 1.0}
    assert EngineConfig.from_mapping(config.to_dict()) == config
    assert load_engine_config(None) == EngineConfig.baseline()


def test_load_engine_config_rejects_missing_or_non_object(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_engine_config(tmp_path / "missing.json")

    bad_path = tmp_path / "list.json"
    bad_path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_engine_config(bad_path)
