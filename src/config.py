from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping


def _default_rates() -> dict[str, float]:
    return {"USD": 1.0}


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Tunables for scoring, ranking and document tracking.

    `exchange_rates` maps a currency code to the multiplier converting one unit
    of it into `reference_currency`.
    """

    max_reasons: int = 3
    closing_soon_days: int = 30
    high_match_threshold: int = 80
    document_validity_days: int = 365
    reference_currency: str = "USD"
    exchange_rates: Mapping[str, float] = field(default_factory=_default_rates)
    max_workers: int = 1

    def __post_init__(self) -> None:
        for field_name in ("max_reasons", "closing_soon_days", "document_validity_days", "max_workers"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"Config '{field_name}' must be an integer.")
        if self.max_reasons < 0:
            raise ValueError("Config 'max_reasons' must be non-negative.")
        if self.closing_soon_days < 0:
            raise ValueError("Config 'closing_soon_days' must be non-negative.")
        if self.document_validity_days <= 0:
            raise ValueError("Config 'document_validity_days' must be positive.")
        if self.max_workers < 1:
            raise ValueError("Config 'max_workers' must be at least 1.")
        if not 0 <= self.high_match_threshold <= 100:
            raise ValueError("Config 'high_match_threshold' must be between 0 and 100.")
        if not self.reference_currency or not isinstance(self.reference_currency, str):
            raise ValueError("Config 'reference_currency' must be a currency code.")

        rates: dict[str, float] = {}
        for code, rate in dict(self.exchange_rates).items():
            value = float(rate)
            if not math.isfinite(value) or value <= 0.0:
                raise ValueError(f"Exchange rate for '{code}' must be a positive finite number.")
            rates[str(code).strip().upper()] = value
        rates.setdefault(self.reference_currency.upper(), 1.0)
        object.__setattr__(self, "reference_currency", self.reference_currency.upper())
        object.__setattr__(self, "exchange_rates", rates)

    @property
    def document_validity(self) -> timedelta:
        return timedelta(days=self.document_validity_days)

    @classmethod
    def baseline(cls) -> EngineConfig:
        return cls()

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None) -> EngineConfig:
        values = payload or {}
        baseline = cls.baseline()
        return cls(
            max_reasons=int(values.get("max_reasons", baseline.max_reasons)),
            closing_soon_days=int(values.get("closing_soon_days", baseline.closing_soon_days)),
            high_match_threshold=int(values.get("high_match_threshold", baseline.high_match_threshold)),
            document_validity_days=int(
                values.get("document_validity_days", baseline.document_validity_days)
            ),
            reference_currency=str(values.get("reference_currency", baseline.reference_currency)),
            exchange_rates=dict(values.get("exchange_rates", baseline.exchange_rates)),
            max_workers=int(values.get("max_workers", baseline.max_workers)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_reasons": self.max_reasons,
            "closing_soon_days": self.closing_soon_days,
            "high_match_threshold": self.high_match_threshold,
            "document_validity_days": self.document_validity_days,
            "reference_currency": self.reference_currency,
            "exchange_rates": dict(self.exchange_rates),
            "max_workers": self.max_workers,
        }


def load_engine_config(path: Path | None) -> EngineConfig:
    if path is None:
        return EngineConfig.baseline()
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"Config file '{path}' must contain a JSON object.")
    return EngineConfig.from_mapping(payload)
