from __future__ import annotations

import math
from typing import Mapping

import numpy as np


def normalize_amount(
    amount: float | None,
    currency: str | None,
    exchange_rates: Mapping[str, float],
) -> float:
    """Convert `amount` into the reference currency; NaN when no rate is known."""
    if amount is None or currency is None:
        return math.nan
    rate = exchange_rates.get(currency.strip().upper())
    if rate is None:
        return math.nan
    return float(amount) * float(rate)


def normalize_amounts(
    amounts: list[float],
    currencies: list[str],
    exchange_rates: Mapping[str, float],
) -> np.ndarray:
    return np.array(
        [
            normalize_amount(amount, currency, exchange_rates)
            for amount, currency in zip(amounts, currencies, strict=True)
        ],
        dtype=float,
    )
