from __future__ import annotations

import hashlib
from datetime import UTC, date, datetime

_SEPARATOR = "|"


def _normalize_text(value: str | None) -> str:
    if value is None:
        return ""
    return " ".join(value.strip().lower().split())


def _normalize_amount(value: float | None) -> str:
    if value is None:
        return ""
    return f"{float(value):.2f}"


def _normalize_currency(value: str | None) -> str:
    return (value or "").strip().upper()


def _normalize_deadline(value: date | datetime | None) -> str:
    if value is None:
        return ""
    if not isinstance(value, datetime):
        return value.isoformat()
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).date().isoformat()


def scholarship_identity(
    *,
    title: str,
    provider: str | None,
    amount: float | None,
    currency: str | None,
    deadline: date | datetime | None,
) -> str:
    """Canonical identity string; rows describing the same listing share it."""
    return _SEPARATOR.join(
        [
            _normalize_text(title),
            _normalize_text(provider),
            _normalize_amount(amount),
            _normalize_currency(currency),
            _normalize_deadline(deadline),
        ]
    )


def generate_scholarship_id(
    *,
    title: str,
    provider: str | None,
    amount: float | None,
    currency: str | None,
    deadline: date | datetime | None,
) -> str:
    identity = scholarship_identity(
        title=title,
        provider=provider,
        amount=amount,
        currency=currency,
        deadline=deadline,
    )
    return hashlib.sha1(identity.encode("utf-8")).hexdigest()
