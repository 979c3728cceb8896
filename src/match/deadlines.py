from __future__ import annotations

from datetime import datetime, timedelta

DEFAULT_CLOSING_SOON_DAYS = 30
_ONE_DAY = timedelta(days=1)


def days_remaining(deadline: datetime, now: datetime) -> int:
    """Whole days until `deadline`, rounded up; negative once the deadline has passed."""
    delta = deadline - now
    return -((-delta) // _ONE_DAY)


def is_closing_soon(
    deadline: datetime,
    now: datetime,
    threshold_days: int = DEFAULT_CLOSING_SOON_DAYS,
) -> bool:
    remaining = days_remaining(deadline, now)
    return 0 < remaining <= threshold_days


def is_past(deadline: datetime, now: datetime) -> bool:
    return now > deadline
