"""Monthly draw calendar."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

DRAW_TIMEZONE = ZoneInfo("America/New_York")
DRAW_DAY = 9
DRAW_TIME = time(20, 0)
SCORE_LOCK_BEFORE_DRAW = timedelta(hours=24)

# Operator presets for the analysed score range, as (min, max).
SCORE_RANGE_PRESETS: dict[str, tuple[int, int]] = {
    "full": (1, 45),
    "common": (5, 45),
    "typical": (10, 40),
    "conservative": (15, 38),
    "narrow": (18, 36),
}


def period_start_for(at: Optional[datetime] = None) -> date:
    """First day of the draw month containing ``at`` (in the draw timezone)."""
    at = at or datetime.now(timezone.utc)
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    local = at.astimezone(DRAW_TIMEZONE)
    return date(local.year, local.month, 1)


def next_period_start(period_start: date) -> date:
    if period_start.month == 12:
        return date(period_start.year + 1, 1, 1)
    return date(period_start.year, period_start.month + 1, 1)


def cycle_label(period_start: date) -> str:
    """Return e.g. ``"October 2026"``."""
    return period_start.strftime("%B %Y")


def draw_datetime_for(period_start: date) -> datetime:
    """The draw instant of the month, in UTC."""
    local = datetime.combine(
        date(period_start.year, period_start.month, DRAW_DAY), DRAW_TIME, tzinfo=DRAW_TIMEZONE
    )
    return local.astimezone(timezone.utc)


def score_cutoff_for(period_start: date) -> datetime:
    """Scores entered after this instant do not count for the month's draw."""
    return draw_datetime_for(period_start) - SCORE_LOCK_BEFORE_DRAW


def upcoming_period_start(at: Optional[datetime] = None) -> date:
    """Month whose draw is still ahead of ``at``.

    Before the 9th at 20:00 New York time this is the current month; from that
    instant on it is the following month.
    """
    at = at or datetime.now(timezone.utc)
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    period_start = period_start_for(at)
    if at >= draw_datetime_for(period_start):
        return next_period_start(period_start)
    return period_start


def resolve_range_preset(name: str) -> tuple[int, int]:
    try:
        return SCORE_RANGE_PRESETS[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"Unknown score range preset {name!r}; choose one of {sorted(SCORE_RANGE_PRESETS)}"
        ) from None


__all__ = [
    "SCORE_RANGE_PRESETS",
    "cycle_label",
    "draw_datetime_for",
    "next_period_start",
    "period_start_for",
    "resolve_range_preset",
    "score_cutoff_for",
    "upcoming_period_start",
]
