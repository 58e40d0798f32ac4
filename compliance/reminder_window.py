"""Recurring reminder windows anchored at a person's invitation date.

Each person gets a short eligibility window roughly once a year, staggered by
their own anchor, so a single run only nags the people currently inside
their window.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from compliance.compliance_models import ReminderWindow
from compliance.compliance_policy import (
    REMINDER_CYCLE_DAYS,
    REMINDER_SKIP_CYCLES,
    REMINDER_WINDOW_COUNT,
    REMINDER_WINDOW_DAYS,
)
from compliance_errors import MissingAnchorError


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_unset_anchor(anchor: Optional[datetime]) -> bool:
    """True for a missing anchor or the vendor's zero instant (year 1)."""
    return anchor is None or anchor.year <= 1


def build_windows(
    anchor: Optional[datetime],
    count: int = REMINDER_WINDOW_COUNT,
    *,
    cycle_days: int = REMINDER_CYCLE_DAYS,
    window_days: int = REMINDER_WINDOW_DAYS,
    skip_cycles: int = REMINDER_SKIP_CYCLES,
) -> List[ReminderWindow]:
    """Generate ``count`` consecutive windows after ``anchor``.

    The first window opens ``skip_cycles`` cycles after the anchor; each later
    window opens one cycle after the previous one and every window lasts
    ``window_days``.

    Raises:
        MissingAnchorError: the anchor is unset, so no window is meaningful.
    """
    if is_unset_anchor(anchor):
        raise MissingAnchorError("No invitation date recorded; reminder windows are undefined")

    cycle = timedelta(days=cycle_days)
    length = timedelta(days=window_days)
    start = _as_utc(anchor) + cycle * skip_cycles

    windows: List[ReminderWindow] = []
    for index in range(count):
        windows.append(ReminderWindow(index=index, start=start, end=start + length))
        start = start + cycle
    return windows


def find_active_window(
    now: datetime, windows: Sequence[ReminderWindow]
) -> Optional[ReminderWindow]:
    """Return the first window strictly containing ``now``, or ``None``.

    Both boundaries are exclusive.
    """
    now = _as_utc(now)
    for window in windows:
        if window.start < now < window.end:
            return window
    return None
