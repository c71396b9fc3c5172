"""Overlap primitives shared by every conflict scan.

All intervals are half-open: windows that only touch at a boundary
(``a.end == b.start``) do not overlap.
"""

from __future__ import annotations

from datetime import datetime, timedelta, tzinfo

from classbook.config import scheduling_tz
from classbook.domain.models import MINUTES_PER_DAY, TimeWindow


def overlaps(a: TimeWindow, b: TimeWindow) -> bool:
    """Return True if two weekday windows share at least one minute."""
    return (
        a.day_of_week == b.day_of_week
        and a.start_minute < b.end_minute
        and b.start_minute < a.end_minute
    )


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Absolute-time variant: conflict if a_start < b_end AND b_start < a_end."""
    return a_start < b_end and b_start < a_end


def aware(ts: datetime, tz: tzinfo | None = None) -> datetime:
    """Attach the scheduling timezone to a naive datetime; aware values pass through."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=tz or scheduling_tz())
    return ts


def weekday_of(ts: datetime, tz: tzinfo | None = None) -> int:
    """ISO weekday (Mon=1 .. Sun=7) of *ts* in the scheduling timezone."""
    return _local(ts, tz).isoweekday()


def windows_of(start: datetime, end: datetime, tz: tzinfo | None = None) -> list[TimeWindow]:
    """Split an absolute commitment into one weekday window per local day it covers.

    A session from Monday 23:00 to Tuesday 01:00 yields ``Mon [1380, 1440)``
    and ``Tue [0, 60)``.  An end exactly at midnight does not open a window on
    the next day.  Sub-minute sessions still occupy the minute they start in.
    """
    local_start = _local(start, tz)
    local_end = _local(end, tz)
    first_day = local_start.date()
    last_day = local_end.date()
    start_minute = _minute_of(local_start)
    end_minute = _minute_of(local_end)
    if end_minute == 0 and last_day > first_day:
        last_day -= timedelta(days=1)
        end_minute = MINUTES_PER_DAY

    windows: list[TimeWindow] = []
    day = first_day
    while day <= last_day:
        lo = start_minute if day == first_day else 0
        hi = end_minute if day == last_day else MINUTES_PER_DAY
        windows.append(
            TimeWindow(
                day_of_week=day.isoweekday(),
                start_minute=lo,
                end_minute=min(max(hi, lo + 1), MINUTES_PER_DAY),
            )
        )
        day += timedelta(days=1)
    return windows


def window_of(start: datetime, end: datetime, tz: tzinfo | None = None) -> TimeWindow:
    """The window of the first local day a commitment occupies, for display."""
    return windows_of(start, end, tz)[0]


def _minute_of(ts: datetime) -> int:
    return ts.hour * 60 + ts.minute


def _local(ts: datetime, tz: tzinfo | None) -> datetime:
    zone = tz or scheduling_tz()
    if ts.tzinfo is None:
        return ts.replace(tzinfo=zone)
    return ts.astimezone(zone)
