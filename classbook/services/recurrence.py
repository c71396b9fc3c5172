"""Service for expanding a class's weekly recurrence pattern into concrete
session commitments."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone, tzinfo

from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

from classbook.config import get_settings, scheduling_tz
from classbook.domain.models import GymClass, RecurrenceEntry, SessionCommitment
from classbook.services.overlap import aware

# ISO weekday (Mon=1 .. Sun=7) -> rrule weekday
_WEEKDAYS = {1: MO, 2: TU, 3: WE, 4: TH, 5: FR, 6: SA, 7: SU}


def compile_rrule(entry: RecurrenceEntry) -> str:
    """Render a recurrence entry as an RRULE string, e.g. ``FREQ=WEEKLY;BYDAY=MO``."""
    return f"FREQ=WEEKLY;BYDAY={_WEEKDAYS[entry.window.day_of_week]}"


def session_title(class_name: str, entry: RecurrenceEntry) -> str:
    return f"{class_name} - {entry.window.day_name} {entry.window.label()}"


def generate_sessions(
    gym_class: GymClass,
    now: datetime | None = None,
    tz: tzinfo | None = None,
    include_past: bool | None = None,
) -> list[SessionCommitment]:
    """Expand every recurrence entry of *gym_class* into dated sessions.

    One session is produced per weekly occurrence whose start falls inside
    ``[start_date, end_date)``.  Occurrences that start before *now* are
    dropped unless *include_past* (default: the ``generate_past_sessions``
    setting) is true.  Results are ordered by start time.
    """
    zone = tz or scheduling_tz()
    now = now or datetime.now(timezone.utc)
    if include_past is None:
        include_past = get_settings().generate_past_sessions

    range_start = aware(gym_class.start_date, zone)
    range_end = aware(gym_class.end_date, zone)
    first_day = datetime.combine(range_start.astimezone(zone).date(), time(), tzinfo=zone)

    sessions: list[SessionCommitment] = []
    for entry in gym_class.recurrence:
        window = entry.window
        rule = rrule(
            WEEKLY,
            byweekday=_WEEKDAYS[window.day_of_week],
            dtstart=first_day,
            until=range_end,
        )
        for day in rule:
            start = day + timedelta(minutes=window.start_minute)
            end = day + timedelta(minutes=window.end_minute)
            if start < range_start or start >= range_end:
                continue
            if not include_past and start < now:
                continue
            sessions.append(
                SessionCommitment(
                    class_id=gym_class.id,
                    room_id=entry.room_id,
                    trainer_ids=list(gym_class.trainer_ids),
                    title=session_title(gym_class.name, entry),
                    hours=round((window.end_minute - window.start_minute) / 60, 2),
                    start_time=start,
                    end_time=end,
                )
            )

    sessions.sort(key=lambda s: (s.start_time, s.room_id))
    return sessions
