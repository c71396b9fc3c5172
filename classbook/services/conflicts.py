"""Conflict scans for rooms and trainers.

Every function here only reads from the store it is given and returns a
``ConflictReport``; a conflict is a normal result, never an exception.
Recurring proposals are compared by weekday and time of day against every
commitment in the class's date range.  Single-session edits compare absolute
intervals.

Overlap rule: conflict if a.start < b.end AND b.start < a.end.
Exact boundary touches (end == start) are NOT considered conflicts.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, tzinfo

from classbook.domain.errors import InvalidScheduleError, NotFoundError
from classbook.domain.models import (
    ConflictEntry,
    ConflictReport,
    RecurrenceEntry,
    ReportCondition,
)
from classbook.repos.store import CommitmentStore, store_errors
from classbook.services.overlap import aware, intervals_overlap, overlaps, window_of, windows_of
from classbook.services.sources import (
    CommitmentSource,
    Hit,
    SessionSource,
    default_sources,
    unique,
)

logger = logging.getLogger(__name__)


def _require_interval(
    start: datetime, end: datetime, tz: tzinfo | None, what: str = "start_time"
) -> tuple[datetime, datetime]:
    """Return the interval with naive ends placed in the scheduling timezone."""
    start, end = aware(start, tz), aware(end, tz)
    if start >= end:
        raise InvalidScheduleError(
            f"{what} must be before the end of the interval",
            details={"start": start.isoformat(), "end": end.isoformat()},
        )
    return start, end


def _sorted(entries: list[ConflictEntry]) -> list[ConflictEntry]:
    return sorted(
        entries,
        key=lambda e: (e.start_time, e.commitment_id, e.trainer_id or "", e.window.start_minute),
    )


def _room_not_found(room_id: str) -> ConflictReport:
    logger.info("Room %s not found or deleted", room_id)
    return ConflictReport.for_condition(
        ReportCondition.ROOM_NOT_FOUND,
        message=f"Room {room_id} not found",
        subject_id=room_id,
    )


# ---------------------------------------------------------------------------
# Rooms
# ---------------------------------------------------------------------------


def scan_room(
    store: CommitmentStore,
    room_id: str,
    range_start: datetime,
    range_end: datetime,
    recurrence: Sequence[RecurrenceEntry],
    exclude_session_id: str | None = None,
    tz: tzinfo | None = None,
) -> ConflictReport:
    """Find sessions in *room_id* that collide with the recurrence pattern.

    Only the recurrence entries bound to *room_id* are considered.  A missing
    or soft-deleted room yields a ``ROOM_NOT_FOUND`` report instead of a clean
    one.
    """
    range_start, range_end = _require_interval(range_start, range_end, tz, "range_start")
    proposed = [e for e in recurrence if e.room_id == room_id]

    with store_errors("room lookup"):
        room = store.get_room(room_id)
    if room is None or room.is_deleted:
        return _room_not_found(room_id)

    with store_errors("room conflict scan"):
        candidates = store.find_sessions_by_room_in_range(room_id, range_start, range_end)
    logger.debug(
        "Room %s: %d candidate session(s) for %d window(s)",
        room_id,
        len(candidates),
        len(proposed),
    )

    hits: list[Hit] = []
    for session in candidates:
        if session.id == exclude_session_id:
            continue
        for window in windows_of(session.start_time, session.end_time, tz):
            for entry in proposed:
                if overlaps(window, entry.window):
                    hits.append(Hit(session, None, window, entry.window))

    entries = _sorted(SessionSource().describe(store, hits))
    if entries:
        logger.warning("Room %s has %d conflict(s)", room_id, len(entries))
        message = f"Found {len(entries)} conflict(s) in {room.name}"
    else:
        message = f"No conflicts in {room.name}"
    return ConflictReport.from_entries(
        entries, message=message, subject_id=room_id, subject_name=room.name
    )


def scan_rooms(
    store: CommitmentStore,
    range_start: datetime,
    range_end: datetime,
    recurrence: Sequence[RecurrenceEntry],
    exclude_session_id: str | None = None,
    tz: tzinfo | None = None,
) -> ConflictReport:
    """Run ``scan_room`` for every room the pattern uses and merge the results.

    The first room that does not exist short-circuits with its report.
    """
    entries: list[ConflictEntry] = []
    for room_id in unique(e.room_id for e in recurrence):
        report = scan_room(
            store, room_id, range_start, range_end, recurrence, exclude_session_id, tz
        )
        if report.condition is not None:
            return report
        entries.extend(report.entries)

    entries = _sorted(entries)
    if entries:
        details = "".join(
            f" Conflict in {e.room_name or e.room_id} on {e.window.day_name}." for e in entries
        )
        message = f"Found {len(entries)} conflict(s).{details}"
    else:
        message = "No room conflicts found"
    return ConflictReport.from_entries(entries, message=message)


# ---------------------------------------------------------------------------
# Trainers
# ---------------------------------------------------------------------------


def scan_trainers(
    store: CommitmentStore,
    trainer_ids: Sequence[str],
    range_start: datetime,
    range_end: datetime,
    recurrence: Sequence[RecurrenceEntry],
    tz: tzinfo | None = None,
    exclude_class_id: str | None = None,
    sources: Sequence[CommitmentSource] | None = None,
) -> ConflictReport:
    """Find sessions and schedule slots that keep the trainers busy.

    Each source is queried once for the whole date range.  A session taught
    by several of the requested trainers is reported once per trainer.  An
    open schedule slot counts as a conflict just like a booked one.
    """
    range_start, range_end = _require_interval(range_start, range_end, tz, "range_start")
    requested = unique(trainer_ids)
    per_trainer: dict[str, list[ConflictEntry]] = {t: [] for t in requested}
    if not requested or not recurrence:
        return ConflictReport.from_entries(
            [], message="No trainer conflicts found", per_trainer=per_trainer
        )

    entries: list[ConflictEntry] = []
    for source in sources or default_sources(exclude_class_id=exclude_class_id):
        candidates = source.fetch(store, requested, range_start, range_end)
        logger.debug(
            "%s source: %d candidate(s) for %d trainer(s)",
            source.kind,
            len(candidates),
            len(requested),
        )
        hits: list[Hit] = []
        for record in candidates:
            matched = [
                (window, e.window)
                for window in windows_of(record.start_time, record.end_time, tz)
                for e in recurrence
                if overlaps(window, e.window)
            ]
            if not matched:
                continue
            for trainer_id in source.occupants(record, requested):
                hits.extend(Hit(record, trainer_id, w, p) for w, p in matched)
        entries.extend(source.describe(store, hits))

    entries = _sorted(entries)
    for entry in entries:
        per_trainer[entry.trainer_id].append(entry)

    report = ConflictReport.from_entries(entries, message="", per_trainer=per_trainer)
    if entries:
        logger.warning(
            "%d trainer(s) have %d conflict(s)", report.trainers_with_conflicts, len(entries)
        )
        report.message = f"{report.trainers_with_conflicts} trainer(s) have conflicts"
    else:
        report.message = "No trainer conflicts found"
    return report


# ---------------------------------------------------------------------------
# Single-session edits
# ---------------------------------------------------------------------------


def check_trainer_slot(
    store: CommitmentStore,
    trainer_id: str,
    start_time: datetime,
    end_time: datetime,
    class_id: str,
    exclude_session_id: str | None = None,
    tz: tzinfo | None = None,
) -> ConflictReport:
    """Check one trainer against one absolute interval for a class session.

    The trainer must already be assigned to the class; otherwise a
    ``TRAINER_NOT_ASSIGNED`` (or ``TRAINER_NOT_FOUND``) report is returned
    without looking at any commitments.  Other sessions of the same class
    never count as conflicts.
    """
    start_time, end_time = _require_interval(start_time, end_time, tz)

    with store_errors("class lookup"):
        gym_class = store.get_class(class_id)
    if gym_class is None or gym_class.is_deleted:
        raise NotFoundError(f"Class {class_id} not found", details={"class_id": class_id})

    if trainer_id not in gym_class.trainer_ids:
        with store_errors("trainer lookup"):
            trainer = store.get_trainer(trainer_id)
        if trainer is None:
            return ConflictReport.for_condition(
                ReportCondition.TRAINER_NOT_FOUND,
                message=f"Trainer {trainer_id} not found",
                subject_id=trainer_id,
            )
        return ConflictReport.for_condition(
            ReportCondition.TRAINER_NOT_ASSIGNED,
            message=(
                f"Trainer {trainer.name} is not assigned to class {gym_class.name}. "
                "Add the trainer to the class first."
            ),
            subject_id=trainer_id,
            subject_name=trainer.name,
        )

    proposed = window_of(start_time, end_time, tz)
    entries: list[ConflictEntry] = []
    sources = default_sources(exclude_class_id=class_id, exclude_session_id=exclude_session_id)
    for source in sources:
        hits = [
            Hit(record, trainer_id, window_of(record.start_time, record.end_time, tz), proposed)
            for record in source.fetch(store, [trainer_id], start_time, end_time)
            if intervals_overlap(start_time, end_time, record.start_time, record.end_time)
        ]
        entries.extend(source.describe(store, hits))
    with store_errors("trainer lookup"):
        trainer_name = store.get_trainer_names([trainer_id]).get(trainer_id, trainer_id)

    entries = _sorted(entries)
    if entries:
        logger.warning(
            "Trainer %s has %d conflict(s) at %s", trainer_id, len(entries), start_time.isoformat()
        )
        message = f"Trainer {trainer_name} has a schedule conflict"
    else:
        message = f"Trainer {trainer_name} is available"
    return ConflictReport.from_entries(
        entries,
        message=message,
        per_trainer={trainer_id: entries},
        subject_id=trainer_id,
        subject_name=trainer_name,
    )


def check_room_slot(
    store: CommitmentStore,
    session_id: str | None,
    start_time: datetime,
    end_time: datetime,
    room_id: str,
    tz: tzinfo | None = None,
) -> ConflictReport:
    """Check one room against one absolute interval, ignoring *session_id* itself."""
    start_time, end_time = _require_interval(start_time, end_time, tz)

    with store_errors("room lookup"):
        room = store.get_room(room_id)
    if room is None or room.is_deleted:
        return _room_not_found(room_id)

    with store_errors("room slot check"):
        candidates = store.find_sessions_by_room_in_range(room_id, start_time, end_time)

    proposed = window_of(start_time, end_time, tz)
    hits = [
        Hit(s, None, window_of(s.start_time, s.end_time, tz), proposed)
        for s in candidates
        if s.id != session_id and intervals_overlap(start_time, end_time, s.start_time, s.end_time)
    ]
    entries = _sorted(SessionSource().describe(store, hits))
    if entries:
        logger.warning("Room %s has %d conflict(s) at %s", room_id, len(entries), start_time.isoformat())
        message = f"Room {room.name} is already booked at that time"
    else:
        message = f"Room {room.name} is available"
    return ConflictReport.from_entries(
        entries, message=message, subject_id=room_id, subject_name=room.name
    )
