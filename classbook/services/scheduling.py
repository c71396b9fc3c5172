"""Write paths for classes and class sessions.

Each write follows PROPOSE -> SCAN -> (REJECT | COMMIT): the conflict scans
run first and nothing is stored unless every report is clean.  The session
repository re-checks overlaps under its own lock when the write lands, so a
concurrent writer that slipped past the scan is still rejected.
"""

from __future__ import annotations

import logging
from datetime import datetime

from classbook.domain.errors import NotFoundError, ScheduleConflictError
from classbook.domain.models import (
    ClassCreationResult,
    CreateClassRequest,
    GymClass,
    SessionCommitment,
    UpdateClassSessionRequest,
)
from classbook.repos.memory import ClassRepository, SessionRepository
from classbook.repos.store import CommitmentStore
from classbook.services.conflicts import (
    check_room_slot,
    check_trainer_slot,
    scan_rooms,
    scan_trainers,
)
from classbook.services.recurrence import compile_rrule, generate_sessions

logger = logging.getLogger(__name__)


def create_class(
    request: CreateClassRequest,
    store: CommitmentStore,
    classes: ClassRepository,
    sessions: SessionRepository,
    now: datetime | None = None,
) -> ClassCreationResult:
    """Create a class and its sessions if no room or trainer is double-booked.

    Raises ``NotFoundError`` for an unknown room and ``ScheduleConflictError``
    carrying the offending report when any scan finds a conflict.
    """
    pattern = request.recurrence_pattern

    room_report = scan_rooms(store, request.start_date, request.end_date, pattern)
    room_report.raise_for_condition()
    if room_report.has_conflict:
        raise ScheduleConflictError(room_report.message, room_report)

    trainer_report = scan_trainers(
        store, request.trainer_ids, request.start_date, request.end_date, pattern
    )
    if trainer_report.has_conflict:
        raise ScheduleConflictError(trainer_report.message, trainer_report)

    gym_class = GymClass(
        name=request.name,
        description=request.description,
        capacity=request.capacity,
        trainer_ids=list(request.trainer_ids),
        start_date=request.start_date,
        end_date=request.end_date,
        recurrence=pattern,
    )
    generated = generate_sessions(gym_class, now=now)
    # Sessions first: if the store rejects them the class is never saved.
    sessions.add_many(generated)
    classes.add(gym_class)

    logger.info(
        "Created class %s (%s) with %d session(s) [%s]",
        gym_class.id,
        gym_class.name,
        len(generated),
        ", ".join(compile_rrule(e) for e in pattern),
    )
    return ClassCreationResult(
        gym_class=gym_class,
        sessions_created=len(generated),
        message=f"Class created with {len(generated)} session(s)",
    )


def update_class_session(
    session_id: str,
    request: UpdateClassSessionRequest,
    store: CommitmentStore,
    sessions: SessionRepository,
) -> SessionCommitment:
    """Reschedule or re-staff one session after checking its trainers and room."""
    current = sessions.get(session_id)
    if current is None or current.is_deleted:
        raise NotFoundError(
            f"Class session {session_id} not found", details={"session_id": session_id}
        )

    start_time = request.start_time or current.start_time
    end_time = request.end_time or current.end_time
    trainer_ids = request.trainer_ids if request.trainer_ids is not None else current.trainer_ids

    for trainer_id in trainer_ids:
        report = check_trainer_slot(
            store,
            trainer_id,
            start_time,
            end_time,
            current.class_id,
            exclude_session_id=session_id,
        )
        report.raise_for_condition()
        if report.has_conflict:
            raise ScheduleConflictError(report.message, report)

    if request.room_id is not None or request.start_time or request.end_time:
        report = check_room_slot(
            store, session_id, start_time, end_time, request.room_id or current.room_id
        )
        report.raise_for_condition()
        if report.has_conflict:
            raise ScheduleConflictError(report.message, report)

    changes = request.model_dump(exclude_none=True)
    updated = sessions.update(session_id, **changes)
    logger.info("Updated class session %s: %s", session_id, sorted(changes))
    return updated


def delete_class(class_id: str, classes: ClassRepository, sessions: SessionRepository) -> int:
    """Soft-delete a class and its sessions; returns how many sessions were removed."""
    classes.soft_delete(class_id)
    removed = sessions.soft_delete_for_class(class_id)
    logger.info("Deleted class %s and %d session(s)", class_id, removed)
    return removed
