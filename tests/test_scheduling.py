"""Tests for the class-creation and session-update write paths."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from classbook.domain.errors import (
    NotFoundError,
    ScheduleConflictError,
    TrainerNotAssignedError,
)
from classbook.domain.models import (
    Booking,
    ClockTime,
    ConflictType,
    CreateClassRequest,
    RecurrenceSlot,
    TrainerCommitment,
    UpdateClassSessionRequest,
)
from classbook.repos.memory import MemoryCommitmentStore
from classbook.services.conflicts import scan_room
from classbook.services.scheduling import create_class, delete_class, update_class_session

_NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)
_START = datetime(2026, 3, 1, tzinfo=timezone.utc)
_END = datetime(2026, 3, 29, tzinfo=timezone.utc)


def _slot(day: int, start: tuple[int, int], end: tuple[int, int], room_id: str = "R101") -> RecurrenceSlot:
    return RecurrenceSlot(
        day_of_week=day,
        start_time=ClockTime(hour=start[0], minute=start[1]),
        end_time=ClockTime(hour=end[0], minute=end[1]),
        room_id=room_id,
    )


def _request(name: str, *slots: RecurrenceSlot, trainers: list[str] | None = None) -> CreateClassRequest:
    return CreateClassRequest(
        name=name,
        trainer_ids=trainers if trainers is not None else ["T1"],
        start_date=_START,
        end_date=_END,
        recurrence=list(slots),
    )


def _create(store: MemoryCommitmentStore, request: CreateClassRequest):
    return create_class(request, store, store.classes, store.sessions, now=_NOW)


# ---------------------------------------------------------------------------
# create_class
# ---------------------------------------------------------------------------


def test_create_class_generates_sessions(store):
    result = _create(store, _request("Yoga", _slot(1, (10, 0), (11, 30)), _slot(3, (9, 0), (10, 0))))

    assert result.sessions_created == 8
    assert result.message == "Class created with 8 session(s)"
    assert store.classes.get(result.gym_class.id) is not None
    sessions = store.sessions.list_for_class(result.gym_class.id)
    assert len(sessions) == 8
    assert sessions[0].title == "Yoga - Monday 10:00-11:30"


def test_room_conflict_blocks_creation(store):
    _create(store, _request("Yoga", _slot(1, (10, 0), (11, 30))))

    with pytest.raises(ScheduleConflictError) as exc_info:
        _create(store, _request("Spin", _slot(1, (10, 30), (11, 0)), trainers=["T2"]))

    report = exc_info.value.report
    assert report.count == 4
    assert report.entries[0].other_party == "Yoga"
    assert exc_info.value.message.startswith("Found 4 conflict(s).")
    assert [c.name for c in store.classes.list_all()] == ["Yoga"]


def test_touching_slot_can_be_created(store):
    _create(store, _request("Yoga", _slot(1, (10, 0), (11, 30))))
    result = _create(store, _request("Spin", _slot(1, (11, 30), (12, 0)), trainers=["T2"]))
    assert result.sessions_created == 4


def test_trainer_booking_blocks_creation(store):
    slot = TrainerCommitment(
        trainer_id="T1",
        start_time=datetime(2026, 3, 4, 9, tzinfo=timezone.utc),
        end_time=datetime(2026, 3, 4, 10, tzinfo=timezone.utc),
    )
    store.schedules.add(slot)
    store.bookings.add(Booking(schedule_id=slot.id, user_id="M1"))

    with pytest.raises(ScheduleConflictError) as exc_info:
        _create(store, _request("Yoga", _slot(3, (9, 30), (10, 30))))

    report = exc_info.value.report
    assert report.entries[0].type == ConflictType.BOOKING
    assert report.message == "1 trainer(s) have conflicts"
    assert store.sessions.list_all() == []


def test_trainer_teaching_elsewhere_blocks_creation(store):
    _create(store, _request("Yoga", _slot(1, (10, 0), (11, 0))))

    with pytest.raises(ScheduleConflictError) as exc_info:
        _create(store, _request("Spin", _slot(1, (10, 30), (11, 30), room_id="R102")))

    assert exc_info.value.report.per_trainer["T1"]


def test_unknown_room_raises_not_found(store):
    with pytest.raises(NotFoundError) as exc_info:
        _create(store, _request("Yoga", _slot(1, (10, 0), (11, 0), room_id="R404")))
    assert exc_info.value.code == "room_not_found"


# ---------------------------------------------------------------------------
# update_class_session
# ---------------------------------------------------------------------------


@pytest.fixture()
def two_classes(store):
    yoga = _create(store, _request("Yoga", _slot(4, (14, 0), (15, 0))))
    spin = _create(store, _request("Spin", _slot(4, (16, 0), (17, 0), room_id="R102"), trainers=["T2"]))
    return yoga.gym_class, spin.gym_class


def test_update_without_moving_is_clean(store, two_classes):
    yoga, _ = two_classes
    session = store.sessions.list_for_class(yoga.id)[0]

    updated = update_class_session(
        session.id, UpdateClassSessionRequest(title="Renamed"), store, store.sessions
    )

    assert updated.title == "Renamed"
    assert updated.start_time == session.start_time


def test_moving_into_occupied_room_is_rejected(store, two_classes):
    yoga, spin = two_classes
    session = store.sessions.list_for_class(yoga.id)[0]
    spin_session = store.sessions.list_for_class(spin.id)[0]

    with pytest.raises(ScheduleConflictError) as exc_info:
        update_class_session(
            session.id,
            UpdateClassSessionRequest(
                room_id="R102",
                start_time=spin_session.start_time,
                end_time=spin_session.end_time,
            ),
            store,
            store.sessions,
        )

    assert exc_info.value.report.entries[0].commitment_id == spin_session.id
    assert store.sessions.get(session.id).room_id == "R101"


def test_adding_unassigned_trainer_is_rejected(store, two_classes):
    yoga, _ = two_classes
    session = store.sessions.list_for_class(yoga.id)[0]

    with pytest.raises(TrainerNotAssignedError):
        update_class_session(
            session.id,
            UpdateClassSessionRequest(trainer_ids=["T1", "T2"]),
            store,
            store.sessions,
        )


def test_update_missing_session(store):
    with pytest.raises(NotFoundError):
        update_class_session("nope", UpdateClassSessionRequest(title="x"), store, store.sessions)


# ---------------------------------------------------------------------------
# delete_class
# ---------------------------------------------------------------------------


def test_deleted_class_frees_its_room(store, two_classes):
    yoga, _ = two_classes
    entry = yoga.recurrence[0]

    assert scan_room(store, "R101", _START, _END, [entry]).has_conflict
    removed = delete_class(yoga.id, store.classes, store.sessions)

    assert removed == 4
    assert not scan_room(store, "R101", _START, _END, [entry]).has_conflict
    with pytest.raises(NotFoundError):
        delete_class(yoga.id, store.classes, store.sessions)
