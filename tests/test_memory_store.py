"""Tests for the in-memory repositories and the commitment store queries."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from classbook.domain.errors import CommitmentOverlapError, NotFoundError
from classbook.domain.models import Booking, BookingStatus, SessionCommitment, TrainerCommitment
from classbook.repos.memory import MemoryCommitmentStore, create_commitment_store

_DAY = datetime(2026, 3, 2, tzinfo=timezone.utc)


def _at(hour: int, minute: int = 0) -> datetime:
    return _DAY + timedelta(hours=hour, minutes=minute)


def _session(
    start: datetime,
    end: datetime,
    room_id: str = "R101",
    class_id: str = "C1",
    trainers: list[str] | None = None,
) -> SessionCommitment:
    return SessionCommitment(
        class_id=class_id,
        room_id=room_id,
        trainer_ids=trainers or [],
        start_time=start,
        end_time=end,
    )


# ---------------------------------------------------------------------------
# Range queries
# ---------------------------------------------------------------------------


def test_room_range_query_is_half_open(store: MemoryCommitmentStore):
    store.sessions.add(_session(_at(10), _at(11)))

    assert store.find_sessions_by_room_in_range("R101", _at(11), _at(12)) == []
    assert store.find_sessions_by_room_in_range("R101", _at(9), _at(10)) == []
    assert len(store.find_sessions_by_room_in_range("R101", _at(10, 59), _at(12))) == 1


def test_trainer_range_query_matches_any_trainer(store):
    store.sessions.add(_session(_at(10), _at(11), trainers=["T1", "T2"]))
    store.sessions.add(_session(_at(12), _at(13), trainers=["T3"]))

    found = store.find_sessions_by_trainers_in_range(["T2", "T9"], _at(0), _at(23))

    assert [s.trainer_ids for s in found] == [["T1", "T2"]]


def test_soft_deleted_sessions_are_hidden(store):
    store.sessions.add(_session(_at(10), _at(11)))
    store.sessions.soft_delete_for_class("C1")

    assert store.find_sessions_by_room_in_range("R101", _at(0), _at(23)) == []
    assert store.sessions.list_for_class("C1") == []


def test_schedule_slots_carry_their_booking(store):
    booked = TrainerCommitment(trainer_id="T1", start_time=_at(9), end_time=_at(10))
    cancelled = TrainerCommitment(trainer_id="T1", start_time=_at(11), end_time=_at(12))
    removed = TrainerCommitment(trainer_id="T1", start_time=_at(13), end_time=_at(14), is_deleted=True)
    for slot in (booked, cancelled, removed):
        store.schedules.add(slot)
    store.bookings.add(Booking(schedule_id=booked.id, user_id="M1", status=BookingStatus.BOOKING))
    store.bookings.add(Booking(schedule_id=cancelled.id, user_id="M1", status=BookingStatus.CANCELLED))

    slots = store.find_trainer_schedule_in_range(["T1"], _at(0), _at(23))

    assert [s.id for s in slots] == [booked.id, cancelled.id]
    assert slots[0].active_booking is not None
    assert slots[0].active_booking.user_id == "M1"
    assert slots[1].booking is not None
    assert slots[1].active_booking is None


def test_name_lookups_skip_unknown_ids(store):
    assert store.get_room_names(["R101", "R404"]) == {"R101": "Studio 101"}
    assert store.get_trainer_names(["T1", "T1"]) == {"T1": "Alex Rivera"}
    assert store.get_member_names(["M1"]) == {"M1": "Jordan Lee"}
    assert store.get_class_names([]) == {}


def test_seeded_store_has_sample_data():
    store = create_commitment_store()
    assert store.get_room("R101") is not None
    assert store.get_trainer("T1") is not None
    slots = store.find_trainer_schedule_in_range(
        ["T1", "T2"],
        datetime.now(timezone.utc),
        datetime.now(timezone.utc) + timedelta(days=7),
    )
    assert len(slots) == 2
    assert create_commitment_store(seed=False).get_room("R101") is None


# ---------------------------------------------------------------------------
# Overlap constraint on writes
# ---------------------------------------------------------------------------


def test_overlapping_session_in_same_room_is_rejected(store):
    store.sessions.add(_session(_at(10), _at(11)))

    with pytest.raises(CommitmentOverlapError) as exc_info:
        store.sessions.add(_session(_at(10, 30), _at(11, 30), class_id="C2"))

    assert exc_info.value.code == "commitment_overlap"
    assert len(store.sessions.list_all()) == 1


def test_touching_sessions_are_accepted(store):
    store.sessions.add(_session(_at(10), _at(11)))
    store.sessions.add(_session(_at(11), _at(12)))
    assert len(store.sessions.list_all()) == 2


def test_trainer_shared_across_classes_is_rejected(store):
    store.sessions.add(_session(_at(10), _at(11), trainers=["T1"]))

    with pytest.raises(CommitmentOverlapError):
        store.sessions.add(_session(_at(10), _at(11), room_id="R102", class_id="C2", trainers=["T1"]))

    # Same class, other room: allowed.
    store.sessions.add(_session(_at(10), _at(11), room_id="R102", trainers=["T1"]))


def test_add_many_is_all_or_nothing(store):
    batch = [
        _session(_at(8), _at(9)),
        _session(_at(10), _at(11)),
        _session(_at(10, 30), _at(11, 30)),
    ]
    with pytest.raises(CommitmentOverlapError):
        store.sessions.add_many(batch)
    assert store.sessions.list_all() == []


def test_update_ignores_the_session_being_moved(store):
    session = _session(_at(10), _at(11))
    store.sessions.add(session)

    updated = store.sessions.update(session.id, start_time=_at(10, 30), end_time=_at(11, 30))

    assert updated.start_time == _at(10, 30)
    assert updated.updated_at is not None
    assert store.sessions.get(session.id) == updated


def test_update_into_another_session_is_rejected(store):
    store.sessions.add(_session(_at(10), _at(11)))
    other = _session(_at(12), _at(13), class_id="C2")
    store.sessions.add(other)

    with pytest.raises(CommitmentOverlapError):
        store.sessions.update(other.id, start_time=_at(10, 30))

    assert store.sessions.get(other.id).start_time == _at(12)


def test_update_missing_session(store):
    with pytest.raises(NotFoundError):
        store.sessions.update("missing", title="x")


def test_concurrent_writers_cannot_double_book_a_room(store):
    """Two requests that both passed a scan race to write; only one wins."""
    barrier = threading.Barrier(8)
    outcomes: list[str] = []
    lock = threading.Lock()

    def write(n: int) -> None:
        barrier.wait()
        try:
            store.sessions.add(_session(_at(10), _at(11), class_id=f"C{n}"))
            result = "ok"
        except CommitmentOverlapError:
            result = "rejected"
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=write, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("rejected") == 7
    assert len(store.sessions.list_all()) == 1


def test_add_many_reads_the_stored_sessions_once(store, monkeypatch):
    store.sessions.add(_session(_at(0), _at(1)))
    calls = []
    original = store.sessions._live

    def counting_live():
        calls.append(1)
        return original()

    monkeypatch.setattr(store.sessions, "_live", counting_live)
    store.sessions.add_many(
        [_session(_DAY + timedelta(hours=2 + n), _DAY + timedelta(hours=3 + n)) for n in range(50)]
    )

    assert len(calls) == 1
    assert len(store.sessions.list_all()) == 51


def test_queries_stay_consistent_while_sessions_are_written(store):
    """Range queries running next to a large batch write never see a half-updated dict."""
    batch = [
        _session(_DAY + timedelta(minutes=30 * n), _DAY + timedelta(minutes=30 * (n + 1)))
        for n in range(1500)
    ]
    slots = [
        TrainerCommitment(
            trainer_id="T1",
            start_time=_DAY + timedelta(hours=n),
            end_time=_DAY + timedelta(hours=n, minutes=30),
        )
        for n in range(500)
    ]
    done = threading.Event()
    errors: list[Exception] = []
    window = (_DAY, _DAY + timedelta(days=60))

    def read() -> None:
        while not done.is_set():
            try:
                store.find_sessions_by_room_in_range("R101", *window)
                store.find_trainer_schedule_in_range(["T1"], *window)
            except Exception as exc:
                errors.append(exc)
                return

    readers = [threading.Thread(target=read) for _ in range(4)]
    for t in readers:
        t.start()
    try:
        for start in range(0, len(batch), 100):
            store.sessions.add_many(batch[start : start + 100])
        for slot in slots:
            store.schedules.add(slot)
    finally:
        done.set()
        for t in readers:
            t.join()

    assert errors == []
    assert len(store.find_sessions_by_room_in_range("R101", *window)) == 1500
    assert len(store.find_trainer_schedule_in_range(["T1"], *window)) == 500
