"""In-memory repositories and the commitment store built on top of them."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from classbook.domain.errors import CommitmentOverlapError, NotFoundError
from classbook.domain.models import (
    Booking,
    GymClass,
    Member,
    Room,
    SessionCommitment,
    Trainer,
    TrainerCommitment,
)
from classbook.services.overlap import intervals_overlap

logger = logging.getLogger(__name__)


def _in_range(start_time: datetime, end_time: datetime, start: datetime, end: datetime) -> bool:
    return start_time < end and start < end_time


class RoomRepository:
    """Dict-backed store for Room instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Room] = {}

    def add(self, room: Room) -> None:
        self._store[room.id] = room

    def get(self, room_id: str) -> Room | None:
        return self._store.get(room_id)

    def list_all(self) -> list[Room]:
        return [r for r in self._store.values() if not r.is_deleted]


class TrainerRepository:
    """Dict-backed store for Trainer instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, Trainer] = {}

    def add(self, trainer: Trainer) -> None:
        self._store[trainer.id] = trainer

    def get(self, trainer_id: str) -> Trainer | None:
        return self._store.get(trainer_id)

    def list_all(self) -> list[Trainer]:
        return list(self._store.values())


class MemberRepository:
    def __init__(self) -> None:
        self._store: dict[str, Member] = {}

    def add(self, member: Member) -> None:
        self._store[member.id] = member

    def get(self, member_id: str) -> Member | None:
        return self._store.get(member_id)


class ClassRepository:
    """Dict-backed store for GymClass instances, keyed by id."""

    def __init__(self) -> None:
        self._store: dict[str, GymClass] = {}

    def add(self, gym_class: GymClass) -> None:
        self._store[gym_class.id] = gym_class

    def get(self, class_id: str) -> GymClass | None:
        return self._store.get(class_id)

    def list_all(self) -> list[GymClass]:
        return [c for c in self._store.values() if not c.is_deleted]

    def soft_delete(self, class_id: str) -> None:
        gym_class = self._store.get(class_id)
        if gym_class is None or gym_class.is_deleted:
            raise NotFoundError(f"Class {class_id} not found")
        gym_class.is_deleted = True
        gym_class.updated_at = datetime.now(timezone.utc)


class SessionRepository:
    """Dict-backed store for SessionCommitment instances.

    Every write runs under one lock and is checked against the live sessions
    already stored: a session may not overlap another session in the same
    room, nor share a trainer with an overlapping session of a different
    class.  A clean conflict scan does not reserve anything, so this check is
    what keeps concurrent writers from double-booking a room or trainer.
    """

    def __init__(self) -> None:
        self._store: dict[str, SessionCommitment] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> SessionCommitment | None:
        return self._store.get(session_id)

    def list_all(self) -> list[SessionCommitment]:
        with self._lock:
            live = self._live()
        return sorted(live, key=lambda s: (s.start_time, s.id))

    def list_for_class(self, class_id: str) -> list[SessionCommitment]:
        return [s for s in self.list_all() if s.class_id == class_id]

    def add(self, session: SessionCommitment) -> None:
        self.add_many([session])

    def add_many(self, sessions: list[SessionCommitment]) -> None:
        """Insert all sessions or none of them."""
        with self._lock:
            existing = self._live()
            accepted: list[SessionCommitment] = []
            for session in sessions:
                self._check_overlap(session, existing, ignore_id=session.id)
                existing.append(session)
                accepted.append(session)
            for session in accepted:
                self._store[session.id] = session

    def update(self, session_id: str, **changes) -> SessionCommitment:
        with self._lock:
            current = self._store.get(session_id)
            if current is None or current.is_deleted:
                raise NotFoundError(f"Class session {session_id} not found")
            changes["updated_at"] = datetime.now(timezone.utc)
            updated = SessionCommitment.model_validate(
                {**current.model_dump(), **changes}
            )
            self._check_overlap(updated, self._live(), ignore_id=session_id)
            self._store[session_id] = updated
            return updated

    def soft_delete_for_class(self, class_id: str) -> int:
        with self._lock:
            now = datetime.now(timezone.utc)
            count = 0
            for session in self._store.values():
                if session.class_id == class_id and not session.is_deleted:
                    session.is_deleted = True
                    session.updated_at = now
                    count += 1
            return count

    def _live(self) -> list[SessionCommitment]:
        # Caller holds self._lock.
        return [s for s in self._store.values() if not s.is_deleted]

    @staticmethod
    def _check_overlap(
        candidate: SessionCommitment,
        existing: Iterable[SessionCommitment],
        ignore_id: str,
    ) -> None:
        for other in existing:
            if other.id == ignore_id:
                continue
            if not intervals_overlap(
                candidate.start_time, candidate.end_time, other.start_time, other.end_time
            ):
                continue
            if other.room_id == candidate.room_id:
                raise CommitmentOverlapError(
                    f"Room {candidate.room_id} is already booked from "
                    f"{other.start_time.isoformat()} to {other.end_time.isoformat()}",
                    details={"session_id": other.id, "room_id": other.room_id},
                )
            shared = set(candidate.trainer_ids) & set(other.trainer_ids)
            if shared and other.class_id != candidate.class_id:
                raise CommitmentOverlapError(
                    f"Trainer {sorted(shared)[0]} is already teaching from "
                    f"{other.start_time.isoformat()} to {other.end_time.isoformat()}",
                    details={"session_id": other.id, "trainer_ids": sorted(shared)},
                )


class ScheduleRepository:
    """Dict-backed store for trainer schedule slots."""

    def __init__(self) -> None:
        self._store: dict[str, TrainerCommitment] = {}
        self._lock = threading.Lock()

    def add(self, slot: TrainerCommitment) -> None:
        with self._lock:
            self._store[slot.id] = slot

    def get(self, slot_id: str) -> TrainerCommitment | None:
        return self._store.get(slot_id)

    def list_all(self) -> list[TrainerCommitment]:
        with self._lock:
            return [s for s in self._store.values() if not s.is_deleted]


class BookingRepository:
    """Bookings keyed by the schedule slot they reserve (at most one live each)."""

    def __init__(self) -> None:
        self._by_schedule: dict[str, Booking] = {}

    def add(self, booking: Booking) -> None:
        self._by_schedule[booking.schedule_id] = booking

    def for_schedule(self, schedule_id: str) -> Booking | None:
        booking = self._by_schedule.get(schedule_id)
        if booking is None or booking.is_deleted:
            return None
        return booking


# ---------------------------------------------------------------------------
# Commitment store
# ---------------------------------------------------------------------------


class MemoryCommitmentStore:
    """CommitmentStore backed by the dict repositories above."""

    def __init__(
        self,
        rooms: RoomRepository | None = None,
        trainers: TrainerRepository | None = None,
        members: MemberRepository | None = None,
        classes: ClassRepository | None = None,
        sessions: SessionRepository | None = None,
        schedules: ScheduleRepository | None = None,
        bookings: BookingRepository | None = None,
    ) -> None:
        self.rooms = rooms or RoomRepository()
        self.trainers = trainers or TrainerRepository()
        self.members = members or MemberRepository()
        self.classes = classes or ClassRepository()
        self.sessions = sessions or SessionRepository()
        self.schedules = schedules or ScheduleRepository()
        self.bookings = bookings or BookingRepository()

    def find_sessions_by_room_in_range(
        self, room_id: str, start: datetime, end: datetime
    ) -> list[SessionCommitment]:
        return [
            s
            for s in self.sessions.list_all()
            if s.room_id == room_id and _in_range(s.start_time, s.end_time, start, end)
        ]

    def find_sessions_by_trainers_in_range(
        self, trainer_ids: Iterable[str], start: datetime, end: datetime
    ) -> list[SessionCommitment]:
        wanted = set(trainer_ids)
        return [
            s
            for s in self.sessions.list_all()
            if wanted.intersection(s.trainer_ids)
            and _in_range(s.start_time, s.end_time, start, end)
        ]

    def find_trainer_schedule_in_range(
        self, trainer_ids: Iterable[str], start: datetime, end: datetime
    ) -> list[TrainerCommitment]:
        wanted = set(trainer_ids)
        slots = sorted(
            (
                s
                for s in self.schedules.list_all()
                if s.trainer_id in wanted and _in_range(s.start_time, s.end_time, start, end)
            ),
            key=lambda s: (s.start_time, s.id),
        )
        return [
            s.model_copy(update={"booking": self.bookings.for_schedule(s.id)}) for s in slots
        ]

    def get_class(self, class_id: str) -> GymClass | None:
        return self.classes.get(class_id)

    def get_room(self, room_id: str) -> Room | None:
        return self.rooms.get(room_id)

    def get_trainer(self, trainer_id: str) -> Trainer | None:
        return self.trainers.get(trainer_id)

    def get_class_names(self, class_ids: Iterable[str]) -> dict[str, str]:
        return _names(self.classes.get, class_ids, "name")

    def get_room_names(self, room_ids: Iterable[str]) -> dict[str, str]:
        return _names(self.rooms.get, room_ids, "name")

    def get_trainer_names(self, trainer_ids: Iterable[str]) -> dict[str, str]:
        return _names(self.trainers.get, trainer_ids, "name")

    def get_member_names(self, member_ids: Iterable[str]) -> dict[str, str]:
        return _names(self.members.get, member_ids, "full_name")


def _names(getter, ids: Iterable[str], attr: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for record_id in set(ids):
        record = getter(record_id)
        if record is not None:
            out[record_id] = getattr(record, attr)
    return out


# ---------------------------------------------------------------------------
# Seed data – a room, two trainers and a booked slot for trying the API
# ---------------------------------------------------------------------------


def _seed(store: MemoryCommitmentStore) -> None:
    now = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)

    store.rooms.add(Room(id="R101", name="Studio 101", capacity=20))
    store.rooms.add(Room(id="R102", name="Spin Room", capacity=15))
    store.trainers.add(Trainer(id="T1", name="Alex Rivera", specialization="Yoga"))
    store.trainers.add(Trainer(id="T2", name="Sam Okafor", specialization="HIIT"))
    store.members.add(Member(id="M1", full_name="Jordan Lee"))

    # One booked personal-training slot tomorrow, one open slot the day after
    booked = TrainerCommitment(
        trainer_id="T1",
        start_time=now + timedelta(days=1),
        end_time=now + timedelta(days=1, hours=1),
    )
    store.schedules.add(booked)
    store.bookings.add(Booking(schedule_id=booked.id, user_id="M1"))
    store.schedules.add(
        TrainerCommitment(
            trainer_id="T2",
            start_time=now + timedelta(days=2),
            end_time=now + timedelta(days=2, hours=1),
        )
    )


def create_commitment_store(seed: bool = True) -> MemoryCommitmentStore:
    """Return a MemoryCommitmentStore, optionally pre-loaded with sample data."""
    store = MemoryCommitmentStore()
    if seed:
        _seed(store)
    logger.debug("Commitment store created (seeded=%s)", seed)
    return store
