"""Commitment sources a trainer can be occupied by.

Each source knows how to pull its candidates out of the store in one query,
which of the requested trainers a candidate occupies, and how to turn the
colliding candidates into ``ConflictEntry`` objects.  Name enrichment is done
once per source per scan, after the collisions are known.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import NamedTuple, Protocol, Union

from classbook.domain.models import (
    ConflictEntry,
    ConflictType,
    SessionCommitment,
    TimeWindow,
    TrainerCommitment,
)
from classbook.repos.store import CommitmentStore, store_errors

Commitment = Union[SessionCommitment, TrainerCommitment]

AVAILABLE_SLOT = "Available slot"
AVAILABLE_STATUS = "available"


class Hit(NamedTuple):
    """A candidate that collided with the proposed window."""

    record: Commitment
    trainer_id: str | None
    window: TimeWindow
    proposed_window: TimeWindow | None


class CommitmentSource(Protocol):
    kind: ConflictType

    def fetch(
        self, store: CommitmentStore, trainer_ids: Sequence[str], start: datetime, end: datetime
    ) -> list[Commitment]: ...

    def occupants(self, record: Commitment, trainer_ids: Sequence[str]) -> list[str]: ...

    def describe(self, store: CommitmentStore, hits: list[Hit]) -> list[ConflictEntry]: ...


class SessionSource:
    """Class sessions the trainers teach, optionally ignoring one class or session."""

    kind = ConflictType.SESSION

    def __init__(
        self, exclude_class_id: str | None = None, exclude_session_id: str | None = None
    ) -> None:
        self.exclude_class_id = exclude_class_id
        self.exclude_session_id = exclude_session_id

    def fetch(
        self, store: CommitmentStore, trainer_ids: Sequence[str], start: datetime, end: datetime
    ) -> list[Commitment]:
        with store_errors("session lookup"):
            found = store.find_sessions_by_trainers_in_range(trainer_ids, start, end)
        return [
            s
            for s in found
            if s.class_id != self.exclude_class_id and s.id != self.exclude_session_id
        ]

    def occupants(self, record: Commitment, trainer_ids: Sequence[str]) -> list[str]:
        return [t for t in trainer_ids if t in record.trainer_ids]

    def describe(self, store: CommitmentStore, hits: list[Hit]) -> list[ConflictEntry]:
        if not hits:
            return []
        sessions = [h.record for h in hits]
        with store_errors("session name lookup"):
            class_names = store.get_class_names({s.class_id for s in sessions})
            room_names = store.get_room_names({s.room_id for s in sessions})
            trainer_names = store.get_trainer_names(
                {t for s in sessions for t in s.trainer_ids}
            )
        return [
            ConflictEntry(
                type=self.kind,
                commitment_id=h.record.id,
                window=h.window,
                proposed_window=h.proposed_window,
                start_time=h.record.start_time,
                end_time=h.record.end_time,
                other_party=class_names.get(h.record.class_id, h.record.class_id),
                title=h.record.title or None,
                class_id=h.record.class_id,
                room_id=h.record.room_id,
                room_name=room_names.get(h.record.room_id),
                trainer_id=h.trainer_id,
                trainer_name=trainer_names.get(h.trainer_id) if h.trainer_id else None,
                trainer_names=[trainer_names.get(t, t) for t in h.record.trainer_ids],
            )
            for h in hits
        ]


class TrainerScheduleSource:
    """Personal schedule slots, booked or still open."""

    kind = ConflictType.BOOKING

    def fetch(
        self, store: CommitmentStore, trainer_ids: Sequence[str], start: datetime, end: datetime
    ) -> list[Commitment]:
        with store_errors("trainer schedule lookup"):
            return list(store.find_trainer_schedule_in_range(trainer_ids, start, end))

    def occupants(self, record: Commitment, trainer_ids: Sequence[str]) -> list[str]:
        return [record.trainer_id] if record.trainer_id in trainer_ids else []

    def describe(self, store: CommitmentStore, hits: list[Hit]) -> list[ConflictEntry]:
        if not hits:
            return []
        slots = [h.record for h in hits]
        with store_errors("schedule name lookup"):
            member_names = store.get_member_names(
                {s.active_booking.user_id for s in slots if s.active_booking}
            )
            trainer_names = store.get_trainer_names({s.trainer_id for s in slots})
        entries = []
        for h in hits:
            slot = h.record
            booking = slot.active_booking
            trainer_name = trainer_names.get(slot.trainer_id)
            entries.append(
                ConflictEntry(
                    type=self.kind,
                    commitment_id=slot.id,
                    window=h.window,
                    proposed_window=h.proposed_window,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                    other_party=(
                        member_names.get(booking.user_id, booking.user_id)
                        if booking
                        else AVAILABLE_SLOT
                    ),
                    trainer_id=slot.trainer_id,
                    trainer_name=trainer_name,
                    trainer_names=[trainer_name or slot.trainer_id],
                    booking_id=booking.id if booking else None,
                    is_booked=booking is not None,
                    booking_status=str(booking.status) if booking else AVAILABLE_STATUS,
                )
            )
        return entries


def default_sources(
    exclude_class_id: str | None = None, exclude_session_id: str | None = None
) -> list[CommitmentSource]:
    return [
        SessionSource(exclude_class_id=exclude_class_id, exclude_session_id=exclude_session_id),
        TrainerScheduleSource(),
    ]


def unique(ids: Iterable[str]) -> list[str]:
    """De-duplicate while keeping first-seen order."""
    return list(dict.fromkeys(ids))
