"""Shared fixtures: fresh in-memory stores with a few rooms, trainers and members."""

from __future__ import annotations

import pytest

from classbook.domain.models import Member, Room, Trainer
from classbook.repos.memory import MemoryCommitmentStore


class RecordingStore(MemoryCommitmentStore):
    """MemoryCommitmentStore that records which store methods were called."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[str] = []

    def find_sessions_by_room_in_range(self, room_id, start, end):
        self.calls.append("find_sessions_by_room_in_range")
        return super().find_sessions_by_room_in_range(room_id, start, end)

    def find_sessions_by_trainers_in_range(self, trainer_ids, start, end):
        self.calls.append("find_sessions_by_trainers_in_range")
        return super().find_sessions_by_trainers_in_range(trainer_ids, start, end)

    def find_trainer_schedule_in_range(self, trainer_ids, start, end):
        self.calls.append("find_trainer_schedule_in_range")
        return super().find_trainer_schedule_in_range(trainer_ids, start, end)

    def get_class_names(self, class_ids):
        self.calls.append("get_class_names")
        return super().get_class_names(class_ids)

    def get_room_names(self, room_ids):
        self.calls.append("get_room_names")
        return super().get_room_names(room_ids)

    def get_trainer_names(self, trainer_ids):
        self.calls.append("get_trainer_names")
        return super().get_trainer_names(trainer_ids)

    def get_member_names(self, member_ids):
        self.calls.append("get_member_names")
        return super().get_member_names(member_ids)

    def finds(self) -> list[str]:
        return [c for c in self.calls if c.startswith("find_")]


def _populate(store: MemoryCommitmentStore) -> MemoryCommitmentStore:
    store.rooms.add(Room(id="R101", name="Studio 101", capacity=20))
    store.rooms.add(Room(id="R102", name="Spin Room", capacity=15))
    store.rooms.add(Room(id="R900", name="Old Annex", is_deleted=True))
    store.trainers.add(Trainer(id="T1", name="Alex Rivera", specialization="Yoga"))
    store.trainers.add(Trainer(id="T2", name="Sam Okafor", specialization="HIIT"))
    store.trainers.add(Trainer(id="T3", name="Kim Park", specialization="Pilates"))
    store.members.add(Member(id="M1", full_name="Jordan Lee"))
    return store


@pytest.fixture()
def store() -> MemoryCommitmentStore:
    """Fresh store for each test."""
    return _populate(MemoryCommitmentStore())


@pytest.fixture()
def recording_store() -> RecordingStore:
    return _populate(RecordingStore())
