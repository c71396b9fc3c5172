"""Domain models for class scheduling and conflict detection."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated

import dateparser
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, computed_field, model_validator

from classbook.config import get_settings
from classbook.domain.errors import NotFoundError, TrainerNotAssignedError

MINUTES_PER_DAY = 1440

DAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}


class BookingStatus(StrEnum):
    PENDING = "pending"
    BOOKING = "booking"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ConflictType(StrEnum):
    SESSION = "session"
    BOOKING = "booking"


class ReportCondition(StrEnum):
    """Outcomes that are neither "clean" nor "conflict"."""

    ROOM_NOT_FOUND = "room_not_found"
    TRAINER_NOT_ASSIGNED = "trainer_not_assigned"
    TRAINER_NOT_FOUND = "trainer_not_found"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def format_minute(minute: int) -> str:
    return f"{minute // 60:02d}:{minute % 60:02d}"


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


class TimeWindow(BaseModel):
    """A time-of-day window on one ISO weekday (Mon=1 .. Sun=7)."""

    model_config = ConfigDict(frozen=True)

    day_of_week: int = Field(ge=1, le=7)
    start_minute: int = Field(ge=0, le=MINUTES_PER_DAY)
    end_minute: int = Field(ge=0, le=MINUTES_PER_DAY)

    @model_validator(mode="after")
    def _end_after_start(self) -> TimeWindow:
        if self.start_minute >= self.end_minute:
            raise ValueError("end_minute must be after start_minute")
        return self

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day_of_week]

    def label(self) -> str:
        return f"{format_minute(self.start_minute)}-{format_minute(self.end_minute)}"


class RecurrenceEntry(BaseModel):
    """One weekly slot of a class, bound to a room."""

    model_config = ConfigDict(frozen=True)

    window: TimeWindow
    room_id: str


# ---------------------------------------------------------------------------
# Commitments and the records they point at
# ---------------------------------------------------------------------------


class Room(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    capacity: int = Field(default=1, ge=1)
    is_deleted: bool = False


class Trainer(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    specialization: str = ""


class Member(BaseModel):
    id: str = Field(default_factory=_new_id)
    full_name: str


class GymClass(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    description: str = ""
    capacity: int = Field(default=1, ge=1)
    trainer_ids: list[str] = Field(default_factory=list)
    start_date: datetime
    end_date: datetime
    recurrence: list[RecurrenceEntry] = Field(default_factory=list)
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime | None = None


class SessionCommitment(BaseModel):
    """A concrete, dated occurrence of a class."""

    id: str = Field(default_factory=_new_id)
    class_id: str
    room_id: str
    trainer_ids: list[str] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)
    title: str = ""
    hours: float | None = None
    start_time: datetime
    end_time: datetime
    is_deleted: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> SessionCommitment:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class Booking(BaseModel):
    id: str = Field(default_factory=_new_id)
    schedule_id: str
    user_id: str
    status: BookingStatus = BookingStatus.PENDING
    is_deleted: bool = False


class TrainerCommitment(BaseModel):
    """A slot on a trainer's personal schedule, optionally booked by a client."""

    id: str = Field(default_factory=_new_id)
    trainer_id: str
    start_time: datetime
    end_time: datetime
    booking: Booking | None = None
    is_deleted: bool = False

    @model_validator(mode="after")
    def _end_after_start(self) -> TrainerCommitment:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def active_booking(self) -> Booking | None:
        b = self.booking
        if b is None or b.is_deleted or b.status == BookingStatus.CANCELLED:
            return None
        return b


# ---------------------------------------------------------------------------
# Conflict reporting
# ---------------------------------------------------------------------------


class ConflictEntry(BaseModel):
    type: ConflictType
    commitment_id: str
    window: TimeWindow
    proposed_window: TimeWindow | None = None
    start_time: datetime
    end_time: datetime
    other_party: str
    title: str | None = None
    class_id: str | None = None
    room_id: str | None = None
    room_name: str | None = None
    trainer_id: str | None = None
    trainer_name: str | None = None
    trainer_names: list[str] = Field(default_factory=list)
    booking_id: str | None = None
    is_booked: bool = False
    booking_status: str | None = None


class ConflictReport(BaseModel):
    has_conflict: bool = False
    count: int = 0
    entries: list[ConflictEntry] = Field(default_factory=list)
    per_trainer: dict[str, list[ConflictEntry]] | None = None
    condition: ReportCondition | None = None
    subject_id: str | None = None
    subject_name: str | None = None
    message: str = ""

    @computed_field
    @property
    def trainers_with_conflicts(self) -> int:
        if not self.per_trainer:
            return 0
        return sum(1 for entries in self.per_trainer.values() if entries)

    @property
    def is_clean(self) -> bool:
        return self.condition is None and not self.has_conflict

    @classmethod
    def from_entries(
        cls,
        entries: list[ConflictEntry],
        *,
        message: str,
        per_trainer: dict[str, list[ConflictEntry]] | None = None,
        subject_id: str | None = None,
        subject_name: str | None = None,
    ) -> ConflictReport:
        return cls(
            has_conflict=bool(entries),
            count=len(entries),
            entries=entries,
            per_trainer=per_trainer,
            subject_id=subject_id,
            subject_name=subject_name,
            message=message,
        )

    @classmethod
    def for_condition(
        cls,
        condition: ReportCondition,
        *,
        message: str,
        subject_id: str | None = None,
        subject_name: str | None = None,
    ) -> ConflictReport:
        return cls(
            condition=condition,
            subject_id=subject_id,
            subject_name=subject_name,
            message=message,
        )

    def raise_for_condition(self) -> None:
        """Turn a non-conflict condition into the matching exception."""
        if self.condition is None:
            return
        details = {"subject_id": self.subject_id, "subject_name": self.subject_name}
        if self.condition == ReportCondition.TRAINER_NOT_ASSIGNED:
            raise TrainerNotAssignedError(self.message, details=details)
        raise NotFoundError(self.message, code=str(self.condition), details=details)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


def _coerce_datetime(value: object) -> object:
    """Accept datetimes or loose date strings; naive values get the scheduling zone."""
    settings = get_settings()
    if isinstance(value, str):
        parsed = dateparser.parse(
            value,
            settings={
                "TIMEZONE": settings.timezone,
                "RETURN_AS_TIMEZONE_AWARE": True,
                "DATE_ORDER": "YMD",
            },
        )
        if parsed is None:
            raise ValueError(f"Unparseable date: {value!r}")
        return parsed
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=settings.tzinfo)
    return value


LooseDatetime = Annotated[datetime, BeforeValidator(_coerce_datetime)]


class ClockTime(BaseModel):
    hour: int = Field(ge=0, le=24)
    minute: int = Field(default=0, ge=0, le=59)

    @model_validator(mode="after")
    def _not_past_midnight(self) -> ClockTime:
        if self.hour == 24 and self.minute != 0:
            raise ValueError("24:00 is the latest representable time")
        return self

    @property
    def total_minutes(self) -> int:
        return self.hour * 60 + self.minute


class RecurrenceSlot(BaseModel):
    day_of_week: int = Field(ge=1, le=7)
    start_time: ClockTime
    end_time: ClockTime
    room_id: str

    @model_validator(mode="after")
    def _end_after_start(self) -> RecurrenceSlot:
        if self.end_time.total_minutes <= self.start_time.total_minutes:
            raise ValueError("end_time must be after start_time")
        return self

    def to_entry(self) -> RecurrenceEntry:
        return RecurrenceEntry(
            window=TimeWindow(
                day_of_week=self.day_of_week,
                start_minute=self.start_time.total_minutes,
                end_minute=self.end_time.total_minutes,
            ),
            room_id=self.room_id,
        )


class _DateRangeRequest(BaseModel):
    range_start: LooseDatetime
    range_end: LooseDatetime

    @model_validator(mode="after")
    def _start_before_end(self) -> _DateRangeRequest:
        if self.range_start >= self.range_end:
            raise ValueError("range_start must be before range_end")
        return self


class CreateClassRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    capacity: int = Field(default=1, ge=1)
    trainer_ids: list[str] = Field(default_factory=list)
    start_date: LooseDatetime
    end_date: LooseDatetime
    recurrence: list[RecurrenceSlot] = Field(default_factory=list)

    @model_validator(mode="after")
    def _start_before_end(self) -> CreateClassRequest:
        if self.start_date >= self.end_date:
            raise ValueError("Start date must be earlier than end date.")
        return self

    @property
    def recurrence_pattern(self) -> list[RecurrenceEntry]:
        return [slot.to_entry() for slot in self.recurrence]


class ClassCreationResult(BaseModel):
    gym_class: GymClass
    sessions_created: int
    message: str


class UpdateClassSessionRequest(BaseModel):
    title: str | None = None
    trainer_ids: list[str] | None = None
    room_id: str | None = None
    start_time: LooseDatetime | None = None
    end_time: LooseDatetime | None = None

    @model_validator(mode="after")
    def _start_before_end(self) -> UpdateClassSessionRequest:
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class RoomScanRequest(_DateRangeRequest):
    room_id: str
    recurrence: list[RecurrenceSlot] = Field(min_length=1)
    exclude_session_id: str | None = None


class TrainerScanRequest(_DateRangeRequest):
    trainer_ids: list[str] = Field(min_length=1)
    recurrence: list[RecurrenceSlot] = Field(min_length=1)


class TrainerSlotRequest(BaseModel):
    trainer_id: str
    class_id: str
    start_time: LooseDatetime
    end_time: LooseDatetime
    exclude_session_id: str | None = None


class RoomSlotRequest(BaseModel):
    room_id: str
    start_time: LooseDatetime
    end_time: LooseDatetime
    session_id: str | None = None
