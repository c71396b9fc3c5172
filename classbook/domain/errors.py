"""Domain exceptions for the scheduling service.

Scheduling conflicts are *results*, not errors: the conflict engine always
returns a ``ConflictReport``.  The exceptions here cover malformed input,
missing references, the trainer-assignment integrity guard, and failures of
the backing store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from classbook.domain.models import ConflictReport


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling layer."""

    default_code = "scheduling_error"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(message)


class InvalidScheduleError(SchedulingError):
    """Malformed scheduling input, e.g. a window that ends before it starts."""

    default_code = "invalid_schedule"


class NotFoundError(SchedulingError):
    """A referenced class, room, trainer or session does not exist."""

    default_code = "not_found"


class TrainerNotAssignedError(SchedulingError):
    """The trainer must be assigned to the class before joining its sessions."""

    default_code = "trainer_not_assigned"


class ScheduleConflictError(SchedulingError):
    """Raised by write paths that refuse to commit over a conflict report."""

    default_code = "schedule_conflict"

    def __init__(self, message: str, report: ConflictReport) -> None:
        super().__init__(message, details={"report": report.model_dump(mode="json")})
        self.report = report


class StoreError(SchedulingError):
    """The backing store failed; the caller may retry."""

    default_code = "store_unavailable"


class CommitmentOverlapError(StoreError):
    """A write was rejected by the store's own overlap constraint."""

    default_code = "commitment_overlap"
