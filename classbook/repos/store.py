"""Read-only query façade the conflict engine depends on."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Protocol

from classbook.domain.errors import SchedulingError, StoreError
from classbook.domain.models import (
    GymClass,
    Room,
    SessionCommitment,
    Trainer,
    TrainerCommitment,
)

logger = logging.getLogger(__name__)


class CommitmentStore(Protocol):
    """Everything a conflict scan may read.

    Range queries return live (not soft-deleted) records whose
    ``[start_time, end_time)`` intersects ``[start, end)``.  Name lookups are
    batched: callers pass every id they need at once and get back a mapping
    that simply omits unknown ids.
    """

    def find_sessions_by_room_in_range(
        self, room_id: str, start: datetime, end: datetime
    ) -> list[SessionCommitment]: ...

    def find_sessions_by_trainers_in_range(
        self, trainer_ids: Iterable[str], start: datetime, end: datetime
    ) -> list[SessionCommitment]: ...

    def find_trainer_schedule_in_range(
        self, trainer_ids: Iterable[str], start: datetime, end: datetime
    ) -> list[TrainerCommitment]: ...

    def get_class(self, class_id: str) -> GymClass | None: ...

    def get_room(self, room_id: str) -> Room | None: ...

    def get_trainer(self, trainer_id: str) -> Trainer | None: ...

    def get_class_names(self, class_ids: Iterable[str]) -> dict[str, str]: ...

    def get_room_names(self, room_ids: Iterable[str]) -> dict[str, str]: ...

    def get_trainer_names(self, trainer_ids: Iterable[str]) -> dict[str, str]: ...

    def get_member_names(self, member_ids: Iterable[str]) -> dict[str, str]: ...


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Wrap unexpected failures of a store call in a retryable ``StoreError``.

    Keep the block to the store call itself so that errors in the caller's
    own code are not reported as an outage.
    """
    try:
        yield
    except SchedulingError:
        raise
    except Exception as exc:
        logger.exception("Commitment store failed during %s", operation)
        raise StoreError(
            f"Could not complete {operation}, please try again.",
            details={"operation": operation},
        ) from exc
