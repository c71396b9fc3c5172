"""FastAPI application: entry point for the class scheduling service."""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from classbook.config import get_settings
from classbook.domain.errors import (
    CommitmentOverlapError,
    InvalidScheduleError,
    NotFoundError,
    ScheduleConflictError,
    SchedulingError,
    StoreError,
    TrainerNotAssignedError,
)
from classbook.domain.models import (
    ClassCreationResult,
    ConflictReport,
    CreateClassRequest,
    GymClass,
    RoomScanRequest,
    RoomSlotRequest,
    SessionCommitment,
    TrainerScanRequest,
    TrainerSlotRequest,
    UpdateClassSessionRequest,
)
from classbook.repos.memory import MemoryCommitmentStore, create_commitment_store
from classbook.services.conflicts import (
    check_room_slot,
    check_trainer_slot,
    scan_room,
    scan_trainers,
)
from classbook.services.scheduling import create_class, delete_class, update_class_session

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_title)

# ── Singletons (created at import time for simplicity) ────────────────
commitment_store = create_commitment_store()


def get_store() -> MemoryCommitmentStore:
    return commitment_store


# ── Error mapping ─────────────────────────────────────────────────────

# Checked in order; subclasses before their bases.
_STATUS_CODES: list[tuple[type[SchedulingError], int]] = [
    (ScheduleConflictError, 409),
    (CommitmentOverlapError, 409),
    (StoreError, 503),
    (NotFoundError, 404),
    (TrainerNotAssignedError, 422),
    (InvalidScheduleError, 422),
]


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    status_code = next(
        (code for cls, code in _STATUS_CODES if isinstance(exc, cls)), 400
    )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code, "details": exc.details},
    )


# ── Classes ───────────────────────────────────────────────────────────


@app.post("/classes", response_model=ClassCreationResult, status_code=201)
def create_class_route(
    payload: CreateClassRequest, store: MemoryCommitmentStore = Depends(get_store)
) -> ClassCreationResult:
    """Create a class after checking its rooms and trainers for conflicts."""
    return create_class(payload, store, store.classes, store.sessions)


@app.get("/classes", response_model=list[GymClass])
def list_classes(store: MemoryCommitmentStore = Depends(get_store)) -> list[GymClass]:
    return store.classes.list_all()


@app.get("/classes/{class_id}", response_model=GymClass)
def get_class(class_id: str, store: MemoryCommitmentStore = Depends(get_store)) -> GymClass:
    gym_class = store.classes.get(class_id)
    if gym_class is None or gym_class.is_deleted:
        raise HTTPException(status_code=404, detail="Class not found")
    return gym_class


@app.delete("/classes/{class_id}")
def delete_class_route(class_id: str, store: MemoryCommitmentStore = Depends(get_store)) -> dict:
    """Soft-delete a class; its sessions stop counting as commitments."""
    removed = delete_class(class_id, store.classes, store.sessions)
    return {"status": "deleted", "sessions_removed": removed}


# ── Class sessions ────────────────────────────────────────────────────


@app.get("/class-sessions", response_model=list[SessionCommitment])
def list_class_sessions(
    class_id: str | None = None, store: MemoryCommitmentStore = Depends(get_store)
) -> list[SessionCommitment]:
    if class_id is not None:
        return store.sessions.list_for_class(class_id)
    return store.sessions.list_all()


@app.get("/class-sessions/{session_id}", response_model=SessionCommitment)
def get_class_session(
    session_id: str, store: MemoryCommitmentStore = Depends(get_store)
) -> SessionCommitment:
    session = store.sessions.get(session_id)
    if session is None or session.is_deleted:
        raise HTTPException(status_code=404, detail="Class session not found")
    return session


@app.patch("/class-sessions/{session_id}", response_model=SessionCommitment)
def update_class_session_route(
    session_id: str,
    payload: UpdateClassSessionRequest,
    store: MemoryCommitmentStore = Depends(get_store),
) -> SessionCommitment:
    """Reschedule, move or re-staff a single session."""
    return update_class_session(session_id, payload, store, store.sessions)


# ── Advisory conflict checks (never write) ────────────────────────────


@app.post("/conflicts/rooms", response_model=ConflictReport)
def room_conflicts(
    payload: RoomScanRequest, store: MemoryCommitmentStore = Depends(get_store)
) -> ConflictReport:
    report = scan_room(
        store,
        payload.room_id,
        payload.range_start,
        payload.range_end,
        [slot.to_entry() for slot in payload.recurrence],
        exclude_session_id=payload.exclude_session_id,
    )
    report.raise_for_condition()
    return report


@app.post("/conflicts/trainers", response_model=ConflictReport)
def trainer_conflicts(
    payload: TrainerScanRequest, store: MemoryCommitmentStore = Depends(get_store)
) -> ConflictReport:
    return scan_trainers(
        store,
        payload.trainer_ids,
        payload.range_start,
        payload.range_end,
        [slot.to_entry() for slot in payload.recurrence],
    )


@app.post("/conflicts/trainer-slot", response_model=ConflictReport)
def trainer_slot_conflicts(
    payload: TrainerSlotRequest, store: MemoryCommitmentStore = Depends(get_store)
) -> ConflictReport:
    report = check_trainer_slot(
        store,
        payload.trainer_id,
        payload.start_time,
        payload.end_time,
        payload.class_id,
        exclude_session_id=payload.exclude_session_id,
    )
    report.raise_for_condition()
    return report


@app.post("/conflicts/room-slot", response_model=ConflictReport)
def room_slot_conflicts(
    payload: RoomSlotRequest, store: MemoryCommitmentStore = Depends(get_store)
) -> ConflictReport:
    report = check_room_slot(
        store, payload.session_id, payload.start_time, payload.end_time, payload.room_id
    )
    report.raise_for_condition()
    return report
