from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from ...db import FlowLogDB
from ...errors import FlowLogError
from ...scheduler import Scheduler
from ...session import ShutdownRitual
from ..deps import get_db, get_scheduler, http_error
from ..schemas import (
    DistractionRequest,
    FocusScoreRequest,
    RitualRequest,
    SessionOut,
    TextRequest,
)

router = APIRouter(prefix="/api/v1", tags=["sessions"])


@router.get("/sessions", response_model=list[SessionOut])
def list_sessions(
    since: datetime | None = None,
    status: str | None = None,
    tag: str | None = None,
    limit: int = Query(default=30, ge=1, le=2000),
    db: FlowLogDB = Depends(get_db),
    scheduler: Scheduler = Depends(get_scheduler),
) -> list[SessionOut]:
    now = scheduler.clock.now()
    items = db.list_sessions(since=since, status=status, tag=tag, limit=limit)
    return [SessionOut.from_session(item, now) for item in items]


@router.get("/sessions/recent", response_model=list[SessionOut])
def recent_sessions(
    days: int = Query(default=7, ge=1, le=365),
    scheduler: Scheduler = Depends(get_scheduler),
) -> list[SessionOut]:
    now = scheduler.clock.now()
    return [SessionOut.from_session(item, now) for item in scheduler.recent_sessions(days)]


@router.get("/sessions/{session_id}", response_model=SessionOut)
def get_session(session_id: str, scheduler: Scheduler = Depends(get_scheduler)) -> SessionOut:
    item = scheduler.storage.find_session_by_id(session_id)
    if item is not None:
        return SessionOut.from_session(item, scheduler.clock.now())
    raise HTTPException(status_code=404, detail="session not found")


@router.post("/sessions/{session_id}/distractions", response_model=SessionOut)
def log_distraction(
    session_id: str,
    payload: DistractionRequest,
    scheduler: Scheduler = Depends(get_scheduler),
) -> SessionOut:
    return _update(scheduler, scheduler.log_distraction, session_id, payload.text, payload.category)


@router.post("/sessions/{session_id}/focus-score", response_model=SessionOut)
def set_focus_score(
    session_id: str,
    payload: FocusScoreRequest,
    scheduler: Scheduler = Depends(get_scheduler),
) -> SessionOut:
    return _update(scheduler, scheduler.set_focus_score, session_id, payload.score)


@router.post("/sessions/{session_id}/accomplishment", response_model=SessionOut)
def set_accomplishment(
    session_id: str,
    payload: TextRequest,
    scheduler: Scheduler = Depends(get_scheduler),
) -> SessionOut:
    return _update(scheduler, scheduler.set_accomplishment, session_id, payload.text)


@router.post("/sessions/{session_id}/ritual", response_model=SessionOut)
def set_shutdown_ritual(
    session_id: str,
    payload: RitualRequest,
    scheduler: Scheduler = Depends(get_scheduler),
) -> SessionOut:
    ritual = ShutdownRitual(**payload.model_dump())
    return _update(scheduler, scheduler.set_shutdown_ritual, session_id, ritual)


@router.post("/sessions/{session_id}/energize", response_model=SessionOut)
def set_energize_activity(
    session_id: str,
    payload: TextRequest,
    scheduler: Scheduler = Depends(get_scheduler),
) -> SessionOut:
    return _update(scheduler, scheduler.set_energize_activity, session_id, payload.text)


@router.post("/sessions/{session_id}/notes", response_model=SessionOut)
def add_notes(
    session_id: str,
    payload: TextRequest,
    scheduler: Scheduler = Depends(get_scheduler),
) -> SessionOut:
    return _update(scheduler, scheduler.add_notes, session_id, payload.text)


@router.post("/sessions/{session_id}/void", response_model=SessionOut)
def void_session(session_id: str, scheduler: Scheduler = Depends(get_scheduler)) -> SessionOut:
    return _update(scheduler, scheduler.void, session_id)


def _update(scheduler: Scheduler, action, session_id: str, *args: object) -> SessionOut:
    try:
        session = action(session_id, *args)
    except (FlowLogError, ValueError) as exc:
        raise http_error(exc) from exc
    return SessionOut.from_session(session, scheduler.clock.now())
