from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends

from ...errors import FlowLogError
from ...scheduler import Scheduler
from ..deps import get_scheduler, http_error, optional_methodology
from ..schemas import (
    DailyStatsOut,
    SessionOut,
    StartBreakRequest,
    StartWorkRequest,
    StateOut,
    TaskOut,
)

router = APIRouter(prefix="/api/v1", tags=["session"])


@router.post("/session/start", response_model=SessionOut)
def start_work(payload: StartWorkRequest, scheduler: Scheduler = Depends(get_scheduler)) -> SessionOut:
    try:
        methodology = optional_methodology(payload.methodology)
        policy = scheduler.policy(methodology)
        duration = None
        if payload.minutes is not None:
            duration = timedelta(minutes=payload.minutes)
        elif payload.preset:
            duration = policy.preset(payload.preset).duration
        session = scheduler.start_work(
            task_id=payload.task_id,
            duration=duration,
            methodology=methodology,
            intended_outcome=payload.intended_outcome,
            tags=payload.tags,
        )
    except (FlowLogError, ValueError) as exc:
        raise http_error(exc) from exc
    return SessionOut.from_session(session, scheduler.clock.now())


@router.post("/session/break", response_model=SessionOut)
def start_break(payload: StartBreakRequest, scheduler: Scheduler = Depends(get_scheduler)) -> SessionOut:
    try:
        session = scheduler.start_break(optional_methodology(payload.methodology))
    except (FlowLogError, ValueError) as exc:
        raise http_error(exc) from exc
    return SessionOut.from_session(session, scheduler.clock.now())


@router.post("/session/pause", response_model=SessionOut)
def pause(scheduler: Scheduler = Depends(get_scheduler)) -> SessionOut:
    return _run(scheduler, scheduler.pause)


@router.post("/session/resume", response_model=SessionOut)
def resume(scheduler: Scheduler = Depends(get_scheduler)) -> SessionOut:
    return _run(scheduler, scheduler.resume)


@router.post("/session/stop", response_model=SessionOut)
def stop(scheduler: Scheduler = Depends(get_scheduler)) -> SessionOut:
    return _run(scheduler, scheduler.stop)


@router.post("/session/cancel", response_model=SessionOut)
def cancel(scheduler: Scheduler = Depends(get_scheduler)) -> SessionOut:
    return _run(scheduler, scheduler.cancel)


@router.post("/session/void", response_model=SessionOut)
def void(scheduler: Scheduler = Depends(get_scheduler)) -> SessionOut:
    return _run(scheduler, scheduler.void)


@router.get("/session/state", response_model=StateOut)
def state(scheduler: Scheduler = Depends(get_scheduler)) -> StateOut:
    current = scheduler.get_current_state()
    now = scheduler.clock.now()
    return StateOut(
        methodology=scheduler.methodology.value,
        active_task=TaskOut.from_task(current.active_task) if current.active_task else None,
        active_session=(
            SessionOut.from_session(current.active_session, now) if current.active_session else None
        ),
        today=DailyStatsOut.from_stats(current.today),
    )


def _run(scheduler: Scheduler, action) -> SessionOut:
    try:
        session = action()
    except (FlowLogError, ValueError) as exc:
        raise http_error(exc) from exc
    return SessionOut.from_session(session, scheduler.clock.now())
