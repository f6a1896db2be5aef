from __future__ import annotations

from pathlib import Path

from fastapi import Depends, HTTPException, Request

from ..analytics import Analytics
from ..clock import Clock
from ..config import Settings
from ..db import FlowLogDB
from ..errors import (
    FlowLogError,
    NoActiveSessionError,
    SessionAlreadyActiveError,
    SessionNotFoundError,
    StorageError,
    TaskNotFoundError,
)
from ..methodology import Methodology, parse_methodology
from ..scheduler import Scheduler
from ..task_service import TaskService


def get_db(request: Request) -> FlowLogDB:
    db_path = Path(request.app.state.db_path)
    return FlowLogDB(db_path)


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_scheduler(
    request: Request,
    db: FlowLogDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> Scheduler:
    return Scheduler(db, clock, settings=settings, git=request.app.state.git)


def get_task_service(
    db: FlowLogDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> TaskService:
    return TaskService(db, clock)


def get_analytics(
    db: FlowLogDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> Analytics:
    return Analytics(db, clock, settings)


def optional_methodology(value: str | None) -> Methodology | None:
    if not value:
        return None
    return parse_methodology(value)


def http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (SessionNotFoundError, TaskNotFoundError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (SessionAlreadyActiveError, NoActiveSessionError)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(status_code=500, detail=str(exc))
    if isinstance(exc, (FlowLogError, ValueError)):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
