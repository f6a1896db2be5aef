from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from ...errors import FlowLogError
from ...scheduler import Scheduler
from ...task import TaskStatus
from ...task_service import TaskService
from ..deps import get_scheduler, get_task_service, http_error
from ..schemas import HighlightRequest, SessionOut, TaskCreateRequest, TaskOut

router = APIRouter(prefix="/api/v1", tags=["tasks"])


@router.get("/tasks", response_model=list[TaskOut])
def list_tasks(
    status: str | None = None,
    pending: bool = False,
    tasks: TaskService = Depends(get_task_service),
) -> list[TaskOut]:
    try:
        items = tasks.list_tasks(
            status=TaskStatus(status) if status else None,
            only_pending=pending,
        )
    except ValueError as exc:
        raise http_error(exc) from exc
    return [TaskOut.from_task(item) for item in items]


@router.post("/tasks", response_model=TaskOut, status_code=201)
def create_task(payload: TaskCreateRequest, tasks: TaskService = Depends(get_task_service)) -> TaskOut:
    try:
        task = tasks.add_task(payload.title, description=payload.description, tags=payload.tags)
    except (FlowLogError, ValueError) as exc:
        raise http_error(exc) from exc
    return TaskOut.from_task(task)


@router.get("/tasks/recent", response_model=list[TaskOut])
def recent_tasks(
    limit: int = Query(default=10, ge=1, le=100),
    tasks: TaskService = Depends(get_task_service),
) -> list[TaskOut]:
    return [TaskOut.from_task(item) for item in tasks.recent_tasks(limit)]


@router.get("/tasks/highlight", response_model=TaskOut | None)
def today_highlight(tasks: TaskService = Depends(get_task_service)) -> TaskOut | None:
    task = tasks.get_highlight()
    return TaskOut.from_task(task) if task else None


@router.get("/tasks/highlight/candidate", response_model=TaskOut | None)
def highlight_candidate(scheduler: Scheduler = Depends(get_scheduler)) -> TaskOut | None:
    task = scheduler.highlight_candidate()
    return TaskOut.from_task(task) if task else None


@router.get("/tasks/{task_id}", response_model=TaskOut)
def get_task(task_id: str, tasks: TaskService = Depends(get_task_service)) -> TaskOut:
    try:
        return TaskOut.from_task(tasks.get_task(task_id))
    except FlowLogError as exc:
        raise http_error(exc) from exc


@router.get("/tasks/{task_id}/sessions", response_model=list[SessionOut])
def task_sessions(task_id: str, scheduler: Scheduler = Depends(get_scheduler)) -> list[SessionOut]:
    try:
        items = scheduler.task_history(task_id)
    except FlowLogError as exc:
        raise http_error(exc) from exc
    now = scheduler.clock.now()
    return [SessionOut.from_session(item, now) for item in items]


@router.post("/tasks/{task_id}/complete", response_model=TaskOut)
def complete_task(task_id: str, tasks: TaskService = Depends(get_task_service)) -> TaskOut:
    try:
        return TaskOut.from_task(tasks.complete_task(task_id))
    except FlowLogError as exc:
        raise http_error(exc) from exc


@router.post("/tasks/{task_id}/cancel", response_model=TaskOut)
def cancel_task(task_id: str, tasks: TaskService = Depends(get_task_service)) -> TaskOut:
    try:
        return TaskOut.from_task(tasks.cancel_task(task_id))
    except FlowLogError as exc:
        raise http_error(exc) from exc


@router.post("/tasks/{task_id}/highlight", response_model=TaskOut)
def set_highlight(
    task_id: str,
    payload: HighlightRequest,
    tasks: TaskService = Depends(get_task_service),
) -> TaskOut:
    try:
        return TaskOut.from_task(tasks.set_highlight(task_id, payload.day))
    except FlowLogError as exc:
        raise http_error(exc) from exc


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(task_id: str, tasks: TaskService = Depends(get_task_service)) -> Response:
    try:
        tasks.delete_task(task_id)
    except FlowLogError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)
