from __future__ import annotations

from datetime import date
import logging

from .clock import Clock
from .errors import TaskNotFoundError
from .ports import SessionStore
from .session import parse_tags_from_input
from .task import Task, TaskStatus

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(self, storage: SessionStore, clock: Clock) -> None:
        self.storage = storage
        self.clock = clock

    def add_task(
        self,
        title: str,
        description: str = "",
        tags: list[str] | None = None,
    ) -> Task:
        clean_title, inline_tags = parse_tags_from_input(title)
        task = Task.create(
            clean_title,
            now=self.clock.now(),
            description=description,
            tags=[*inline_tags, *(tags or [])],
        )
        self.storage.save_task(task)
        logger.info("added task %s (%s)", task.id, task.title)
        return task

    def get_task(self, task_id: str) -> Task:
        task = self.storage.find_task_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(f"task not found: {task_id}")
        return task

    def list_tasks(self, status: TaskStatus | None = None, only_pending: bool = False) -> list[Task]:
        if only_pending:
            return self.storage.find_pending_tasks()
        return self.storage.list_tasks(status.value if status else None)

    def start_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        task.start(self.clock.now())
        self.storage.update_task(task)
        return task

    def complete_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        task.complete(self.clock.now())
        self.storage.update_task(task)
        logger.info("completed task %s", task.id)
        return task

    def cancel_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        task.cancel(self.clock.now())
        self.storage.update_task(task)
        return task

    def delete_task(self, task_id: str) -> None:
        self.storage.delete_task(task_id)
        logger.info("deleted task %s", task_id)

    def set_highlight(self, task_id: str, day: date | None = None) -> Task:
        target_day = day or self.clock.now().date()
        task = self.get_task(task_id)
        previous = self.storage.find_highlight_for_date(target_day)
        if previous is not None and previous.id != task.id:
            previous.clear_highlight(self.clock.now())
            self.storage.update_task(previous)
        task.set_highlight(target_day, self.clock.now())
        self.storage.update_task(task)
        logger.info("task %s is the highlight for %s", task.id, target_day)
        return task

    def get_highlight(self, day: date | None = None) -> Task | None:
        return self.storage.find_highlight_for_date(day or self.clock.now().date())

    def recent_tasks(self, limit: int = 10) -> list[Task]:
        return self.storage.find_recent_tasks_with_sessions(limit)
