from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from .session import new_id


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class Task:
    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    tags: list[str] = field(default_factory=list)
    completed_at: datetime | None = None
    highlight_date: date | None = None

    @classmethod
    def create(
        cls,
        title: str,
        now: datetime,
        description: str = "",
        tags: list[str] | None = None,
    ) -> Task:
        clean_title = title.strip()
        if not clean_title:
            raise ValueError("task title cannot be empty")
        return cls(
            id=new_id(),
            title=clean_title,
            description=description.strip(),
            tags=_unique(tags or []),
            created_at=now,
            updated_at=now,
        )

    @property
    def is_open(self) -> bool:
        return self.status in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)

    def start(self, now: datetime) -> None:
        if self.status in (TaskStatus.COMPLETED, TaskStatus.CANCELLED):
            return
        self.status = TaskStatus.IN_PROGRESS
        self.updated_at = now

    def complete(self, now: datetime) -> None:
        self.status = TaskStatus.COMPLETED
        self.completed_at = now
        self.updated_at = now

    def cancel(self, now: datetime) -> None:
        self.status = TaskStatus.CANCELLED
        self.updated_at = now

    def add_tag(self, tag: str) -> None:
        clean = tag.strip().lstrip("#")
        if clean and clean not in self.tags:
            self.tags.append(clean)

    def set_highlight(self, day: date, now: datetime) -> None:
        self.highlight_date = day
        self.updated_at = now

    def clear_highlight(self, now: datetime) -> None:
        self.highlight_date = None
        self.updated_at = now

    def is_highlight_for(self, day: date) -> bool:
        return self.highlight_date == day


def _unique(tags: list[str]) -> list[str]:
    clean: list[str] = []
    for tag in tags:
        item = tag.strip().lstrip("#")
        if item and item not in clean:
            clean.append(item)
    return clean
