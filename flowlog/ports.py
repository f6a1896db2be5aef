from __future__ import annotations

from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Protocol

from .analytics import DailyStats, EnergizeStat, PeriodStats
from .session import GitContext, Session
from .task import Task


class SessionStore(Protocol):
    """Persistence contract used by the scheduling and task services."""

    def find_active_session(self) -> Session | None:
        ...

    def save_session(self, session: Session, task: Task | None = None) -> None:
        ...

    def update_session(self, session: Session) -> None:
        ...

    def find_session_by_id(self, session_id: str) -> Session | None:
        ...

    def find_sessions_since(self, since: datetime) -> list[Session]:
        ...

    def find_sessions_between(self, start: datetime, end: datetime) -> list[Session]:
        ...

    def find_sessions_by_task(self, task_id: str) -> list[Session]:
        ...

    def find_latest_session(self) -> Session | None:
        ...

    def get_daily_stats(self, day_start: datetime) -> DailyStats:
        ...

    def get_period_stats(self, start: datetime, end: datetime) -> PeriodStats:
        ...

    def get_deep_work_duration(self, day_start: datetime) -> timedelta:
        ...

    def get_hourly_productivity(self, days: int, now: datetime) -> dict[int, timedelta]:
        ...

    def get_energize_stats(self, start: datetime, end: datetime) -> list[EnergizeStat]:
        ...

    def save_task(self, task: Task) -> None:
        ...

    def update_task(self, task: Task) -> None:
        ...

    def delete_task(self, task_id: str) -> None:
        ...

    def find_task_by_id(self, task_id: str) -> Task | None:
        ...

    def find_active_task(self) -> Task | None:
        ...

    def list_tasks(self, status: str | None = None) -> list[Task]:
        ...

    def find_recent_tasks_with_sessions(self, limit: int) -> list[Task]:
        ...

    def find_highlight_for_date(self, day: date) -> Task | None:
        ...


class GitDetector(Protocol):
    def detect(self, working_dir: Path | None = None) -> GitContext | None:
        ...
