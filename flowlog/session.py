from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from .methodology import Methodology


class SessionKind(str, Enum):
    WORK = "work"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"


class SessionStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    VOIDED = "voided"


ACTIVE_STATUSES = (SessionStatus.RUNNING, SessionStatus.PAUSED)
DISTRACTION_CATEGORIES = ("", "internal", "external")


@dataclass(frozen=True)
class Distraction:
    text: str
    category: str = ""


@dataclass(frozen=True)
class ShutdownRitual:
    pending_tasks_review: str = ""
    calendar_review: str = ""
    tomorrow_plan: str = ""
    closing_phrase: str = ""


@dataclass(frozen=True)
class GitContext:
    branch: str = ""
    commit: str = ""
    modified_files: tuple[str, ...] = ()


def new_id() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now().astimezone()


@dataclass
class Session:
    """One timed work or break interval.

    Transitions mirror the lifecycle Running <-> Paused, Running/Paused ->
    Completed or Cancelled, Completed -> Voided. Calls that do not match the
    current status are no-ops, so terminal sessions never become active
    again. Time-dependent methods accept ``now`` so callers can feed the
    value of their injected clock.
    """

    id: str
    kind: SessionKind
    status: SessionStatus
    planned_duration: timedelta
    started_at: datetime
    methodology: Methodology
    task_id: str | None = None
    paused_at: datetime | None = None
    completed_at: datetime | None = None
    focus_score: int | None = None
    distractions: list[Distraction] = field(default_factory=list)
    shutdown_ritual: ShutdownRitual | None = None
    accomplishment: str = ""
    intended_outcome: str = ""
    energize_activity: str = ""
    notes: str = ""
    tags: list[str] = field(default_factory=list)
    git: GitContext | None = None

    @classmethod
    def start(
        cls,
        kind: SessionKind,
        planned_duration: timedelta,
        methodology: Methodology,
        now: datetime,
        task_id: str | None = None,
    ) -> Session:
        return cls(
            id=new_id(),
            kind=kind,
            status=SessionStatus.RUNNING,
            planned_duration=planned_duration,
            started_at=now,
            methodology=methodology,
            task_id=task_id,
        )

    @property
    def is_work(self) -> bool:
        return self.kind == SessionKind.WORK

    @property
    def is_break(self) -> bool:
        return self.kind in (SessionKind.SHORT_BREAK, SessionKind.LONG_BREAK)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def pause(self, now: datetime | None = None) -> None:
        if self.status != SessionStatus.RUNNING:
            return
        self.status = SessionStatus.PAUSED
        self.paused_at = now or _now()

    def resume(self, now: datetime | None = None) -> None:
        if self.status != SessionStatus.PAUSED or self.paused_at is None:
            return
        current = now or _now()
        self.started_at += max(timedelta(0), current - self.paused_at)
        self.paused_at = None
        self.status = SessionStatus.RUNNING

    def complete(self, now: datetime | None = None) -> None:
        if not self.is_active:
            return
        current = now or _now()
        if self.status == SessionStatus.PAUSED and self.paused_at is not None:
            self.started_at += max(timedelta(0), current - self.paused_at)
            self.paused_at = None
        self.status = SessionStatus.COMPLETED
        self.completed_at = current

    def cancel(self) -> None:
        if not self.is_active:
            return
        self.status = SessionStatus.CANCELLED

    def void(self) -> None:
        if self.status != SessionStatus.COMPLETED:
            return
        self.status = SessionStatus.VOIDED

    def elapsed_time(self, now: datetime | None = None) -> timedelta:
        if self.status == SessionStatus.PAUSED and self.paused_at is not None:
            end = self.paused_at
        elif self.status == SessionStatus.RUNNING:
            end = now or _now()
        elif self.completed_at is not None:
            end = self.completed_at
        else:
            end = now or _now()
        return max(timedelta(0), end - self.started_at)

    def remaining_time(self, now: datetime | None = None) -> timedelta:
        if self.status == SessionStatus.RUNNING:
            elapsed = max(timedelta(0), (now or _now()) - self.started_at)
        elif self.status == SessionStatus.PAUSED:
            if self.paused_at is None:
                return self.planned_duration
            elapsed = max(timedelta(0), self.paused_at - self.started_at)
        else:
            return timedelta(0)
        return max(timedelta(0), self.planned_duration - elapsed)

    def progress(self, now: datetime | None = None) -> float:
        if self.planned_duration <= timedelta(0):
            return 0.0
        ratio = self.elapsed_time(now) / self.planned_duration
        return min(1.0, max(0.0, ratio))

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.status == SessionStatus.RUNNING and self.remaining_time(now) <= timedelta(0)

    def set_git_context(self, context: GitContext | None) -> None:
        self.git = context

    def add_distraction(self, text: str, category: str = "") -> Distraction:
        clean_text = text.strip()
        if not clean_text:
            raise ValueError("distraction text cannot be empty")
        clean_category = category.strip().lower()
        if clean_category not in DISTRACTION_CATEGORIES:
            raise ValueError(f"unknown distraction category: {category}")
        item = Distraction(text=clean_text, category=clean_category)
        self.distractions.append(item)
        return item

    def set_focus_score(self, score: int) -> None:
        if not 1 <= int(score) <= 5:
            raise ValueError("focus score must be between 1 and 5")
        self.focus_score = int(score)

    def add_notes(self, text: str) -> None:
        clean = text.strip()
        if not clean:
            return
        self.notes = f"{self.notes}\n{clean}" if self.notes else clean


def parse_tags_from_input(text: str) -> tuple[str, list[str]]:
    """Split ``#tag`` tokens out of free-form input.

    Returns the remaining words joined by single spaces and the tags
    without their leading ``#``. A lone ``#`` stays in the text.
    """
    words: list[str] = []
    tags: list[str] = []
    for token in text.split():
        if token.startswith("#") and len(token) > 1:
            tags.append(token[1:])
        else:
            words.append(token)
    return " ".join(words), tags
