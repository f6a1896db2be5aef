from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

from ..analytics import DailyStats, EnergizeStat, PeriodStats
from ..session import Session
from ..task import Task


class DistractionOut(BaseModel):
    text: str
    category: str = ""


class RitualOut(BaseModel):
    pending_tasks_review: str = ""
    calendar_review: str = ""
    tomorrow_plan: str = ""
    closing_phrase: str = ""


class GitOut(BaseModel):
    branch: str
    commit: str
    modified_files: list[str] = Field(default_factory=list)


class SessionOut(BaseModel):
    id: str
    kind: str
    status: str
    methodology: str
    planned_duration_sec: float
    started_at: datetime
    paused_at: datetime | None = None
    completed_at: datetime | None = None
    task_id: str | None = None
    focus_score: int | None = None
    distractions: list[DistractionOut] = Field(default_factory=list)
    shutdown_ritual: RitualOut | None = None
    accomplishment: str = ""
    intended_outcome: str = ""
    energize_activity: str = ""
    notes: str = ""
    tags: list[str] = Field(default_factory=list)
    git: GitOut | None = None
    remaining_sec: float
    elapsed_sec: float
    progress: float

    @classmethod
    def from_session(cls, session: Session, now: datetime) -> SessionOut:
        ritual = session.shutdown_ritual
        return cls(
            id=session.id,
            kind=session.kind.value,
            status=session.status.value,
            methodology=session.methodology.value,
            planned_duration_sec=session.planned_duration.total_seconds(),
            started_at=session.started_at,
            paused_at=session.paused_at,
            completed_at=session.completed_at,
            task_id=session.task_id,
            focus_score=session.focus_score,
            distractions=[DistractionOut(text=d.text, category=d.category) for d in session.distractions],
            shutdown_ritual=RitualOut(**vars(ritual)) if ritual else None,
            accomplishment=session.accomplishment,
            intended_outcome=session.intended_outcome,
            energize_activity=session.energize_activity,
            notes=session.notes,
            tags=list(session.tags),
            git=(
                GitOut(
                    branch=session.git.branch,
                    commit=session.git.commit,
                    modified_files=list(session.git.modified_files),
                )
                if session.git
                else None
            ),
            remaining_sec=session.remaining_time(now).total_seconds(),
            elapsed_sec=session.elapsed_time(now).total_seconds(),
            progress=session.progress(now),
        )


class TaskOut(BaseModel):
    id: str
    title: str
    description: str
    status: str
    tags: list[str]
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    highlight_date: date | None = None

    @classmethod
    def from_task(cls, task: Task) -> TaskOut:
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status.value,
            tags=list(task.tags),
            created_at=task.created_at,
            updated_at=task.updated_at,
            completed_at=task.completed_at,
            highlight_date=task.highlight_date,
        )


class DailyStatsOut(BaseModel):
    day: date
    work_sessions: int
    breaks_taken: int
    total_work_sec: float

    @classmethod
    def from_stats(cls, stats: DailyStats) -> DailyStatsOut:
        return cls(
            day=stats.day,
            work_sessions=stats.work_sessions,
            breaks_taken=stats.breaks_taken,
            total_work_sec=stats.total_work_time.total_seconds(),
        )


class MethodologyBreakdownOut(BaseModel):
    methodology: str
    sessions: int
    total_sec: float


class PeriodStatsOut(BaseModel):
    start: datetime
    end: datetime
    total_sessions: int
    total_work_sec: float
    by_methodology: list[MethodologyBreakdownOut]
    avg_focus_score: float
    focus_score_count: int
    distraction_count: int

    @classmethod
    def from_stats(cls, stats: PeriodStats) -> PeriodStatsOut:
        return cls(
            start=stats.start,
            end=stats.end,
            total_sessions=stats.total_sessions,
            total_work_sec=stats.total_work_time.total_seconds(),
            by_methodology=[
                MethodologyBreakdownOut(
                    methodology=item.methodology,
                    sessions=item.sessions,
                    total_sec=item.total_time.total_seconds(),
                )
                for item in stats.by_methodology
            ],
            avg_focus_score=stats.avg_focus_score,
            focus_score_count=stats.focus_score_count,
            distraction_count=stats.distraction_count,
        )


class StatsOut(BaseModel):
    today: PeriodStatsOut
    this_week: PeriodStatsOut
    last_7_days: PeriodStatsOut


class EnergizeStatOut(BaseModel):
    activity: str
    sessions: int
    avg_focus_score: float

    @classmethod
    def from_stat(cls, stat: EnergizeStat) -> EnergizeStatOut:
        return cls(activity=stat.activity, sessions=stat.sessions, avg_focus_score=stat.avg_focus_score)


class HourlyOut(BaseModel):
    hour: int
    total_sec: float


class StreakOut(BaseModel):
    days: int
    threshold_sec: float


class StateOut(BaseModel):
    methodology: str
    active_task: TaskOut | None = None
    active_session: SessionOut | None = None
    today: DailyStatsOut


class StartWorkRequest(BaseModel):
    task_id: str | None = None
    minutes: float | None = Field(default=None, gt=0)
    preset: str | None = None
    methodology: str | None = None
    intended_outcome: str = ""
    tags: list[str] = Field(default_factory=list)


class StartBreakRequest(BaseModel):
    methodology: str | None = None


class DistractionRequest(BaseModel):
    text: str = Field(min_length=1)
    category: Literal["", "internal", "external"] = ""


class FocusScoreRequest(BaseModel):
    score: int = Field(ge=1, le=5)


class TextRequest(BaseModel):
    text: str


class RitualRequest(BaseModel):
    pending_tasks_review: str = ""
    calendar_review: str = ""
    tomorrow_plan: str = ""
    closing_phrase: str = ""


class TaskCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    tags: list[str] = Field(default_factory=list)


class HighlightRequest(BaseModel):
    day: date | None = None


class FileResult(BaseModel):
    path: str


class HealthOut(BaseModel):
    status: str = Field(default="ok")


class MetaOut(BaseModel):
    app: str
    version: str
    db_path: str
    platform: str
    methodology: str
