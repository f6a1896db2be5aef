from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING

from .errors import InvalidMethodologyError
from .session import SessionKind
from .task import Task, TaskStatus

if TYPE_CHECKING:
    from .config import Settings


class Methodology(str, Enum):
    POMODORO = "pomodoro"
    DEEP_WORK = "deepwork"
    MAKE_TIME = "maketime"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    Methodology.POMODORO: "Pomodoro",
    Methodology.DEEP_WORK: "Deep Work",
    Methodology.MAKE_TIME: "Make Time",
}

POMODORO_SESSIONS_BEFORE_LONG = 4

DEFAULT_POMODORO_SHORT_BREAK = timedelta(minutes=5)
DEFAULT_POMODORO_LONG_BREAK = timedelta(minutes=15)
DEFAULT_DEEP_WORK_BREAK = timedelta(minutes=20)
DEFAULT_MAKE_TIME_BREAK = timedelta(minutes=15)
DEFAULT_DEEP_WORK_GOAL_HOURS = 4.0

LASER_CHECKLIST = (
    "手机已开启勿扰模式？",
    "通知已关闭？",
    "分心的标签页/应用已关闭？",
)


@dataclass(frozen=True)
class SessionPreset:
    name: str
    duration: timedelta


@dataclass(frozen=True)
class MethodologyConfig:
    methodology: Methodology
    description: str
    presets: tuple[SessionPreset, ...]
    work_duration: timedelta
    short_break: timedelta
    long_break: timedelta
    sessions_before_long: int
    task_prompt: str
    completion_title: str
    outcome_prompt: str | None = None
    uses_highlight: bool = False
    uses_checklist: bool = False
    uses_distraction_log: bool = False
    uses_focus_score: bool = False
    uses_shutdown_ritual: bool = False
    uses_energize: bool = False
    deep_work_goal: timedelta | None = None

    @property
    def label(self) -> str:
        return self.methodology.label

    @property
    def has_long_break(self) -> bool:
        return self.short_break != self.long_break

    def preset(self, name_or_index: str) -> SessionPreset:
        text = name_or_index.strip()
        if text.isdigit():
            index = int(text) - 1
            if 0 <= index < len(self.presets):
                return self.presets[index]
        for item in self.presets:
            if item.name.lower() == text.lower():
                return item
        raise ValueError(f"unknown preset for {self.label}: {name_or_index}")


@dataclass(frozen=True)
class BreakPlan:
    kind: SessionKind
    duration: timedelta


def parse_methodology(value: str) -> Methodology:
    text = (value or "").strip().lower()
    try:
        return Methodology(text)
    except ValueError as exc:
        choices = ", ".join(item.value for item in Methodology)
        raise InvalidMethodologyError(
            f"invalid methodology: {value!r} (choose one of {choices})"
        ) from exc


def policy_for(methodology: Methodology, settings: Settings | None = None) -> MethodologyConfig:
    if settings is None:
        from .config import Settings

        settings = Settings()

    if methodology == Methodology.POMODORO:
        cfg = settings.pomodoro
        return MethodologyConfig(
            methodology=methodology,
            description="经典番茄工作法：短时专注，定时休息，每 4 个番茄后长休息。",
            presets=(
                SessionPreset("Focus", timedelta(minutes=25)),
                SessionPreset("Short", timedelta(minutes=15)),
                SessionPreset("Deep", timedelta(minutes=50)),
            ),
            work_duration=_minutes(cfg.work_minutes, timedelta(minutes=25)),
            short_break=_minutes(cfg.short_break_minutes, DEFAULT_POMODORO_SHORT_BREAK),
            long_break=_minutes(cfg.long_break_minutes, DEFAULT_POMODORO_LONG_BREAK),
            sessions_before_long=POMODORO_SESSIONS_BEFORE_LONG,
            task_prompt="正在做什么？（回车跳过）",
            completion_title="番茄完成",
        )
    if methodology == Methodology.DEEP_WORK:
        cfg = settings.deep_work
        single_break = _minutes(cfg.break_minutes, DEFAULT_DEEP_WORK_BREAK)
        return MethodologyConfig(
            methodology=methodology,
            description="深度工作：长时间无干扰专注，记录分心，收工时完成结束仪式。",
            presets=(
                SessionPreset("Deep", timedelta(minutes=90)),
                SessionPreset("Focus", timedelta(minutes=50)),
                SessionPreset("Shallow", timedelta(minutes=25)),
            ),
            work_duration=_minutes(cfg.work_minutes, timedelta(minutes=90)),
            short_break=single_break,
            long_break=single_break,
            sessions_before_long=POMODORO_SESSIONS_BEFORE_LONG,
            task_prompt="这次要深度专注于什么？",
            completion_title="深度工作完成",
            outcome_prompt="本次会话的预期成果：",
            uses_distraction_log=True,
            uses_shutdown_ritual=True,
            deep_work_goal=timedelta(
                hours=cfg.goal_hours if cfg.goal_hours > 0 else DEFAULT_DEEP_WORK_GOAL_HOURS
            ),
        )
    if methodology == Methodology.MAKE_TIME:
        cfg = settings.make_time
        single_break = _minutes(cfg.break_minutes, DEFAULT_MAKE_TIME_BREAK)
        return MethodologyConfig(
            methodology=methodology,
            description="Make Time：每天选定一个 Highlight，专注完成，并记录专注评分与充电活动。",
            presets=(
                SessionPreset("Highlight", timedelta(minutes=60)),
                SessionPreset("Sprint", timedelta(minutes=25)),
                SessionPreset("Quick", timedelta(minutes=15)),
            ),
            work_duration=_minutes(cfg.work_minutes, timedelta(minutes=60)),
            short_break=single_break,
            long_break=single_break,
            sessions_before_long=POMODORO_SESSIONS_BEFORE_LONG,
            task_prompt="今天的 Highlight 是什么？",
            completion_title="Highlight 时段完成",
            uses_highlight=True,
            uses_checklist=cfg.checklist_enabled,
            uses_focus_score=True,
            uses_energize=True,
        )
    raise InvalidMethodologyError(f"invalid methodology: {methodology!r}")


def select_break(completed_work_today: int, config: MethodologyConfig) -> BreakPlan:
    count = max(0, int(completed_work_today))
    interval = max(1, config.sessions_before_long)
    is_long = count > 0 and count % interval == 0
    if is_long:
        return BreakPlan(kind=SessionKind.LONG_BREAK, duration=config.long_break)
    return BreakPlan(kind=SessionKind.SHORT_BREAK, duration=config.short_break)


def carry_forward_candidate(
    today_highlight: Task | None,
    yesterday_highlight: Task | None,
) -> Task | None:
    if today_highlight is not None or yesterday_highlight is None:
        return None
    if yesterday_highlight.status == TaskStatus.COMPLETED:
        return None
    return yesterday_highlight


def _minutes(value: float, fallback: timedelta) -> timedelta:
    if value is None or value <= 0:
        return fallback
    return timedelta(minutes=float(value))
