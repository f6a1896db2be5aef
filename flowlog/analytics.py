from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time as dtime, timedelta
import logging
from typing import TYPE_CHECKING, Callable, Iterable

from .methodology import Methodology, policy_for
from .session import Session, SessionKind, SessionStatus

if TYPE_CHECKING:
    from .clock import Clock
    from .config import Settings
    from .ports import SessionStore

logger = logging.getLogger(__name__)

STREAK_MAX_DAYS = 365
DEEP_WORK = Methodology.DEEP_WORK.value


@dataclass(frozen=True)
class DailyStats:
    day: date
    work_sessions: int = 0
    breaks_taken: int = 0
    total_work_time: timedelta = timedelta(0)


@dataclass(frozen=True)
class MethodologyBreakdown:
    methodology: str
    sessions: int
    total_time: timedelta


@dataclass(frozen=True)
class PeriodStats:
    start: datetime
    end: datetime
    total_sessions: int = 0
    total_work_time: timedelta = timedelta(0)
    by_methodology: list[MethodologyBreakdown] = field(default_factory=list)
    avg_focus_score: float = 0.0
    focus_score_count: int = 0
    distraction_count: int = 0


@dataclass(frozen=True)
class EnergizeStat:
    activity: str
    sessions: int
    avg_focus_score: float


def day_start(day: date, tz) -> datetime:
    return datetime.combine(day, dtime.min, tzinfo=tz)


def period_bounds(period: str, now: datetime) -> tuple[datetime, datetime]:
    today = day_start(now.date(), now.tzinfo)
    if period == "day":
        return today, today + timedelta(days=1)
    if period == "week":
        start = today - timedelta(days=today.weekday())
        return start, start + timedelta(days=7)
    if period == "month":
        start = today.replace(day=1)
        if start.month == 12:
            end = start.replace(year=start.year + 1, month=1)
        else:
            end = start.replace(month=start.month + 1)
        return start, end
    raise ValueError(f"unknown period: {period}")


def _completed_work(sessions: Iterable[Session]) -> list[Session]:
    return [
        item
        for item in sessions
        if item.kind == SessionKind.WORK and item.status == SessionStatus.COMPLETED
    ]


def _within(sessions: Iterable[Session], start: datetime, end: datetime) -> list[Session]:
    return [item for item in sessions if start <= item.started_at < end]


def _methodology_name(session: Session) -> str:
    return getattr(session.methodology, "value", str(session.methodology))


def compute_daily_stats(sessions: Iterable[Session], start: datetime) -> DailyStats:
    end = start + timedelta(days=1)
    work_sessions = 0
    breaks_taken = 0
    total = timedelta(0)
    for item in _within(sessions, start, end):
        if item.status != SessionStatus.COMPLETED:
            continue
        if item.kind == SessionKind.WORK:
            work_sessions += 1
            total += item.planned_duration
        else:
            breaks_taken += 1
    return DailyStats(
        day=start.date(),
        work_sessions=work_sessions,
        breaks_taken=breaks_taken,
        total_work_time=total,
    )


def compute_period_stats(sessions: Iterable[Session], start: datetime, end: datetime) -> PeriodStats:
    work = _completed_work(_within(sessions, start, end))

    grouped: dict[str, list[Session]] = {}
    for item in work:
        grouped.setdefault(_methodology_name(item), []).append(item)
    breakdown = [
        MethodologyBreakdown(
            methodology=name,
            sessions=len(items),
            total_time=sum((x.planned_duration for x in items), timedelta(0)),
        )
        for name, items in sorted(grouped.items())
    ]

    scores = [item.focus_score for item in work if item.focus_score is not None]
    return PeriodStats(
        start=start,
        end=end,
        total_sessions=len(work),
        total_work_time=sum((x.planned_duration for x in work), timedelta(0)),
        by_methodology=breakdown,
        avg_focus_score=(sum(scores) / len(scores)) if scores else 0.0,
        focus_score_count=len(scores),
        distraction_count=sum(len(item.distractions) for item in work),
    )


def compute_deep_work_duration(sessions: Iterable[Session]) -> timedelta:
    total = timedelta(0)
    for item in _completed_work(sessions):
        if _methodology_name(item) == DEEP_WORK:
            total += item.planned_duration
    return total


def compute_deep_work_streak(
    duration_for_day: Callable[[date], timedelta],
    today: date,
    threshold: timedelta,
    max_days: int = STREAK_MAX_DAYS,
) -> int:
    """Count consecutive qualifying days ending today.

    Today below the threshold is skipped rather than ending the streak;
    any earlier day below it stops the walk.
    """
    if threshold <= timedelta(0):
        raise ValueError("streak threshold must be positive")

    streak = 0
    for offset in range(max_days):
        day = today - timedelta(days=offset)
        if duration_for_day(day) >= threshold:
            streak += 1
        elif offset == 0:
            continue
        else:
            break
    return streak


def compute_hourly_productivity(sessions: Iterable[Session]) -> dict[int, timedelta]:
    hours: dict[int, timedelta] = {}
    for item in _completed_work(sessions):
        hour = item.started_at.hour
        hours[hour] = hours.get(hour, timedelta(0)) + item.planned_duration
    return dict(sorted(hours.items()))


def compute_energize_stats(sessions: Iterable[Session]) -> list[EnergizeStat]:
    grouped: dict[str, list[int]] = {}
    for item in _completed_work(sessions):
        activity = item.energize_activity.strip()
        if not activity or item.focus_score is None:
            continue
        grouped.setdefault(activity, []).append(item.focus_score)

    stats = [
        EnergizeStat(activity=name, sessions=len(scores), avg_focus_score=sum(scores) / len(scores))
        for name, scores in grouped.items()
    ]
    stats.sort(key=lambda x: (-x.avg_focus_score, x.activity))
    return stats


class Analytics:
    """Read-only summaries over the session log."""

    def __init__(self, storage: SessionStore, clock: Clock, settings: Settings | None = None) -> None:
        self.storage = storage
        self.clock = clock
        self.settings = settings

    def today(self) -> date:
        return self.clock.now().date()

    def daily_stats(self, day: date | None = None) -> DailyStats:
        now = self.clock.now()
        return self.storage.get_daily_stats(day_start(day or now.date(), now.tzinfo))

    def period_stats(self, start: datetime, end: datetime) -> PeriodStats:
        return self.storage.get_period_stats(start, end)

    def stats_for(self, period: str) -> PeriodStats:
        start, end = period_bounds(period, self.clock.now())
        return self.period_stats(start, end)

    def deep_work_goal(self) -> timedelta:
        goal = policy_for(Methodology.DEEP_WORK, self.settings).deep_work_goal
        return goal or timedelta(hours=4)

    def deep_work_streak(self, threshold: timedelta | None = None) -> int:
        now = self.clock.now()
        tz = now.tzinfo
        target = threshold if threshold is not None else self.deep_work_goal()
        streak = compute_deep_work_streak(
            lambda day: self.storage.get_deep_work_duration(day_start(day, tz)),
            today=now.date(),
            threshold=target,
        )
        logger.debug("deep work streak %s day(s) at threshold %s", streak, target)
        return streak

    def hourly_productivity(self, days: int = 30) -> dict[int, timedelta]:
        if days < 1:
            raise ValueError("days must be at least 1")
        return self.storage.get_hourly_productivity(days, self.clock.now())

    def energize_stats(self, start: datetime, end: datetime) -> list[EnergizeStat]:
        return self.storage.get_energize_stats(start, end)

    def sessions_between(self, start: datetime, end: datetime) -> list[Session]:
        return self.storage.find_sessions_between(start, end)
