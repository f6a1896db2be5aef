from __future__ import annotations

from datetime import date, timedelta

from fastapi import APIRouter, Depends, Query

from ...analytics import Analytics, period_bounds
from ...reporting import build_stats
from ..deps import get_analytics, http_error
from ..schemas import (
    DailyStatsOut,
    EnergizeStatOut,
    HourlyOut,
    PeriodStatsOut,
    StatsOut,
    StreakOut,
)

router = APIRouter(prefix="/api/v1", tags=["stats"])


@router.get("/stats", response_model=StatsOut)
def get_stats(analytics: Analytics = Depends(get_analytics)) -> StatsOut:
    stats = build_stats(analytics)
    return StatsOut(
        today=PeriodStatsOut.from_stats(stats["today"]),
        this_week=PeriodStatsOut.from_stats(stats["this_week"]),
        last_7_days=PeriodStatsOut.from_stats(stats["last_7_days"]),
    )


@router.get("/stats/daily", response_model=DailyStatsOut)
def daily_stats(day: date | None = None, analytics: Analytics = Depends(get_analytics)) -> DailyStatsOut:
    return DailyStatsOut.from_stats(analytics.daily_stats(day))


@router.get("/stats/period", response_model=PeriodStatsOut)
def period_stats(
    period: str = Query(default="week", pattern="^(day|week|month)$"),
    analytics: Analytics = Depends(get_analytics),
) -> PeriodStatsOut:
    return PeriodStatsOut.from_stats(analytics.stats_for(period))


@router.get("/stats/streak", response_model=StreakOut)
def deep_work_streak(
    hours: float | None = Query(default=None, gt=0),
    analytics: Analytics = Depends(get_analytics),
) -> StreakOut:
    threshold = timedelta(hours=hours) if hours is not None else analytics.deep_work_goal()
    try:
        days = analytics.deep_work_streak(threshold)
    except ValueError as exc:
        raise http_error(exc) from exc
    return StreakOut(days=days, threshold_sec=threshold.total_seconds())


@router.get("/stats/hourly", response_model=list[HourlyOut])
def hourly_productivity(
    days: int = Query(default=30, ge=1, le=365),
    analytics: Analytics = Depends(get_analytics),
) -> list[HourlyOut]:
    hours = analytics.hourly_productivity(days)
    return [HourlyOut(hour=hour, total_sec=total.total_seconds()) for hour, total in hours.items()]


@router.get("/stats/energize", response_model=list[EnergizeStatOut])
def energize_stats(
    period: str = Query(default="month", pattern="^(day|week|month)$"),
    analytics: Analytics = Depends(get_analytics),
) -> list[EnergizeStatOut]:
    start, end = period_bounds(period, analytics.clock.now())
    return [EnergizeStatOut.from_stat(item) for item in analytics.energize_stats(start, end)]
