from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
import unittest

from flowlog.analytics import (
    compute_daily_stats,
    compute_deep_work_duration,
    compute_deep_work_streak,
    compute_energize_stats,
    compute_hourly_productivity,
    compute_period_stats,
    period_bounds,
)
from flowlog.methodology import Methodology
from flowlog.session import Session, SessionKind, SessionStatus

BASE = datetime(2026, 2, 13, 9, 0, tzinfo=timezone.utc)


def _session(
    start: datetime,
    minutes: float = 25,
    kind: SessionKind = SessionKind.WORK,
    status: SessionStatus = SessionStatus.COMPLETED,
    methodology: Methodology = Methodology.POMODORO,
    focus_score: int | None = None,
    energize: str = "",
) -> Session:
    session = Session.start(kind, timedelta(minutes=minutes), methodology, start)
    session.status = status
    if status in (SessionStatus.COMPLETED, SessionStatus.VOIDED):
        session.completed_at = start + timedelta(minutes=minutes)
    session.focus_score = focus_score
    session.energize_activity = energize
    return session


class TestDailyStats(unittest.TestCase):
    def test_counts_completed_sessions_only(self) -> None:
        day = datetime(2026, 2, 13, tzinfo=timezone.utc)
        sessions = [
            _session(BASE),
            _session(BASE + timedelta(hours=1), minutes=50),
            _session(BASE + timedelta(hours=2), kind=SessionKind.SHORT_BREAK, minutes=5),
            _session(BASE + timedelta(hours=3), status=SessionStatus.CANCELLED),
            _session(BASE + timedelta(hours=4), status=SessionStatus.VOIDED),
            _session(BASE + timedelta(hours=5), status=SessionStatus.RUNNING),
            _session(BASE - timedelta(days=1)),
        ]

        stats = compute_daily_stats(sessions, day)

        self.assertEqual(stats.day, date(2026, 2, 13))
        self.assertEqual(stats.work_sessions, 2)
        self.assertEqual(stats.breaks_taken, 1)
        self.assertEqual(stats.total_work_time, timedelta(minutes=75))


class TestPeriodStats(unittest.TestCase):
    def test_breakdown_focus_and_distractions(self) -> None:
        deep = _session(BASE, minutes=90, methodology=Methodology.DEEP_WORK, focus_score=4)
        deep.add_distraction("邮件")
        deep.add_distraction("电话", "external")
        sessions = [
            deep,
            _session(BASE + timedelta(hours=2), focus_score=2),
            _session(BASE + timedelta(hours=3)),
            _session(BASE + timedelta(hours=4), kind=SessionKind.LONG_BREAK, minutes=15),
        ]

        stats = compute_period_stats(sessions, BASE, BASE + timedelta(days=1))

        self.assertEqual(stats.total_sessions, 3)
        self.assertEqual(stats.total_work_time, timedelta(minutes=140))
        self.assertEqual(
            [(b.methodology, b.sessions, b.total_time) for b in stats.by_methodology],
            [("deepwork", 1, timedelta(minutes=90)), ("pomodoro", 2, timedelta(minutes=50))],
        )
        self.assertAlmostEqual(stats.avg_focus_score, 3.0)
        self.assertEqual(stats.focus_score_count, 2)
        self.assertEqual(stats.distraction_count, 2)

    def test_empty_period(self) -> None:
        stats = compute_period_stats([], BASE, BASE + timedelta(days=7))

        self.assertEqual(stats.total_sessions, 0)
        self.assertEqual(stats.avg_focus_score, 0.0)
        self.assertEqual(stats.by_methodology, [])

    def test_period_bounds(self) -> None:
        now = datetime(2026, 12, 16, 15, 30, tzinfo=timezone.utc)

        start, end = period_bounds("week", now)
        self.assertEqual(start, datetime(2026, 12, 14, tzinfo=timezone.utc))
        self.assertEqual(end - start, timedelta(days=7))
        start, end = period_bounds("month", now)
        self.assertEqual((start.day, end.year, end.month), (1, 2027, 1))
        with self.assertRaises(ValueError):
            period_bounds("year", now)


class TestDeepWork(unittest.TestCase):
    def test_duration_counts_completed_deep_work_only(self) -> None:
        sessions = [
            _session(BASE, minutes=90, methodology=Methodology.DEEP_WORK),
            _session(BASE, minutes=60, methodology=Methodology.DEEP_WORK, status=SessionStatus.VOIDED),
            _session(BASE, minutes=25),
        ]

        self.assertEqual(compute_deep_work_duration(sessions), timedelta(minutes=90))

    def test_streak_skips_unfinished_today(self) -> None:
        today = date(2026, 2, 13)
        totals = {
            today: timedelta(hours=1),
            today - timedelta(days=1): timedelta(hours=4),
            today - timedelta(days=2): timedelta(hours=5),
            today - timedelta(days=3): timedelta(hours=2),
            today - timedelta(days=4): timedelta(hours=6),
        }

        streak = compute_deep_work_streak(
            lambda day: totals.get(day, timedelta(0)), today, timedelta(hours=4)
        )
        self.assertEqual(streak, 2)

    def test_streak_includes_qualifying_today(self) -> None:
        today = date(2026, 2, 13)
        streak = compute_deep_work_streak(lambda day: timedelta(hours=4), today, timedelta(hours=4), max_days=10)

        self.assertEqual(streak, 10)

    def test_streak_zero_when_yesterday_missed(self) -> None:
        today = date(2026, 2, 13)
        streak = compute_deep_work_streak(
            lambda day: timedelta(0) if day != today else timedelta(hours=1), today, timedelta(hours=4)
        )

        self.assertEqual(streak, 0)

    def test_streak_rejects_non_positive_threshold(self) -> None:
        with self.assertRaises(ValueError):
            compute_deep_work_streak(lambda day: timedelta(0), date(2026, 2, 13), timedelta(0))


class TestHourlyAndEnergize(unittest.TestCase):
    def test_hourly_uses_recorded_local_hour(self) -> None:
        tz = timezone(timedelta(hours=8))
        sessions = [
            _session(datetime(2026, 2, 13, 9, 10, tzinfo=tz)),
            _session(datetime(2026, 2, 13, 9, 40, tzinfo=tz), minutes=50),
            _session(datetime(2026, 2, 13, 14, 0, tzinfo=tz)),
            _session(datetime(2026, 2, 13, 16, 0, tzinfo=tz), status=SessionStatus.CANCELLED),
        ]

        hourly = compute_hourly_productivity(sessions)

        self.assertEqual(list(hourly), [9, 14])
        self.assertEqual(hourly[9], timedelta(minutes=75))

    def test_energize_sorted_by_average(self) -> None:
        sessions = [
            _session(BASE, focus_score=3, energize="散步"),
            _session(BASE, focus_score=5, energize="散步"),
            _session(BASE, focus_score=5, energize="冥想"),
            _session(BASE, focus_score=2, energize="刷手机"),
            _session(BASE, energize="无评分"),
            _session(BASE, focus_score=4),
        ]

        stats = compute_energize_stats(sessions)

        self.assertEqual([s.activity for s in stats], ["冥想", "散步", "刷手机"])
        self.assertEqual(stats[1].sessions, 2)
        self.assertAlmostEqual(stats[1].avg_focus_score, 4.0)


if __name__ == "__main__":
    unittest.main()
