from __future__ import annotations

from datetime import datetime, timedelta, timezone
import time
import unittest

from flowlog.clock import FakeClock, RealClock
from flowlog.methodology import Methodology
from flowlog.session import Session, SessionKind, SessionStatus, parse_tags_from_input


def _work(clock: FakeClock, minutes: float = 25) -> Session:
    return Session.start(SessionKind.WORK, timedelta(minutes=minutes), Methodology.POMODORO, clock.now())


class TestSessionLifecycle(unittest.TestCase):
    def test_new_session_is_running(self) -> None:
        clock = FakeClock()
        session = _work(clock)

        self.assertEqual(session.status, SessionStatus.RUNNING)
        self.assertTrue(session.is_active)
        self.assertTrue(session.is_work)
        self.assertIsNone(session.completed_at)
        self.assertEqual(session.remaining_time(clock.now()), timedelta(minutes=25))

    def test_pause_freezes_remaining_time(self) -> None:
        clock = FakeClock()
        session = _work(clock)
        clock.advance(minutes=10)
        session.pause(clock.now())
        clock.advance(minutes=30)

        self.assertEqual(session.status, SessionStatus.PAUSED)
        self.assertEqual(session.remaining_time(clock.now()), timedelta(minutes=15))
        self.assertEqual(session.elapsed_time(clock.now()), timedelta(minutes=10))
        self.assertFalse(session.is_expired(clock.now()))

    def test_resume_shifts_start_by_paused_interval(self) -> None:
        clock = FakeClock()
        session = _work(clock)
        original_start = session.started_at
        clock.advance(minutes=10)
        session.pause(clock.now())
        clock.advance(minutes=7)
        session.resume(clock.now())

        self.assertEqual(session.status, SessionStatus.RUNNING)
        self.assertIsNone(session.paused_at)
        self.assertEqual(session.started_at, original_start + timedelta(minutes=7))
        self.assertEqual(session.remaining_time(clock.now()), timedelta(minutes=15))

    def test_complete_from_paused(self) -> None:
        clock = FakeClock()
        session = _work(clock)
        session.pause(clock.now())
        clock.advance(minutes=1)
        session.complete(clock.now())

        self.assertEqual(session.status, SessionStatus.COMPLETED)
        self.assertEqual(session.completed_at, clock.now())
        self.assertEqual(session.remaining_time(clock.now()), timedelta(0))

    def test_complete_while_paused_drops_pause_gap(self) -> None:
        clock = FakeClock()
        session = _work(clock)
        clock.advance(minutes=10)
        session.pause(clock.now())
        clock.advance(minutes=60)
        session.complete(clock.now())

        self.assertIsNone(session.paused_at)
        self.assertEqual(session.elapsed_time(clock.now()), timedelta(minutes=10))
        self.assertAlmostEqual(session.progress(clock.now()), 0.4)

    def test_terminal_sessions_ignore_transitions(self) -> None:
        clock = FakeClock()
        session = _work(clock)
        session.cancel()
        session.pause(clock.now())
        session.resume(clock.now())
        session.complete(clock.now())
        session.void()

        self.assertEqual(session.status, SessionStatus.CANCELLED)
        self.assertIsNone(session.completed_at)

    def test_void_only_from_completed(self) -> None:
        clock = FakeClock()
        session = _work(clock)
        session.void()
        self.assertEqual(session.status, SessionStatus.RUNNING)

        session.complete(clock.now())
        session.void()
        self.assertEqual(session.status, SessionStatus.VOIDED)
        self.assertFalse(session.is_active)

    def test_resume_on_running_is_noop(self) -> None:
        clock = FakeClock()
        session = _work(clock)
        start = session.started_at
        clock.advance(minutes=3)
        session.resume(clock.now())

        self.assertEqual(session.started_at, start)


class TestSessionTiming(unittest.TestCase):
    def test_progress_is_clamped(self) -> None:
        clock = FakeClock()
        session = _work(clock, minutes=10)
        clock.advance(minutes=5)
        self.assertAlmostEqual(session.progress(clock.now()), 0.5)

        clock.advance(minutes=20)
        self.assertEqual(session.progress(clock.now()), 1.0)
        self.assertTrue(session.is_expired(clock.now()))
        self.assertEqual(session.remaining_time(clock.now()), timedelta(0))

    def test_zero_duration_has_zero_progress(self) -> None:
        clock = FakeClock()
        session = _work(clock, minutes=0)

        self.assertEqual(session.progress(clock.now()), 0.0)
        self.assertTrue(session.is_expired(clock.now()))

    def test_clock_before_start_does_not_go_negative(self) -> None:
        clock = FakeClock()
        session = _work(clock, minutes=10)
        earlier = clock.now() - timedelta(minutes=1)

        self.assertEqual(session.elapsed_time(earlier), timedelta(0))
        self.assertEqual(session.remaining_time(earlier), timedelta(minutes=10))

    def test_pause_recorded_before_start_keeps_full_remaining(self) -> None:
        clock = FakeClock()
        session = _work(clock, minutes=10)
        session.pause(clock.now() - timedelta(minutes=2))

        self.assertEqual(session.remaining_time(clock.now()), timedelta(minutes=10))
        self.assertEqual(session.elapsed_time(clock.now()), timedelta(0))

    def test_real_clock_short_session_expires(self) -> None:
        clock = RealClock()
        session = Session.start(
            SessionKind.WORK, timedelta(milliseconds=100), Methodology.POMODORO, clock.now()
        )
        remaining = session.remaining_time(clock.now())
        self.assertGreater(remaining, timedelta(0))
        self.assertLessEqual(remaining, timedelta(milliseconds=100))

        time.sleep(0.15)

        self.assertTrue(session.is_expired(clock.now()))
        self.assertEqual(session.progress(clock.now()), 1.0)


class TestSessionAnnotations(unittest.TestCase):
    def test_focus_score_bounds(self) -> None:
        session = _work(FakeClock())
        session.set_focus_score(5)
        self.assertEqual(session.focus_score, 5)

        for bad in (0, 6):
            with self.assertRaises(ValueError):
                session.set_focus_score(bad)
        self.assertEqual(session.focus_score, 5)

    def test_distraction_validation(self) -> None:
        session = _work(FakeClock())
        session.add_distraction("  查看邮件 ", "External")

        self.assertEqual(session.distractions[0].text, "查看邮件")
        self.assertEqual(session.distractions[0].category, "external")
        with self.assertRaises(ValueError):
            session.add_distraction("   ")
        with self.assertRaises(ValueError):
            session.add_distraction("刷手机", "social")

    def test_notes_append_on_new_line(self) -> None:
        session = _work(FakeClock())
        session.add_notes("第一条")
        session.add_notes("  ")
        session.add_notes("第二条")

        self.assertEqual(session.notes, "第一条\n第二条")


class TestParseTags(unittest.TestCase):
    def test_extracts_hash_tags(self) -> None:
        self.assertEqual(
            parse_tags_from_input("Build API #coding #backend"), ("Build API", ["coding", "backend"])
        )
        self.assertEqual(parse_tags_from_input("#coding #backend"), ("", ["coding", "backend"]))

    def test_tags_between_words_collapse_whitespace(self) -> None:
        text, tags = parse_tags_from_input("写周报  #work   #写作 收尾")

        self.assertEqual(text, "写周报 收尾")
        self.assertEqual(tags, ["work", "写作"])

    def test_lone_hash_stays_in_text(self) -> None:
        text, tags = parse_tags_from_input("issue # 12")

        self.assertEqual(text, "issue # 12")
        self.assertEqual(tags, [])
        self.assertEqual(parse_tags_from_input("Build # something"), ("Build # something", []))

    def test_empty_input(self) -> None:
        self.assertEqual(parse_tags_from_input(""), ("", []))


class TestFakeClock(unittest.TestCase):
    def test_naive_start_is_treated_as_utc(self) -> None:
        clock = FakeClock(start=datetime(2026, 3, 1, 8, 0))

        self.assertEqual(clock.now().tzinfo, timezone.utc)
        clock.sleep(30)
        self.assertEqual(clock.now(), datetime(2026, 3, 1, 8, 0, 30, tzinfo=timezone.utc))


if __name__ == "__main__":
    unittest.main()
