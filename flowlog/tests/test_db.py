from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
import sqlite3
import unittest

from flowlog.clock import FakeClock
from flowlog.db import FlowLogDB
from flowlog.errors import SessionNotFoundError, StorageError, TaskNotFoundError
from flowlog.methodology import Methodology
from flowlog.session import GitContext, Session, SessionKind, SessionStatus, ShutdownRitual
from flowlog.task import Task, TaskStatus
from flowlog.tests.test_helpers import local_tmp_dir


class TestDBSchema(unittest.TestCase):
    def test_schema_created(self) -> None:
        with local_tmp_dir() as tmp:
            db_path = tmp / "data" / "flowlog.sqlite"
            FlowLogDB(db_path)

            with sqlite3.connect(db_path) as conn:
                names = {
                    row[0]
                    for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
                }

            self.assertIn("sessions", names)
            self.assertIn("tasks", names)

    def test_corrupt_file_raises_storage_error(self) -> None:
        with local_tmp_dir() as tmp:
            db_path = tmp / "broken.sqlite"
            db_path.write_bytes(b"this is not a sqlite database" * 20)

            with self.assertRaises(StorageError):
                FlowLogDB(db_path)


class TestSessionStorage(unittest.TestCase):
    def test_round_trip_keeps_original_offset(self) -> None:
        with local_tmp_dir() as tmp:
            db = FlowLogDB(tmp / "flowlog.sqlite")
            tz = timezone(timedelta(hours=8))
            session = Session.start(
                SessionKind.WORK,
                timedelta(minutes=90),
                Methodology.DEEP_WORK,
                datetime(2026, 2, 13, 9, 30, tzinfo=tz),
            )
            session.tags = ["写作", "dev"]
            session.add_distraction("微信", "external")
            session.shutdown_ritual = ShutdownRitual(closing_phrase="收工")
            session.git = GitContext(branch="main", commit="abc", modified_files=("x.py",))
            db.save_session(session)

            loaded = db.find_session_by_id(session.id)

            self.assertIsNotNone(loaded)
            self.assertEqual(loaded.started_at, session.started_at)
            self.assertEqual(loaded.started_at.utcoffset(), timedelta(hours=8))
            self.assertEqual(loaded.planned_duration, timedelta(minutes=90))
            self.assertEqual(loaded.methodology, Methodology.DEEP_WORK)
            self.assertEqual(loaded.tags, ["写作", "dev"])
            self.assertEqual(loaded.distractions[0].category, "external")
            self.assertEqual(loaded.shutdown_ritual.closing_phrase, "收工")
            self.assertEqual(loaded.git.modified_files, ("x.py",))

    def test_update_missing_session_raises(self) -> None:
        with local_tmp_dir() as tmp:
            db = FlowLogDB(tmp / "flowlog.sqlite")
            session = Session.start(
                SessionKind.WORK, timedelta(minutes=25), Methodology.POMODORO, FakeClock().now()
            )

            with self.assertRaises(SessionNotFoundError):
                db.update_session(session)

    def test_active_session_and_filters(self) -> None:
        with local_tmp_dir() as tmp:
            db = FlowLogDB(tmp / "flowlog.sqlite")
            clock = FakeClock()
            done = Session.start(SessionKind.WORK, timedelta(minutes=25), Methodology.POMODORO, clock.now())
            done.tags = ["a"]
            done.complete(clock.advance(minutes=25))
            db.save_session(done)
            running = Session.start(
                SessionKind.SHORT_BREAK, timedelta(minutes=5), Methodology.POMODORO, clock.advance(minutes=1)
            )
            db.save_session(running)

            self.assertEqual(db.find_active_session().id, running.id)
            self.assertEqual(db.find_latest_session().id, running.id)
            self.assertEqual([s.id for s in db.list_sessions(tag="#a")], [done.id])
            self.assertEqual([s.id for s in db.list_sessions(status="completed")], [done.id])
            self.assertEqual(len(db.find_sessions_since(clock.now())), 1)
            self.assertEqual([s.id for s in db.list_all_sessions()], [done.id, running.id])

    def test_save_session_with_task_is_atomic(self) -> None:
        with local_tmp_dir() as tmp:
            db = FlowLogDB(tmp / "flowlog.sqlite")
            clock = FakeClock()
            ghost = Task.create("未保存的任务", now=clock.now())
            session = Session.start(
                SessionKind.WORK, timedelta(minutes=25), Methodology.POMODORO, clock.now(), task_id=ghost.id
            )

            with self.assertRaises(TaskNotFoundError):
                db.save_session(session, task=ghost)

            self.assertIsNone(db.find_session_by_id(session.id))


class TestTaskStorage(unittest.TestCase):
    def test_delete_task_keeps_sessions(self) -> None:
        with local_tmp_dir() as tmp:
            db = FlowLogDB(tmp / "flowlog.sqlite")
            clock = FakeClock()
            task = Task.create("整理笔记", now=clock.now(), tags=["#notes", "notes"])
            db.save_task(task)
            session = Session.start(
                SessionKind.WORK, timedelta(minutes=25), Methodology.POMODORO, clock.now(), task_id=task.id
            )
            db.save_session(session)

            db.delete_task(task.id)

            self.assertIsNone(db.find_task_by_id(task.id))
            self.assertIsNone(db.find_session_by_id(session.id).task_id)
            with self.assertRaises(TaskNotFoundError):
                db.delete_task(task.id)

    def test_highlight_and_recent_tasks(self) -> None:
        with local_tmp_dir() as tmp:
            db = FlowLogDB(tmp / "flowlog.sqlite")
            clock = FakeClock()
            first = Task.create("第一", now=clock.now())
            second = Task.create("第二", now=clock.advance(minutes=1))
            idle = Task.create("没有会话", now=clock.advance(minutes=1))
            for task in (first, second, idle):
                db.save_task(task)
            for task in (second, first):
                db.save_session(
                    Session.start(
                        SessionKind.WORK,
                        timedelta(minutes=25),
                        Methodology.POMODORO,
                        clock.advance(minutes=30),
                        task_id=task.id,
                    )
                )
            second.set_highlight(date(2026, 1, 1), clock.now())
            db.update_task(second)
            idle.complete(clock.now())
            db.update_task(idle)

            self.assertEqual([t.id for t in db.find_recent_tasks_with_sessions()], [first.id, second.id])
            self.assertEqual(db.find_highlight_for_date(date(2026, 1, 1)).id, second.id)
            self.assertIsNone(db.find_highlight_for_date(date(2026, 1, 2)))
            self.assertEqual([t.id for t in db.find_pending_tasks()], [first.id, second.id])
            self.assertEqual([t.id for t in db.list_tasks("completed")], [idle.id])
            self.assertEqual(db.find_task_by_id(idle.id).status, TaskStatus.COMPLETED)
            self.assertEqual(db.find_task_by_id(first.id).tags, [])


if __name__ == "__main__":
    unittest.main()
