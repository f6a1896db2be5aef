from __future__ import annotations

import csv
from datetime import datetime, timedelta, timezone
import unittest

from flowlog.clock import FakeClock
from flowlog.db import FlowLogDB
from flowlog.exporting import CSV_HEADER, export_sessions_csv, export_sessions_markdown
from flowlog.methodology import Methodology
from flowlog.reporting import (
    build_stats,
    format_countdown,
    format_duration,
    generate_weekly_report,
    hour_bar,
)
from flowlog.scheduler import Scheduler
from flowlog.task_service import TaskService
from flowlog.tests.test_helpers import local_tmp_dir


def _seed_week(db: FlowLogDB, clock: FakeClock) -> Scheduler:
    scheduler = Scheduler(db, clock)
    tasks = TaskService(db, clock)

    clock.set(datetime(2026, 2, 10, 9, 0, tzinfo=timezone.utc))
    task = tasks.add_task("写论文 #研究")
    session = scheduler.start_work(task_id=task.id, duration=timedelta(minutes=30), tags=["研究"])
    clock.advance(minutes=30)
    scheduler.stop()
    scheduler.set_focus_score(session.id, 4)
    scheduler.set_energize_activity(session.id, "散步")

    clock.set(datetime(2026, 2, 12, 14, 0, tzinfo=timezone.utc))
    scheduler.start_work(duration=timedelta(minutes=90), methodology=Methodology.DEEP_WORK)
    clock.advance(minutes=90)
    scheduler.stop()
    scheduler.start_break()
    clock.advance(minutes=5)
    scheduler.stop()

    scheduler.start_work(duration=timedelta(minutes=25))
    clock.advance(minutes=25)
    scheduler.void()

    clock.set(datetime(2026, 2, 3, 9, 0, tzinfo=timezone.utc))
    scheduler.start_work(duration=timedelta(minutes=25))
    clock.advance(minutes=25)
    scheduler.stop()

    clock.set(datetime(2026, 2, 13, 12, 0, tzinfo=timezone.utc))
    return scheduler


class TestFormatting(unittest.TestCase):
    def test_format_helpers(self) -> None:
        self.assertEqual(format_duration(3725), "1小时02分05秒")
        self.assertEqual(format_duration(timedelta(minutes=25)), "25分00秒")
        self.assertEqual(format_duration(-5), "0分00秒")
        self.assertEqual(format_countdown(timedelta(seconds=65)), "01:05")
        self.assertEqual(hour_bar(timedelta(minutes=30), timedelta(minutes=60), width=10), "█████")
        self.assertEqual(hour_bar(timedelta(0), timedelta(minutes=60)), "")


class TestReport(unittest.TestCase):
    def test_generate_weekly_report_markdown(self) -> None:
        with local_tmp_dir() as tmp:
            db = FlowLogDB(tmp / "flowlog.sqlite")
            clock = FakeClock()
            scheduler = _seed_week(db, clock)

            report_path = generate_weekly_report(scheduler.analytics, out_dir=tmp / "out")

            self.assertEqual(report_path.name, "week-2026-07.md")
            content = report_path.read_text(encoding="utf-8")
            self.assertIn("# FlowLog 周报 2026-W07", content)
            self.assertIn("- 统计区间：2026-02-09 至 2026-02-15", content)
            self.assertIn("- 工作总时长：2小时00分00秒", content)
            self.assertIn("- 完成工作会话：2 次", content)
            self.assertIn("- 完成休息：1 次", content)
            self.assertIn("- 作废会话：1 次", content)
            self.assertIn("| Deep Work | 1 | 1小时30分00秒 |", content)
            self.assertIn("| 写论文 | 30分00秒 |", content)
            self.assertIn("| 未关联任务 | 1小时30分00秒 |", content)
            self.assertIn("| 2026-02-10 | 30分00秒 |", content)
            self.assertIn("| 14:00 | 1小时30分00秒 |", content)
            self.assertIn("| 散步 | 1 | 4.0 |", content)

    def test_explicit_week_without_data(self) -> None:
        with local_tmp_dir() as tmp:
            db = FlowLogDB(tmp / "flowlog.sqlite")
            scheduler = Scheduler(db, FakeClock())

            report_path = generate_weekly_report(scheduler.analytics, out_dir=tmp, year=2025, week=52)

            content = report_path.read_text(encoding="utf-8")
            self.assertEqual(report_path.name, "week-2025-52.md")
            self.assertIn("本周暂无工作会话。", content)
            self.assertIn("本周无充电活动记录。", content)

    def test_build_stats_windows(self) -> None:
        with local_tmp_dir() as tmp:
            db = FlowLogDB(tmp / "flowlog.sqlite")
            clock = FakeClock()
            scheduler = _seed_week(db, clock)

            stats = build_stats(scheduler.analytics)

            self.assertEqual(stats["today"].total_sessions, 0)
            self.assertEqual(stats["this_week"].total_sessions, 2)
            self.assertEqual(stats["last_7_days"].total_sessions, 2)
            self.assertEqual(stats["this_week"].total_work_time, timedelta(minutes=120))


class TestExport(unittest.TestCase):
    def test_export_csv(self) -> None:
        with local_tmp_dir() as tmp:
            db = FlowLogDB(tmp / "flowlog.sqlite")
            _seed_week(db, FakeClock())

            csv_path = export_sessions_csv(db, tmp / "out")

            with csv_path.open("r", encoding="utf-8", newline="") as fp:
                rows = list(csv.DictReader(fp))
            self.assertEqual(list(rows[0].keys()), CSV_HEADER)
            self.assertEqual(len(rows), 5)
            first = rows[0]
            self.assertEqual(first["task"], "")
            tasked = next(row for row in rows if row["task"])
            self.assertEqual(tasked["task"], "写论文")
            self.assertEqual(tasked["planned_sec"], "1800")
            self.assertEqual(tasked["focus_score"], "4")
            self.assertEqual(tasked["tags"], "研究")

    def test_export_markdown_since(self) -> None:
        with local_tmp_dir() as tmp:
            db = FlowLogDB(tmp / "flowlog.sqlite")
            _seed_week(db, FakeClock())

            md_path = export_sessions_markdown(
                db, tmp / "out", since=datetime(2026, 2, 9, tzinfo=timezone.utc)
            )

            content = md_path.read_text(encoding="utf-8")
            self.assertIn("# FlowLog 会话记录", content)
            self.assertIn("| 2026-02-10 09:00 | work | completed | Pomodoro | 30分00秒 | 写论文 | 4 | #研究 |", content)
            self.assertNotIn("2026-02-03", content)

    def test_export_markdown_empty(self) -> None:
        with local_tmp_dir() as tmp:
            md_path = export_sessions_markdown(FlowLogDB(tmp / "flowlog.sqlite"), tmp)

            self.assertIn("暂无会话记录。", md_path.read_text(encoding="utf-8"))


if __name__ == "__main__":
    unittest.main()
