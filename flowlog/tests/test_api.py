from __future__ import annotations

from datetime import datetime, timezone
import unittest

from flowlog.clock import FakeClock
from flowlog.config import Settings
from flowlog.tests.test_helpers import local_tmp_dir


class TestAPI(unittest.TestCase):
    def setUp(self) -> None:
        try:
            from fastapi.testclient import TestClient
            from flowlog.api.app import create_app
        except Exception as exc:  # pragma: no cover
            self.skipTest(f"fastapi test client unavailable: {exc}")

        self._tmp = local_tmp_dir()
        tmp = self._tmp.__enter__()
        self.addCleanup(self._tmp.__exit__, None, None, None)
        self.db_path = tmp / "data" / "flowlog.sqlite"
        self.out_dir = tmp / "out"
        self.clock = FakeClock(start=datetime(2026, 2, 13, 9, 0, tzinfo=timezone.utc))
        self.client = TestClient(
            create_app(db_path=self.db_path, settings=Settings(), clock=self.clock)
        )

    def test_health_meta_and_openapi(self) -> None:
        health = self.client.get("/api/v1/health")
        self.assertEqual(health.status_code, 200)
        self.assertEqual(health.json().get("status"), "ok")

        meta = self.client.get("/api/v1/meta")
        self.assertEqual(meta.status_code, 200)
        self.assertEqual(meta.json()["app"], "FlowLog")
        self.assertEqual(meta.json()["db_path"], str(self.db_path))
        self.assertEqual(meta.json()["methodology"], "pomodoro")

        paths = self.client.get("/openapi.json").json().get("paths", {})
        self.assertIn("/api/v1/session/start", paths)
        self.assertIn("/api/v1/stats/streak", paths)

    def test_session_lifecycle(self) -> None:
        task = self.client.post("/api/v1/tasks", json={"title": "接口联调 #api"}).json()
        self.assertEqual(task["tags"], ["api"])

        started = self.client.post(
            "/api/v1/session/start",
            json={"task_id": task["id"], "methodology": "deepwork", "preset": "Focus"},
        )
        self.assertEqual(started.status_code, 200)
        body = started.json()
        self.assertEqual(body["methodology"], "deepwork")
        self.assertEqual(body["planned_duration_sec"], 3000)

        conflict = self.client.post("/api/v1/session/start", json={})
        self.assertEqual(conflict.status_code, 409)

        self.clock.advance(minutes=10)
        paused = self.client.post("/api/v1/session/pause").json()
        self.assertEqual(paused["status"], "paused")
        self.assertEqual(paused["remaining_sec"], 2400)

        self.client.post("/api/v1/session/resume")
        state = self.client.get("/api/v1/session/state").json()
        self.assertEqual(state["active_session"]["id"], body["id"])
        self.assertEqual(state["active_task"]["id"], task["id"])

        distraction = self.client.post(
            f"/api/v1/sessions/{body['id']}/distractions", json={"text": "电话", "category": "external"}
        )
        self.assertEqual(distraction.status_code, 200)
        self.assertEqual(len(distraction.json()["distractions"]), 1)

        stopped = self.client.post("/api/v1/session/stop").json()
        self.assertEqual(stopped["status"], "completed")
        self.assertEqual(self.client.post("/api/v1/session/stop").status_code, 409)

        history = self.client.get(f"/api/v1/tasks/{task['id']}/sessions").json()
        self.assertEqual([item["id"] for item in history], [body["id"]])

    def test_validation_and_not_found(self) -> None:
        self.assertEqual(self.client.post("/api/v1/session/start", json={"minutes": 0}).status_code, 422)
        self.assertEqual(
            self.client.post("/api/v1/session/start", json={"methodology": "kanban"}).status_code, 400
        )
        self.assertEqual(
            self.client.post("/api/v1/session/start", json={"task_id": "missing"}).status_code, 404
        )
        self.assertEqual(self.client.get("/api/v1/sessions/missing").status_code, 404)
        self.assertEqual(self.client.get("/api/v1/tasks/missing").status_code, 404)
        self.assertEqual(self.client.post("/api/v1/tasks", json={"title": ""}).status_code, 422)

        session = self.client.post("/api/v1/session/start", json={"minutes": 1}).json()
        score = self.client.post(f"/api/v1/sessions/{session['id']}/focus-score", json={"score": 6})
        self.assertEqual(score.status_code, 422)

    def test_break_and_stats(self) -> None:
        for _ in range(4):
            self.client.post("/api/v1/session/start", json={"minutes": 25})
            self.clock.advance(minutes=25)
            self.client.post("/api/v1/session/stop")

        brk = self.client.post("/api/v1/session/break", json={}).json()
        self.assertEqual(brk["kind"], "long_break")
        self.assertEqual(brk["planned_duration_sec"], 900)

        daily = self.client.get("/api/v1/stats/daily").json()
        self.assertEqual(daily["work_sessions"], 4)
        self.assertEqual(daily["total_work_sec"], 6000)

        stats = self.client.get("/api/v1/stats").json()
        self.assertEqual(stats["today"]["total_sessions"], 4)

        hourly = self.client.get("/api/v1/stats/hourly", params={"days": 7}).json()
        self.assertEqual([item["hour"] for item in hourly], [9, 10])

        streak = self.client.get("/api/v1/stats/streak").json()
        self.assertEqual(streak, {"days": 0, "threshold_sec": 14400.0})
        self.assertEqual(self.client.get("/api/v1/stats/streak", params={"hours": 0}).status_code, 422)

    def test_void_and_recent(self) -> None:
        session = self.client.post("/api/v1/session/start", json={"minutes": 25}).json()
        self.clock.advance(minutes=25)
        self.client.post("/api/v1/session/stop")

        voided = self.client.post(f"/api/v1/sessions/{session['id']}/void")
        self.assertEqual(voided.status_code, 200)
        self.assertEqual(voided.json()["status"], "voided")
        self.assertEqual(self.client.post(f"/api/v1/sessions/{session['id']}/void").status_code, 400)
        self.assertEqual(self.client.get("/api/v1/stats/daily").json()["work_sessions"], 0)

        recent = self.client.get("/api/v1/sessions/recent").json()
        self.assertEqual(len(recent), 1)
        listed = self.client.get("/api/v1/sessions", params={"status": "voided"}).json()
        self.assertEqual(len(listed), 1)

    def test_tasks_and_highlight(self) -> None:
        task = self.client.post("/api/v1/tasks", json={"title": "写周报"}).json()
        highlight = self.client.post(f"/api/v1/tasks/{task['id']}/highlight", json={})
        self.assertEqual(highlight.status_code, 200)
        self.assertEqual(highlight.json()["highlight_date"], "2026-02-13")
        self.assertEqual(self.client.get("/api/v1/tasks/highlight").json()["id"], task["id"])

        self.clock.advance(days=1)
        candidate = self.client.get("/api/v1/tasks/highlight/candidate").json()
        self.assertEqual(candidate["id"], task["id"])

        done = self.client.post(f"/api/v1/tasks/{task['id']}/complete").json()
        self.assertEqual(done["status"], "completed")
        self.assertEqual(self.client.get("/api/v1/tasks", params={"pending": True}).json(), [])
        self.assertEqual(self.client.get("/api/v1/tasks", params={"status": "bogus"}).status_code, 400)

        self.assertEqual(self.client.delete(f"/api/v1/tasks/{task['id']}").status_code, 204)
        self.assertEqual(self.client.delete(f"/api/v1/tasks/{task['id']}").status_code, 404)

    def test_report_and_export(self) -> None:
        self.client.post("/api/v1/session/start", json={"minutes": 25})
        self.clock.advance(minutes=25)
        self.client.post("/api/v1/session/stop")

        report = self.client.post("/api/v1/report/weekly", json={"out_dir": str(self.out_dir)})
        self.assertEqual(report.status_code, 200)
        self.assertTrue(report.json()["path"].endswith("week-2026-07.md"))

        csv_result = self.client.post(
            "/api/v1/export/csv", json={"out_dir": str(self.out_dir), "period": "week"}
        )
        self.assertEqual(csv_result.status_code, 200)
        self.assertTrue((self.out_dir / "flowlog.csv").exists())

        md_result = self.client.post("/api/v1/export/markdown", json={"out_dir": str(self.out_dir)})
        self.assertEqual(md_result.status_code, 200)
        self.assertTrue((self.out_dir / "flowlog.md").exists())


if __name__ == "__main__":
    unittest.main()
