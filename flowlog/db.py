from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
import json
import logging
import os
from pathlib import Path
import sqlite3
from typing import Iterator

from .analytics import (
    DailyStats,
    EnergizeStat,
    PeriodStats,
    compute_daily_stats,
    compute_deep_work_duration,
    compute_energize_stats,
    compute_hourly_productivity,
    compute_period_stats,
)
from .errors import SessionNotFoundError, StorageError, TaskNotFoundError
from .methodology import Methodology
from .session import (
    Distraction,
    GitContext,
    Session,
    SessionKind,
    SessionStatus,
    ShutdownRitual,
)
from .task import Task, TaskStatus

logger = logging.getLogger(__name__)

UTC_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"

SESSION_COLUMNS = (
    "id, kind, status, planned_ms, started_at, started_utc, paused_at, completed_at, "
    "task_id, methodology, focus_score, distractions, shutdown_ritual, accomplishment, "
    "intended_outcome, energize_activity, notes, tags, git_branch, git_commit, git_modified"
)
TASK_COLUMNS = (
    "id, title, description, status, tags, created_at, updated_at, completed_at, highlight_date"
)


def _to_utc_text(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime(UTC_FORMAT)


def _from_utc_text(text: str) -> datetime:
    return datetime.strptime(text, UTC_FORMAT).replace(tzinfo=timezone.utc)


def _to_local_text(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _from_local_text(text: str | None) -> datetime | None:
    if not text:
        return None
    return datetime.fromisoformat(text)


def _ritual_to_json(ritual: ShutdownRitual | None) -> str | None:
    if ritual is None:
        return None
    return json.dumps(
        {
            "pending_tasks_review": ritual.pending_tasks_review,
            "calendar_review": ritual.calendar_review,
            "tomorrow_plan": ritual.tomorrow_plan,
            "closing_phrase": ritual.closing_phrase,
        },
        ensure_ascii=False,
    )


def _ritual_from_json(text: str | None) -> ShutdownRitual | None:
    if not text:
        return None
    payload = json.loads(text)
    return ShutdownRitual(
        pending_tasks_review=str(payload.get("pending_tasks_review", "")),
        calendar_review=str(payload.get("calendar_review", "")),
        tomorrow_plan=str(payload.get("tomorrow_plan", "")),
        closing_phrase=str(payload.get("closing_phrase", "")),
    )


class FlowLogDB:
    def __init__(self, db_path: Path, journal_mode: str | None = None) -> None:
        self.db_path = Path(db_path)
        raw_mode = (journal_mode or os.getenv("FLOWLOG_JOURNAL_MODE") or "MEMORY").strip()
        self.journal_mode = raw_mode.upper() if raw_mode else "MEMORY"
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        self._apply_journal_mode(conn)
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _apply_journal_mode(self, conn: sqlite3.Connection) -> None:
        try:
            conn.execute(f"PRAGMA journal_mode={self.journal_mode}")
        except sqlite3.OperationalError:
            conn.execute("PRAGMA journal_mode=MEMORY")

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StorageError(f"cannot open database {self.db_path}: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("sqlite failure on %s: %s", self.db_path, exc)
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    def init_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL CHECK (
                        status IN ('pending', 'in_progress', 'completed', 'cancelled')
                    ),
                    tags TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    completed_at TEXT,
                    highlight_date TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    kind TEXT NOT NULL CHECK (kind IN ('work', 'short_break', 'long_break')),
                    status TEXT NOT NULL CHECK (
                        status IN ('running', 'paused', 'completed', 'cancelled', 'voided')
                    ),
                    planned_ms INTEGER NOT NULL CHECK (planned_ms >= 0),
                    started_at TEXT NOT NULL,
                    started_utc TEXT NOT NULL,
                    paused_at TEXT,
                    completed_at TEXT,
                    task_id TEXT,
                    methodology TEXT NOT NULL DEFAULT 'pomodoro',
                    focus_score INTEGER CHECK (focus_score IS NULL OR focus_score BETWEEN 1 AND 5),
                    distractions TEXT NOT NULL DEFAULT '[]',
                    shutdown_ritual TEXT,
                    accomplishment TEXT NOT NULL DEFAULT '',
                    intended_outcome TEXT NOT NULL DEFAULT '',
                    energize_activity TEXT NOT NULL DEFAULT '',
                    notes TEXT NOT NULL DEFAULT '',
                    tags TEXT NOT NULL DEFAULT '[]',
                    git_branch TEXT NOT NULL DEFAULT '',
                    git_commit TEXT NOT NULL DEFAULT '',
                    git_modified TEXT NOT NULL DEFAULT '[]'
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_sessions_started_utc
                ON sessions(started_utc)
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_sessions_status
                ON sessions(status)
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_sessions_task_id
                ON sessions(task_id)
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_tasks_highlight_date
                ON tasks(highlight_date)
                """
            )

    # sessions

    def find_active_session(self) -> Session | None:
        items = self._read_sessions(
            f"SELECT {SESSION_COLUMNS} FROM sessions "
            "WHERE status IN ('running', 'paused') "
            "ORDER BY started_utc DESC LIMIT 1",
            [],
        )
        return items[0] if items else None

    def save_session(self, session: Session, task: Task | None = None) -> None:
        with self._transaction() as conn:
            conn.execute(
                f"INSERT INTO sessions ({SESSION_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                self._session_params(session),
            )
            if task is not None:
                self._write_task_update(conn, task)

    def update_session(self, session: Session) -> None:
        params = self._session_params(session)
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE sessions SET
                    kind = ?,
                    status = ?,
                    planned_ms = ?,
                    started_at = ?,
                    started_utc = ?,
                    paused_at = ?,
                    completed_at = ?,
                    task_id = ?,
                    methodology = ?,
                    focus_score = ?,
                    distractions = ?,
                    shutdown_ritual = ?,
                    accomplishment = ?,
                    intended_outcome = ?,
                    energize_activity = ?,
                    notes = ?,
                    tags = ?,
                    git_branch = ?,
                    git_commit = ?,
                    git_modified = ?
                WHERE id = ?
                """,
                [*params[1:], params[0]],
            )
            if cursor.rowcount == 0:
                raise SessionNotFoundError(f"session not found: {session.id}")

    def find_session_by_id(self, session_id: str) -> Session | None:
        items = self._read_sessions(
            f"SELECT {SESSION_COLUMNS} FROM sessions WHERE id = ?",
            [session_id],
        )
        return items[0] if items else None

    def find_sessions_since(self, since: datetime) -> list[Session]:
        return self._read_sessions(
            f"SELECT {SESSION_COLUMNS} FROM sessions "
            "WHERE started_utc >= ? ORDER BY started_utc DESC",
            [_to_utc_text(since)],
        )

    def find_sessions_between(self, start: datetime, end: datetime) -> list[Session]:
        return self._read_sessions(
            f"SELECT {SESSION_COLUMNS} FROM sessions "
            "WHERE started_utc >= ? AND started_utc < ? ORDER BY started_utc ASC",
            [_to_utc_text(start), _to_utc_text(end)],
        )

    def find_sessions_by_task(self, task_id: str) -> list[Session]:
        return self._read_sessions(
            f"SELECT {SESSION_COLUMNS} FROM sessions "
            "WHERE task_id = ? ORDER BY started_utc DESC",
            [task_id],
        )

    def find_latest_session(self) -> Session | None:
        items = self.list_sessions(limit=1)
        return items[0] if items else None

    def list_sessions(
        self,
        since: datetime | None = None,
        status: str | None = None,
        tag: str | None = None,
        limit: int = 20,
    ) -> list[Session]:
        clauses = ["1=1"]
        params: list[object] = []

        if since is not None:
            clauses.append("started_utc >= ?")
            params.append(_to_utc_text(since))
        if status:
            clauses.append("status = ?")
            params.append(status.strip().lower())
        if tag:
            clauses.append("EXISTS (SELECT 1 FROM json_each(sessions.tags) WHERE json_each.value = ?)")
            params.append(tag.strip().lstrip("#"))

        safe_limit = max(1, min(2000, int(limit)))
        query = (
            f"SELECT {SESSION_COLUMNS} FROM sessions "
            f"WHERE {' AND '.join(clauses)} "
            "ORDER BY started_utc DESC "
            "LIMIT ?"
        )
        params.append(safe_limit)
        return self._read_sessions(query, params)

    def list_all_sessions(self) -> list[Session]:
        return self._read_sessions(
            f"SELECT {SESSION_COLUMNS} FROM sessions ORDER BY started_utc ASC",
            [],
        )

    # aggregates

    def get_daily_stats(self, day_start: datetime) -> DailyStats:
        sessions = self.find_sessions_between(day_start, day_start + timedelta(days=1))
        return compute_daily_stats(sessions, day_start)

    def get_period_stats(self, start: datetime, end: datetime) -> PeriodStats:
        return compute_period_stats(self.find_sessions_between(start, end), start, end)

    def get_deep_work_duration(self, day_start: datetime) -> timedelta:
        sessions = self._read_sessions(
            f"SELECT {SESSION_COLUMNS} FROM sessions "
            "WHERE started_utc >= ? AND started_utc < ? "
            "AND kind = 'work' AND status = 'completed' AND methodology = ?",
            [
                _to_utc_text(day_start),
                _to_utc_text(day_start + timedelta(days=1)),
                Methodology.DEEP_WORK.value,
            ],
        )
        return compute_deep_work_duration(sessions)

    def get_hourly_productivity(self, days: int, now: datetime) -> dict[int, timedelta]:
        return compute_hourly_productivity(self.find_sessions_since(now - timedelta(days=days)))

    def get_energize_stats(self, start: datetime, end: datetime) -> list[EnergizeStat]:
        return compute_energize_stats(self.find_sessions_between(start, end))

    # tasks

    def save_task(self, task: Task) -> None:
        with self._transaction() as conn:
            conn.execute(
                f"INSERT INTO tasks ({TASK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                self._task_params(task),
            )

    def update_task(self, task: Task) -> None:
        with self._transaction() as conn:
            self._write_task_update(conn, task)

    def delete_task(self, task_id: str) -> None:
        with self._transaction() as conn:
            conn.execute("UPDATE sessions SET task_id = NULL WHERE task_id = ?", [task_id])
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", [task_id])
            if cursor.rowcount == 0:
                raise TaskNotFoundError(f"task not found: {task_id}")

    def find_task_by_id(self, task_id: str) -> Task | None:
        items = self._read_tasks(f"SELECT {TASK_COLUMNS} FROM tasks WHERE id = ?", [task_id])
        return items[0] if items else None

    def find_active_task(self) -> Task | None:
        items = self._read_tasks(
            f"SELECT {TASK_COLUMNS} FROM tasks "
            "WHERE status = 'in_progress' ORDER BY updated_at DESC LIMIT 1",
            [],
        )
        return items[0] if items else None

    def list_tasks(self, status: str | None = None) -> list[Task]:
        if status:
            return self._read_tasks(
                f"SELECT {TASK_COLUMNS} FROM tasks WHERE status = ? ORDER BY created_at ASC",
                [status.strip().lower()],
            )
        return self._read_tasks(f"SELECT {TASK_COLUMNS} FROM tasks ORDER BY created_at ASC", [])

    def find_pending_tasks(self) -> list[Task]:
        return self._read_tasks(
            f"SELECT {TASK_COLUMNS} FROM tasks "
            "WHERE status IN ('pending', 'in_progress') ORDER BY created_at ASC",
            [],
        )

    def find_recent_tasks_with_sessions(self, limit: int = 10) -> list[Task]:
        columns = ", ".join(f"t.{name.strip()}" for name in TASK_COLUMNS.split(","))
        return self._read_tasks(
            f"SELECT {columns} FROM tasks t "
            "JOIN ("
            "    SELECT task_id, MAX(started_utc) AS last_started FROM sessions "
            "    WHERE task_id IS NOT NULL GROUP BY task_id"
            ") s ON s.task_id = t.id "
            "ORDER BY s.last_started DESC LIMIT ?",
            [max(1, int(limit))],
        )

    def find_highlight_for_date(self, day: date) -> Task | None:
        items = self._read_tasks(
            f"SELECT {TASK_COLUMNS} FROM tasks "
            "WHERE highlight_date = ? ORDER BY updated_at DESC LIMIT 1",
            [day.isoformat()],
        )
        return items[0] if items else None

    # rows

    def _write_task_update(self, conn: sqlite3.Connection, task: Task) -> None:
        params = self._task_params(task)
        cursor = conn.execute(
            """
            UPDATE tasks SET
                title = ?,
                description = ?,
                status = ?,
                tags = ?,
                created_at = ?,
                updated_at = ?,
                completed_at = ?,
                highlight_date = ?
            WHERE id = ?
            """,
            [*params[1:], params[0]],
        )
        if cursor.rowcount == 0:
            raise TaskNotFoundError(f"task not found: {task.id}")

    @staticmethod
    def _session_params(session: Session) -> list[object]:
        git = session.git or GitContext()
        return [
            session.id,
            SessionKind(session.kind).value,
            SessionStatus(session.status).value,
            int(session.planned_duration / timedelta(milliseconds=1)),
            _to_local_text(session.started_at),
            _to_utc_text(session.started_at),
            _to_local_text(session.paused_at),
            _to_local_text(session.completed_at),
            session.task_id,
            Methodology(session.methodology).value,
            session.focus_score,
            json.dumps(
                [{"text": d.text, "category": d.category} for d in session.distractions],
                ensure_ascii=False,
            ),
            _ritual_to_json(session.shutdown_ritual),
            session.accomplishment,
            session.intended_outcome,
            session.energize_activity,
            session.notes,
            json.dumps(list(session.tags), ensure_ascii=False),
            git.branch,
            git.commit,
            json.dumps(list(git.modified_files), ensure_ascii=False),
        ]

    @staticmethod
    def _task_params(task: Task) -> list[object]:
        return [
            task.id,
            task.title,
            task.description,
            TaskStatus(task.status).value,
            json.dumps(list(task.tags), ensure_ascii=False),
            _to_utc_text(task.created_at),
            _to_utc_text(task.updated_at),
            _to_utc_text(task.completed_at) if task.completed_at else None,
            task.highlight_date.isoformat() if task.highlight_date else None,
        ]

    def _read_sessions(self, query: str, params: list[object]) -> list[Session]:
        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()

        items: list[Session] = []
        for row in rows:
            git = None
            modified = tuple(json.loads(row["git_modified"] or "[]"))
            if row["git_branch"] or row["git_commit"] or modified:
                git = GitContext(
                    branch=row["git_branch"] or "",
                    commit=row["git_commit"] or "",
                    modified_files=modified,
                )
            items.append(
                Session(
                    id=row["id"],
                    kind=SessionKind(row["kind"]),
                    status=SessionStatus(row["status"]),
                    planned_duration=timedelta(milliseconds=int(row["planned_ms"])),
                    started_at=datetime.fromisoformat(row["started_at"]),
                    paused_at=_from_local_text(row["paused_at"]),
                    completed_at=_from_local_text(row["completed_at"]),
                    task_id=row["task_id"],
                    methodology=Methodology(row["methodology"]),
                    focus_score=row["focus_score"],
                    distractions=[
                        Distraction(text=str(d.get("text", "")), category=str(d.get("category", "")))
                        for d in json.loads(row["distractions"] or "[]")
                    ],
                    shutdown_ritual=_ritual_from_json(row["shutdown_ritual"]),
                    accomplishment=row["accomplishment"] or "",
                    intended_outcome=row["intended_outcome"] or "",
                    energize_activity=row["energize_activity"] or "",
                    notes=row["notes"] or "",
                    tags=list(json.loads(row["tags"] or "[]")),
                    git=git,
                )
            )
        return items

    def _read_tasks(self, query: str, params: list[object]) -> list[Task]:
        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()

        items: list[Task] = []
        for row in rows:
            items.append(
                Task(
                    id=row["id"],
                    title=row["title"],
                    description=row["description"] or "",
                    status=TaskStatus(row["status"]),
                    tags=list(json.loads(row["tags"] or "[]")),
                    created_at=_from_utc_text(row["created_at"]),
                    updated_at=_from_utc_text(row["updated_at"]),
                    completed_at=_from_utc_text(row["completed_at"]) if row["completed_at"] else None,
                    highlight_date=date.fromisoformat(row["highlight_date"]) if row["highlight_date"] else None,
                )
            )
        return items
