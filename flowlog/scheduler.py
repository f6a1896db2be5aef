from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import logging
from pathlib import Path

from .analytics import Analytics, DailyStats, day_start
from .clock import Clock
from .config import Settings
from .errors import (
    FlowLogError,
    NoActiveSessionError,
    SessionAlreadyActiveError,
    SessionNotFoundError,
    TaskNotFoundError,
)
from .methodology import (
    Methodology,
    MethodologyConfig,
    carry_forward_candidate,
    policy_for,
    select_break,
)
from .ports import GitDetector, SessionStore
from .session import Session, SessionKind, SessionStatus, ShutdownRitual
from .task import Task

logger = logging.getLogger(__name__)

RECENT_DAYS = 7


@dataclass(frozen=True)
class CurrentState:
    active_task: Task | None
    active_session: Session | None
    today: DailyStats


class Scheduler:
    """Session lifecycle operations backed by a storage port.

    Nothing is cached between calls: every operation re-reads the active
    session from storage before acting and persists its change in a single
    write before returning.
    """

    def __init__(
        self,
        storage: SessionStore,
        clock: Clock,
        settings: Settings | None = None,
        methodology: Methodology | None = None,
        git: GitDetector | None = None,
    ) -> None:
        self.storage = storage
        self.clock = clock
        self.settings = settings or Settings()
        self.methodology = methodology or self.settings.resolve_methodology()
        self.git = git
        self.analytics = Analytics(storage, clock, self.settings)

    def policy(self, methodology: Methodology | None = None) -> MethodologyConfig:
        return policy_for(methodology or self.methodology, self.settings)

    def start_work(
        self,
        task_id: str | None = None,
        duration: timedelta | None = None,
        methodology: Methodology | None = None,
        intended_outcome: str = "",
        tags: list[str] | None = None,
        working_dir: Path | None = None,
    ) -> Session:
        self.ensure_idle()
        policy = self.policy(methodology)
        planned = duration if duration is not None else policy.work_duration
        if planned <= timedelta(0):
            raise ValueError("session duration must be positive")

        now = self.clock.now()
        task: Task | None = None
        if task_id:
            task = self.storage.find_task_by_id(task_id)
            if task is None:
                raise TaskNotFoundError(f"task not found: {task_id}")
            task.start(now)

        session = Session.start(
            kind=SessionKind.WORK,
            planned_duration=planned,
            methodology=policy.methodology,
            now=now,
            task_id=task.id if task else None,
        )
        session.intended_outcome = intended_outcome.strip()
        session.tags = [tag.strip().lstrip("#") for tag in (tags or []) if tag.strip().lstrip("#")]
        if self.git is not None:
            session.set_git_context(self.git.detect(working_dir))

        self.storage.save_session(session, task=task)
        logger.info(
            "started %s work session %s for %s (task=%s)",
            policy.methodology.value,
            session.id,
            planned,
            session.task_id,
        )
        return session

    def start_break(self, methodology: Methodology | None = None) -> Session:
        self.ensure_idle()
        policy = self.policy(methodology)
        completed_today = self.analytics.daily_stats().work_sessions
        plan = select_break(completed_today, policy)

        session = Session.start(
            kind=plan.kind,
            planned_duration=plan.duration,
            methodology=policy.methodology,
            now=self.clock.now(),
        )
        self.storage.save_session(session)
        logger.info(
            "started %s (%s) after %d work session(s) today",
            plan.kind.value,
            plan.duration,
            completed_today,
        )
        return session

    def pause(self) -> Session:
        session = self._require_active()
        if session.status != SessionStatus.RUNNING:
            raise NoActiveSessionError("no running session to pause")
        session.pause(self.clock.now())
        self.storage.update_session(session)
        logger.info("paused session %s", session.id)
        return session

    def resume(self) -> Session:
        session = self._require_active()
        if session.status != SessionStatus.PAUSED or session.paused_at is None:
            raise NoActiveSessionError("no paused session to resume")
        session.resume(self.clock.now())
        self.storage.update_session(session)
        logger.info("resumed session %s", session.id)
        return session

    def stop(self) -> Session:
        session = self._require_active()
        session.complete(self.clock.now())
        self.storage.update_session(session)
        logger.info("completed session %s", session.id)
        return session

    def cancel(self) -> Session:
        session = self._require_active()
        session.cancel()
        self.storage.update_session(session)
        logger.info("cancelled session %s", session.id)
        return session

    def void(self, session_id: str | None = None) -> Session:
        if session_id:
            session = self._load(session_id)
            if session.status != SessionStatus.COMPLETED:
                raise ValueError("only completed sessions can be voided")
        else:
            session = self._require_active()
            session.complete(self.clock.now())
        session.void()
        self.storage.update_session(session)
        logger.info("voided session %s", session.id)
        return session

    def log_distraction(self, session_id: str, text: str, category: str = "") -> Session:
        session = self._load(session_id)
        session.add_distraction(text, category)
        self.storage.update_session(session)
        return session

    def set_focus_score(self, session_id: str, score: int) -> Session:
        session = self._load(session_id)
        session.set_focus_score(score)
        self.storage.update_session(session)
        return session

    def set_accomplishment(self, session_id: str, text: str) -> Session:
        session = self._load(session_id)
        session.accomplishment = text.strip()
        self.storage.update_session(session)
        return session

    def set_shutdown_ritual(self, session_id: str, ritual: ShutdownRitual) -> Session:
        session = self._load(session_id)
        session.shutdown_ritual = ritual
        self.storage.update_session(session)
        return session

    def set_energize_activity(self, session_id: str, activity: str) -> Session:
        session = self._load(session_id)
        session.energize_activity = activity.strip()
        self.storage.update_session(session)
        return session

    def add_notes(self, session_id: str, notes: str) -> Session:
        session = self._load(session_id)
        session.add_notes(notes)
        self.storage.update_session(session)
        return session

    def get_current_state(self) -> CurrentState:
        now = self.clock.now()
        active = self.storage.find_active_session()
        if active is not None and active.is_expired(now):
            self._reconcile_expired(active)
            active = None
        return CurrentState(
            active_task=self.storage.find_active_task(),
            active_session=active,
            today=self.analytics.daily_stats(now.date()),
        )

    def get_deep_work_streak(self, threshold: timedelta | None = None) -> int:
        return self.analytics.deep_work_streak(threshold)

    def highlight_candidate(self) -> Task | None:
        today = self.clock.now().date()
        return carry_forward_candidate(
            self.storage.find_highlight_for_date(today),
            self.storage.find_highlight_for_date(today - timedelta(days=1)),
        )

    def recent_sessions(self, days: int = RECENT_DAYS) -> list[Session]:
        now = self.clock.now()
        return self.storage.find_sessions_since(day_start(now.date(), now.tzinfo) - timedelta(days=days - 1))

    def task_history(self, task_id: str) -> list[Session]:
        if self.storage.find_task_by_id(task_id) is None:
            raise TaskNotFoundError(f"task not found: {task_id}")
        return self.storage.find_sessions_by_task(task_id)

    def resolve_session_id(self, session_id: str | None = None) -> str:
        if session_id:
            return session_id
        active = self.storage.find_active_session()
        if active is not None:
            return active.id
        latest = self.storage.find_latest_session()
        if latest is None:
            raise NoActiveSessionError("no session recorded yet")
        return latest.id

    def _reconcile_expired(self, session: Session, strict: bool = False) -> None:
        session.complete(session.started_at + session.planned_duration)
        try:
            self.storage.update_session(session)
        except FlowLogError as exc:
            if strict:
                raise
            logger.warning("could not persist completion of expired session %s: %s", session.id, exc)
        else:
            logger.info("auto-completed expired session %s", session.id)

    def ensure_idle(self) -> None:
        """Raise SessionAlreadyActiveError unless a new session may start.

        An expired Running session is completed first, so it does not block.
        """
        active = self.storage.find_active_session()
        if active is not None and active.is_expired(self.clock.now()):
            self._reconcile_expired(active, strict=True)
            return
        if active is not None:
            raise SessionAlreadyActiveError(
                f"session {active.id} is already {active.status.value}"
            )

    def _require_active(self) -> Session:
        session = self.storage.find_active_session()
        if session is None:
            raise NoActiveSessionError("no active session")
        return session

    def _load(self, session_id: str) -> Session:
        session = self.storage.find_session_by_id(session_id)
        if session is None:
            raise SessionNotFoundError(f"session not found: {session_id}")
        return session
