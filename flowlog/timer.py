from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
import sys
from typing import Callable, TextIO

from .notifier import Notifier
from .reporting import format_countdown
from .scheduler import Scheduler
from .session import Session, SessionKind, SessionStatus

ProgressCallback = Callable[[str, dict[str, object]], None]


@dataclass(frozen=True)
class WatchResult:
    session: Session | None
    finished: bool
    interrupted: bool


class SessionWatcher:
    """Polls the scheduler and renders a countdown for the active session.

    The engine has no ticking thread of its own; this loop is the live
    display. Expiry is picked up through ``Scheduler.get_current_state``.
    Ctrl-C stops watching and leaves the session untouched.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        notifier: Notifier | None = None,
        stream: TextIO | None = None,
        tick_seconds: float = 1.0,
        sound: bool = True,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.clock = scheduler.clock
        self.stream = stream or sys.stdout
        self.notifier = notifier
        self.tick_seconds = max(0.0, tick_seconds)
        self.sound = sound
        self.progress_callback = progress_callback

    def watch(self) -> WatchResult:
        state = self.scheduler.get_current_state()
        session = state.active_session
        if session is None:
            self.stream.write("当前没有进行中的会话。\n")
            self.stream.flush()
            return WatchResult(session=None, finished=False, interrupted=False)

        session_id = session.id
        label = _label(session)
        self._emit("watch_start", session_id=session_id, label=label)

        while True:
            state = self.scheduler.get_current_state()
            active = state.active_session
            if active is None or active.id != session_id:
                break

            now = self.clock.now()
            remaining = active.remaining_time(now)
            paused = active.status == SessionStatus.PAUSED
            self._render(label, remaining, paused)
            self._emit(
                "tick",
                session_id=session_id,
                remaining_sec=int(remaining.total_seconds()),
                paused=paused,
            )

            step = self.tick_seconds
            if paused and step <= 0:
                step = 1.0
            if not paused and (step <= 0 or remaining.total_seconds() < step):
                step = remaining.total_seconds()
            try:
                self.clock.sleep(max(step, 0.0))
            except KeyboardInterrupt:
                self._clear_line()
                self.stream.write("已停止显示，会话仍在后台计时。\n")
                self.stream.flush()
                return WatchResult(session=active, finished=False, interrupted=True)

        self._clear_line()
        final = self.scheduler.storage.find_session_by_id(session_id)
        finished = final is not None and final.status == SessionStatus.COMPLETED
        if finished and final is not None:
            self.stream.write(f"{label} 完成，计划时长 {format_countdown(final.planned_duration)}\n")
            if self.sound:
                self.stream.write("\a")
            if self.notifier is not None:
                self.notifier.session_finished(final, self.scheduler.policy(final.methodology))
        elif final is not None:
            self.stream.write(f"{label} 已结束（{final.status.value}）\n")
        self.stream.flush()
        self._emit("watch_end", session_id=session_id, finished=finished)
        return WatchResult(session=final, finished=finished, interrupted=False)

    def _render(self, label: str, remaining: timedelta, paused: bool) -> None:
        suffix = "（已暂停）" if paused else ""
        self.stream.write(f"\r{label} 剩余 {format_countdown(remaining)}{suffix}")
        self.stream.flush()

    def _clear_line(self) -> None:
        self.stream.write("\r" + (" " * 80) + "\r")
        self.stream.flush()

    def _emit(self, event: str, **payload: object) -> None:
        if self.progress_callback is None:
            return
        self.progress_callback(event, payload)


def _label(session: Session) -> str:
    if session.is_work:
        return f"{session.methodology.label} 专注"
    if session.kind == SessionKind.LONG_BREAK:
        return "长休息"
    return "休息"
