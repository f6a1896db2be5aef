from __future__ import annotations

import logging
import platform
import shutil
import subprocess
import sys
from typing import TextIO

from .methodology import MethodologyConfig
from .session import Session

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(self, stream: TextIO | None = None, enabled: bool = True) -> None:
        self.stream = stream or sys.stdout
        self.enabled = enabled

    def notify(self, title: str, message: str) -> bool:
        """Send a desktop notification; returns False when the stream fallback was used."""
        sent = False
        system_name = platform.system().lower()

        if self.enabled:
            try:
                if system_name == "darwin" and shutil.which("osascript"):
                    script = (
                        "display notification "
                        f"\"{self._escape(message)}\" with title \"{self._escape(title)}\""
                    )
                    result = subprocess.run(
                        ["osascript", "-e", script],
                        check=False,
                        stdout=subprocess.DEVNULL,
                        stderr=subprocess.DEVNULL,
                    )
                    sent = result.returncode == 0
                elif system_name == "linux" and shutil.which("notify-send"):
                    result = subprocess.run(
                        ["notify-send", "--app-name=FlowLog", title, message],
                        check=False,
                        stdout=subprocess.DEVNULL,
                        stderr=subprocess.DEVNULL,
                    )
                    sent = result.returncode == 0
            except (OSError, subprocess.SubprocessError) as exc:
                logger.debug("desktop notification failed: %s", exc)
                sent = False

        if not sent:
            self.stream.write(f"[通知] {title}: {message}\n")
            self.stream.flush()
        return sent

    def session_finished(self, session: Session, policy: MethodologyConfig) -> bool:
        if session.is_work:
            title = policy.completion_title
            message = "休息一下吧。"
            if policy.uses_focus_score:
                message = "给这次专注打个分（1-5），再去充个电。"
            elif policy.uses_shutdown_ritual:
                message = "记录成果，必要时完成结束仪式。"
        else:
            title = "休息结束"
            message = "准备开始下一段专注。"
        return self.notify(title, message)

    @staticmethod
    def _escape(text: str) -> str:
        return text.replace("\\", "\\\\").replace('"', '\\"')
