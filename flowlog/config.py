from __future__ import annotations

from dataclasses import dataclass, field, replace
import json
import logging
import os
from pathlib import Path
from typing import Any

from .methodology import Methodology, parse_methodology

logger = logging.getLogger(__name__)

SETTINGS_DIR_NAME = ".flowlog"
SETTINGS_FILE_NAME = "settings.json"
DB_FILE_NAME = "flowlog.sqlite"


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off", ""}:
            return False
    return default


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class PomodoroSettings:
    work_minutes: float = 25.0
    short_break_minutes: float = 5.0
    long_break_minutes: float = 15.0
    sessions_before_long: int = 4

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_minutes": self.work_minutes,
            "short_break_minutes": self.short_break_minutes,
            "long_break_minutes": self.long_break_minutes,
            "sessions_before_long": self.sessions_before_long,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> PomodoroSettings:
        return cls(
            work_minutes=_as_float(payload.get("work_minutes", 25.0), 25.0),
            short_break_minutes=_as_float(payload.get("short_break_minutes", 5.0), 5.0),
            long_break_minutes=_as_float(payload.get("long_break_minutes", 15.0), 15.0),
            sessions_before_long=int(payload.get("sessions_before_long", 4)),
        )


@dataclass(frozen=True)
class DeepWorkSettings:
    work_minutes: float = 90.0
    break_minutes: float = 20.0
    goal_hours: float = 4.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_minutes": self.work_minutes,
            "break_minutes": self.break_minutes,
            "goal_hours": self.goal_hours,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> DeepWorkSettings:
        return cls(
            work_minutes=_as_float(payload.get("work_minutes", 90.0), 90.0),
            break_minutes=_as_float(payload.get("break_minutes", 20.0), 20.0),
            goal_hours=_as_float(payload.get("goal_hours", 4.0), 4.0),
        )


@dataclass(frozen=True)
class MakeTimeSettings:
    work_minutes: float = 60.0
    break_minutes: float = 15.0
    checklist_enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_minutes": self.work_minutes,
            "break_minutes": self.break_minutes,
            "checklist_enabled": self.checklist_enabled,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> MakeTimeSettings:
        return cls(
            work_minutes=_as_float(payload.get("work_minutes", 60.0), 60.0),
            break_minutes=_as_float(payload.get("break_minutes", 15.0), 15.0),
            checklist_enabled=_as_bool(payload.get("checklist_enabled", True), True),
        )


@dataclass(frozen=True)
class Settings:
    methodology: str = Methodology.POMODORO.value
    db_path: str = ""
    notifications: bool = True
    log_level: str = "WARNING"
    pomodoro: PomodoroSettings = field(default_factory=PomodoroSettings)
    deep_work: DeepWorkSettings = field(default_factory=DeepWorkSettings)
    make_time: MakeTimeSettings = field(default_factory=MakeTimeSettings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "methodology": self.methodology,
            "db_path": self.db_path,
            "notifications": self.notifications,
            "log_level": self.log_level,
            "pomodoro": self.pomodoro.to_dict(),
            "deepwork": self.deep_work.to_dict(),
            "maketime": self.make_time.to_dict(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Settings:
        return cls(
            methodology=str(payload.get("methodology", Methodology.POMODORO.value)),
            db_path=str(payload.get("db_path", "") or ""),
            notifications=_as_bool(payload.get("notifications", True), True),
            log_level=str(payload.get("log_level", "WARNING")),
            pomodoro=PomodoroSettings.from_dict(payload.get("pomodoro") or {}),
            deep_work=DeepWorkSettings.from_dict(payload.get("deepwork") or {}),
            make_time=MakeTimeSettings.from_dict(payload.get("maketime") or {}),
        )

    def resolve_methodology(self, override: str | None = None) -> Methodology:
        return parse_methodology(override or self.methodology or Methodology.POMODORO.value)

    def resolve_db_path(self) -> Path:
        if self.db_path:
            return Path(self.db_path).expanduser()
        return default_db_path()


def flowlog_home() -> Path:
    raw = os.getenv("FLOWLOG_HOME", "").strip()
    if raw:
        return Path(raw).expanduser()
    return Path.home() / SETTINGS_DIR_NAME


def default_settings_path(home: Path | None = None) -> Path:
    base = home if home is not None else flowlog_home()
    return base / SETTINGS_FILE_NAME


def default_db_path(home: Path | None = None) -> Path:
    base = home if home is not None else flowlog_home()
    return base / DB_FILE_NAME


def load_settings(path: Path | None = None) -> Settings:
    target = path or default_settings_path()
    settings = Settings()
    if target.exists():
        try:
            with target.open("r", encoding="utf-8") as fp:
                payload = json.load(fp)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("ignoring unreadable settings file %s: %s", target, exc)
        else:
            if isinstance(payload, dict):
                settings = Settings.from_dict(payload)
            else:
                logger.warning("ignoring settings file %s: not a JSON object", target)
    return apply_env_overrides(settings)


def apply_env_overrides(settings: Settings) -> Settings:
    changes: dict[str, Any] = {}
    methodology = os.getenv("FLOWLOG_METHODOLOGY", "").strip()
    if methodology:
        changes["methodology"] = methodology
    db_path = os.getenv("FLOWLOG_DB", "").strip()
    if db_path:
        changes["db_path"] = db_path
    log_level = os.getenv("FLOWLOG_LOG_LEVEL", "").strip()
    if log_level:
        changes["log_level"] = log_level
    return replace(settings, **changes) if changes else settings


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    target = path or default_settings_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path = target.with_suffix(target.suffix + ".tmp")
    with temp_path.open("w", encoding="utf-8") as fp:
        json.dump(settings.to_dict(), fp, indent=2, ensure_ascii=False, sort_keys=True)
        fp.write("\n")
    temp_path.replace(target)
    return target
