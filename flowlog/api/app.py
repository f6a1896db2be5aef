from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI

from .. import __version__
from ..clock import Clock, RealClock
from ..config import Settings, load_settings
from ..git_context import GitCliDetector
from ..ports import GitDetector
from .routes.control import router as control_router
from .routes.export import router as export_router
from .routes.meta import router as meta_router
from .routes.report import router as report_router
from .routes.sessions import router as sessions_router
from .routes.stats import router as stats_router
from .routes.tasks import router as tasks_router


def create_app(
    db_path: Path | None = None,
    settings: Settings | None = None,
    clock: Clock | None = None,
    git: GitDetector | None = None,
) -> FastAPI:
    resolved_settings = settings or load_settings()
    resolved_db = Path(db_path or resolved_settings.resolve_db_path())
    resolved_settings.resolve_methodology()

    app = FastAPI(title="FlowLog API", version=__version__)
    app.state.db_path = str(resolved_db)
    app.state.settings = resolved_settings
    app.state.clock = clock or RealClock()
    app.state.git = git

    app.include_router(meta_router)
    app.include_router(control_router)
    app.include_router(sessions_router)
    app.include_router(tasks_router)
    app.include_router(stats_router)
    app.include_router(report_router)
    app.include_router(export_router)
    return app


def create_default_app() -> FastAPI:
    """Factory for ``uvicorn flowlog.api.app:create_default_app --factory``."""
    return create_app(git=GitCliDetector())
