from __future__ import annotations

import logging

from .config import Settings
from .git_context import GitCliDetector

logger = logging.getLogger(__name__)


def serve(settings: Settings, host: str = "127.0.0.1", port: int = 8765) -> int:
    try:
        import uvicorn
    except ImportError as exc:
        print(f"API 启动失败：缺少依赖（fastapi/uvicorn）。{exc}")
        print("请先安装依赖：pip install -e .")
        return 2

    from .api.app import create_app

    app = create_app(db_path=settings.resolve_db_path(), settings=settings, git=GitCliDetector())
    logger.info("serving FlowLog API on http://%s:%s", host, port)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level=settings.log_level.lower() if settings.log_level else "warning",
        )
    )
    server.run()
    return 0
