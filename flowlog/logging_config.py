from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | int = "WARNING", log_file: Path | None = None) -> None:
    """Configure root logging for the command line and the API server."""
    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper() or "WARNING")
        if not isinstance(resolved, int):
            resolved = logging.WARNING
    else:
        resolved = level

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(level=resolved, format=LOG_FORMAT, handlers=handlers, force=True)
    logging.getLogger(__name__).debug("logging initialized at %s", logging.getLevelName(resolved))
