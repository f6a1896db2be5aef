from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...analytics import period_bounds
from ...clock import Clock
from ...config import flowlog_home
from ...db import FlowLogDB
from ...exporting import export_sessions_csv, export_sessions_markdown
from ..deps import get_clock, get_db
from ..schemas import FileResult

router = APIRouter(prefix="/api/v1", tags=["export"])


class ExportRequest(BaseModel):
    out_dir: str | None = None
    period: Literal["week", "month", "all"] = "all"


def _since(period: str, clock: Clock) -> datetime | None:
    if period == "all":
        return None
    start, _ = period_bounds(period, clock.now())
    return start


@router.post("/export/csv", response_model=FileResult)
def export_csv(
    payload: ExportRequest,
    db: FlowLogDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> FileResult:
    out_dir = Path(payload.out_dir) if payload.out_dir else flowlog_home() / "out"
    csv_path = export_sessions_csv(db, out_dir, since=_since(payload.period, clock))
    return FileResult(path=str(csv_path))


@router.post("/export/markdown", response_model=FileResult)
def export_markdown(
    payload: ExportRequest,
    db: FlowLogDB = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> FileResult:
    out_dir = Path(payload.out_dir) if payload.out_dir else flowlog_home() / "out"
    md_path = export_sessions_markdown(db, out_dir, since=_since(payload.period, clock))
    return FileResult(path=str(md_path))
