from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...analytics import Analytics
from ...config import flowlog_home
from ...reporting import generate_weekly_report
from ..deps import get_analytics, http_error
from ..schemas import FileResult

router = APIRouter(prefix="/api/v1", tags=["report"])


class WeeklyReportRequest(BaseModel):
    year: int | None = None
    week: int | None = Field(default=None, ge=1, le=53)
    out_dir: str | None = None


@router.post("/report/weekly", response_model=FileResult)
def generate_report(
    payload: WeeklyReportRequest,
    analytics: Analytics = Depends(get_analytics),
) -> FileResult:
    out_dir = Path(payload.out_dir) if payload.out_dir else flowlog_home() / "out"
    try:
        report_path = generate_weekly_report(
            analytics,
            out_dir=out_dir,
            year=payload.year,
            week=payload.week,
        )
    except ValueError as exc:
        raise http_error(exc) from exc
    return FileResult(path=str(report_path))
