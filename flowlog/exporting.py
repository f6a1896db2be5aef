from __future__ import annotations

import csv
from datetime import datetime
from pathlib import Path

from .db import FlowLogDB
from .reporting import format_duration
from .session import Session

CSV_HEADER = [
    "id",
    "kind",
    "status",
    "methodology",
    "started_at",
    "completed_at",
    "planned_sec",
    "task_id",
    "task",
    "tags",
    "focus_score",
    "distractions",
    "accomplishment",
    "intended_outcome",
    "energize_activity",
    "notes",
    "git_branch",
    "git_commit",
]


def _select(db: FlowLogDB, since: datetime | None) -> list[Session]:
    sessions = db.list_all_sessions()
    if since is None:
        return sessions
    return [item for item in sessions if item.started_at >= since]


def _task_titles(db: FlowLogDB, sessions: list[Session]) -> dict[str, str]:
    titles: dict[str, str] = {}
    for item in sessions:
        if item.task_id and item.task_id not in titles:
            task = db.find_task_by_id(item.task_id)
            titles[item.task_id] = task.title if task else ""
    return titles


def export_sessions_csv(db: FlowLogDB, out_dir: Path, since: datetime | None = None) -> Path:
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    csv_path = out_path / "flowlog.csv"

    sessions = _select(db, since)
    titles = _task_titles(db, sessions)

    with csv_path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.writer(fp)
        writer.writerow(CSV_HEADER)
        for item in sessions:
            writer.writerow(
                [
                    item.id,
                    item.kind.value,
                    item.status.value,
                    item.methodology.value,
                    item.started_at.isoformat(),
                    item.completed_at.isoformat() if item.completed_at else "",
                    int(item.planned_duration.total_seconds()),
                    item.task_id or "",
                    titles.get(item.task_id or "", ""),
                    ",".join(item.tags),
                    item.focus_score if item.focus_score is not None else "",
                    " | ".join(d.text for d in item.distractions),
                    item.accomplishment,
                    item.intended_outcome,
                    item.energize_activity,
                    item.notes,
                    item.git.branch if item.git else "",
                    item.git.commit if item.git else "",
                ]
            )

    return csv_path


def export_sessions_markdown(db: FlowLogDB, out_dir: Path, since: datetime | None = None) -> Path:
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    md_path = out_path / "flowlog.md"

    sessions = _select(db, since)
    titles = _task_titles(db, sessions)

    lines = ["# FlowLog 会话记录", ""]
    if not sessions:
        lines.append("暂无会话记录。")
    else:
        lines.append("| 开始 | 类型 | 状态 | 方法 | 时长 | 任务 | 评分 | 标签 |")
        lines.append("| --- | --- | --- | --- | --- | --- | --- | --- |")
        for item in sessions:
            lines.append(
                "| {start} | {kind} | {status} | {method} | {duration} | {task} | {score} | {tags} |".format(
                    start=item.started_at.strftime("%Y-%m-%d %H:%M"),
                    kind=item.kind.value,
                    status=item.status.value,
                    method=item.methodology.label,
                    duration=format_duration(item.planned_duration),
                    task=titles.get(item.task_id or "", "") or "-",
                    score=item.focus_score if item.focus_score is not None else "-",
                    tags=", ".join(f"#{tag}" for tag in item.tags) or "-",
                )
            )
    lines.append("")

    md_path.write_text("\n".join(lines), encoding="utf-8")
    return md_path
