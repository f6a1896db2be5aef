from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

from .analytics import (
    Analytics,
    PeriodStats,
    compute_hourly_productivity,
    compute_period_stats,
    day_start,
)
from .methodology import parse_methodology
from .session import SessionKind, SessionStatus


def format_duration(seconds: float | timedelta) -> str:
    if isinstance(seconds, timedelta):
        seconds = seconds.total_seconds()
    total = max(0, int(seconds))
    minutes, sec = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}小时{minutes:02d}分{sec:02d}秒"
    return f"{minutes}分{sec:02d}秒"


def format_countdown(remaining: timedelta) -> str:
    total = max(0, int(round(remaining.total_seconds())))
    minutes, sec = divmod(total, 60)
    return f"{minutes:02d}:{sec:02d}"


def hour_bar(value: timedelta, peak: timedelta, width: int = 20) -> str:
    if peak <= timedelta(0):
        return ""
    return "█" * max(1, int(round(width * (value / peak)))) if value > timedelta(0) else ""


def build_stats(analytics: Analytics, now: datetime | None = None) -> dict[str, PeriodStats]:
    ref = now or analytics.clock.now()
    today_start = day_start(ref.date(), ref.tzinfo)
    week_start = today_start - timedelta(days=today_start.weekday())
    last7_start = ref - timedelta(days=7)

    return {
        "today": analytics.period_stats(today_start, ref),
        "this_week": analytics.period_stats(week_start, ref),
        "last_7_days": analytics.period_stats(last7_start, ref),
    }


def generate_weekly_report(
    analytics: Analytics,
    out_dir: Path,
    year: int | None = None,
    week: int | None = None,
    now: datetime | None = None,
) -> Path:
    ref = now or analytics.clock.now()
    iso = ref.isocalendar()
    target_year = int(year or iso[0])
    target_week = int(week or iso[1])
    tz = ref.tzinfo

    week_start = datetime.fromisocalendar(target_year, target_week, 1).replace(tzinfo=tz)
    week_end = week_start + timedelta(days=7)
    sessions = analytics.sessions_between(week_start, week_end)
    stats = compute_period_stats(sessions, week_start, week_end)
    hourly = compute_hourly_productivity(sessions)
    energize = analytics.energize_stats(week_start, week_end)

    task_totals: dict[str, timedelta] = {}
    day_totals: dict[str, timedelta] = {}
    titles: dict[str, str] = {}
    breaks = 0
    voided = 0
    for item in sessions:
        if item.status == SessionStatus.VOIDED:
            voided += 1
        if item.status != SessionStatus.COMPLETED:
            continue
        if item.kind != SessionKind.WORK:
            breaks += 1
            continue

        if item.task_id and item.task_id not in titles:
            task = analytics.storage.find_task_by_id(item.task_id)
            titles[item.task_id] = task.title if task else "已删除任务"
        task_name = titles.get(item.task_id or "", "未关联任务")
        task_totals[task_name] = task_totals.get(task_name, timedelta(0)) + item.planned_duration

        local_day = item.started_at.astimezone(tz).strftime("%Y-%m-%d")
        day_totals[local_day] = day_totals.get(local_day, timedelta(0)) + item.planned_duration

    lines: list[str] = []
    lines.append(f"# FlowLog 周报 {target_year}-W{target_week:02d}")
    lines.append("")
    lines.append(
        f"- 统计区间：{week_start.strftime('%Y-%m-%d')} 至 "
        f"{(week_end - timedelta(days=1)).strftime('%Y-%m-%d')}"
    )
    lines.append(f"- 生成时间：{ref.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    lines.append("")

    lines.append("## 总览")
    lines.append(f"- 工作总时长：{format_duration(stats.total_work_time)}")
    lines.append(f"- 完成工作会话：{stats.total_sessions} 次")
    lines.append(f"- 完成休息：{breaks} 次")
    lines.append(f"- 作废会话：{voided} 次")
    if stats.focus_score_count:
        lines.append(f"- 平均专注评分：{stats.avg_focus_score:.1f}（{stats.focus_score_count} 次评分）")
    lines.append(f"- 记录的分心：{stats.distraction_count} 次")
    lines.append(f"- 深度工作连续天数：{analytics.deep_work_streak()} 天")
    lines.append("")

    lines.append("## 方法分布")
    if stats.by_methodology:
        lines.append("| 方法 | 会话 | 时长 |")
        lines.append("| --- | --- | --- |")
        for entry in stats.by_methodology:
            label = parse_methodology(entry.methodology).label
            lines.append(f"| {label} | {entry.sessions} | {format_duration(entry.total_time)} |")
    else:
        lines.append("本周暂无工作会话。")
    lines.append("")

    lines.append("## 任务分布")
    if task_totals:
        lines.append("| 任务 | 时长 |")
        lines.append("| --- | --- |")
        for task_name, total in sorted(task_totals.items(), key=lambda x: x[1], reverse=True):
            lines.append(f"| {task_name} | {format_duration(total)} |")
    else:
        lines.append("本周暂无任务数据。")
    lines.append("")

    lines.append("## 每日工作时长")
    if day_totals:
        lines.append("| 日期 | 时长 |")
        lines.append("| --- | --- |")
        for day, total in sorted(day_totals.items()):
            lines.append(f"| {day} | {format_duration(total)} |")
    else:
        lines.append("本周暂无每日数据。")
    lines.append("")

    lines.append("## 时段分布")
    if hourly:
        lines.append("| 时段 | 时长 |")
        lines.append("| --- | --- |")
        for hour, total in hourly.items():
            lines.append(f"| {hour:02d}:00 | {format_duration(total)} |")
    else:
        lines.append("本周暂无时段数据。")
    lines.append("")

    lines.append("## 充电活动")
    if energize:
        lines.append("| 活动 | 会话 | 平均专注评分 |")
        lines.append("| --- | --- | --- |")
        for entry in energize:
            lines.append(f"| {entry.activity} | {entry.sessions} | {entry.avg_focus_score:.1f} |")
    else:
        lines.append("本周无充电活动记录。")
    lines.append("")

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / f"week-{target_year}-{target_week:02d}.md"
    report_path.write_text("\n".join(lines), encoding="utf-8")
    return report_path
