from __future__ import annotations

import argparse
from dataclasses import replace
from datetime import date, datetime, time as dtime, timedelta
from pathlib import Path
import sys

from .analytics import Analytics, period_bounds
from .clock import Clock, RealClock
from .config import Settings, default_settings_path, flowlog_home, load_settings, save_settings
from .db import FlowLogDB
from .errors import FlowLogError
from .exporting import export_sessions_csv, export_sessions_markdown
from .git_context import GitCliDetector, short_commit
from .logging_config import setup_logging
from .methodology import LASER_CHECKLIST, Methodology, parse_methodology
from .notifier import Notifier
from .reporting import format_countdown, format_duration, generate_weekly_report, hour_bar
from .scheduler import Scheduler
from .session import Session, SessionKind, ShutdownRitual
from .task import TaskStatus
from .task_service import TaskService
from .timer import SessionWatcher

KIND_TEXT = {
    SessionKind.WORK: "专注",
    SessionKind.SHORT_BREAK: "短休息",
    SessionKind.LONG_BREAK: "长休息",
}
STATUS_TEXT = {
    "running": "进行中",
    "paused": "已暂停",
    "completed": "已完成",
    "cancelled": "已取消",
    "voided": "已作废",
}
TASK_STATUS_TEXT = {
    TaskStatus.PENDING: "待办",
    TaskStatus.IN_PROGRESS: "进行中",
    TaskStatus.COMPLETED: "已完成",
    TaskStatus.CANCELLED: "已取消",
}


def default_out_dir() -> Path:
    return flowlog_home() / "out"


def parse_since(value: str) -> datetime:
    text = value.strip()
    local_tz = datetime.now().astimezone().tzinfo
    if local_tz is None:
        raise argparse.ArgumentTypeError("无法识别本地时区")

    try:
        if len(text) == 10:
            day = date.fromisoformat(text)
            return datetime.combine(day, dtime.min).replace(tzinfo=local_tz)

        dt = datetime.fromisoformat(text)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=local_tz)
        return dt
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"--since 格式错误：{value}，请使用 YYYY-MM-DD 或 ISO 日期时间"
        ) from exc


def parse_minutes(value: str) -> float:
    try:
        minutes = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"分钟数格式错误：{value}") from exc
    if minutes <= 0:
        raise argparse.ArgumentTypeError("时长必须大于 0")
    return minutes


def parse_score(value: str) -> int:
    try:
        score = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"评分格式错误：{value}") from exc
    if not 1 <= score <= 5:
        raise argparse.ArgumentTypeError("专注评分必须在 1 到 5 之间")
    return score


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowlog",
        description="FlowLog：支持番茄钟、深度工作与 Make Time 的命令行专注计时器",
    )
    parser.add_argument("--db", default=None, help="SQLite 数据库路径（默认 ~/.flowlog/flowlog.sqlite）")
    parser.add_argument("--settings", default=None, help="设置文件路径（默认 ~/.flowlog/settings.json）")
    parser.add_argument(
        "--mode",
        default=None,
        help="本次使用的方法：pomodoro / deepwork / maketime",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="输出更多日志")

    subparsers = parser.add_subparsers(dest="command", required=True)

    start_parser = subparsers.add_parser("start", help="开始专注会话")
    start_parser.add_argument("--task-id", default=None, help="关联已有任务 ID")
    start_parser.add_argument("--title", default=None, help="新建任务并关联，可包含 #标签")
    start_parser.add_argument("--preset", default=None, help="预设名称或序号（1-3）")
    start_parser.add_argument("--minutes", type=parse_minutes, default=None, help="自定义时长（分钟）")
    start_parser.add_argument("--outcome", default="", help="预期成果（深度工作）")
    start_parser.add_argument("--tags", default="", help="标签，逗号分隔")
    start_parser.add_argument(
        "--carry-forward",
        action="store_true",
        help="接受昨天未完成的 Highlight 作为今天的 Highlight",
    )
    start_parser.add_argument("--dir", default=None, help="读取 git 信息的目录（默认当前目录）")
    start_parser.add_argument("--no-git", action="store_true", help="不记录 git 信息")
    start_parser.add_argument("--watch", action="store_true", help="开始后显示倒计时")

    break_parser = subparsers.add_parser("break", help="开始休息")
    break_parser.add_argument("--watch", action="store_true", help="开始后显示倒计时")

    subparsers.add_parser("pause", help="暂停当前会话")
    subparsers.add_parser("resume", help="继续当前会话")
    subparsers.add_parser("stop", help="完成当前会话")
    subparsers.add_parser("cancel", help="取消当前会话")

    void_parser = subparsers.add_parser("void", help="作废会话（不计入统计）")
    void_parser.add_argument("--session", default=None, help="作废指定的已完成会话")

    subparsers.add_parser("status", help="查看当前状态")

    watch_parser = subparsers.add_parser("watch", help="显示当前会话倒计时")
    watch_parser.add_argument(
        "--tick-seconds",
        type=float,
        default=1.0,
        help="倒计时刷新间隔（秒，>=0）",
    )
    watch_parser.add_argument("--no-sound", action="store_true", help="禁用提示音")

    distract_parser = subparsers.add_parser("distract", help="记录一次分心")
    distract_parser.add_argument("text", help="分心内容")
    distract_parser.add_argument(
        "--category",
        default="",
        choices=["", "internal", "external"],
        help="分心类别",
    )
    distract_parser.add_argument("--session", default=None, help="会话 ID（默认当前或最近一次）")

    score_parser = subparsers.add_parser("score", help="记录专注评分（1-5）")
    score_parser.add_argument("score", type=parse_score)
    score_parser.add_argument("--session", default=None, help="会话 ID（默认当前或最近一次）")

    accomplish_parser = subparsers.add_parser("accomplish", help="记录本次成果")
    accomplish_parser.add_argument("text")
    accomplish_parser.add_argument("--session", default=None, help="会话 ID（默认当前或最近一次）")

    ritual_parser = subparsers.add_parser("ritual", help="记录结束仪式（深度工作）")
    ritual_parser.add_argument("--pending", default="", help="待办回顾")
    ritual_parser.add_argument("--calendar", default="", help="日程回顾")
    ritual_parser.add_argument("--tomorrow", default="", help="明日计划")
    ritual_parser.add_argument("--phrase", default="", help="收工口令")
    ritual_parser.add_argument("--session", default=None, help="会话 ID（默认当前或最近一次）")

    energize_parser = subparsers.add_parser("energize", help="记录充电活动（Make Time）")
    energize_parser.add_argument("activity")
    energize_parser.add_argument("--session", default=None, help="会话 ID（默认当前或最近一次）")

    note_parser = subparsers.add_parser("note", help="追加会话备注")
    note_parser.add_argument("text")
    note_parser.add_argument("--session", default=None, help="会话 ID（默认当前或最近一次）")

    task_parser = subparsers.add_parser("task", help="管理任务")
    task_sub = task_parser.add_subparsers(dest="task_command", required=True)
    task_add = task_sub.add_parser("add", help="新建任务")
    task_add.add_argument("title", help="任务标题，可包含 #标签")
    task_add.add_argument("--description", default="", help="任务描述")
    task_add.add_argument("--tags", default="", help="标签，逗号分隔")
    task_list = task_sub.add_parser("list", help="列出任务")
    task_list.add_argument("--all", action="store_true", help="包含已完成和已取消的任务")
    task_list.add_argument("--recent", action="store_true", help="按最近会话排序")
    for name, help_text in (
        ("done", "完成任务"),
        ("cancel", "取消任务"),
        ("delete", "删除任务（保留历史会话）"),
        ("highlight", "设为今天的 Highlight"),
        ("history", "查看任务的会话"),
    ):
        sub = task_sub.add_parser(name, help=help_text)
        sub.add_argument("task_id")

    stats_parser = subparsers.add_parser("stats", help="查看统计")
    stats_parser.add_argument("--period", choices=["day", "week", "month"], default="week")
    stats_parser.add_argument("--hours-days", type=int, default=30, help="时段统计回溯天数")

    log_parser = subparsers.add_parser("log", help="查看会话记录")
    log_parser.add_argument("--since", type=parse_since, default=None, help="起始时间")
    log_parser.add_argument("--tag", default=None, help="按标签过滤")
    log_parser.add_argument("--limit", type=int, default=20, help="最多显示条数")

    report_parser = subparsers.add_parser("report", help="生成周报 Markdown")
    report_parser.add_argument("--year", type=int, default=None, help="ISO 年")
    report_parser.add_argument("--week", type=int, default=None, help="ISO 周")
    report_parser.add_argument("--out-dir", default=None, help="输出目录，默认 ~/.flowlog/out")

    export_parser = subparsers.add_parser("export", help="导出会话记录")
    export_parser.add_argument("--format", choices=["csv", "md"], default="csv")
    export_parser.add_argument(
        "--period",
        choices=["week", "month", "all"],
        default="all",
        help="导出范围",
    )
    export_parser.add_argument("--out-dir", default=None, help="输出目录，默认 ~/.flowlog/out")

    config_parser = subparsers.add_parser("config", help="查看或修改设置")
    config_sub = config_parser.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser("show", help="显示当前设置")
    set_mode = config_sub.add_parser("set-mode", help="设置默认方法")
    set_mode.add_argument("mode")

    serve_parser = subparsers.add_parser("serve", help="启动 HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8765)

    return parser


def main(argv: list[str] | None = None, clock: Clock | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings_path = Path(args.settings) if args.settings else default_settings_path()
    settings = load_settings(settings_path)
    setup_logging("DEBUG" if args.verbose > 1 else "INFO" if args.verbose else settings.log_level)

    try:
        if args.command == "config":
            return _handle_config(args, settings, settings_path)

        if args.db:
            settings = replace(settings, db_path=str(args.db))

        methodology = settings.resolve_methodology(args.mode)
        if args.command == "serve":
            return _handle_serve(args, settings, methodology)

        db = FlowLogDB(settings.resolve_db_path())
        real_clock = clock or RealClock()
        git = None if getattr(args, "no_git", False) else GitCliDetector()
        scheduler = Scheduler(db, real_clock, settings=settings, methodology=methodology, git=git)
        tasks = TaskService(db, real_clock)
        handlers = {
            "start": lambda: _handle_start(args, scheduler, tasks, settings),
            "break": lambda: _handle_break(args, scheduler, settings),
            "pause": lambda: _print_session("已暂停", scheduler.pause(), scheduler),
            "resume": lambda: _print_session("已继续", scheduler.resume(), scheduler),
            "stop": lambda: _handle_stop(scheduler),
            "cancel": lambda: _print_session("已取消", scheduler.cancel(), scheduler),
            "void": lambda: _print_session("已作废", scheduler.void(args.session), scheduler),
            "status": lambda: _handle_status(scheduler, tasks),
            "watch": lambda: _handle_watch(args, scheduler, settings),
            "distract": lambda: _handle_distract(args, scheduler),
            "score": lambda: _handle_annotation(
                scheduler, args.session, "专注评分已记录", scheduler.set_focus_score, args.score
            ),
            "accomplish": lambda: _handle_annotation(
                scheduler, args.session, "成果已记录", scheduler.set_accomplishment, args.text
            ),
            "ritual": lambda: _handle_annotation(
                scheduler,
                args.session,
                "结束仪式已记录",
                scheduler.set_shutdown_ritual,
                ShutdownRitual(
                    pending_tasks_review=args.pending.strip(),
                    calendar_review=args.calendar.strip(),
                    tomorrow_plan=args.tomorrow.strip(),
                    closing_phrase=args.phrase.strip(),
                ),
            ),
            "energize": lambda: _handle_annotation(
                scheduler, args.session, "充电活动已记录", scheduler.set_energize_activity, args.activity
            ),
            "note": lambda: _handle_annotation(
                scheduler, args.session, "备注已追加", scheduler.add_notes, args.text
            ),
            "task": lambda: _handle_task(args, scheduler, tasks),
            "stats": lambda: _handle_stats(args, scheduler.analytics),
            "log": lambda: _handle_log(args, db),
            "report": lambda: _handle_report(args, scheduler.analytics),
            "export": lambda: _handle_export(args, db, real_clock),
        }
        handler = handlers.get(args.command)
        if handler is None:
            parser.print_help()
            return 2
        return handler()
    except (FlowLogError, ValueError) as exc:
        print(f"错误：{exc}", file=sys.stderr)
        return 1


def _handle_start(
    args: argparse.Namespace,
    scheduler: Scheduler,
    tasks: TaskService,
    settings: Settings,
) -> int:
    scheduler.ensure_idle()
    policy = scheduler.policy()
    task_id = args.task_id
    tags = [x.strip() for x in args.tags.split(",") if x.strip()]

    if policy.uses_highlight and not task_id and not args.title:
        candidate = scheduler.highlight_candidate()
        if candidate is not None:
            if args.carry_forward:
                tasks.set_highlight(candidate.id)
                task_id = candidate.id
                print(f"沿用昨天的 Highlight：{candidate.title}")
            else:
                print(f"昨天的 Highlight 未完成：{candidate.title}（加 --carry-forward 沿用）")
        else:
            highlight = tasks.get_highlight()
            if highlight is not None:
                task_id = highlight.id

    if args.title:
        task = tasks.add_task(args.title, tags=tags)
        task_id = task.id
        tags = list(task.tags)
        if policy.uses_highlight and tasks.get_highlight() is None:
            tasks.set_highlight(task.id)
            print(f"今天的 Highlight：{task.title}")

    if args.minutes is not None:
        duration = timedelta(minutes=args.minutes)
    elif args.preset:
        duration = policy.preset(args.preset).duration
    else:
        duration = policy.work_duration

    if policy.uses_checklist:
        print("专注准备：")
        for item in LASER_CHECKLIST:
            print(f"  [ ] {item}")

    working_dir = Path(args.dir) if args.dir else None
    session = scheduler.start_work(
        task_id=task_id,
        duration=duration,
        intended_outcome=args.outcome,
        tags=tags,
        working_dir=working_dir,
    )
    _print_session("已开始", session, scheduler)
    if policy.outcome_prompt and not args.outcome:
        print(f"提示：{policy.outcome_prompt} 可用 flowlog note 补充。")
    if session.git is not None:
        print(f"git：{session.git.branch}@{short_commit(session.git.commit)}")

    if args.watch:
        return _watch(scheduler, settings)
    return 0


def _handle_break(args: argparse.Namespace, scheduler: Scheduler, settings: Settings) -> int:
    session = scheduler.start_break()
    _print_session("已开始", session, scheduler)
    if args.watch:
        return _watch(scheduler, settings)
    return 0


def _handle_stop(scheduler: Scheduler) -> int:
    session = scheduler.stop()
    _print_session("已完成", session, scheduler)
    if not session.is_work:
        return 0

    policy = scheduler.policy(session.methodology)
    if policy.uses_focus_score:
        print("给这次专注打分：flowlog score <1-5>；记录充电活动：flowlog energize <活动>")
    if policy.uses_shutdown_ritual:
        print("记录成果：flowlog accomplish <内容>；收工仪式：flowlog ritual --tomorrow ...")
        streak = scheduler.get_deep_work_streak()
        print(f"深度工作连续天数：{streak} 天")
    done_today = scheduler.analytics.daily_stats().work_sessions
    print(f"今日已完成专注 {done_today} 次，开始休息：flowlog break")
    return 0


def _handle_watch(args: argparse.Namespace, scheduler: Scheduler, settings: Settings) -> int:
    if args.tick_seconds < 0:
        raise ValueError("--tick-seconds 不能为负数")
    return _watch(scheduler, settings, tick_seconds=args.tick_seconds, sound=not args.no_sound)


def _watch(scheduler: Scheduler, settings: Settings, tick_seconds: float = 1.0, sound: bool = True) -> int:
    watcher = SessionWatcher(
        scheduler,
        notifier=Notifier(stream=sys.stdout, enabled=settings.notifications),
        tick_seconds=tick_seconds,
        sound=sound,
    )
    result = watcher.watch()
    return 130 if result.interrupted else 0


def _handle_status(scheduler: Scheduler, tasks: TaskService) -> int:
    state = scheduler.get_current_state()
    now = scheduler.clock.now()
    policy = scheduler.policy()
    print(f"[方法] {policy.label}")

    session = state.active_session
    if session is None:
        print("当前没有进行中的会话。")
    else:
        print(
            f"[会话] {KIND_TEXT[session.kind]} {STATUS_TEXT[session.status.value]} | "
            f"剩余 {format_countdown(session.remaining_time(now))} | "
            f"进度 {session.progress(now) * 100:.0f}%"
        )
    if state.active_task is not None:
        print(f"[任务] {state.active_task.title}")
    if policy.uses_highlight:
        highlight = tasks.get_highlight()
        print(f"[Highlight] {highlight.title if highlight else '未设置'}")

    today = state.today
    print(
        f"[今日] 专注 {today.work_sessions} 次，休息 {today.breaks_taken} 次，"
        f"专注时长 {format_duration(today.total_work_time)}"
    )
    if policy.methodology == Methodology.DEEP_WORK:
        print(f"[连续] 深度工作 {scheduler.get_deep_work_streak()} 天")
    return 0


def _handle_distract(args: argparse.Namespace, scheduler: Scheduler) -> int:
    session_id = scheduler.resolve_session_id(args.session)
    session = scheduler.log_distraction(session_id, args.text, args.category)
    print(f"分心已记录（本次共 {len(session.distractions)} 次）")
    return 0


def _handle_annotation(scheduler: Scheduler, session_id: str | None, message: str, action, value) -> int:
    resolved = scheduler.resolve_session_id(session_id)
    action(resolved, value)
    print(message)
    return 0


def _handle_task(args: argparse.Namespace, scheduler: Scheduler, tasks: TaskService) -> int:
    command = args.task_command
    if command == "add":
        tags = [x.strip() for x in args.tags.split(",") if x.strip()]
        task = tasks.add_task(args.title, description=args.description, tags=tags)
        print(f"任务已创建：{task.id} {task.title}")
        return 0
    if command == "list":
        if args.recent:
            items = tasks.recent_tasks()
        else:
            items = tasks.list_tasks(only_pending=not args.all)
        if not items:
            print("没有任务。")
            return 0
        today = scheduler.clock.now().date()
        for task in items:
            marker = " ★" if task.is_highlight_for(today) else ""
            tags = " ".join(f"#{tag}" for tag in task.tags)
            print(f"{task.id} | {TASK_STATUS_TEXT[task.status]} | {task.title}{marker} {tags}".rstrip())
        return 0
    if command == "done":
        task = tasks.complete_task(args.task_id)
        print(f"任务已完成：{task.title}")
        return 0
    if command == "cancel":
        task = tasks.cancel_task(args.task_id)
        print(f"任务已取消：{task.title}")
        return 0
    if command == "delete":
        tasks.delete_task(args.task_id)
        print("任务已删除，历史会话保留。")
        return 0
    if command == "highlight":
        task = tasks.set_highlight(args.task_id)
        print(f"今天的 Highlight：{task.title}")
        return 0
    if command == "history":
        sessions = scheduler.task_history(args.task_id)
        if not sessions:
            print("该任务还没有会话。")
            return 0
        for item in sessions:
            print(_session_line(item))
        return 0
    return 2


def _handle_stats(args: argparse.Namespace, analytics: Analytics) -> int:
    now = analytics.clock.now()
    start, end = period_bounds(args.period, now)
    stats = analytics.period_stats(start, end)
    titles = {"day": "今天", "week": "本周", "month": "本月"}

    print(f"[{titles[args.period]}]")
    print(f"专注会话: {stats.total_sessions} 次")
    print(f"专注时长: {format_duration(stats.total_work_time)}")
    for entry in stats.by_methodology:
        label = parse_methodology(entry.methodology).label
        print(f"  {label}: {entry.sessions} 次，{format_duration(entry.total_time)}")
    if stats.focus_score_count:
        print(f"平均专注评分: {stats.avg_focus_score:.1f}（{stats.focus_score_count} 次）")
    print(f"分心记录: {stats.distraction_count} 次")
    print(f"深度工作连续: {analytics.deep_work_streak()} 天")

    hourly = analytics.hourly_productivity(args.hours_days)
    if hourly:
        print("")
        print(f"[最近 {args.hours_days} 天时段分布]")
        peak = max(hourly.values())
        for hour, total in hourly.items():
            print(f"{hour:02d}:00 {hour_bar(total, peak):<20} {format_duration(total)}")

    energize = analytics.energize_stats(start, end)
    if energize:
        print("")
        print("[充电活动与专注评分]")
        for entry in energize:
            print(f"{entry.activity}: {entry.sessions} 次，平均 {entry.avg_focus_score:.1f}")
    return 0


def _handle_log(args: argparse.Namespace, db: FlowLogDB) -> int:
    sessions = db.list_sessions(since=args.since, tag=args.tag, limit=args.limit)
    if not sessions:
        print("没有匹配记录。")
        return 0
    for item in sessions:
        print(_session_line(item))
    return 0


def _handle_report(args: argparse.Namespace, analytics: Analytics) -> int:
    out_dir = Path(args.out_dir) if args.out_dir else default_out_dir()
    report_path = generate_weekly_report(
        analytics,
        out_dir=out_dir,
        year=args.year,
        week=args.week,
    )
    print(f"周报已生成：{report_path}")
    return 0


def _handle_export(args: argparse.Namespace, db: FlowLogDB, clock: Clock) -> int:
    out_dir = Path(args.out_dir) if args.out_dir else default_out_dir()
    since = None
    if args.period != "all":
        since, _ = period_bounds(args.period, clock.now())
    if args.format == "md":
        path = export_sessions_markdown(db, out_dir, since=since)
        print(f"Markdown 已导出：{path}")
    else:
        path = export_sessions_csv(db, out_dir, since=since)
        print(f"CSV 已导出：{path}")
    return 0


def _handle_config(args: argparse.Namespace, settings: Settings, settings_path: Path) -> int:
    if args.config_command == "set-mode":
        methodology = parse_methodology(args.mode)
        saved = save_settings(replace(settings, methodology=methodology.value), settings_path)
        print(f"默认方法已设为 {methodology.label}（{saved}）")
        return 0

    methodology = settings.resolve_methodology()
    print(f"设置文件: {settings_path}")
    print(f"数据库: {settings.resolve_db_path()}")
    print(f"默认方法: {methodology.label}")
    print(f"通知: {'开启' if settings.notifications else '关闭'}")
    print(
        f"番茄钟: 专注 {settings.pomodoro.work_minutes:g} 分，短休息 "
        f"{settings.pomodoro.short_break_minutes:g} 分，长休息 "
        f"{settings.pomodoro.long_break_minutes:g} 分"
    )
    print(
        f"深度工作: 专注 {settings.deep_work.work_minutes:g} 分，休息 "
        f"{settings.deep_work.break_minutes:g} 分，每日目标 {settings.deep_work.goal_hours:g} 小时"
    )
    print(
        f"Make Time: 专注 {settings.make_time.work_minutes:g} 分，休息 "
        f"{settings.make_time.break_minutes:g} 分"
    )
    return 0


def _handle_serve(args: argparse.Namespace, settings: Settings, methodology: Methodology) -> int:
    from .server import serve

    return serve(
        settings=replace(settings, methodology=methodology.value),
        host=args.host,
        port=args.port,
    )


def _print_session(action: str, session: Session, scheduler: Scheduler) -> int:
    now = scheduler.clock.now()
    print(
        f"{action}{session.methodology.label} {KIND_TEXT[session.kind]}"
        f"（{format_duration(session.planned_duration)}，剩余 {format_countdown(session.remaining_time(now))}）"
        f" 会话 {session.id}"
    )
    return 0


def _session_line(item: Session) -> str:
    start_text = item.started_at.strftime("%Y-%m-%d %H:%M")
    tags_text = " ".join(f"#{tag}" for tag in item.tags) or "-"
    score_text = f"评分 {item.focus_score}" if item.focus_score is not None else "未评分"
    return (
        f"{start_text} | {KIND_TEXT[item.kind]} | {STATUS_TEXT[item.status.value]} | "
        f"{item.methodology.label} | {format_duration(item.planned_duration)} | "
        f"{score_text} | {tags_text}"
    )
