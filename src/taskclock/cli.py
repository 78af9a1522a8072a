"""
cli.py — taskclock command line

Usage:
    taskclock next "0 30 9 * * 1-5" --count 5      # upcoming firing times
    taskclock next "*/10 * * * * *" --tz-offset 330 --from 2024-01-01T00:00:00Z
    taskclock describe "30 9 * * MON-FRI"           # canonical six-field text
    taskclock next @daily --count 3
    taskclock demo --seconds 18                     # run the scheduler for real
    taskclock --config path/to/config.yaml --log-level DEBUG demo
"""

from __future__ import annotations

import argparse
import sys
import time
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from taskclock.config.settings import Settings, load_settings
from taskclock.exceptions import ConfigError, CronExpressionError
from taskclock.observability.logger import get_logger, setup_logging
from taskclock.scheduler import CronScheduler, TaskInfo
from taskclock.scheduler.calculator import format_cron_spec, next_cron_time
from taskclock.scheduler.cronexpr import parse_cron_expression
from taskclock.scheduler.timemodel import as_utc, to_local

console = Console()


# ─────────────────────────────────────────────────────────────────────────────
# Argument parsing
# ─────────────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskclock",
        description="taskclock — in-process interval and cron-style task scheduler",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: $TASKCLOCK_CONFIG or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override log level from config",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_next = sub.add_parser("next", help="Print the next firing times of a cron expression")
    p_next.add_argument("expression", help='Cron expression, e.g. "5,15 * * * * *"')
    p_next.add_argument("--count", type=int, default=5, help="How many times to print (default: 5)")
    p_next.add_argument(
        "--tz-offset",
        type=int,
        default=None,
        help="UTC offset in minutes (default: scheduler.tz_offset_minutes from config)",
    )
    p_next.add_argument(
        "--from",
        dest="from_time",
        default=None,
        help="ISO-8601 reference time (default: now)",
    )

    p_describe = sub.add_parser("describe", help="Normalize a cron expression")
    p_describe.add_argument("expression")

    p_demo = sub.add_parser("demo", help="Run an interval task and a cron task on the live worker")
    p_demo.add_argument("--seconds", type=float, default=18.0, help="Run time before cancelling (default: 18)")
    p_demo.add_argument(
        "--after-cancel",
        type=float,
        default=8.0,
        help="Run time after cancelling the interval task (default: 8)",
    )
    return parser


def bootstrap(args: argparse.Namespace) -> Optional[Settings]:
    """
    Load config, validate it fully, and set up logging.

    Returns None (after printing a clear message) if the config is invalid.
    """
    try:
        settings = load_settings(args.config)
    except ValidationError as exc:
        problems = "\n".join(
            f"  • {'.'.join(str(p) for p in e['loc']) or '?'}: {e['msg']}"
            for e in exc.errors()
        )
        print(f"\nConfig validation failed:\n\n{problems}\n", file=sys.stderr)
        return None
    except OSError as exc:
        print(f"\nFailed to load config: {type(exc).__name__}: {exc}\n", file=sys.stderr)
        return None

    try:
        settings.validate_all()
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return None

    setup_logging(
        level=args.log_level or settings.log_level,
        log_dir=settings.log_dir,
        json_format=settings.logging.json_format,
        console_output=settings.logging.console_output,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.logging.backup_count,
    )
    return settings


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────

def _parse_reference(text: Optional[str]) -> datetime:
    if text is None:
        return datetime.now(timezone.utc)
    return as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))


def _format_local(when: datetime, tz_offset_minutes: int) -> str:
    local = to_local(when, tz_offset_minutes)
    sign = "+" if tz_offset_minutes >= 0 else "-"
    hours, minutes = divmod(abs(tz_offset_minutes), 60)
    return (
        f"{local.year:04d}-{local.month:02d}-{local.day:02d} "
        f"{local.hour:02d}:{local.minute:02d}:{local.second:02d} "
        f"{sign}{hours:02d}:{minutes:02d}"
    )


def cmd_next(args: argparse.Namespace, settings: Settings) -> int:
    try:
        spec = parse_cron_expression(args.expression)
        reference = _parse_reference(args.from_time)
    except CronExpressionError as exc:
        console.print(f"[red]{escape(str(exc))}[/]")
        return 2
    except ValueError as exc:
        console.print(f"[red]Invalid --from time: {escape(str(exc))}[/]")
        return 2

    offset = args.tz_offset if args.tz_offset is not None else settings.scheduler.tz_offset_minutes

    table = Table(
        title=f"cron {format_cron_spec(spec)}",
        box=box.ROUNDED,
        border_style="dim",
    )
    table.add_column("#", no_wrap=True)
    table.add_column("UTC", style="cyan", no_wrap=True)
    table.add_column("Local", no_wrap=True)

    when = reference
    for i in range(max(0, args.count)):
        when = next_cron_time(spec, when, offset)
        table.add_row(str(i + 1), when.strftime("%Y-%m-%d %H:%M:%S"), _format_local(when, offset))
    console.print(table)
    return 0


def cmd_describe(args: argparse.Namespace) -> int:
    try:
        spec = parse_cron_expression(args.expression)
    except CronExpressionError as exc:
        console.print(f"[red]{escape(str(exc))}[/]")
        return 2
    console.print(f"cron {format_cron_spec(spec)}")
    return 0


def _task_table(infos: list[TaskInfo]) -> Table:
    table = Table(title="Tasks", box=box.ROUNDED, border_style="dim")
    table.add_column("ID", no_wrap=True)
    table.add_column("Type", style="cyan", no_wrap=True)
    table.add_column("Active", no_wrap=True)
    table.add_column("Schedule")
    table.add_column("Last run", no_wrap=True)
    for info in infos:
        last = (
            datetime.fromtimestamp(info.last_run, timezone.utc).strftime("%H:%M:%S")
            if info.last_run
            else "never"
        )
        table.add_row(
            str(info.id),
            info.type,
            "[green]yes[/]" if info.active else "[dim]no[/]",
            info.schedule,
            last,
        )
    return table


def cmd_demo(args: argparse.Namespace, settings: Settings) -> int:
    log = get_logger("taskclock.demo")
    counts = {"every": 0, "cron": 0}

    def on_interval() -> None:
        counts["every"] += 1
        log.info("demo.interval_tick", count=counts["every"])

    def on_cron() -> None:
        counts["cron"] += 1
        log.info("demo.cron_tick", count=counts["cron"])

    scheduler = CronScheduler(tz_offset_minutes=settings.scheduler.tz_offset_minutes)
    every_id = scheduler.every(2, on_interval)
    scheduler.cron({5, 15}, (), (), (), (), (), on_cron)

    with scheduler:
        console.print(f"[dim]Running for {args.seconds:g}s...[/]")
        time.sleep(args.seconds)
        console.print(_task_table(scheduler.list_tasks()))

        if scheduler.cancel(every_id):
            console.print(f"[yellow]Cancelled task {every_id}[/]")
        console.print(f"[dim]Running for another {args.after_cancel:g}s...[/]")
        time.sleep(args.after_cancel)

    console.print(_task_table(scheduler.list_tasks()))
    stats = scheduler.stats
    console.print(
        f"runs={stats.total_runs} failed={stats.failed_runs} "
        f"interval={counts['every']} cron={counts['cron']}"
    )
    return 0


# ─────────────────────────────────────────────────────────────────────────────
# Entry point
# ─────────────────────────────────────────────────────────────────────────────

def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "describe":
        return cmd_describe(args)

    settings = bootstrap(args)
    if settings is None:
        return 1

    if args.command == "next":
        return cmd_next(args, settings)
    return cmd_demo(args, settings)
