"""
scheduler/ — Interval and cron-style task scheduling

Public API:
    from taskclock.scheduler import CronScheduler, CronSpec, TaskInfo

Component overview:
    timemodel     Fixed-offset conversion between UTC and local calendar fields
    calculator    Pure next-run computation + schedule descriptions
    cronexpr      Cron expression text → CronSpec
    models        Task, CronSpec, TaskInfo, SchedulerStats
    registry      TaskRegistry (id → Task) and the deadline-ordered ReadyQueue
    scheduler     CronScheduler: control surface, dispatch loop, test mode
"""

from taskclock.scheduler.calculator import (
    compute_next_run,
    describe_task,
    interval_from_seconds,
    next_cron_time,
)
from taskclock.scheduler.cronexpr import normalize_cron_expression, parse_cron_expression
from taskclock.scheduler.models import CronSpec, SchedulerStats, Task, TaskInfo, TaskKind
from taskclock.scheduler.scheduler import CronScheduler

__all__ = [
    "CronScheduler",
    "CronSpec",
    "SchedulerStats",
    "Task",
    "TaskInfo",
    "TaskKind",
    "compute_next_run",
    "describe_task",
    "interval_from_seconds",
    "next_cron_time",
    "normalize_cron_expression",
    "parse_cron_expression",
]
