"""
taskclock — in-process interval and cron-style task scheduler.

    from taskclock import CronScheduler

    scheduler = CronScheduler()
    scheduler.every(5, lambda: print("tick"))
    scheduler.cron({0}, {30}, {9}, (), (), {1, 2, 3, 4, 5}, standup_reminder)
    scheduler.start()
"""

from taskclock.scheduler import CronScheduler, CronSpec, TaskInfo, TaskKind

__version__ = "1.0.0"

__all__ = ["CronScheduler", "CronSpec", "TaskInfo", "TaskKind", "__version__"]
