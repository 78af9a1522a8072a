"""
scheduler/models.py — Task records and introspection snapshots

Task       Mutable record owned by the registry. next_run / last_run only
           change under the scheduler lock.
CronSpec   Six calendar match-sets. An empty set is a wildcard.
TaskInfo   Frozen value snapshot handed to callers; safe to read after the
           lock has been released.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Iterable, Optional

TaskCallback = Callable[[], Any]


class TaskKind(str, Enum):
    INTERVAL = "Interval"
    CRON = "Cron"


# Field order doubles as the calculator's match priority (smallest unit first).
CRON_FIELDS: tuple[str, ...] = ("seconds", "minutes", "hours", "days", "months", "weekdays")


def _as_set(values: Iterable[int] | None) -> frozenset[int]:
    if not values:
        return frozenset()
    return frozenset(int(v) for v in values)


@dataclass(frozen=True)
class CronSpec:
    """
    Calendar match-sets for a cron task.

    seconds   0-59
    minutes   0-59
    hours     0-23
    days      1-31 (day of month)
    months    1-12
    weekdays  0-6, 0 = Sunday

    Values are not range-checked: a spec that can never match degrades to
    the calculator's one-year fallback instead of being rejected.
    """

    seconds: frozenset[int] = frozenset()
    minutes: frozenset[int] = frozenset()
    hours: frozenset[int] = frozenset()
    days: frozenset[int] = frozenset()
    months: frozenset[int] = frozenset()
    weekdays: frozenset[int] = frozenset()

    @classmethod
    def of(
        cls,
        seconds: Iterable[int] | None = None,
        minutes: Iterable[int] | None = None,
        hours: Iterable[int] | None = None,
        days: Iterable[int] | None = None,
        months: Iterable[int] | None = None,
        weekdays: Iterable[int] | None = None,
    ) -> "CronSpec":
        """Build a spec from any iterables (lists, sets, ranges, None)."""
        return cls(
            seconds=_as_set(seconds),
            minutes=_as_set(minutes),
            hours=_as_set(hours),
            days=_as_set(days),
            months=_as_set(months),
            weekdays=_as_set(weekdays),
        )

    def values(self, name: str) -> tuple[int, ...]:
        """Sorted members of one field; empty tuple for a wildcard."""
        return tuple(sorted(getattr(self, name)))

    @property
    def is_wildcard(self) -> bool:
        return not any(getattr(self, name) for name in CRON_FIELDS)


@dataclass(eq=False)
class Task:
    id: int
    kind: TaskKind
    callback: TaskCallback
    next_run: datetime
    interval: timedelta = timedelta(0)
    spec: CronSpec = field(default_factory=CronSpec)
    active: bool = True
    last_run: Optional[datetime] = None


@dataclass(frozen=True)
class TaskInfo:
    """Value snapshot of one task. last_run / next_run are epoch seconds, 0 = never."""

    id: int
    type: str
    active: bool
    schedule: str
    last_run: int
    next_run: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "active": self.active,
            "schedule": self.schedule,
            "last_run": self.last_run,
            "next_run": self.next_run,
        }


@dataclass
class SchedulerStats:
    total_runs: int = 0
    failed_runs: int = 0
    last_run_at: Optional[str] = None
    last_run_task: Optional[int] = None
    last_error: Optional[str] = None
