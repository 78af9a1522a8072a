"""
scheduler/registry.py — Task registry and ready queue

TaskRegistry owns every Task record for the scheduler's lifetime. Records are
never removed: cancel is a soft delete (active=False), so a cancelled task
stays introspectable and "not found" only ever means "never existed".

ReadyQueue is a transient, deadline-ordered view over the active records.
It is rebuilt from scratch after every mutation instead of being patched,
which keeps the heap ordering trivially correct even though next_run is a
mutable field on the records it points at.

Neither class locks anything itself. CronScheduler holds its single lock
around every call into them.
"""

from __future__ import annotations

import heapq
from datetime import datetime, timedelta
from typing import Iterator, Optional

from taskclock.scheduler.models import CronSpec, Task, TaskCallback, TaskKind


class TaskRegistry:
    """id → Task map with a per-instance id counter starting at 1."""

    def __init__(self) -> None:
        self._tasks: dict[int, Task] = {}
        self._next_id = 1

    def create(
        self,
        kind: TaskKind,
        callback: TaskCallback,
        reference: datetime,
        interval: timedelta = timedelta(0),
        spec: Optional[CronSpec] = None,
    ) -> Task:
        """
        Allocate the next id and build an unregistered record.

        next_run is provisionally `reference`; the caller computes the real
        value and then calls insert().
        """
        task = Task(
            id=self._next_id,
            kind=kind,
            callback=callback,
            next_run=reference,
            interval=interval,
            spec=spec or CronSpec(),
        )
        self._next_id += 1
        return task

    def insert(self, task: Task) -> None:
        self._tasks[task.id] = task

    def get(self, task_id: int) -> Optional[Task]:
        return self._tasks.get(task_id)

    def deactivate(self, task_id: int) -> bool:
        task = self._tasks.get(task_id)
        if task is None:
            return False
        task.active = False
        return True

    def active(self) -> list[Task]:
        return [t for t in self._tasks.values() if t.active]

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)


class ReadyQueue:
    """Min-heap of active tasks keyed on next_run. Ties are broken by id."""

    def __init__(self) -> None:
        self._heap: list[tuple[datetime, int, Task]] = []

    def rebuild(self, tasks: list[Task]) -> None:
        heap = [(t.next_run, t.id, t) for t in tasks if t.active]
        heapq.heapify(heap)
        self._heap = heap

    def peek(self) -> Task:
        return self._heap[0][2]

    def pop(self) -> Task:
        return heapq.heappop(self._heap)[2]

    def __len__(self) -> int:
        return len(self._heap)
