"""
scheduler/scheduler.py — CronScheduler

In-process scheduler for interval and cron-style tasks, driven by one
background worker thread.

Design
------
* One lock. Registry, ready queue and stats are only touched while holding
  self._cond (a threading.Condition over a plain Lock). No lock-free paths.
* Callbacks run with the lock released, so a slow callback never blocks
  add / cancel / get_task_info and only delays the next dispatch.
* add() and cancel() rebuild the ready queue and notify the worker before
  they return; the worker re-evaluates its deadline on every wake.
* Callback errors (Exception and SystemExit) are caught at the call
  boundary, logged and counted. KeyboardInterrupt is left to the caller. A
  failing task stays active and keeps its schedule. No retries, no replay of
  missed runs: next_run is always recomputed from the current time.
* stop() joins the worker. Once it returns no new callback will start; one
  that was already running is allowed to finish first.
* Test mode has no worker. trigger_check(now) steps time by hand and fires
  everything due, synchronously.

Usage::

    scheduler = CronScheduler(tz_offset_minutes=60)
    scheduler.every(timedelta(seconds=30), flush_metrics)
    scheduler.cron_expr("0 0 3 * * *", rotate_logs)
    scheduler.start()
    ...
    scheduler.stop()
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from taskclock.observability.logger import bound_task, get_logger
from taskclock.scheduler.calculator import compute_next_run, describe_task, interval_from_seconds
from taskclock.scheduler.cronexpr import parse_cron_expression
from taskclock.scheduler.models import (
    CronSpec,
    SchedulerStats,
    Task,
    TaskCallback,
    TaskInfo,
    TaskKind,
)
from taskclock.scheduler.registry import ReadyQueue, TaskRegistry
from taskclock.scheduler.timemodel import as_utc, to_epoch_seconds

log = get_logger(__name__)

Clock = Callable[[], datetime]

# Upper bound on one worker sleep. Far deadlines are reached by re-waiting;
# Condition.wait overflows past threading.TIMEOUT_MAX.
MAX_WAIT_SECONDS = 3600.0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CronScheduler:
    """
    Interval + calendar task scheduler.

    Args:
        tz_offset_minutes: Fixed UTC offset used to evaluate cron fields.
        test_mode:         No worker thread; drive time with trigger_check().
        clock:             Zero-argument callable returning "now". Defaults to
                           the system UTC clock; tests pin it to a fixed time.

    Introspection::

        scheduler.get_task_info(task_id)   # TaskInfo | None
        scheduler.list_tasks()             # [TaskInfo, ...] sorted by id
        scheduler.stats                    # SchedulerStats copy
    """

    def __init__(
        self,
        tz_offset_minutes: int = 0,
        test_mode: bool = False,
        clock: Optional[Clock] = None,
    ) -> None:
        self._tz_offset = tz_offset_minutes
        self._test_mode = test_mode
        self._clock: Clock = clock or _utc_now

        self._cond = threading.Condition(threading.Lock())
        self._registry = TaskRegistry()
        self._queue = ReadyQueue()
        self._stats = SchedulerStats()

        self._running = False
        self._worker: Optional[threading.Thread] = None

        log.info(
            "scheduler.init",
            tz_offset_minutes=tz_offset_minutes,
            test_mode=test_mode,
        )

    # ── Factory ───────────────────────────────────────────────────────────────

    @classmethod
    def from_settings(cls, settings, clock: Optional[Clock] = None) -> "CronScheduler":
        return cls(
            tz_offset_minutes=settings.scheduler.tz_offset_minutes,
            test_mode=settings.scheduler.test_mode,
            clock=clock,
        )

    # ── Registration ──────────────────────────────────────────────────────────

    def every(self, interval: timedelta | float, callback: TaskCallback) -> int:
        """Run `callback` every `interval` (timedelta or seconds)."""
        if not isinstance(interval, timedelta):
            interval = interval_from_seconds(interval)
        return self.add(TaskKind.INTERVAL, interval, callback)

    def cron(
        self,
        seconds: Iterable[int],
        minutes: Iterable[int],
        hours: Iterable[int],
        days: Iterable[int],
        months: Iterable[int],
        weekdays: Iterable[int],
        callback: TaskCallback,
    ) -> int:
        """Run `callback` whenever local time matches every non-empty field set."""
        spec = CronSpec.of(seconds, minutes, hours, days, months, weekdays)
        return self.add(TaskKind.CRON, spec, callback)

    def cron_expr(self, expression: str, callback: TaskCallback) -> int:
        """Like cron(), from text. Raises CronExpressionError on malformed text."""
        return self.add(TaskKind.CRON, parse_cron_expression(expression), callback)

    def add(self, kind: TaskKind, schedule: timedelta | CronSpec, callback: TaskCallback) -> int:
        """
        Register a task and return its id.

        Never rejects a schedule: anything the calculator cannot satisfy
        degrades to its bounded fallback.
        """
        interval = schedule if kind is TaskKind.INTERVAL else timedelta(0)
        spec = schedule if kind is TaskKind.CRON else None
        with self._cond:
            now = as_utc(self._clock())
            task = self._registry.create(kind, callback, now, interval=interval, spec=spec)
            task.next_run = compute_next_run(task, now, self._tz_offset)
            self._registry.insert(task)
            self._rebuild_queue()
            self._cond.notify_all()
        log.info(
            "scheduler.task_added",
            task_id=task.id,
            schedule=describe_task(task),
            next_run=task.next_run.isoformat(),
        )
        return task.id

    def cancel(self, task_id: int) -> bool:
        """Deactivate a task. False if the id was never issued. Idempotent."""
        with self._cond:
            if not self._registry.deactivate(task_id):
                return False
            self._rebuild_queue()
            self._cond.notify_all()
        log.info("scheduler.task_cancelled", task_id=task_id)
        return True

    # ── Introspection ─────────────────────────────────────────────────────────

    def get_task_info(self, task_id: int) -> Optional[TaskInfo]:
        with self._cond:
            task = self._registry.get(task_id)
            return self._snapshot(task) if task is not None else None

    def list_tasks(self) -> list[TaskInfo]:
        with self._cond:
            infos = [self._snapshot(t) for t in self._registry]
        return sorted(infos, key=lambda i: i.id)

    @property
    def stats(self) -> SchedulerStats:
        with self._cond:
            return dataclasses.replace(self._stats)

    @property
    def is_running(self) -> bool:
        with self._cond:
            return self._running

    @property
    def test_mode(self) -> bool:
        return self._test_mode

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the worker thread. No-op if already running; no thread in test mode."""
        with self._cond:
            if self._running:
                log.warning("scheduler.already_running")
                return
            self._running = True
            if not self._test_mode:
                self._worker = threading.Thread(
                    target=self._run_worker,
                    name="taskclock-dispatch",
                    daemon=True,
                )
                self._worker.start()
        log.info("scheduler.started", test_mode=self._test_mode)

    def stop(self) -> None:
        """Stop and join the worker. Safe to call repeatedly and before start()."""
        with self._cond:
            was_running = self._running
            self._running = False
            self._cond.notify_all()
            worker = self._worker
            task_count = len(self._registry)

        if was_running:
            log.info("scheduler.stopping", tasks=task_count)

        # From inside a callback the worker cannot join itself; its loop
        # exits as soon as the callback returns.
        if worker is not None and worker is not threading.current_thread():
            worker.join()
            with self._cond:
                if self._worker is worker:
                    self._worker = None

        if was_running:
            log.info("scheduler.stopped")

    def __enter__(self) -> "CronScheduler":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    # ── Test mode ─────────────────────────────────────────────────────────────

    def trigger_check(self, now: datetime) -> int:
        """
        Fire every active task due at `now` and return how many ran.

        Test mode only. Tasks fire in ascending next_run order; each is
        re-checked for cancellation immediately before it runs. Returns after
        all fired callbacks have completed.
        """
        if not self._test_mode:
            log.warning("scheduler.trigger_ignored", reason="not in test mode")
            return 0

        now = as_utc(now)
        with self._cond:
            due = sorted(
                (t for t in self._registry.active() if t.next_run <= now),
                key=lambda t: (t.next_run, t.id),
            )

        fired = 0
        for task in due:
            with self._cond:
                if not task.active:
                    continue
                task.last_run = task.next_run
                task.next_run = compute_next_run(task, now, self._tz_offset)
                self._rebuild_queue()
            self._invoke(task)
            fired += 1
        return fired

    # ── Dispatch loop ─────────────────────────────────────────────────────────

    def _run_worker(self) -> None:
        me = threading.current_thread()

        def should_run() -> bool:
            # A restart after stop-from-callback hands the loop to a new thread.
            return self._running and self._worker is me

        with self._cond:
            while should_run():
                self._cond.wait_for(lambda: len(self._queue) > 0 or not should_run())
                if not should_run():
                    break

                task = self._queue.peek()
                if not task.active:
                    self._queue.pop()
                    continue

                now = as_utc(self._clock())
                if task.next_run > now:
                    delay = (task.next_run - now).total_seconds()
                    self._cond.wait(timeout=min(delay, MAX_WAIT_SECONDS))
                    continue

                self._queue.pop()
                deadline = task.next_run
                self._cond.release()
                try:
                    self._invoke(task)
                finally:
                    self._cond.acquire()
                task.last_run = deadline
                task.next_run = compute_next_run(task, as_utc(self._clock()), self._tz_offset)
                self._rebuild_queue()

        log.info("scheduler.worker.exit")

    def _invoke(self, task: Task) -> None:
        """Run one callback with the lock released. Only KeyboardInterrupt escapes."""
        error: Optional[str] = None
        with bound_task(task.id):
            log.debug("scheduler.task_fired", schedule=describe_task(task))
            try:
                result = task.callback()
                if inspect.iscoroutine(result):
                    asyncio.run(result)
            # SystemExit would otherwise end the dispatch thread silently.
            except (Exception, SystemExit) as e:
                error = f"{type(e).__name__}: {e}"
                log.warning("scheduler.callback_error", error=error, exc_info=True)

        with self._cond:
            self._stats.total_runs += 1
            self._stats.last_run_task = task.id
            self._stats.last_run_at = as_utc(self._clock()).isoformat()
            if error is not None:
                self._stats.failed_runs += 1
                self._stats.last_error = error

    # ── Internals (caller holds the lock) ─────────────────────────────────────

    def _rebuild_queue(self) -> None:
        self._queue.rebuild(self._registry.active())

    def _snapshot(self, task: Task) -> TaskInfo:
        return TaskInfo(
            id=task.id,
            type=task.kind.value,
            active=task.active,
            schedule=describe_task(task),
            last_run=to_epoch_seconds(task.last_run),
            next_run=to_epoch_seconds(task.next_run),
        )
