"""
tests/unit/test_registry.py — TaskRegistry and ReadyQueue

Covers:
  - Id allocation starts at 1 and never reuses ids
  - Soft-delete: deactivated tasks stay retrievable
  - ReadyQueue ordering by (next_run, id), inactive tasks excluded
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from taskclock.scheduler.models import TaskKind
from taskclock.scheduler.registry import ReadyQueue, TaskRegistry

REF = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _make_registry(n: int = 3) -> TaskRegistry:
    reg = TaskRegistry()
    for _ in range(n):
        reg.insert(reg.create(TaskKind.INTERVAL, lambda: None, REF, interval=timedelta(seconds=1)))
    return reg


class TestTaskRegistry:

    def test_ids_start_at_one(self):
        reg = _make_registry(3)
        assert [t.id for t in reg] == [1, 2, 3]

    def test_create_does_not_insert(self):
        reg = TaskRegistry()
        task = reg.create(TaskKind.INTERVAL, lambda: None, REF)
        assert task.next_run == REF
        assert reg.get(task.id) is None
        assert len(reg) == 0

    def test_deactivate_keeps_record(self):
        reg = _make_registry(2)
        assert reg.deactivate(1) is True
        assert reg.get(1) is not None
        assert reg.get(1).active is False
        assert [t.id for t in reg.active()] == [2]
        assert len(reg) == 2

    def test_deactivate_unknown(self):
        assert _make_registry(1).deactivate(42) is False

    def test_ids_never_reused(self):
        reg = _make_registry(2)
        reg.deactivate(2)
        task = reg.create(TaskKind.INTERVAL, lambda: None, REF)
        assert task.id == 3


class TestReadyQueue:

    def test_orders_by_next_run_then_id(self):
        reg = _make_registry(3)
        reg.get(1).next_run = REF + timedelta(seconds=10)
        reg.get(2).next_run = REF + timedelta(seconds=5)
        reg.get(3).next_run = REF + timedelta(seconds=5)
        q = ReadyQueue()
        q.rebuild(reg.active())
        assert [q.pop().id for _ in range(3)] == [2, 3, 1]
        assert len(q) == 0

    def test_excludes_inactive(self):
        reg = _make_registry(2)
        reg.deactivate(1)
        q = ReadyQueue()
        q.rebuild(list(reg))
        assert len(q) == 1
        assert q.peek().id == 2

    def test_rebuild_reflects_mutation(self):
        reg = _make_registry(2)
        q = ReadyQueue()
        q.rebuild(reg.active())
        reg.get(1).next_run = REF + timedelta(hours=1)
        q.rebuild(reg.active())
        assert q.peek().id == 2
