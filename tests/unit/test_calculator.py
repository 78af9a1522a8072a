"""
tests/unit/test_calculator.py — Next-run computation

Covers:
  - Interval tasks: reference + interval
  - Cron search: strictly-after semantics, carry between fields,
    weekday matching, fixed UTC offset, leap-day schedules
  - Bounded fallback for schedules that can never match
  - Schedule descriptions used by TaskInfo and the CLI
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from taskclock.scheduler.calculator import (
    FALLBACK_DELAY,
    compute_next_run,
    describe_task,
    format_cron_spec,
    interval_from_seconds,
    next_cron_time,
)
from taskclock.scheduler.models import CronSpec, Task, TaskKind

UTC = timezone.utc
REF = datetime(2024, 1, 1, 0, 0, 0, tzinfo=UTC)  # a Monday


# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────

def _make_interval_task(seconds: float = 5) -> Task:
    return Task(
        id=1,
        kind=TaskKind.INTERVAL,
        callback=lambda: None,
        next_run=REF,
        interval=timedelta(seconds=seconds),
    )


def _make_cron_task(**fields) -> Task:
    return Task(
        id=2,
        kind=TaskKind.CRON,
        callback=lambda: None,
        next_run=REF,
        spec=CronSpec.of(**fields),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Interval
# ─────────────────────────────────────────────────────────────────────────────

class TestInterval:

    def test_reference_plus_interval(self):
        assert compute_next_run(_make_interval_task(5), REF) == REF + timedelta(seconds=5)

    def test_offset_is_ignored(self):
        assert compute_next_run(_make_interval_task(5), REF, 600) == REF + timedelta(seconds=5)

    def test_overflow_never_raises(self):
        task = _make_interval_task(10)
        nxt = compute_next_run(task, datetime.max.replace(tzinfo=UTC))
        assert nxt.tzinfo is not None


# ─────────────────────────────────────────────────────────────────────────────
# Cron search
# ─────────────────────────────────────────────────────────────────────────────

class TestCronSearch:

    def test_seconds_list(self):
        spec = CronSpec.of(seconds={5, 15})
        first = next_cron_time(spec, REF)
        second = next_cron_time(spec, first)
        third = next_cron_time(spec, second)
        assert first == datetime(2024, 1, 1, 0, 0, 5, tzinfo=UTC)
        assert second == datetime(2024, 1, 1, 0, 0, 15, tzinfo=UTC)
        assert third == datetime(2024, 1, 1, 0, 1, 5, tzinfo=UTC)

    def test_strictly_after_reference(self):
        spec = CronSpec.of(seconds={5})
        at_match = datetime(2024, 1, 1, 0, 0, 5, tzinfo=UTC)
        assert next_cron_time(spec, at_match) == datetime(2024, 1, 1, 0, 1, 5, tzinfo=UTC)

    def test_wildcard_is_next_second(self):
        assert next_cron_time(CronSpec(), REF) == REF + timedelta(seconds=1)

    def test_subsecond_reference(self):
        ref = REF + timedelta(milliseconds=500)
        assert next_cron_time(CronSpec(), ref) == REF + timedelta(seconds=1)

    def test_hour_wrap_carries_to_next_day(self):
        spec = CronSpec.of(seconds={0}, minutes={30}, hours={9})
        ref = datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)
        assert next_cron_time(spec, ref) == datetime(2024, 1, 2, 9, 30, 0, tzinfo=UTC)

    def test_same_day_later_hour(self):
        spec = CronSpec.of(seconds={0}, minutes={30}, hours={9})
        assert next_cron_time(spec, REF) == datetime(2024, 1, 1, 9, 30, 0, tzinfo=UTC)

    def test_weekday_sunday(self):
        spec = CronSpec.of(seconds={0}, minutes={0}, hours={12}, weekdays={0})
        assert next_cron_time(spec, REF) == datetime(2024, 1, 7, 12, 0, 0, tzinfo=UTC)

    def test_month_carry_into_year(self):
        spec = CronSpec.of(seconds={0}, minutes={0}, hours={0}, days={1}, months={1})
        assert next_cron_time(spec, REF) == datetime(2025, 1, 1, tzinfo=UTC)

    def test_leap_day_schedule(self):
        spec = CronSpec.of(seconds={0}, minutes={0}, hours={0}, days={29}, months={2})
        ref = datetime(2024, 3, 1, tzinfo=UTC)
        assert next_cron_time(spec, ref) == datetime(2028, 2, 29, tzinfo=UTC)

    def test_tz_offset_positive(self):
        spec = CronSpec.of(seconds={0}, minutes={0}, hours={9})
        assert next_cron_time(spec, REF, 60) == datetime(2024, 1, 1, 8, 0, 0, tzinfo=UTC)

    def test_tz_offset_negative(self):
        spec = CronSpec.of(seconds={0}, minutes={0}, hours={9})
        assert next_cron_time(spec, REF, -300) == datetime(2024, 1, 1, 14, 0, 0, tzinfo=UTC)

    def test_result_matches_every_field(self):
        spec = CronSpec.of(seconds={10, 40}, minutes={7}, hours={3, 21}, weekdays={2, 5})
        nxt = next_cron_time(spec, REF)
        assert nxt > REF
        assert nxt.second in spec.seconds
        assert nxt.minute in spec.minutes
        assert nxt.hour in spec.hours
        assert (nxt.weekday() + 1) % 7 in spec.weekdays

    def test_naive_reference_is_utc(self):
        spec = CronSpec.of(seconds={5})
        assert next_cron_time(spec, REF.replace(tzinfo=None)) == REF + timedelta(seconds=5)


class TestFallback:

    def test_february_thirty_first(self):
        spec = CronSpec.of(days={31}, months={2})
        assert next_cron_time(spec, REF) == REF + FALLBACK_DELAY

    def test_out_of_range_second(self):
        spec = CronSpec.of(seconds={99})
        assert next_cron_time(spec, REF) == REF + FALLBACK_DELAY

    def test_near_datetime_max_never_raises(self):
        ref = datetime(9999, 12, 31, 23, 59, 59, tzinfo=UTC)
        nxt = next_cron_time(CronSpec.of(seconds={5}), ref)
        assert nxt >= ref

    def test_compute_next_run_dispatches_on_kind(self):
        task = _make_cron_task(days={31}, months={2})
        assert compute_next_run(task, REF) == REF + FALLBACK_DELAY


# ─────────────────────────────────────────────────────────────────────────────
# Descriptions
# ─────────────────────────────────────────────────────────────────────────────

class TestDescribe:

    def test_interval(self):
        assert describe_task(_make_interval_task(5)) == "every 5s"

    def test_interval_truncates_fraction(self):
        assert describe_task(_make_interval_task(2.7)) == "every 2s"

    def test_cron(self):
        assert describe_task(_make_cron_task(seconds={15, 5})) == "cron 5,15 * * * * *"

    @pytest.mark.parametrize(
        "spec, expected",
        [
            (CronSpec(), "* * * * * *"),
            (CronSpec.of(minutes=range(0, 60, 15), weekdays=[1, 5]), "* 0,15,30,45 * * * 1,5"),
        ],
    )
    def test_format_cron_spec(self, spec, expected):
        assert format_cron_spec(spec) == expected


class TestIntervalFromSeconds:

    def test_plain_seconds(self):
        assert interval_from_seconds(2.5) == timedelta(seconds=2.5)

    @pytest.mark.parametrize("seconds", [float("inf"), float("-inf"), float("nan"), 1e300])
    def test_unrepresentable_becomes_max(self, seconds):
        assert interval_from_seconds(seconds) == timedelta.max

    def test_max_interval_uses_fallback(self):
        task = _make_interval_task(10)
        task.interval = interval_from_seconds(float("inf"))
        assert compute_next_run(task, REF) == REF + FALLBACK_DELAY
