"""
scheduler/calculator.py — Next-run computation

compute_next_run() is a pure, total function: it never raises and always
terminates, even for specs that can never match (day 31 in a February-only
spec, second 99, ...).

Cron search
-----------
Start one second after the reference, in local calendar fields. Test the
fields smallest-unit first: second, minute, hour, day, month, weekday. On the
first mismatch, correct only that field:

  * jump to the smallest member > current value; if there is none, wrap to
    the set's minimum and carry one into the next larger field
  * reset every smaller field to its minimum allowed value
  * weekday cannot be set directly, so a weekday mismatch advances the day
    by one instead

then normalize (month 13 → next year) and re-test from the top. One field per
iteration is what makes the search converge. After MAX_SEARCH_STEPS
corrections the search gives up and returns reference + FALLBACK_DELAY.
"""

from __future__ import annotations

import math
from bisect import bisect_right
from datetime import datetime, timedelta, timezone

from taskclock.observability.logger import get_logger
from taskclock.scheduler.models import CRON_FIELDS, CronSpec, Task, TaskKind
from taskclock.scheduler.timemodel import LocalTime, as_utc, from_local, normalize, to_local

log = get_logger(__name__)

MAX_SEARCH_STEPS = 400
FALLBACK_DELAY = timedelta(days=365)

# Minimum value of each field when it is a wildcard.
_FIELD_FLOOR = {"seconds": 0, "minutes": 0, "hours": 0, "days": 1, "months": 1}


# ─────────────────────────────────────────────────────────────────────────────
# Field helpers
# ─────────────────────────────────────────────────────────────────────────────

def _current(local: LocalTime, name: str) -> int:
    return {
        "seconds": local.second,
        "minutes": local.minute,
        "hours": local.hour,
        "days": local.day,
        "months": local.month,
        "weekdays": local.weekday,
    }[name]


def _floor(spec: CronSpec, name: str) -> int:
    members = spec.values(name)
    return members[0] if members else _FIELD_FLOOR[name]


def _first_mismatch(spec: CronSpec, local: LocalTime) -> str | None:
    for name in CRON_FIELDS:
        allowed = getattr(spec, name)
        if allowed and _current(local, name) not in allowed:
            return name
    return None


def _fallback(reference: datetime) -> datetime:
    try:
        return reference + FALLBACK_DELAY
    except OverflowError:
        return datetime.max.replace(tzinfo=timezone.utc)


def _advance(spec: CronSpec, local: LocalTime, name: str) -> LocalTime:
    """Correct one mismatching field, carry on wrap, reset the smaller fields."""
    fields = {
        "seconds": local.second,
        "minutes": local.minute,
        "hours": local.hour,
        "days": local.day,
        "months": local.month,
        "years": local.year,
    }

    if name == "weekdays":
        fields["days"] += 1
        reset = ("seconds", "minutes", "hours")
    else:
        members = spec.values(name)
        idx = bisect_right(members, fields[name])
        if idx < len(members):
            fields[name] = members[idx]
        else:
            fields[name] = members[0]
            larger = ("seconds", "minutes", "hours", "days", "months", "years")
            fields[larger[larger.index(name) + 1]] += 1
        reset = CRON_FIELDS[: CRON_FIELDS.index(name)]

    for smaller in reset:
        fields[smaller] = _floor(spec, smaller)

    return normalize(
        fields["years"],
        fields["months"],
        fields["days"],
        fields["hours"],
        fields["minutes"],
        fields["seconds"],
    )


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────

def next_cron_time(spec: CronSpec, reference: datetime, tz_offset_minutes: int = 0) -> datetime:
    """First local time strictly after `reference` (whole seconds) that matches `spec`."""
    reference = as_utc(reference)
    try:
        local = to_local(reference + timedelta(seconds=1), tz_offset_minutes)
        for _ in range(MAX_SEARCH_STEPS):
            name = _first_mismatch(spec, local)
            if name is None:
                return from_local(local, tz_offset_minutes)
            local = _advance(spec, local, name)
    except (OverflowError, ValueError):
        pass

    log.debug(
        "scheduler.calculator.fallback",
        reference=reference.isoformat(),
        fallback_days=FALLBACK_DELAY.days,
    )
    return _fallback(reference)


def interval_from_seconds(seconds: float) -> timedelta:
    """
    Seconds → timedelta without ever raising.

    inf, nan and values too large for timedelta become timedelta.max, which
    compute_next_run() turns into the one-year fallback.
    """
    if not math.isfinite(seconds):
        return timedelta.max
    try:
        return timedelta(seconds=seconds)
    except OverflowError:
        return timedelta.max


def compute_next_run(task: Task, reference: datetime, tz_offset_minutes: int = 0) -> datetime:
    """
    Next firing time of `task` after `reference`.

    Interval tasks: reference + interval, no calendar awareness.
    Cron tasks:     see next_cron_time().
    """
    if task.kind is TaskKind.INTERVAL:
        try:
            return as_utc(reference) + task.interval
        except OverflowError:
            return _fallback(as_utc(reference))
    return next_cron_time(task.spec, reference, tz_offset_minutes)


def format_field(values: tuple[int, ...]) -> str:
    return ",".join(str(v) for v in values) if values else "*"


def format_cron_spec(spec: CronSpec) -> str:
    """'<sec> <min> <hour> <day> <month> <weekday>', wildcards as '*'."""
    return " ".join(format_field(spec.values(name)) for name in CRON_FIELDS)


def describe_task(task: Task) -> str:
    """Human-readable schedule: 'every 5s' or 'cron 5,15 * * * * *'."""
    if task.kind is TaskKind.INTERVAL:
        return f"every {int(task.interval.total_seconds())}s"
    return f"cron {format_cron_spec(task.spec)}"
