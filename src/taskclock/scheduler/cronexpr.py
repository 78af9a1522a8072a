"""
scheduler/cronexpr.py — Cron expression text → CronSpec

Field expansion is delegated to croniter, so anything croniter accepts in a
plain field works here: '*', lists, ranges, steps, month names (JAN-DEC),
weekday names (SUN-SAT) and the @hourly / @daily / @weekly / @monthly /
@yearly aliases.

Three shapes are accepted:

    <minute> <hour> <day-of-month> <month> <weekday>            fires at second 0
    <second> <minute> <hour> <day-of-month> <month> <weekday>   seconds first
    @daily (and the other @ aliases)                            fires at second 0

    parse_cron_expression("5,15 * * * * *")       → seconds={5, 15}
    parse_cron_expression("0 */15 9-17 * * 1-5")  → every 15 min, 9-17h, Mon-Fri
    parse_cron_expression("30 9 * * MON-FRI")     → 09:30:00 on weekdays
    parse_cron_expression("@daily")               → 00:00:00 every day

Weekday 7 is folded into 0 (both mean Sunday). Every field must match for a
time to fire, including day-of-month and weekday together. croniter features
with no CronSpec equivalent (L, nth weekday '#', hashed 'H') are rejected.
"""

from __future__ import annotations

from croniter import CroniterError, croniter

from taskclock.exceptions import CronExpressionError
from taskclock.scheduler.calculator import format_cron_spec
from taskclock.scheduler.models import CronSpec

# Order of croniter's expanded fields for a seconds-last six-field expression.
_CRONITER_FIELDS = ("minutes", "hours", "days", "months", "weekdays", "seconds")


def _to_croniter_form(expression: str) -> str:
    """Rewrite taskclock text into the seconds-last form croniter expands."""
    parts = expression.split()
    if len(parts) == 1 and parts[0].startswith("@"):
        return parts[0]
    if len(parts) == 5:
        return " ".join(parts)
    if len(parts) == 6:
        return " ".join(parts[1:] + parts[:1])
    raise CronExpressionError(expression, f"expected 5 or 6 fields, got {len(parts)}")


def _field_values(values: list, name: str, expression: str) -> frozenset[int]:
    if values == ["*"]:
        return frozenset()
    if not all(isinstance(v, int) for v in values):
        raise CronExpressionError(expression, f"unsupported syntax in {name} field")
    if name == "weekdays":
        return frozenset(0 if v == 7 else v for v in values)
    return frozenset(values)


def parse_cron_expression(expression: str) -> CronSpec:
    """Parse a five-field, six-field (seconds first) or @alias expression."""
    text = _to_croniter_form(expression)
    try:
        expanded, nth_weekday = croniter.expand(text)
    except (CroniterError, ValueError) as exc:
        raise CronExpressionError(expression, str(exc)) from None

    if nth_weekday:
        raise CronExpressionError(expression, "nth-weekday ('#') is not supported")

    fields = {
        name: _field_values(values, name, expression)
        for name, values in zip(_CRONITER_FIELDS, expanded)
    }
    # Five-field and alias forms carry no seconds field.
    fields.setdefault("seconds", frozenset({0}))
    return CronSpec(**fields)


def normalize_cron_expression(expression: str) -> str:
    """Canonical six-field text of an expression (the form describe_task() prints)."""
    return format_cron_spec(parse_cron_expression(expression))
