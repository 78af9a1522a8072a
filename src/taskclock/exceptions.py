"""
exceptions.py — taskclock Error Hierarchy

The scheduler core never raises for usage errors: unknown task ids come back
as False / None, callback failures are swallowed at the dispatch boundary and
unsatisfiable schedules degrade to a bounded fallback. Exceptions only exist
at the edges of the package, where text or configuration enters it.

Import from here, not from individual modules:
    from taskclock.exceptions import CronExpressionError, ConfigError

Hierarchy:
    TaskClockError
    ├── ConfigError
    └── CronExpressionError
"""

from __future__ import annotations


# ─────────────────────────────────────────────────────────────────────────────
# Root
# ─────────────────────────────────────────────────────────────────────────────

class TaskClockError(Exception):
    """Base class for all taskclock exceptions."""


# ─────────────────────────────────────────────────────────────────────────────
# Configuration
# ─────────────────────────────────────────────────────────────────────────────

class ConfigError(TaskClockError):
    """Raised by Settings.validate_all() when one or more config problems are found."""


# ─────────────────────────────────────────────────────────────────────────────
# Cron expression text
# ─────────────────────────────────────────────────────────────────────────────

class CronExpressionError(TaskClockError):
    """A cron expression string could not be parsed into field sets."""

    def __init__(self, expression: str, reason: str) -> None:
        self.expression = expression
        self.reason = reason
        super().__init__(f"Invalid cron expression '{expression}': {reason}")


__all__ = [
    "TaskClockError",
    "ConfigError",
    "CronExpressionError",
]
