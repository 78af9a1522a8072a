"""observability/ — structlog setup shared by every taskclock module."""

from taskclock.observability.logger import bound_task, get_logger, setup_logging

__all__ = ["bound_task", "get_logger", "setup_logging"]
