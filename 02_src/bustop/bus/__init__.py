"""Bus session interface."""

from .session import (
    HEADER_SIZE,
    IGNORED_ACTION_MAX,
    IGNORED_ACTION_MIN,
    IBusSession,
    ignore_action,
)

__all__ = [
    "HEADER_SIZE",
    "IGNORED_ACTION_MAX",
    "IGNORED_ACTION_MIN",
    "IBusSession",
    "ignore_action",
]
