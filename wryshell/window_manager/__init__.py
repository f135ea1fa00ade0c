"""Window manager package."""

from .registry import Window, WindowRegistry
from .scheduler import CloseDelayScheduler, PendingClose, ScheduleOutcome


__all__ = [
    "CloseDelayScheduler",
    "PendingClose",
    "ScheduleOutcome",
    "Window",
    "WindowRegistry",
]
