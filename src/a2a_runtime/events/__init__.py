"""Event fan-out for task updates.

This module provides per-task broadcast queues with independent reader
cursors and the manager that owns them.
"""

from a2a_runtime.events.manager import QueueManager
from a2a_runtime.events.queue import EventQueue, EventTap

__all__ = [
    "EventQueue",
    "EventTap",
    "QueueManager",
]
