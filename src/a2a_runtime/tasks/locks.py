"""Keyed mutual exclusion for per-task writes."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class _Lane:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class TaskLanes:
    """A map from task id to an exclusive execution lane.

    Holders of the same task id run one at a time in arrival order; holders
    of different task ids never wait on each other. Lanes are created on
    first use and reclaimed as soon as no holder or waiter remains.

    Example:
        >>> lanes = TaskLanes()
        >>> async with lanes.hold("task-1"):
        ...     ...  # exclusive section for task-1
    """

    def __init__(self) -> None:
        self._lanes: dict[str, _Lane] = {}

    @asynccontextmanager
    async def hold(self, task_id: str) -> AsyncIterator[None]:
        """Hold the lane of a task for the duration of the block.

        Args:
            task_id: Task whose lane to acquire
        """
        lane = self._lanes.get(task_id)
        if lane is None:
            lane = self._lanes[task_id] = _Lane()
        lane.users += 1
        try:
            async with lane.lock:
                yield
        finally:
            lane.users -= 1
            if lane.users == 0:
                del self._lanes[task_id]

    def is_held(self, task_id: str) -> bool:
        """Check whether a task's lane is currently held."""
        lane = self._lanes.get(task_id)
        return lane is not None and lane.lock.locked()

    def __len__(self) -> int:
        return len(self._lanes)
