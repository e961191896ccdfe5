"""In-memory implementations of the store interfaces.

This module provides dictionary-based storage guarded by asyncio locks,
suitable for development, testing and single-instance deployments.
Stored objects are deep-copied on the way in and out so callers never
alias stored state.
"""

import asyncio
from typing import Optional

from a2a_runtime.push.models import PushNotificationConfig
from a2a_runtime.tasks.models import Task


class InMemoryTaskStore:
    """In-memory implementation of TaskStore.

    Attributes:
        _tasks: Dictionary mapping task_id to Task objects (insertion ordered)
        _lock: Asyncio lock guarding the dictionary
    """

    def __init__(self) -> None:
        """Initialize the in-memory task store."""
        self._tasks: dict[str, Task] = {}
        self._lock = asyncio.Lock()

    async def get(self, task_id: str) -> Optional[Task]:
        """Retrieve a task by ID.

        Args:
            task_id: Unique identifier of the task

        Returns:
            A copy of the stored Task if found, None otherwise
        """
        async with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy(deep=True) if task is not None else None

    async def save(self, task: Task) -> None:
        """Insert or replace a task.

        Args:
            task: Task object to save
        """
        async with self._lock:
            self._tasks[task.id] = task.model_copy(deep=True)

    async def delete(self, task_id: str) -> None:
        """Delete a task by ID. Deleting an absent task is a no-op."""
        async with self._lock:
            self._tasks.pop(task_id, None)

    async def list_by_context(self, context_id: str, limit: int = 100) -> list[Task]:
        """List tasks belonging to a context.

        Args:
            context_id: Context identifier to filter by
            limit: Maximum number of tasks to return (default: 100)

        Returns:
            Tasks of the context, ordered by insertion
        """
        async with self._lock:
            tasks = [task for task in self._tasks.values() if task.context_id == context_id]
            return [task.model_copy(deep=True) for task in tasks[:limit]]

    async def list_all(self, limit: int = 100) -> list[Task]:
        """List stored tasks ordered by insertion."""
        async with self._lock:
            return [task.model_copy(deep=True) for task in list(self._tasks.values())[:limit]]


class InMemoryPushNotificationConfigStore:
    """In-memory implementation of PushNotificationConfigStore.

    Attributes:
        _configs: Mapping of task_id to an insertion-ordered mapping of config id to config
        _lock: Asyncio lock guarding the mapping
    """

    def __init__(self) -> None:
        """Initialize the in-memory config store."""
        self._configs: dict[str, dict[str, PushNotificationConfig]] = {}
        self._lock = asyncio.Lock()

    async def set(self, task_id: str, config: PushNotificationConfig) -> PushNotificationConfig:
        """Insert or replace a config for a task.

        Args:
            task_id: Owning task
            config: Config to store; a missing id defaults to the task id

        Returns:
            The stored config with its id resolved
        """
        stored = config.model_copy(update={"id": config.id or task_id}, deep=True)
        async with self._lock:
            self._configs.setdefault(task_id, {})[stored.id] = stored  # type: ignore[index]
        return stored.model_copy(deep=True)

    async def get(
        self, task_id: str, config_id: Optional[str] = None
    ) -> Optional[PushNotificationConfig]:
        """Retrieve a config, or the first config of the task when config_id is None."""
        async with self._lock:
            configs = self._configs.get(task_id, {})
            if config_id is None:
                config = next(iter(configs.values()), None)
            else:
                config = configs.get(config_id)
            return config.model_copy(deep=True) if config is not None else None

    async def list(self, task_id: str) -> list[PushNotificationConfig]:
        """List every config of a task in insertion order."""
        async with self._lock:
            return [c.model_copy(deep=True) for c in self._configs.get(task_id, {}).values()]

    async def delete(self, task_id: str, config_id: Optional[str] = None) -> None:
        """Delete one config, or every config of the task when config_id is None.

        Deleting an absent config is a no-op.
        """
        async with self._lock:
            if config_id is None:
                self._configs.pop(task_id, None)
                return
            configs = self._configs.get(task_id)
            if configs is None:
                return
            configs.pop(config_id, None)
            if not configs:
                del self._configs[task_id]
