"""Abstract store interfaces for the persistence layer.

This module defines Protocol classes for task and push notification config
stores, enabling different storage backend implementations while keeping
the orchestration core independent of any storage engine.
"""

from typing import Optional, Protocol

from a2a_runtime.push.models import PushNotificationConfig
from a2a_runtime.tasks.models import Task


class TaskStore(Protocol):
    """Protocol for task storage operations.

    Implementations must provide read-your-writes consistency for the writer
    that performed the save. Write discipline (one writer per task) is
    enforced by the TaskManager, not by the store.
    """

    async def get(self, task_id: str) -> Optional[Task]:
        """Retrieve a task by ID.

        Args:
            task_id: Unique identifier of the task

        Returns:
            Task object if found, None otherwise

        Raises:
            StoreUnavailableError: If the backend cannot be reached
        """
        ...

    async def save(self, task: Task) -> None:
        """Insert or replace a task.

        Args:
            task: Task object to save

        Raises:
            StoreUnavailableError: If the backend cannot be reached
        """
        ...

    async def delete(self, task_id: str) -> None:
        """Delete a task by ID. Deleting an absent task is a no-op.

        Args:
            task_id: Unique identifier of the task to delete
        """
        ...

    async def list_by_context(self, context_id: str, limit: int = 100) -> list[Task]:
        """List tasks belonging to a context.

        Args:
            context_id: Context identifier to filter by
            limit: Maximum number of tasks to return (default: 100)

        Returns:
            Tasks of the context, ordered by insertion
        """
        ...

    async def list_all(self, limit: int = 100) -> list[Task]:
        """List stored tasks.

        Args:
            limit: Maximum number of tasks to return (default: 100)

        Returns:
            Tasks ordered by insertion
        """
        ...


class PushNotificationConfigStore(Protocol):
    """Protocol for per-task push notification subscriptions.

    A config is unique per (task_id, config id); a config without an id is
    stored under the task id.
    """

    async def set(self, task_id: str, config: PushNotificationConfig) -> PushNotificationConfig:
        """Insert or replace a config for a task.

        Args:
            task_id: Owning task
            config: Config to store

        Returns:
            The stored config with its id resolved
        """
        ...

    async def get(
        self, task_id: str, config_id: Optional[str] = None
    ) -> Optional[PushNotificationConfig]:
        """Retrieve a config.

        Args:
            task_id: Owning task
            config_id: Config to fetch; None returns the first config of the task

        Returns:
            The config if found, None otherwise
        """
        ...

    async def list(self, task_id: str) -> list[PushNotificationConfig]:
        """List every config of a task in insertion order."""
        ...

    async def delete(self, task_id: str, config_id: Optional[str] = None) -> None:
        """Delete one config, or every config of the task when config_id is None."""
        ...
