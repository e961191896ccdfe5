"""Task state machine and event folding.

The TaskManager is the only writer of Task records. It folds status,
artifact and message events into the stored task, persists the result and
publishes the event to the task's queue. Writes for one task are
linearized through a per-task lane; writes for different tasks proceed
independently.
"""

from typing import TYPE_CHECKING, Any, Optional

from a2a_runtime.errors import InvalidTransitionError, TaskNotFoundError
from a2a_runtime.observability.logging import get_logger
from a2a_runtime.observability.metrics import get_metrics_collector
from a2a_runtime.tasks.events import (
    Event,
    TaskArtifactUpdateEvent,
    TaskMessageEvent,
    TaskStatusUpdateEvent,
)
from a2a_runtime.tasks.locks import TaskLanes
from a2a_runtime.tasks.models import Task, TaskState

if TYPE_CHECKING:
    from a2a_runtime.events.manager import QueueManager
    from a2a_runtime.storage.base import TaskStore

logger = get_logger(__name__)


class TaskManager:
    """Applies task events and owns write access to the TaskStore.

    Attributes:
        _task_store: Store for task persistence
        _queue_manager: Optional queue manager receiving published events
        _lanes: Per-task mutual exclusion
    """

    def __init__(
        self,
        task_store: "TaskStore",
        queue_manager: Optional["QueueManager"] = None,
        lanes: Optional[TaskLanes] = None,
    ) -> None:
        """Initialize the task manager.

        Args:
            task_store: Store implementation for task persistence
            queue_manager: Where folded events are published (None disables publishing)
            lanes: Shared per-task lanes (a private instance by default)
        """
        self._task_store = task_store
        self._queue_manager = queue_manager
        self._lanes = lanes if lanes is not None else TaskLanes()

    @property
    def task_store(self) -> "TaskStore":
        return self._task_store

    async def get_task(self, task_id: str, history_length: Optional[int] = None) -> Task:
        """Retrieve a task snapshot.

        Args:
            task_id: Unique identifier of the task
            history_length: Keep only the last N history entries (0 = none,
                None = all)

        Returns:
            Task object

        Raises:
            TaskNotFoundError: If task does not exist
        """
        task = await self._task_store.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task.with_history_length(history_length)

    async def find_task(self, task_id: str) -> Optional[Task]:
        """Retrieve a task snapshot, or None if it does not exist."""
        return await self._task_store.get(task_id)

    async def save_task_event(self, event: Event) -> Task:
        """Fold an event into its task, persist it and publish the event.

        A status event for an unknown task creates the task. An event that
        changes nothing (a message already in history) is neither persisted
        nor published.

        Args:
            event: Status, artifact or message event

        Returns:
            The task after the event was applied

        Raises:
            TaskNotFoundError: If a non-status event targets an unknown task
            InvalidTransitionError: If a status event breaks the state machine
            StoreUnavailableError: If the store fails
        """
        async with self._lanes.hold(event.task_id):
            current = await self._task_store.get(event.task_id)
            try:
                updated = self.apply_event(current, event)
            except InvalidTransitionError as e:
                get_metrics_collector().record_rejected_transition()
                logger.warning(
                    "task_transition_rejected",
                    task_id=event.task_id,
                    current_state=e.current_state,
                    target_state=e.target_state,
                )
                raise

            if updated is current:
                logger.debug("task_event_noop", task_id=event.task_id, kind=event.kind)
                return updated

            await self._task_store.save(updated)
            get_metrics_collector().record_task_event(event.kind)
            if self._queue_manager is not None:
                self._queue_manager.publish(event.task_id, event)

        logger.debug(
            "task_event_saved", task_id=event.task_id, kind=event.kind, state=updated.state.value
        )
        return updated

    @staticmethod
    def apply_event(task: Optional[Task], event: Event) -> Task:
        """Fold an event into a task snapshot without side effects.

        Args:
            task: Current snapshot, None if the task does not exist yet
            event: Event to apply

        Returns:
            A new Task, or the given task unchanged when the event is a no-op

        Raises:
            TaskNotFoundError: If a non-status event targets an absent task
            InvalidTransitionError: If a status event breaks the state machine
        """
        if isinstance(event, TaskStatusUpdateEvent):
            return TaskManager._apply_status(task, event)
        if task is None:
            raise TaskNotFoundError(event.task_id)
        if isinstance(event, TaskArtifactUpdateEvent):
            return TaskManager._apply_artifact(task, event)
        if isinstance(event, TaskMessageEvent):
            return TaskManager._apply_message(task, event)
        raise TypeError(f"Unsupported event type: {type(event).__name__}")

    @staticmethod
    def _apply_status(task: Optional[Task], event: TaskStatusUpdateEvent) -> Task:
        target = event.status.state

        if task is None:
            if target == TaskState.UNKNOWN:
                raise InvalidTransitionError(event.task_id, "absent", target.value)
            message = event.status.message
            return Task(
                id=event.task_id,
                context_id=event.context_id,
                status=event.status,
                history=[message] if message is not None else [],
                metadata=_merge_metadata(None, event.metadata),
            )

        current = task.status.state
        if not current.can_transition_to(target):
            raise InvalidTransitionError(task.id, current.value, target.value)

        # Status timestamps never move backwards
        timestamp = max(event.status.timestamp, task.status.timestamp)
        status = event.status.model_copy(update={"timestamp": timestamp})

        history = task.history
        if status.message is not None and not task.has_message(status.message.message_id):
            history = [*history, status.message]

        return task.model_copy(
            update={
                "status": status,
                "history": history,
                "metadata": _merge_metadata(task.metadata, event.metadata),
            }
        )

    @staticmethod
    def _apply_artifact(task: Task, event: TaskArtifactUpdateEvent) -> Task:
        incoming = event.artifact
        artifacts = list(task.artifacts)
        index = task.find_artifact(incoming.artifact_id)

        if index is None:
            artifacts.append(incoming)
        elif event.append:
            existing = artifacts[index]
            artifacts[index] = existing.model_copy(
                update={
                    "parts": [*existing.parts, *incoming.parts],
                    "name": incoming.name or existing.name,
                    "description": incoming.description or existing.description,
                    "metadata": _merge_metadata(existing.metadata, incoming.metadata),
                }
            )
        else:
            artifacts[index] = incoming

        return task.model_copy(
            update={
                "artifacts": artifacts,
                "metadata": _merge_metadata(task.metadata, event.metadata),
            }
        )

    @staticmethod
    def _apply_message(task: Task, event: TaskMessageEvent) -> Task:
        if task.has_message(event.message.message_id):
            return task
        return task.model_copy(
            update={
                "history": [*task.history, event.message],
                "metadata": _merge_metadata(task.metadata, event.metadata),
            }
        )


def _merge_metadata(
    base: Optional[dict[str, Any]], extra: Optional[dict[str, Any]]
) -> Optional[dict[str, Any]]:
    if not extra:
        return base
    return {**(base or {}), **extra}
