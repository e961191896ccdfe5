"""Ownership of the live event queues, keyed by task id."""

from typing import TYPE_CHECKING, Optional

from a2a_runtime.errors import QueueClosedError
from a2a_runtime.events.queue import EventQueue, EventTap
from a2a_runtime.observability.logging import get_logger
from a2a_runtime.observability.metrics import get_metrics_collector

if TYPE_CHECKING:
    from a2a_runtime.tasks.events import Event

logger = get_logger(__name__)


class QueueManager:
    """Creates, attaches to and tears down per-task event queues.

    A closed queue is removed from the manager immediately; taps that still
    reference it observe the closed signal once drained, and the queue is
    garbage collected after the last tap is released. An open queue is
    discarded as soon as its last tap is released. Tapping a task whose
    queue was closed or discarded starts a fresh queue.

    Attributes:
        _queues: Mapping of task_id to its live EventQueue
        _max_queue_size: Bound applied to newly created queues
    """

    def __init__(self, max_queue_size: Optional[int] = None) -> None:
        """Initialize the queue manager.

        Args:
            max_queue_size: Optional bound for every queue (None = unbounded)
        """
        self._queues: dict[str, EventQueue] = {}
        self._max_queue_size = max_queue_size

    def create_or_tap(self, task_id: str) -> EventTap:
        """Attach a new tap to the task's queue, creating the queue if needed.

        Args:
            task_id: Task to observe

        Returns:
            A tap receiving every event published from now on
        """
        queue = self._queues.get(task_id)
        if queue is None or queue.closed:
            queue = EventQueue(
                task_id, max_size=self._max_queue_size, on_idle=self._discard_idle
            )
            self._queues[task_id] = queue
            get_metrics_collector().set_live_queues(len(self._queues))
            logger.debug("event_queue_created", task_id=task_id)
        return queue.tap()

    def get(self, task_id: str) -> Optional[EventQueue]:
        """Return the live queue of a task, or None."""
        return self._queues.get(task_id)

    def publish(self, task_id: str, event: "Event") -> bool:
        """Enqueue an event on the task's queue if one is live.

        Args:
            task_id: Task the event belongs to
            event: Event to broadcast

        Returns:
            True if a live queue received the event, False otherwise
        """
        queue = self._queues.get(task_id)
        if queue is None:
            return False
        try:
            queue.enqueue(event)
        except QueueClosedError:
            return False
        return True

    def close(self, task_id: str) -> bool:
        """Close the task's queue and release it from the manager.

        Args:
            task_id: Task whose queue to close

        Returns:
            True if a live queue was closed, False if none existed
        """
        queue = self._queues.pop(task_id, None)
        if queue is None:
            return False
        queue.close()
        get_metrics_collector().set_live_queues(len(self._queues))
        return True

    def _discard_idle(self, queue: EventQueue) -> None:
        if self._queues.get(queue.task_id) is not queue:
            return
        del self._queues[queue.task_id]
        queue.close()
        get_metrics_collector().set_live_queues(len(self._queues))
        logger.debug("event_queue_discarded", task_id=queue.task_id)

    def close_all(self) -> None:
        """Close every live queue."""
        for task_id in list(self._queues):
            self.close(task_id)

    def live_task_ids(self) -> list[str]:
        """List task ids that currently own a live queue."""
        return list(self._queues)

    def __len__(self) -> int:
        return len(self._queues)
