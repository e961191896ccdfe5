"""Push notification fan-out.

The PushNotificationSender watches every task that has at least one push
notification config. For each event observed on the task's queue it loads
the latest task snapshot and hands it to one delivery lane per config. A
lane is a FIFO drained by a single worker, so notifications for one
(task, config) pair are never reordered, while different pairs deliver
concurrently. A lane is dropped once its queue runs empty and recreated
by the next notification. Nothing here ever raises into the request path.
"""

import asyncio
from typing import TYPE_CHECKING, Optional

from a2a_runtime.events.manager import QueueManager
from a2a_runtime.events.queue import EventTap
from a2a_runtime.observability.logging import get_logger
from a2a_runtime.push.delivery import WebhookDelivery
from a2a_runtime.push.models import PushNotificationConfig
from a2a_runtime.tasks.models import Task

if TYPE_CHECKING:
    from a2a_runtime.storage.base import PushNotificationConfigStore, TaskStore

logger = get_logger(__name__)

_LaneKey = tuple[str, str]


class _DeliveryLane:
    """Ordered delivery queue for one (task_id, config_id) pair."""

    def __init__(self) -> None:
        self.queue: asyncio.Queue[Optional[tuple[PushNotificationConfig, Task]]] = (
            asyncio.Queue()
        )
        self.pending = 0
        self.worker: Optional[asyncio.Task[None]] = None


class _Watcher:
    """Consumer of one task's event queue."""

    def __init__(self, task_id: str, tap: EventTap) -> None:
        self.task_id = task_id
        self.tap = tap
        self.dispatching = False
        self.runner: Optional[asyncio.Task[None]] = None
        # Last snapshot handed to each config, keyed by config id
        self.last_sent: dict[str, Task] = {}

    @property
    def idle(self) -> bool:
        return not self.dispatching and self.tap.pending == 0


class PushNotificationSender:
    """Delivers task updates to registered webhooks.

    Config CRUD is a pass-through to the config store. Registering a config
    starts watching the task; deleting its last config stops watching.

    Attributes:
        _config_store: Store of push notification configs
        _task_store: Store the latest task snapshots are read from
        _queue_manager: Source of task event taps
        _delivery: Webhook delivery with retry policy
    """

    def __init__(
        self,
        config_store: "PushNotificationConfigStore",
        task_store: "TaskStore",
        queue_manager: QueueManager,
        delivery: Optional[WebhookDelivery] = None,
    ) -> None:
        """Initialize the sender.

        Args:
            config_store: Store of push notification configs
            task_store: Store the latest task snapshots are read from
            queue_manager: Source of task event taps
            delivery: Webhook delivery (a default WebhookDelivery when omitted)
        """
        self._config_store = config_store
        self._task_store = task_store
        self._queue_manager = queue_manager
        self._delivery = delivery or WebhookDelivery()
        self._watchers: dict[str, _Watcher] = {}
        self._lanes: dict[_LaneKey, _DeliveryLane] = {}
        self._retiring: set[asyncio.Task[None]] = set()

    async def set_config(
        self, task_id: str, config: PushNotificationConfig
    ) -> PushNotificationConfig:
        """Store a config and start watching the task.

        Args:
            task_id: Task to subscribe to
            config: Webhook subscription; a missing id defaults to the task id

        Returns:
            The stored config with its id resolved
        """
        stored = await self._config_store.set(task_id, config)
        await self.watch(task_id)
        return stored

    async def get_config(
        self, task_id: str, config_id: Optional[str] = None
    ) -> Optional[PushNotificationConfig]:
        """Return a config of the task, or None."""
        return await self._config_store.get(task_id, config_id)

    async def list_configs(self, task_id: str) -> list[PushNotificationConfig]:
        """List every config of the task."""
        return await self._config_store.list(task_id)

    async def delete_config(self, task_id: str, config_id: Optional[str] = None) -> None:
        """Delete one config (or all when config_id is None).

        Watching stops once the task has no config left.
        """
        await self._config_store.delete(task_id, config_id)
        if not await self._config_store.list(task_id):
            await self.unwatch(task_id)

    def is_watching(self, task_id: str) -> bool:
        return task_id in self._watchers

    @property
    def lane_count(self) -> int:
        """Number of delivery lanes with a live worker."""
        return len(self._lanes)

    async def watch(self, task_id: str) -> bool:
        """Start observing a task's events. Idempotent.

        Args:
            task_id: Task to observe

        Returns:
            True if the task is being watched, False if it is already terminal
        """
        if task_id in self._watchers:
            return True
        task = await self._task_store.get(task_id)
        if task is not None and task.state.is_terminal():
            return False
        if task_id in self._watchers:
            return True

        watcher = _Watcher(task_id, self._queue_manager.create_or_tap(task_id))
        watcher.runner = asyncio.create_task(self._consume(watcher))
        self._watchers[task_id] = watcher
        logger.debug("push_watch_started", task_id=task_id)
        return True

    async def unwatch(self, task_id: str) -> None:
        """Stop observing a task. Notifications already queued are still delivered."""
        watcher = self._watchers.pop(task_id, None)
        if watcher is None:
            return
        if watcher.runner is not None:
            watcher.runner.cancel()
            await asyncio.gather(watcher.runner, return_exceptions=True)
        # A runner cancelled before its first step never reaches its cleanup
        watcher.tap.release()
        self._retire_lanes(task_id)

    async def drain(self) -> None:
        """Wait until every observed event has been delivered or dropped."""
        while True:
            await asyncio.sleep(0)
            busy_lanes = [lane for lane in self._lanes.values() if lane.pending]
            busy_retiring = [worker for worker in self._retiring if not worker.done()]
            watchers_idle = all(w.idle for w in self._watchers.values())
            if not busy_lanes and not busy_retiring and watchers_idle:
                return
            for lane in busy_lanes:
                await lane.queue.join()
            if busy_retiring:
                await asyncio.wait(busy_retiring)

    async def close(self) -> None:
        """Stop every watcher and lane and close the delivery client."""
        watchers = list(self._watchers.values())
        self._watchers.clear()
        for watcher in watchers:
            if watcher.runner is not None:
                watcher.runner.cancel()
        await asyncio.gather(
            *(w.runner for w in watchers if w.runner is not None), return_exceptions=True
        )
        for watcher in watchers:
            watcher.tap.release()

        workers = [lane.worker for lane in self._lanes.values() if lane.worker is not None]
        workers.extend(self._retiring)
        self._lanes.clear()
        self._retiring.clear()
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

        await self._delivery.close()

    async def _consume(self, watcher: _Watcher) -> None:
        try:
            async for _event in watcher.tap:
                watcher.dispatching = True
                try:
                    await self._dispatch(watcher)
                finally:
                    watcher.dispatching = False
        finally:
            watcher.tap.release()
            if self._watchers.get(watcher.task_id) is watcher:
                del self._watchers[watcher.task_id]
            self._retire_lanes(watcher.task_id)
            logger.debug("push_watch_stopped", task_id=watcher.task_id)

    async def _dispatch(self, watcher: _Watcher) -> None:
        task_id = watcher.task_id
        try:
            configs = await self._config_store.list(task_id)
            if not configs:
                return
            task = await self._task_store.get(task_id)
        except Exception:
            logger.exception("push_dispatch_failed", task_id=task_id)
            return
        if task is None:
            return
        for config in configs:
            self._enqueue(watcher, config, task)

    def _enqueue(self, watcher: _Watcher, config: PushNotificationConfig, task: Task) -> None:
        config_id = config.id or watcher.task_id
        # Several events folded before the watcher ran share one snapshot
        if watcher.last_sent.get(config_id) == task:
            return
        watcher.last_sent[config_id] = task

        key = (watcher.task_id, config_id)
        lane = self._lanes.get(key)
        if lane is None:
            lane = self._lanes[key] = _DeliveryLane()
            lane.worker = asyncio.create_task(self._run_lane(key, lane))
        lane.pending += 1
        lane.queue.put_nowait((config, task))

    async def _run_lane(self, key: _LaneKey, lane: _DeliveryLane) -> None:
        """Deliver queued snapshots in order; exit on the sentinel or when idle."""
        while True:
            item = await lane.queue.get()
            if item is None:
                lane.queue.task_done()
                return
            config, task = item
            try:
                await self._delivery.deliver(config, task)
            except Exception:
                logger.exception("push_lane_error", task_id=task.id, config_id=config.id)
            finally:
                lane.pending -= 1
                lane.queue.task_done()

            if lane.queue.empty() and self._lanes.get(key) is lane:
                del self._lanes[key]
                return

    def _retire_lanes(self, task_id: str) -> None:
        for key in [key for key in self._lanes if key[0] == task_id]:
            lane = self._lanes.pop(key)
            lane.queue.put_nowait(None)
            if lane.worker is not None:
                self._retiring.add(lane.worker)
                lane.worker.add_done_callback(self._retiring.discard)
