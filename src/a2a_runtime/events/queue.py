"""Per-task broadcast event queue.

An EventQueue is an ordered buffer shared by any number of readers. Each
reader holds an EventTap with its own absolute read cursor, so every tap
sees every event enqueued after it was opened, in enqueue order. Events
that every live tap has consumed are trimmed from the buffer.

Overflow policy: the buffer is unbounded by default. When ``max_size`` is
set, enqueueing past it drops the oldest buffered event; taps that had not
read it yet skip ahead and are flagged ``overflowed``.
"""

import asyncio
from collections import deque
from typing import TYPE_CHECKING, AsyncIterator, Callable, Deque, Optional

from a2a_runtime.errors import QueueClosedError
from a2a_runtime.observability.logging import get_logger
from a2a_runtime.observability.metrics import get_metrics_collector

if TYPE_CHECKING:
    from a2a_runtime.tasks.events import Event

logger = get_logger(__name__)


class EventQueue:
    """Ordered, multi-reader event buffer for a single task.

    Attributes:
        task_id: Task whose events this queue carries
        max_size: Maximum number of buffered events, None for unbounded
    """

    def __init__(
        self,
        task_id: str,
        max_size: Optional[int] = None,
        on_idle: Optional[Callable[["EventQueue"], None]] = None,
    ) -> None:
        """Initialize the queue.

        Args:
            task_id: Task whose events this queue carries
            max_size: Optional bound on buffered events (drop-oldest when exceeded)
            on_idle: Called when the last tap of an open queue is released

        Raises:
            ValueError: If max_size is not positive
        """
        if max_size is not None and max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.task_id = task_id
        self.max_size = max_size
        self._buffer: Deque["Event"] = deque()
        # Absolute position of _buffer[0] in the event sequence
        self._offset = 0
        self._taps: list["EventTap"] = []
        self._closed = False
        self._on_idle = on_idle

    @property
    def closed(self) -> bool:
        """Whether the queue rejects further events."""
        return self._closed

    @property
    def tap_count(self) -> int:
        """Number of attached taps."""
        return len(self._taps)

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def _end(self) -> int:
        return self._offset + len(self._buffer)

    def enqueue(self, event: "Event") -> None:
        """Append an event and wake every waiting tap. Never blocks.

        Args:
            event: Event to broadcast

        Raises:
            QueueClosedError: If the queue has been closed
        """
        if self._closed:
            raise QueueClosedError(self.task_id)
        if not self._taps:
            return

        self._buffer.append(event)
        if self.max_size is not None and len(self._buffer) > self.max_size:
            self._drop_oldest()

        for tap in self._taps:
            tap._wake()

    def tap(self) -> "EventTap":
        """Attach a new reader positioned after the last buffered event.

        Returns:
            A tap that receives every event enqueued from now on

        Raises:
            QueueClosedError: If the queue has been closed
        """
        if self._closed:
            raise QueueClosedError(self.task_id)
        tap = EventTap(self, self._end)
        self._taps.append(tap)
        return tap

    def close(self) -> None:
        """Reject further events and wake every tap with the closed signal.

        Taps still drain events buffered before the close. Closing twice is
        a no-op.
        """
        if self._closed:
            return
        self._closed = True
        for tap in self._taps:
            tap._wake()
        logger.debug("event_queue_closed", task_id=self.task_id, taps=len(self._taps))

    def _drop_oldest(self) -> None:
        self._buffer.popleft()
        self._offset += 1
        for tap in self._taps:
            if tap._cursor < self._offset:
                tap._cursor = self._offset
                tap.overflowed = True
        get_metrics_collector().record_queue_overflow()
        logger.warning("event_queue_overflow", task_id=self.task_id, max_size=self.max_size)

    def _read(self, tap: "EventTap") -> Optional["Event"]:
        if tap._cursor >= self._end:
            return None
        event = self._buffer[tap._cursor - self._offset]
        tap._cursor += 1
        self._trim()
        return event

    def _detach(self, tap: "EventTap") -> None:
        if tap in self._taps:
            self._taps.remove(tap)
            self._trim()
            if not self._taps and not self._closed and self._on_idle is not None:
                self._on_idle(self)

    def _trim(self) -> None:
        low = min((tap._cursor for tap in self._taps), default=self._end)
        while self._offset < low:
            self._buffer.popleft()
            self._offset += 1


class EventTap:
    """A reader attached to an EventQueue with an independent cursor.

    A tap is released when it is cancelled mid-read, iterated to the end,
    used as an async context manager, or released explicitly. A released
    tap no longer holds events in the shared buffer.

    Example:
        >>> async with queue.tap() as tap:
        ...     async for event in tap:
        ...         handle(event)
    """

    def __init__(self, queue: EventQueue, cursor: int) -> None:
        self._queue = queue
        self._cursor = cursor
        self._ready = asyncio.Event()
        self._released = False
        self.overflowed = False

    @property
    def task_id(self) -> str:
        return self._queue.task_id

    @property
    def released(self) -> bool:
        return self._released

    @property
    def pending(self) -> int:
        """Number of buffered events this tap has not read yet."""
        if self._released:
            return 0
        return self._queue._end - self._cursor

    @property
    def closed(self) -> bool:
        """True once no further event can be read from this tap."""
        if self._released:
            return True
        return self._queue.closed and self._cursor >= self._queue._end

    async def dequeue(self, no_wait: bool = False) -> "Event":
        """Read the next event, suspending until one arrives.

        Args:
            no_wait: Return immediately instead of suspending when nothing is ready

        Returns:
            The next event in enqueue order

        Raises:
            QueueClosedError: If the queue is closed and this tap has drained it,
                or the tap was released
            asyncio.QueueEmpty: If no_wait is set and no event is ready
        """
        while True:
            if self._released:
                raise QueueClosedError(self.task_id)
            event = self._queue._read(self)
            if event is not None:
                return event
            if self._queue.closed:
                raise QueueClosedError(self.task_id)
            if no_wait:
                raise asyncio.QueueEmpty()

            self._ready.clear()
            try:
                await self._ready.wait()
            except asyncio.CancelledError:
                self.release()
                raise

    def release(self) -> None:
        """Detach from the queue. Idempotent."""
        if self._released:
            return
        self._released = True
        self._queue._detach(self)
        self._ready.set()

    def _wake(self) -> None:
        self._ready.set()

    def __aiter__(self) -> AsyncIterator["Event"]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator["Event"]:
        try:
            while True:
                try:
                    yield await self.dequeue()
                except QueueClosedError:
                    return
        finally:
            self.release()

    async def __aenter__(self) -> "EventTap":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.release()
