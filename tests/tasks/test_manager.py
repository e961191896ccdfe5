"""Tests for task manager."""

import asyncio
import random
from datetime import timedelta
from typing import Optional

import pytest

from a2a_runtime.errors import InvalidTransitionError, TaskNotFoundError
from a2a_runtime.events.manager import QueueManager
from a2a_runtime.storage.memory import InMemoryTaskStore
from a2a_runtime.tasks.events import (
    TaskArtifactUpdateEvent,
    TaskMessageEvent,
    TaskStatusUpdateEvent,
)
from a2a_runtime.tasks.manager import TaskManager
from a2a_runtime.tasks.models import (
    Artifact,
    Message,
    Role,
    Task,
    TaskState,
    TaskStatus,
    TextPart,
    utcnow,
)


def status_event(
    state: TaskState, task_id: str = "t1", message: Optional[Message] = None, **kwargs
) -> TaskStatusUpdateEvent:
    return TaskStatusUpdateEvent(
        task_id=task_id,
        context_id="c1",
        status=TaskStatus(state=state, message=message),
        **kwargs,
    )


def artifact_event(
    artifact_id: str, text: str, append: bool = False, task_id: str = "t1", **artifact_fields
) -> TaskArtifactUpdateEvent:
    return TaskArtifactUpdateEvent(
        task_id=task_id,
        context_id="c1",
        artifact=Artifact(artifact_id=artifact_id, parts=[TextPart(text=text)], **artifact_fields),
        append=append,
    )


def message(message_id: str, role: Role = Role.USER) -> Message:
    return Message(message_id=message_id, role=role, parts=[TextPart(text=message_id)])


class TestTaskManager:
    """Tests for TaskManager class."""

    @pytest.fixture
    def task_store(self) -> InMemoryTaskStore:
        """Create a fresh task store for each test."""
        return InMemoryTaskStore()

    @pytest.fixture
    def queue_manager(self) -> QueueManager:
        return QueueManager()

    @pytest.fixture
    def manager(self, task_store: InMemoryTaskStore, queue_manager: QueueManager) -> TaskManager:
        """Create a task manager over the store and queue manager."""
        return TaskManager(task_store, queue_manager)

    @pytest.mark.asyncio
    async def test_status_event_creates_task(
        self, manager: TaskManager, task_store: InMemoryTaskStore
    ) -> None:
        """save_task_event should create the task on its first status event."""
        task = await manager.save_task_event(
            status_event(TaskState.SUBMITTED, metadata={"source": "test"})
        )

        assert task.id == "t1"
        assert task.context_id == "c1"
        assert task.state == TaskState.SUBMITTED
        assert task.metadata == {"source": "test"}
        assert await task_store.get("t1") == task

    @pytest.mark.asyncio
    async def test_get_task_raises_for_unknown_task(self, manager: TaskManager) -> None:
        """get_task should raise TaskNotFoundError for unknown ids."""
        with pytest.raises(TaskNotFoundError):
            await manager.get_task("missing")

        assert await manager.find_task("missing") is None

    @pytest.mark.asyncio
    async def test_artifact_event_for_absent_task_raises(self, manager: TaskManager) -> None:
        """Non-status events should not create tasks."""
        with pytest.raises(TaskNotFoundError):
            await manager.save_task_event(artifact_event("a1", "x"))

    @pytest.mark.asyncio
    async def test_unknown_state_never_creates_task(self, manager: TaskManager) -> None:
        """A status event targeting unknown should be rejected for an absent task."""
        with pytest.raises(InvalidTransitionError):
            await manager.save_task_event(status_event(TaskState.UNKNOWN))

        assert await manager.find_task("t1") is None

    @pytest.mark.asyncio
    async def test_lifecycle_scenario(self, manager: TaskManager) -> None:
        """A completed task should reject further transitions and stay completed."""
        await manager.save_task_event(status_event(TaskState.SUBMITTED))
        await manager.save_task_event(status_event(TaskState.WORKING))
        assert (await manager.get_task("t1")).state == TaskState.WORKING

        await manager.save_task_event(status_event(TaskState.COMPLETED))
        assert (await manager.get_task("t1")).state == TaskState.COMPLETED

        with pytest.raises(InvalidTransitionError) as exc_info:
            await manager.save_task_event(status_event(TaskState.WORKING))

        assert exc_info.value.current_state == "completed"
        assert exc_info.value.target_state == "working"
        assert (await manager.get_task("t1")).state == TaskState.COMPLETED

    @pytest.mark.asyncio
    async def test_rejected_event_is_not_published(
        self, manager: TaskManager, queue_manager: QueueManager
    ) -> None:
        """Rejected events should leave the queue untouched."""
        await manager.save_task_event(status_event(TaskState.SUBMITTED))
        tap = queue_manager.create_or_tap("t1")

        with pytest.raises(InvalidTransitionError):
            await manager.save_task_event(status_event(TaskState.COMPLETED))

        assert tap.pending == 0

    @pytest.mark.asyncio
    async def test_events_are_published_in_order(
        self, manager: TaskManager, queue_manager: QueueManager
    ) -> None:
        """Applied events should reach taps in the order they were saved."""
        tap = queue_manager.create_or_tap("t1")
        events = [
            status_event(TaskState.SUBMITTED),
            status_event(TaskState.WORKING),
            artifact_event("a1", "x"),
            status_event(TaskState.COMPLETED, final=True),
        ]
        for event in events:
            await manager.save_task_event(event)

        received = [await tap.dequeue(no_wait=True) for _ in events]

        assert received == events

    @pytest.mark.asyncio
    async def test_status_timestamp_never_moves_backwards(self, manager: TaskManager) -> None:
        """An older status timestamp should be clamped to the stored one."""
        first = await manager.save_task_event(status_event(TaskState.SUBMITTED))
        stale = TaskStatusUpdateEvent(
            task_id="t1",
            context_id="c1",
            status=TaskStatus(
                state=TaskState.WORKING, timestamp=first.status.timestamp - timedelta(hours=1)
            ),
        )

        task = await manager.save_task_event(stale)

        assert task.state == TaskState.WORKING
        assert task.status.timestamp == first.status.timestamp

    @pytest.mark.asyncio
    async def test_status_message_is_appended_to_history(self, manager: TaskManager) -> None:
        """A status message should be recorded once in the history."""
        await manager.save_task_event(status_event(TaskState.SUBMITTED))
        reply = message("agent-1", Role.AGENT)

        await manager.save_task_event(status_event(TaskState.WORKING, message=reply))
        task = await manager.save_task_event(status_event(TaskState.WORKING, message=reply))

        assert [m.message_id for m in task.history] == ["agent-1"]

    @pytest.mark.asyncio
    async def test_message_event_is_deduplicated(
        self, manager: TaskManager, queue_manager: QueueManager
    ) -> None:
        """A message already in history should be neither saved nor published."""
        await manager.save_task_event(status_event(TaskState.SUBMITTED))
        tap = queue_manager.create_or_tap("t1")
        event = TaskMessageEvent(task_id="t1", context_id="c1", message=message("m1"))

        await manager.save_task_event(event)
        task = await manager.save_task_event(event)

        assert len(task.history) == 1
        assert tap.pending == 1

    @pytest.mark.asyncio
    async def test_artifact_append_concatenates_parts(self, manager: TaskManager) -> None:
        """append=True should extend the parts of an existing artifact."""
        await manager.save_task_event(status_event(TaskState.SUBMITTED))
        await manager.save_task_event(artifact_event("a1", "hello ", name="greeting"))

        task = await manager.save_task_event(
            artifact_event("a1", "world", append=True, metadata={"chunk": 2})
        )

        assert len(task.artifacts) == 1
        artifact = task.artifacts[0]
        assert [part.text for part in artifact.parts] == ["hello ", "world"]
        assert artifact.name == "greeting"
        assert artifact.metadata == {"chunk": 2}

    @pytest.mark.asyncio
    async def test_artifact_without_append_replaces(self, manager: TaskManager) -> None:
        """append=False should replace an artifact with the same id."""
        await manager.save_task_event(status_event(TaskState.SUBMITTED))
        await manager.save_task_event(artifact_event("a1", "old"))
        await manager.save_task_event(artifact_event("a2", "other"))

        task = await manager.save_task_event(artifact_event("a1", "new"))

        assert [a.artifact_id for a in task.artifacts] == ["a1", "a2"]
        assert task.artifacts[0].parts[0].text == "new"

    @pytest.mark.asyncio
    async def test_append_to_missing_artifact_adds_it(self, manager: TaskManager) -> None:
        """append=True for an unknown artifact id should add the artifact."""
        await manager.save_task_event(status_event(TaskState.SUBMITTED))

        task = await manager.save_task_event(artifact_event("a1", "first", append=True))

        assert [a.artifact_id for a in task.artifacts] == ["a1"]

    @pytest.mark.asyncio
    async def test_event_metadata_is_merged(self, manager: TaskManager) -> None:
        """Event metadata should be merged into task metadata."""
        await manager.save_task_event(status_event(TaskState.SUBMITTED, metadata={"a": 1}))

        task = await manager.save_task_event(
            status_event(TaskState.WORKING, metadata={"b": 2, "a": 3})
        )

        assert task.metadata == {"a": 3, "b": 2}

    @pytest.mark.asyncio
    async def test_concurrent_writes_are_serialized(self, manager: TaskManager) -> None:
        """Concurrent appends to one task should all land, in arrival order."""
        await manager.save_task_event(status_event(TaskState.SUBMITTED))

        await asyncio.gather(
            *(manager.save_task_event(artifact_event("a1", str(i), append=True)) for i in range(20))
        )

        task = await manager.get_task("t1")
        assert [part.text for part in task.artifacts[0].parts] == [str(i) for i in range(20)]

    @pytest.mark.asyncio
    async def test_concurrent_conflicting_writes_match_a_serial_order(
        self, manager: TaskManager
    ) -> None:
        """Two concurrent terminal updates should leave the result of one serial order."""
        await manager.save_task_event(status_event(TaskState.SUBMITTED))
        await manager.save_task_event(status_event(TaskState.WORKING))

        results = await asyncio.gather(
            manager.save_task_event(status_event(TaskState.COMPLETED)),
            manager.save_task_event(status_event(TaskState.FAILED)),
            return_exceptions=True,
        )

        succeeded = [r for r in results if isinstance(r, Task)]
        rejected = [r for r in results if isinstance(r, InvalidTransitionError)]
        assert len(succeeded) == 1
        assert len(rejected) == 1
        assert await manager.get_task("t1") == succeeded[0]

    @pytest.mark.asyncio
    async def test_writes_to_different_tasks_are_independent(self, manager: TaskManager) -> None:
        """Events for different tasks should not interfere."""
        await asyncio.gather(
            manager.save_task_event(status_event(TaskState.SUBMITTED, task_id="t1")),
            manager.save_task_event(status_event(TaskState.SUBMITTED, task_id="t2")),
        )

        assert (await manager.get_task("t1")).id == "t1"
        assert (await manager.get_task("t2")).id == "t2"

    @pytest.mark.asyncio
    async def test_random_status_sequences_never_leave_terminal_state(
        self, manager: TaskManager
    ) -> None:
        """Random status sequences should follow the transition table exactly."""
        rng = random.Random(20240917)
        states = [s for s in TaskState if s != TaskState.UNKNOWN]

        for run in range(50):
            task_id = f"task-{run}"
            await manager.save_task_event(status_event(TaskState.SUBMITTED, task_id=task_id))
            expected = TaskState.SUBMITTED
            observed = [expected]

            for _ in range(12):
                target = rng.choice(states)
                try:
                    task = await manager.save_task_event(status_event(target, task_id=task_id))
                except InvalidTransitionError:
                    assert not expected.can_transition_to(target)
                else:
                    assert expected.can_transition_to(target)
                    expected = task.state
                    observed.append(expected)

            assert (await manager.get_task(task_id)).state == expected
            for before, after in zip(observed, observed[1:]):
                assert not before.is_terminal(), f"left terminal state {before} for {after}"


class TestApplyEvent:
    """Tests for the pure apply_event fold."""

    def test_apply_event_does_not_mutate_input(self) -> None:
        """apply_event should return a new task and leave the input untouched."""
        task = Task(id="t1", context_id="c1", status=TaskStatus(state=TaskState.SUBMITTED))

        updated = TaskManager.apply_event(task, status_event(TaskState.WORKING))

        assert updated is not task
        assert task.state == TaskState.SUBMITTED
        assert updated.state == TaskState.WORKING

    def test_apply_event_rejects_transition_from_terminal(self) -> None:
        """apply_event should raise for a transition out of a terminal state."""
        task = Task(
            id="t1",
            context_id="c1",
            status=TaskStatus(state=TaskState.CANCELED, timestamp=utcnow()),
        )

        with pytest.raises(InvalidTransitionError):
            TaskManager.apply_event(task, status_event(TaskState.CANCELED))
