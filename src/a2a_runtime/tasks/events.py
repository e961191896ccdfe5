"""Task event models.

Events are ephemeral notifications of a status, artifact or message change
for a task. They are folded into the persisted Task by the TaskManager and
fanned out through the task's event queue; the queue is a delivery buffer,
not the system of record.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field

from a2a_runtime.tasks.models import A2ABaseModel, Artifact, Message, TaskState, TaskStatus


class BaseTaskEvent(A2ABaseModel):
    """Base class for all task events.

    Attributes:
        task_id: ID of the task this event belongs to
        context_id: Context of the task
        final: Whether this event terminates the current stream
        metadata: Optional extension metadata merged into the task
    """

    task_id: str = Field(..., min_length=1, max_length=255, alias="taskId")
    context_id: str = Field(..., min_length=1, max_length=255, alias="contextId")
    final: bool = False
    metadata: Optional[dict[str, Any]] = None


class TaskStatusUpdateEvent(BaseTaskEvent):
    """Event for task status changes.

    The first status event for an unknown task creates the task.
    """

    kind: Literal["status-update"] = "status-update"
    status: TaskStatus


class TaskArtifactUpdateEvent(BaseTaskEvent):
    """Event for artifact delivery.

    Attributes:
        artifact: The artifact (or artifact chunk) being delivered
        append: Concatenate parts onto an existing artifact with the same id
        last_chunk: Whether this is the last chunk of the artifact
    """

    kind: Literal["artifact-update"] = "artifact-update"
    artifact: Artifact
    append: bool = False
    last_chunk: bool = Field(False, alias="lastChunk")


class TaskMessageEvent(BaseTaskEvent):
    """Event for a message appended to the task history."""

    kind: Literal["message"] = "message"
    message: Message


Event = Annotated[
    Union[TaskStatusUpdateEvent, TaskArtifactUpdateEvent, TaskMessageEvent],
    Field(discriminator="kind"),
]


def is_final(event: Any) -> bool:
    """Check whether an event ends a stream.

    A status update ends the stream when flagged final, when it reaches a
    terminal state, or when the agent is waiting for user input.

    Args:
        event: The event to inspect

    Returns:
        True if no further events are expected for the current stream
    """
    if event.final:
        return True
    if isinstance(event, TaskStatusUpdateEvent):
        state = event.status.state
        return state.is_terminal() or state == TaskState.INPUT_REQUIRED
    return False
