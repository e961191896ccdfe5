"""Base abstract class for agent executors.

This module defines the AgentExecutor interface the request handler drives
to do the actual work of a task, and the RequestContext it receives.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, AsyncIterator, Optional

from a2a_runtime.tasks.events import Event, TaskStatusUpdateEvent
from a2a_runtime.tasks.models import Message, Task, TaskState, TaskStatus

if TYPE_CHECKING:
    from a2a_runtime.server.context import ServerCallContext


@dataclass
class RequestContext:
    """Everything an executor needs to work on one message.

    Attributes:
        task_id: Task being executed
        context_id: Context of the task
        message: The user message that triggered this execution
        task: Task snapshot when execution started
        call_context: Context of the inbound call
    """

    task_id: str
    context_id: str
    message: Message
    task: Optional[Task] = None
    call_context: Optional["ServerCallContext"] = field(default=None, repr=False)

    def status_event(
        self,
        state: TaskState,
        message: Optional[Message] = None,
        final: bool = False,
    ) -> TaskStatusUpdateEvent:
        """Build a status update event for this task.

        Args:
            state: Target state
            message: Optional message attached to the status
            final: Whether the event ends the stream

        Returns:
            A status event addressed to this context's task
        """
        return TaskStatusUpdateEvent(
            task_id=self.task_id,
            context_id=self.context_id,
            status=TaskStatus(state=state, message=message),
            final=final,
        )


class AgentExecutor(ABC):
    """Abstract base class for the agent logic behind the runtime.

    Executors yield events describing progress; the runtime folds them into
    the task, persists and fans them out. An executor should finish by
    yielding a terminal or input-required status.

    Example:
        >>> class EchoExecutor(AgentExecutor):
        ...     async def execute(self, context: RequestContext) -> AsyncIterator[Event]:
        ...         yield context.status_event(TaskState.WORKING)
        ...         yield TaskArtifactUpdateEvent(
        ...             task_id=context.task_id,
        ...             context_id=context.context_id,
        ...             artifact=Artifact(artifact_id="echo", parts=context.message.parts),
        ...         )
        ...         yield context.status_event(TaskState.COMPLETED, final=True)
    """

    @abstractmethod
    def execute(self, context: RequestContext) -> AsyncIterator[Event]:
        """Run the task and yield events as it progresses.

        Args:
            context: The request being executed

        Yields:
            Status, artifact and message events for the context's task
        """
        ...

    async def cancel(self, context: RequestContext) -> None:
        """Cancel a running execution.

        This default implementation does nothing. Override it in executors
        that hold external resources; the runtime cancels the execution and
        records the canceled status either way.

        Args:
            context: The request whose execution is being canceled
        """
        pass
