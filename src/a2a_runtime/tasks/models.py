"""Task lifecycle models and state machine.

This module defines the canonical A2A data model shared by every transport:
tasks, their status, message history, artifacts and message parts. Field
names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class A2ABaseModel(BaseModel):
    """Base model accepting both field names and camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True)


class TaskState(str, Enum):
    """Possible states in a task lifecycle.

    State transitions:
        submitted -> working | canceled | rejected | failed
        working -> input-required | completed | failed | canceled
        input-required -> working | canceled | failed
        completed, canceled, failed, rejected (terminal)

    Non-terminal states may also transition to themselves (progress updates).
    ``unknown`` marks a task whose status could not be determined and is
    never a legal transition target.
    """

    SUBMITTED = "submitted"
    WORKING = "working"
    INPUT_REQUIRED = "input-required"
    COMPLETED = "completed"
    CANCELED = "canceled"
    FAILED = "failed"
    REJECTED = "rejected"
    UNKNOWN = "unknown"

    @classmethod
    def terminal_states(cls) -> set["TaskState"]:
        """Return set of terminal states that cannot be transitioned from.

        Returns:
            Set of terminal TaskState values
        """
        return {cls.COMPLETED, cls.CANCELED, cls.FAILED, cls.REJECTED}

    def is_terminal(self) -> bool:
        """Check if this state is terminal."""
        return self in self.terminal_states()

    def can_transition_to(self, target: "TaskState") -> bool:
        """Check if a task in this state may move to the target state.

        Args:
            target: The state a status update wants to move to

        Returns:
            True if the transition is allowed, False otherwise
        """
        if self.is_terminal() or target == TaskState.UNKNOWN:
            return False
        if self == TaskState.UNKNOWN:
            return True
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[TaskState, set[TaskState]] = {
    TaskState.SUBMITTED: {
        TaskState.SUBMITTED,
        TaskState.WORKING,
        TaskState.CANCELED,
        TaskState.REJECTED,
        TaskState.FAILED,
    },
    TaskState.WORKING: {
        TaskState.WORKING,
        TaskState.INPUT_REQUIRED,
        TaskState.COMPLETED,
        TaskState.FAILED,
        TaskState.CANCELED,
    },
    TaskState.INPUT_REQUIRED: {
        TaskState.INPUT_REQUIRED,
        TaskState.WORKING,
        TaskState.CANCELED,
        TaskState.FAILED,
    },
}


class Role(str, Enum):
    """Sender of a message."""

    USER = "user"
    AGENT = "agent"


class TextPart(A2ABaseModel):
    """Plain text message part."""

    kind: Literal["text"] = "text"
    text: str
    metadata: Optional[dict[str, Any]] = None


class DataPart(A2ABaseModel):
    """Structured data message part."""

    kind: Literal["data"] = "data"
    data: dict[str, Any]
    metadata: Optional[dict[str, Any]] = None


class FileWithUri(A2ABaseModel):
    """File referenced by URI."""

    uri: str = Field(..., min_length=1)
    name: Optional[str] = None
    mime_type: Optional[str] = Field(None, alias="mimeType")


class FileWithBytes(A2ABaseModel):
    """File carried inline as base64-encoded bytes."""

    bytes: str = Field(..., min_length=1)
    name: Optional[str] = None
    mime_type: Optional[str] = Field(None, alias="mimeType")


class FilePart(A2ABaseModel):
    """File message part, either by reference or inline.

    Attributes:
        kind: Part discriminator (always "file")
        file: Exactly one of a URI reference or inline bytes
    """

    kind: Literal["file"] = "file"
    file: Union[FileWithUri, FileWithBytes]
    metadata: Optional[dict[str, Any]] = None


Part = Annotated[Union[TextPart, FilePart, DataPart], Field(discriminator="kind")]


class Message(A2ABaseModel):
    """A single turn of communication between user and agent.

    Messages are immutable once created; updates produce a copy.

    Attributes:
        message_id: Unique identifier of the message
        role: Who sent the message
        parts: Ordered, non-empty content parts
        task_id: Optional back-reference to the owning task
        context_id: Optional back-reference to the owning context
        metadata: Optional extension metadata
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    kind: Literal["message"] = "message"
    message_id: str = Field(..., min_length=1, max_length=255, alias="messageId")
    role: Role
    parts: list[Part]
    task_id: Optional[str] = Field(None, alias="taskId")
    context_id: Optional[str] = Field(None, alias="contextId")
    metadata: Optional[dict[str, Any]] = None

    @field_validator("parts")
    @classmethod
    def validate_parts_not_empty(cls, value: list[Any]) -> list[Any]:
        """Validate that parts list is not empty.

        Raises:
            ValueError: If parts list is empty
        """
        if not value:
            raise ValueError("Message must have at least one part")
        return value


class TaskStatus(A2ABaseModel):
    """Current status of a task.

    Attributes:
        state: Lifecycle state
        message: Optional message associated with this status
        timestamp: When the status was set (timezone-aware)
    """

    state: TaskState
    message: Optional[Message] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("timestamp")
    @classmethod
    def ensure_timezone(cls, value: datetime) -> datetime:
        """Treat naive timestamps as UTC so they stay comparable."""
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Artifact(A2ABaseModel):
    """An output produced by the agent while executing a task.

    Attributes:
        artifact_id: Identifier, unique within a task
        parts: Ordered, non-empty content parts
        name: Optional human-readable name
        description: Optional description
        metadata: Optional extension metadata
    """

    artifact_id: str = Field(..., min_length=1, max_length=255, alias="artifactId")
    parts: list[Part]
    name: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    @field_validator("parts")
    @classmethod
    def validate_parts_not_empty(cls, value: list[Any]) -> list[Any]:
        """Validate that parts list is not empty."""
        if not value:
            raise ValueError("Artifact must have at least one part")
        return value


class Task(A2ABaseModel):
    """A long-running unit of agent work.

    Attributes:
        id: Unique identifier for the task
        context_id: Groups related tasks
        status: Current status
        history: Append-only message history
        artifacts: Artifacts produced so far, unique by artifact_id
        metadata: Optional extension metadata
    """

    kind: Literal["task"] = "task"
    id: str = Field(..., min_length=1, max_length=255)
    context_id: str = Field(..., min_length=1, max_length=255, alias="contextId")
    status: TaskStatus
    history: list[Message] = Field(default_factory=list)
    artifacts: list[Artifact] = Field(default_factory=list)
    metadata: Optional[dict[str, Any]] = None

    @model_validator(mode="after")
    def validate_unique_artifacts(self) -> "Task":
        """Validate that artifact ids are unique within the task."""
        ids = [artifact.artifact_id for artifact in self.artifacts]
        if len(ids) != len(set(ids)):
            raise ValueError("Artifact ids must be unique within a task")
        return self

    @property
    def state(self) -> TaskState:
        """Shortcut for ``status.state``."""
        return self.status.state

    def find_artifact(self, artifact_id: str) -> Optional[int]:
        """Return the index of an artifact by id, or None if absent."""
        for index, artifact in enumerate(self.artifacts):
            if artifact.artifact_id == artifact_id:
                return index
        return None

    def has_message(self, message_id: str) -> bool:
        """Check whether a message id is already part of the history."""
        return any(message.message_id == message_id for message in self.history)

    def with_history_length(self, history_length: Optional[int]) -> "Task":
        """Return a copy with history truncated to the last N entries.

        Args:
            history_length: None keeps the full history, 0 drops it entirely

        Returns:
            The same task when no truncation applies, otherwise a copy
        """
        if history_length is None or len(self.history) <= history_length:
            return self
        kept = self.history[-history_length:] if history_length > 0 else []
        return self.model_copy(update={"history": kept})
