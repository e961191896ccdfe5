"""Task lifecycle models, events and the task state machine.

This module provides the canonical task data model, the events folded into
it and the TaskManager that applies them.
"""

from a2a_runtime.tasks.events import (
    Event,
    TaskArtifactUpdateEvent,
    TaskMessageEvent,
    TaskStatusUpdateEvent,
    is_final,
)
from a2a_runtime.tasks.locks import TaskLanes
from a2a_runtime.tasks.manager import TaskManager
from a2a_runtime.tasks.models import (
    Artifact,
    DataPart,
    FilePart,
    FileWithBytes,
    FileWithUri,
    Message,
    Part,
    Role,
    Task,
    TaskState,
    TaskStatus,
    TextPart,
)

__all__ = [
    "Artifact",
    "DataPart",
    "Event",
    "FilePart",
    "FileWithBytes",
    "FileWithUri",
    "Message",
    "Part",
    "Role",
    "Task",
    "TaskArtifactUpdateEvent",
    "TaskLanes",
    "TaskManager",
    "TaskMessageEvent",
    "TaskState",
    "TaskStatus",
    "TaskStatusUpdateEvent",
    "TextPart",
    "is_final",
]
