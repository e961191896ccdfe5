"""Shared fixtures for API route tests."""

from typing import AsyncIterator, Iterator

import pytest
from fastapi.testclient import TestClient

from a2a_runtime.agents.base import AgentExecutor, RequestContext
from a2a_runtime.api.app import create_app
from a2a_runtime.config import RuntimeConfig
from a2a_runtime.runtime import build_request_handler
from a2a_runtime.tasks.events import Event, TaskArtifactUpdateEvent
from a2a_runtime.tasks.models import Artifact, TaskState


class _EchoExecutor(AgentExecutor):
    """Executor that echoes the message parts back as one artifact.

    Yields exactly: Status(WORKING) -> Artifact(echo) -> Status(COMPLETED, final)
    """

    async def execute(self, context: RequestContext) -> AsyncIterator[Event]:
        yield context.status_event(TaskState.WORKING)
        yield TaskArtifactUpdateEvent(
            task_id=context.task_id,
            context_id=context.context_id,
            artifact=Artifact(artifact_id="echo", parts=context.message.parts),
            last_chunk=True,
        )
        yield context.status_event(TaskState.COMPLETED, final=True)


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Test client over an application with an echo executor and in-memory stores."""
    config = RuntimeConfig(json_logs=False, push_backoff_base_seconds=0)
    app = create_app(build_request_handler(_EchoExecutor(), config=config), config=config)

    with TestClient(app) as test_client:
        yield test_client
