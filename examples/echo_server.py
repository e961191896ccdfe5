"""Sample echo agent served over JSON-RPC and REST.

This module wires a minimal AgentExecutor into the runtime and serves it
with uvicorn, demonstrating the complete task lifecycle: the message is
recorded, the task moves to working, an artifact echoing the input is
produced and the task completes.

Run with:
    python examples/echo_server.py

Then send a message:
    curl -s localhost:8000/ -H 'Content-Type: application/json' -d '{
      "jsonrpc": "2.0", "id": 1, "method": "message/send",
      "params": {"message": {"messageId": "m1", "role": "user",
                 "parts": [{"kind": "text", "text": "hello"}]}}}'
"""

import asyncio
from typing import AsyncIterator

import uvicorn

from a2a_runtime.agents.base import AgentExecutor, RequestContext
from a2a_runtime.api.app import create_app
from a2a_runtime.config import RuntimeConfig
from a2a_runtime.runtime import build_request_handler
from a2a_runtime.tasks.events import Event, TaskArtifactUpdateEvent
from a2a_runtime.tasks.models import Artifact, TaskState


class EchoAgentExecutor(AgentExecutor):
    """An executor that echoes the parts of every message back as an artifact."""

    async def execute(self, context: RequestContext) -> AsyncIterator[Event]:
        yield context.status_event(TaskState.WORKING)

        # Simulate some work
        await asyncio.sleep(0.1)

        yield TaskArtifactUpdateEvent(
            task_id=context.task_id,
            context_id=context.context_id,
            artifact=Artifact(
                artifact_id="echo",
                name="Echo",
                parts=context.message.parts,
            ),
            last_chunk=True,
        )
        yield context.status_event(TaskState.COMPLETED, final=True)


def main() -> None:
    config = RuntimeConfig.from_env()
    handler = build_request_handler(EchoAgentExecutor(), config=config)
    app = create_app(handler, config=config)
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
