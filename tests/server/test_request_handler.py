"""Tests for the default request handler."""

import asyncio
from typing import AsyncIterator, Optional
from uuid import uuid4

import httpx
import pytest

from a2a_runtime.agents.base import AgentExecutor, RequestContext
from a2a_runtime.config import RuntimeConfig
from a2a_runtime.errors import (
    InvalidParamsError,
    InvalidTransitionError,
    PushNotificationConfigNotFoundError,
    PushNotificationNotSupportedError,
    TaskBusyError,
    TaskNotFoundError,
    UnauthorizedError,
    UnsupportedOperationError,
)
from a2a_runtime.events.manager import QueueManager
from a2a_runtime.push.delivery import WebhookDelivery
from a2a_runtime.push.models import PushNotificationConfig, TaskPushNotificationConfig
from a2a_runtime.push.sender import PushNotificationSender
from a2a_runtime.security.authorization import RoleBasedAuthorizer
from a2a_runtime.security.rbac import Role as CallerRole
from a2a_runtime.server.context import CallerIdentity, ServerCallContext
from a2a_runtime.server.request_handler import DefaultRequestHandler
from a2a_runtime.server.requests import (
    A2ARequestAdapter,
    DeleteTaskPushNotificationConfigParams,
    GetTaskPushNotificationConfigParams,
    MessageSendConfiguration,
    MessageSendParams,
    TaskIdParams,
    TaskQueryParams,
)
from a2a_runtime.storage.memory import InMemoryPushNotificationConfigStore, InMemoryTaskStore
from a2a_runtime.tasks.events import (
    Event,
    TaskArtifactUpdateEvent,
    TaskMessageEvent,
    TaskStatusUpdateEvent,
)
from a2a_runtime.tasks.models import Artifact, Message, Role, Task, TaskState, TextPart


def user_message(
    text: str = "hello", task_id: Optional[str] = None, context_id: Optional[str] = None
) -> Message:
    return Message(
        message_id=str(uuid4()),
        role=Role.USER,
        parts=[TextPart(text=text)],
        task_id=task_id,
        context_id=context_id,
    )


def send_params(
    message: Optional[Message] = None, blocking: bool = True, timeout: Optional[float] = None
) -> MessageSendParams:
    return MessageSendParams(
        message=message or user_message(),
        configuration=MessageSendConfiguration(blocking=blocking, timeout=timeout),
    )


class EchoExecutor(AgentExecutor):
    """Echoes the message back as an artifact and completes."""

    async def execute(self, context: RequestContext) -> AsyncIterator[Event]:
        yield context.status_event(TaskState.WORKING)
        yield TaskArtifactUpdateEvent(
            task_id=context.task_id,
            context_id=context.context_id,
            artifact=Artifact(artifact_id="echo", parts=context.message.parts),
        )
        yield context.status_event(TaskState.COMPLETED, final=True)


class GatedExecutor(AgentExecutor):
    """Works until the gate opens, then completes or asks for input."""

    def __init__(self, final_state: TaskState = TaskState.COMPLETED) -> None:
        self.gate = asyncio.Event()
        self.final_state = final_state
        self.canceled: list[str] = []

    async def execute(self, context: RequestContext) -> AsyncIterator[Event]:
        yield context.status_event(TaskState.WORKING)
        await self.gate.wait()
        yield context.status_event(self.final_state, final=True)

    async def cancel(self, context: RequestContext) -> None:
        self.canceled.append(context.task_id)


class FailingExecutor(AgentExecutor):
    async def execute(self, context: RequestContext) -> AsyncIterator[Event]:
        yield context.status_event(TaskState.WORKING)
        raise RuntimeError("boom")


class StrayEventExecutor(AgentExecutor):
    """Emits an event for another task and an illegal transition before completing."""

    async def execute(self, context: RequestContext) -> AsyncIterator[Event]:
        yield TaskStatusUpdateEvent(
            task_id="someone-else",
            context_id=context.context_id,
            status=context.status_event(TaskState.WORKING).status,
        )
        yield context.status_event(TaskState.INPUT_REQUIRED)
        yield context.status_event(TaskState.WORKING)
        yield context.status_event(TaskState.COMPLETED, final=True)


class RecordingExecutor(AgentExecutor):
    """Records every execution it starts, then asks for input."""

    def __init__(self) -> None:
        self.started: list[str] = []

    async def execute(self, context: RequestContext) -> AsyncIterator[Event]:
        self.started.append(context.task_id)
        yield context.status_event(TaskState.WORKING)
        yield context.status_event(TaskState.INPUT_REQUIRED, final=True)


class GatedTaskStore(InMemoryTaskStore):
    """In-memory store that can hold one read, or every save of a user message, on a gate."""

    def __init__(self) -> None:
        super().__init__()
        self.hold_next_get = False
        self.hold_message_saves = False
        self.parked = asyncio.Event()
        self.gate = asyncio.Event()

    async def _wait_for_gate(self) -> None:
        self.parked.set()
        await self.gate.wait()

    async def get(self, task_id: str) -> Optional[Task]:
        task = await super().get(task_id)
        if self.hold_next_get:
            self.hold_next_get = False
            await self._wait_for_gate()
        return task

    async def save(self, task: Task) -> None:
        if self.hold_message_saves and task.history and not self.gate.is_set():
            await self._wait_for_gate()
        await super().save(task)


async def collect(events: AsyncIterator[Event]) -> list[Event]:
    return [event async for event in events]


class TestMessageSend:
    """Tests for on_message_send and on_message_send_stream."""

    @pytest.fixture
    def task_store(self) -> InMemoryTaskStore:
        return InMemoryTaskStore()

    @pytest.fixture
    async def handler(self, task_store: InMemoryTaskStore) -> AsyncIterator[DefaultRequestHandler]:
        handler = DefaultRequestHandler(EchoExecutor(), task_store)
        yield handler
        await handler.close()

    @pytest.mark.asyncio
    async def test_blocking_send_returns_completed_task(
        self, handler: DefaultRequestHandler
    ) -> None:
        """A blocking send should return the task after the executor finished."""
        message = user_message("ping")

        task = await handler.on_message_send(send_params(message))

        assert task.state == TaskState.COMPLETED
        assert [m.message_id for m in task.history] == [message.message_id]
        assert task.history[0].task_id == task.id
        assert task.history[0].context_id == task.context_id
        assert task.artifacts[0].parts[0].text == "ping"
        assert handler.active_task_ids() == []

    @pytest.mark.asyncio
    async def test_new_task_uses_message_context(self, handler: DefaultRequestHandler) -> None:
        """A new task should adopt the context id carried by the message."""
        task = await handler.on_message_send(send_params(user_message(context_id="ctx-1")))

        assert task.context_id == "ctx-1"

    @pytest.mark.asyncio
    async def test_non_blocking_send_returns_immediately(
        self, task_store: InMemoryTaskStore
    ) -> None:
        """A non-blocking send should return before the execution finishes."""
        executor = GatedExecutor()
        handler = DefaultRequestHandler(executor, task_store)

        task = await handler.on_message_send(send_params(blocking=False))

        assert task.state in (TaskState.SUBMITTED, TaskState.WORKING)
        executor.gate.set()
        assert await handler.wait_for_execution(task.id, timeout=1)
        assert (await handler.task_manager.get_task(task.id)).state == TaskState.COMPLETED
        await handler.close()

    @pytest.mark.asyncio
    async def test_blocking_timeout_does_not_cancel_execution(
        self, task_store: InMemoryTaskStore
    ) -> None:
        """A blocking send that times out should leave the execution running."""
        executor = GatedExecutor()
        handler = DefaultRequestHandler(executor, task_store)

        task = await handler.on_message_send(send_params(timeout=0.05))

        assert not task.state.is_terminal()
        assert task.id in handler.active_task_ids()
        executor.gate.set()
        assert await handler.wait_for_execution(task.id, timeout=1)
        assert (await handler.task_manager.get_task(task.id)).state == TaskState.COMPLETED
        await handler.close()

    @pytest.mark.asyncio
    async def test_default_blocking_timeout_comes_from_config(
        self, task_store: InMemoryTaskStore
    ) -> None:
        """Without a per-call timeout the configured blocking timeout applies."""
        executor = GatedExecutor()
        handler = DefaultRequestHandler(
            executor, task_store, config=RuntimeConfig(blocking_timeout_seconds=0.05)
        )

        task = await handler.on_message_send(send_params())

        assert task.state == TaskState.WORKING
        await handler.close()

    @pytest.mark.asyncio
    async def test_history_length_truncates_result(self, handler: DefaultRequestHandler) -> None:
        """history_length should truncate the returned history."""
        params = MessageSendParams(
            message=user_message(),
            configuration=MessageSendConfiguration(history_length=0),
        )

        task = await handler.on_message_send(params)

        assert task.history == []
        stored = await handler.on_get_task(TaskQueryParams(id=task.id))
        assert len(stored.history) == 1

    @pytest.mark.asyncio
    async def test_stream_yields_events_until_final(self, handler: DefaultRequestHandler) -> None:
        """A streaming send should yield every event of the execution in order."""
        events = await collect(await handler.on_message_send_stream(send_params()))

        assert [e.kind for e in events] == [
            "status-update",
            "message",
            "status-update",
            "artifact-update",
            "status-update",
        ]
        assert isinstance(events[0], TaskStatusUpdateEvent)
        assert events[0].status.state == TaskState.SUBMITTED
        assert isinstance(events[1], TaskMessageEvent)
        assert isinstance(events[-1], TaskStatusUpdateEvent)
        assert events[-1].status.state == TaskState.COMPLETED
        assert len({e.task_id for e in events}) == 1

    @pytest.mark.asyncio
    async def test_failing_executor_marks_task_failed(self, task_store: InMemoryTaskStore) -> None:
        """An executor exception should fail the task with an explanatory message."""
        handler = DefaultRequestHandler(FailingExecutor(), task_store)

        task = await handler.on_message_send(send_params())

        assert task.state == TaskState.FAILED
        assert task.status.message is not None
        assert task.status.message.role == Role.AGENT
        assert task.status.message.parts[0].text == "Task failed: boom"
        assert handler.active_task_ids() == []
        await handler.close()

    @pytest.mark.asyncio
    async def test_stray_and_illegal_events_are_skipped(
        self, task_store: InMemoryTaskStore
    ) -> None:
        """Events for other tasks and illegal transitions should not stop the execution."""
        handler = DefaultRequestHandler(StrayEventExecutor(), task_store)

        task = await handler.on_message_send(send_params())

        assert task.state == TaskState.COMPLETED
        assert await task_store.get("someone-else") is None
        await handler.close()


class TestTaskContinuation:
    """Tests for sending messages to existing tasks."""

    @pytest.fixture
    def executor(self) -> GatedExecutor:
        return GatedExecutor(final_state=TaskState.INPUT_REQUIRED)

    @pytest.fixture
    async def handler(self, executor: GatedExecutor) -> AsyncIterator[DefaultRequestHandler]:
        handler = DefaultRequestHandler(executor, InMemoryTaskStore())
        yield handler
        await handler.close()

    @pytest.mark.asyncio
    async def test_message_continues_input_required_task(
        self, handler: DefaultRequestHandler, executor: GatedExecutor
    ) -> None:
        """A follow-up message should resume a task waiting for input."""
        executor.gate.set()
        first = await handler.on_message_send(send_params())
        assert first.state == TaskState.INPUT_REQUIRED

        second = await handler.on_message_send(send_params(user_message(task_id=first.id)))

        assert second.id == first.id
        assert second.state == TaskState.INPUT_REQUIRED
        assert len(second.history) == 2

    @pytest.mark.asyncio
    async def test_unknown_task_is_rejected(self, handler: DefaultRequestHandler) -> None:
        with pytest.raises(TaskNotFoundError):
            await handler.on_message_send(send_params(user_message(task_id="missing")))

    @pytest.mark.asyncio
    async def test_terminal_task_is_rejected(self) -> None:
        """Messages for terminal tasks should be rejected as invalid transitions."""
        handler = DefaultRequestHandler(EchoExecutor(), InMemoryTaskStore())
        task = await handler.on_message_send(send_params())

        with pytest.raises(InvalidTransitionError):
            await handler.on_message_send(send_params(user_message(task_id=task.id)))
        await handler.close()

    @pytest.mark.asyncio
    async def test_context_mismatch_is_rejected(
        self, handler: DefaultRequestHandler, executor: GatedExecutor
    ) -> None:
        executor.gate.set()
        task = await handler.on_message_send(send_params())

        with pytest.raises(InvalidParamsError):
            await handler.on_message_send(
                send_params(user_message(task_id=task.id, context_id="other-context"))
            )

    @pytest.mark.asyncio
    async def test_busy_task_is_rejected(self, handler: DefaultRequestHandler) -> None:
        """A message for a task with a running execution should raise TaskBusyError."""
        task = await handler.on_message_send(send_params(blocking=False))

        with pytest.raises(TaskBusyError):
            await handler.on_message_send(send_params(user_message(task_id=task.id)))


class TestCancelAndResubscribe:
    """Tests for on_cancel_task and on_resubscribe."""

    @pytest.fixture
    def executor(self) -> GatedExecutor:
        return GatedExecutor()

    @pytest.fixture
    async def handler(self, executor: GatedExecutor) -> AsyncIterator[DefaultRequestHandler]:
        handler = DefaultRequestHandler(executor, InMemoryTaskStore())
        yield handler
        await handler.close()

    @pytest.mark.asyncio
    async def test_cancel_running_task(
        self, handler: DefaultRequestHandler, executor: GatedExecutor
    ) -> None:
        """Canceling should stop the execution and record a canceled status."""
        task = await handler.on_message_send(send_params(blocking=False))

        canceled = await handler.on_cancel_task(TaskIdParams(id=task.id))

        assert canceled.state == TaskState.CANCELED
        assert executor.canceled == [task.id]
        assert handler.active_task_ids() == []
        assert handler.queue_manager.get(task.id) is None

    @pytest.mark.asyncio
    async def test_cancel_during_setup_keeps_executor_from_starting(self) -> None:
        """A cancel that lands while the message is being recorded should win."""
        store = GatedTaskStore()
        store.hold_message_saves = True
        executor = RecordingExecutor()
        handler = DefaultRequestHandler(executor, store)
        message = user_message()

        try:
            send = asyncio.create_task(handler.on_message_send(send_params(message, False)))
            await asyncio.wait_for(store.parked.wait(), timeout=1)
            task_id = handler.active_task_ids()[0]

            cancel = asyncio.create_task(handler.on_cancel_task(TaskIdParams(id=task_id)))
            await asyncio.sleep(0.01)
            store.gate.set()
            await asyncio.wait_for(send, timeout=1)
            canceled = await asyncio.wait_for(cancel, timeout=1)
        finally:
            await handler.close()

        assert executor.started == []
        assert canceled.state == TaskState.CANCELED
        assert [m.message_id for m in canceled.history] == [message.message_id]
        assert handler.active_task_ids() == []

    @pytest.mark.asyncio
    async def test_follow_up_to_task_canceled_after_lookup_is_not_executed(self) -> None:
        """A follow-up whose task is canceled before the message lands should not run."""
        store = GatedTaskStore()
        executor = RecordingExecutor()
        handler = DefaultRequestHandler(executor, store)

        try:
            task = await handler.on_message_send(send_params())
            follow_up = user_message("more", task_id=task.id)
            store.hold_next_get = True
            send = asyncio.create_task(handler.on_message_send(send_params(follow_up)))
            await asyncio.wait_for(store.parked.wait(), timeout=1)

            canceled = await handler.on_cancel_task(TaskIdParams(id=task.id))
            store.gate.set()
            result = await asyncio.wait_for(send, timeout=1)
        finally:
            await handler.close()

        assert executor.started == [task.id]
        assert canceled.state == TaskState.CANCELED
        assert result.state == TaskState.CANCELED
        assert result.history[-1].message_id == follow_up.message_id
        assert handler.active_task_ids() == []
        assert handler.queue_manager.get(task.id) is None

    @pytest.mark.asyncio
    async def test_cancel_twice_is_idempotent(
        self, handler: DefaultRequestHandler, executor: GatedExecutor
    ) -> None:
        """Canceling a canceled task should return it unchanged without events."""
        task = await handler.on_message_send(send_params(blocking=False))
        first = await handler.on_cancel_task(TaskIdParams(id=task.id))
        tap = handler.queue_manager.create_or_tap(task.id)

        second = await handler.on_cancel_task(TaskIdParams(id=task.id))
        third = await handler.on_cancel_task(TaskIdParams(id=task.id))

        assert first == second == third
        assert tap.pending == 0
        assert executor.canceled == [task.id]

    @pytest.mark.asyncio
    async def test_cancel_unknown_task(self, handler: DefaultRequestHandler) -> None:
        with pytest.raises(TaskNotFoundError):
            await handler.on_cancel_task(TaskIdParams(id="missing"))

    @pytest.mark.asyncio
    async def test_cancel_ends_open_streams(self, handler: DefaultRequestHandler) -> None:
        """A stream attached to a canceled task should end with the canceled status."""
        stream = await handler.on_message_send_stream(send_params())
        consumer = asyncio.create_task(collect(stream))
        await asyncio.sleep(0.01)

        task_id = handler.active_task_ids()[0]
        await handler.on_cancel_task(TaskIdParams(id=task_id))

        events = await asyncio.wait_for(consumer, timeout=1)
        last = events[-1]
        assert isinstance(last, TaskStatusUpdateEvent)
        assert last.status.state == TaskState.CANCELED

    @pytest.mark.asyncio
    async def test_resubscribe_receives_later_events(
        self, handler: DefaultRequestHandler, executor: GatedExecutor
    ) -> None:
        """A resubscribed stream should receive events until the task finishes."""
        task = await handler.on_message_send(send_params(blocking=False))
        stream = await handler.on_resubscribe(TaskIdParams(id=task.id))
        consumer = asyncio.create_task(collect(stream))

        executor.gate.set()
        events = await asyncio.wait_for(consumer, timeout=1)

        last = events[-1]
        assert isinstance(last, TaskStatusUpdateEvent)
        assert last.status.state == TaskState.COMPLETED

    @pytest.mark.asyncio
    async def test_resubscribe_terminal_task_is_unsupported(
        self, handler: DefaultRequestHandler, executor: GatedExecutor
    ) -> None:
        executor.gate.set()
        task = await handler.on_message_send(send_params())

        with pytest.raises(UnsupportedOperationError):
            await handler.on_resubscribe(TaskIdParams(id=task.id))

    @pytest.mark.asyncio
    async def test_close_cancels_running_executions(
        self, handler: DefaultRequestHandler
    ) -> None:
        """close should stop executions and close every queue."""
        task = await handler.on_message_send(send_params(blocking=False))
        handler.queue_manager.create_or_tap(task.id)

        await handler.close()

        assert handler.active_task_ids() == []
        assert len(handler.queue_manager) == 0


class TestPushNotificationOperations:
    """Tests for push notification config operations."""

    @pytest.fixture
    async def handler(self) -> AsyncIterator[DefaultRequestHandler]:
        task_store = InMemoryTaskStore()
        queue_manager = QueueManager()
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200))
        )
        sender = PushNotificationSender(
            InMemoryPushNotificationConfigStore(),
            task_store,
            queue_manager,
            WebhookDelivery(client=client, backoff_base=0),
        )
        handler = DefaultRequestHandler(
            EchoExecutor(), task_store, queue_manager=queue_manager, push_sender=sender
        )
        yield handler
        await handler.close()
        await client.aclose()

    @pytest.fixture
    async def task(self, handler: DefaultRequestHandler) -> Task:
        return await handler.on_message_send(send_params())

    @pytest.mark.asyncio
    async def test_set_get_list_delete(self, handler: DefaultRequestHandler, task: Task) -> None:
        """Config CRUD should round-trip through the handler."""
        config = PushNotificationConfig(id="hook", url="https://example.com/hook")

        stored = await handler.on_set_push_notification_config(
            TaskPushNotificationConfig(task_id=task.id, push_notification_config=config)
        )
        fetched = await handler.on_get_push_notification_config(
            GetTaskPushNotificationConfigParams(id=task.id, push_notification_config_id="hook")
        )
        listed = await handler.on_list_push_notification_configs(TaskIdParams(id=task.id))

        assert stored == fetched
        assert listed == [stored]

        await handler.on_delete_push_notification_config(
            DeleteTaskPushNotificationConfigParams(id=task.id, push_notification_config_id="hook")
        )
        assert await handler.on_list_push_notification_configs(TaskIdParams(id=task.id)) == []

    @pytest.mark.asyncio
    async def test_set_for_unknown_task(self, handler: DefaultRequestHandler) -> None:
        with pytest.raises(TaskNotFoundError):
            await handler.on_set_push_notification_config(
                TaskPushNotificationConfig(
                    task_id="missing",
                    push_notification_config=PushNotificationConfig(url="https://x.example"),
                )
            )

    @pytest.mark.asyncio
    async def test_get_missing_config(self, handler: DefaultRequestHandler, task: Task) -> None:
        with pytest.raises(PushNotificationConfigNotFoundError):
            await handler.on_get_push_notification_config(
                GetTaskPushNotificationConfigParams(id=task.id)
            )

    @pytest.mark.asyncio
    async def test_delete_missing_config(self, handler: DefaultRequestHandler, task: Task) -> None:
        with pytest.raises(PushNotificationConfigNotFoundError):
            await handler.on_delete_push_notification_config(
                DeleteTaskPushNotificationConfigParams(
                    id=task.id, push_notification_config_id="nope"
                )
            )

    @pytest.mark.asyncio
    async def test_push_unsupported_without_sender(self) -> None:
        """Push operations should fail when no sender is configured."""
        handler = DefaultRequestHandler(EchoExecutor(), InMemoryTaskStore())
        params = MessageSendParams(
            message=user_message(),
            configuration=MessageSendConfiguration(
                push_notification_config=PushNotificationConfig(url="https://x.example")
            ),
        )

        with pytest.raises(PushNotificationNotSupportedError):
            await handler.on_list_push_notification_configs(TaskIdParams(id="t1"))
        with pytest.raises(PushNotificationNotSupportedError):
            await handler.on_message_send(params)

        assert handler.active_task_ids() == []


class TestAuthorizationAndDispatch:
    """Tests for authorization checks and envelope dispatch."""

    @pytest.fixture
    async def handler(self) -> AsyncIterator[DefaultRequestHandler]:
        handler = DefaultRequestHandler(
            EchoExecutor(), InMemoryTaskStore(), authorizer=RoleBasedAuthorizer()
        )
        yield handler
        await handler.close()

    @staticmethod
    def context(role: Optional[CallerRole]) -> ServerCallContext:
        return ServerCallContext(identity=CallerIdentity(user_id="u1", role=role))

    @pytest.mark.asyncio
    async def test_anonymous_caller_is_denied(self, handler: DefaultRequestHandler) -> None:
        with pytest.raises(UnauthorizedError):
            await handler.on_message_send(send_params(), self.context(None))

    @pytest.mark.asyncio
    async def test_viewer_cannot_send_but_can_read(self, handler: DefaultRequestHandler) -> None:
        """Denied operations should fail before touching any task."""
        task = await handler.on_message_send(send_params(), self.context(CallerRole.OPERATOR))

        with pytest.raises(UnauthorizedError) as exc_info:
            await handler.on_message_send(send_params(), self.context(CallerRole.VIEWER))
        fetched = await handler.on_get_task(
            TaskQueryParams(id=task.id), self.context(CallerRole.VIEWER)
        )

        assert "message/send" in exc_info.value.message
        assert fetched.id == task.id
        assert len(await handler.task_manager.task_store.list_all()) == 1

    @pytest.mark.asyncio
    async def test_end_user_cannot_cancel(self, handler: DefaultRequestHandler) -> None:
        end_user = self.context(CallerRole.END_USER)
        task = await handler.on_message_send(send_params(), end_user)

        with pytest.raises(UnauthorizedError):
            await handler.on_cancel_task(TaskIdParams(id=task.id), end_user)

    @pytest.mark.asyncio
    async def test_handle_dispatches_envelopes(self, handler: DefaultRequestHandler) -> None:
        """handle should route a parsed envelope to its operation."""
        admin = self.context(CallerRole.ADMIN)
        send = A2ARequestAdapter.validate_python(
            {
                "jsonrpc": "2.0",
                "id": 1,
                "method": "message/send",
                "params": {
                    "message": {
                        "messageId": "m1",
                        "role": "user",
                        "parts": [{"kind": "text", "text": "hi"}],
                    }
                },
            }
        )
        task = await handler.handle(send, admin)
        assert isinstance(task, Task)

        get = A2ARequestAdapter.validate_python(
            {"id": 2, "method": "tasks/get", "params": {"id": task.id, "historyLength": 0}}
        )
        fetched = await handler.handle(get, admin)

        assert isinstance(fetched, Task)
        assert fetched.id == task.id
        assert fetched.history == []
