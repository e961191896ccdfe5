"""Transport-independent request handling.

Every transport adapter (JSON-RPC, REST, ...) drives one RequestHandler.
The DefaultRequestHandler authorizes each call, resolves or creates the
task, runs the agent executor in the background and folds its events
through the TaskManager, while streaming callers and the push sender
observe the task's event queue independently.
"""

import asyncio
from typing import AsyncIterator, Optional, Protocol, Union
from uuid import uuid4

from a2a_runtime.agents.base import AgentExecutor, RequestContext
from a2a_runtime.config import RuntimeConfig
from a2a_runtime.errors import (
    A2AError,
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
from a2a_runtime.events.queue import EventTap
from a2a_runtime.observability.logging import get_logger
from a2a_runtime.push.models import TaskPushNotificationConfig
from a2a_runtime.push.sender import PushNotificationSender
from a2a_runtime.security.authorization import AllowAllAuthorizer, Authorizer, Operation
from a2a_runtime.server.context import ServerCallContext
from a2a_runtime.server.requests import (
    A2ARequest,
    CancelTaskRequest,
    DeleteTaskPushNotificationConfigParams,
    DeleteTaskPushNotificationConfigRequest,
    GetTaskPushNotificationConfigParams,
    GetTaskPushNotificationConfigRequest,
    GetTaskRequest,
    ListTaskPushNotificationConfigRequest,
    MessageSendConfiguration,
    MessageSendParams,
    SendMessageRequest,
    SendStreamingMessageRequest,
    SetTaskPushNotificationConfigRequest,
    TaskIdParams,
    TaskQueryParams,
    TaskResubscriptionRequest,
)
from a2a_runtime.storage.base import TaskStore
from a2a_runtime.tasks.events import Event, TaskMessageEvent, TaskStatusUpdateEvent, is_final
from a2a_runtime.tasks.manager import TaskManager
from a2a_runtime.tasks.models import Message, Role, Task, TaskState, TaskStatus, TextPart

logger = get_logger(__name__)

HandlerResult = Union[
    Task, TaskPushNotificationConfig, list[TaskPushNotificationConfig], AsyncIterator[Event], None
]


class RequestHandler(Protocol):
    """The flat capability interface every transport adapter drives."""

    async def handle(
        self, request: A2ARequest, context: Optional[ServerCallContext] = None
    ) -> HandlerResult:
        ...

    async def on_message_send(
        self, params: MessageSendParams, context: Optional[ServerCallContext] = None
    ) -> Task:
        ...

    async def on_message_send_stream(
        self, params: MessageSendParams, context: Optional[ServerCallContext] = None
    ) -> AsyncIterator[Event]:
        ...

    async def on_get_task(
        self, params: TaskQueryParams, context: Optional[ServerCallContext] = None
    ) -> Task:
        ...

    async def on_cancel_task(
        self, params: TaskIdParams, context: Optional[ServerCallContext] = None
    ) -> Task:
        ...

    async def on_resubscribe(
        self, params: TaskIdParams, context: Optional[ServerCallContext] = None
    ) -> AsyncIterator[Event]:
        ...

    async def on_set_push_notification_config(
        self, params: TaskPushNotificationConfig, context: Optional[ServerCallContext] = None
    ) -> TaskPushNotificationConfig:
        ...

    async def on_get_push_notification_config(
        self,
        params: GetTaskPushNotificationConfigParams,
        context: Optional[ServerCallContext] = None,
    ) -> TaskPushNotificationConfig:
        ...

    async def on_list_push_notification_configs(
        self, params: TaskIdParams, context: Optional[ServerCallContext] = None
    ) -> list[TaskPushNotificationConfig]:
        ...

    async def on_delete_push_notification_config(
        self,
        params: DeleteTaskPushNotificationConfigParams,
        context: Optional[ServerCallContext] = None,
    ) -> None:
        ...

    async def close(self) -> None:
        ...


class _Execution:
    """A running (or reserved) executor invocation for one task."""

    def __init__(self, task_id: str, context_id: str) -> None:
        self.task_id = task_id
        self.context_id = context_id
        self.request_context: Optional[RequestContext] = None
        self.runner: Optional[asyncio.Task[None]] = None
        self.canceled = False


class DefaultRequestHandler:
    """Default RequestHandler orchestrating tasks, queues and push delivery.

    At most one execution runs per task; a message for a task whose
    execution is still running is rejected with TaskBusyError.

    Attributes:
        task_manager: The task state machine all events go through
        queue_manager: Owner of the per-task event queues
        push_sender: Optional push notification sender
    """

    def __init__(
        self,
        agent_executor: AgentExecutor,
        task_store: TaskStore,
        queue_manager: Optional[QueueManager] = None,
        push_sender: Optional[PushNotificationSender] = None,
        authorizer: Optional[Authorizer] = None,
        config: Optional[RuntimeConfig] = None,
        task_manager: Optional[TaskManager] = None,
    ) -> None:
        """Initialize the request handler.

        Args:
            agent_executor: Agent logic executing tasks
            task_store: Store backing the task manager
            queue_manager: Event queue owner (created from config when omitted)
            push_sender: Push notification sender (push operations unsupported when None)
            authorizer: Authorization capability (allow-all when omitted)
            config: Runtime configuration (defaults when omitted)
            task_manager: Task manager (created over task_store when omitted)
        """
        self._config = config or RuntimeConfig()
        self._executor = agent_executor
        if queue_manager is None:
            queue_manager = QueueManager(self._config.max_queue_size)
        self.queue_manager = queue_manager
        self.task_manager = task_manager or TaskManager(task_store, self.queue_manager)
        self.push_sender = push_sender
        self._authorizer: Authorizer = authorizer or AllowAllAuthorizer()
        self._executions: dict[str, _Execution] = {}

    async def handle(
        self, request: A2ARequest, context: Optional[ServerCallContext] = None
    ) -> HandlerResult:
        """Dispatch a request envelope to its operation.

        Args:
            request: Any A2A request envelope
            context: Context of the inbound call

        Returns:
            The operation result; streaming operations return an async iterator of events

        Raises:
            A2AError: Whatever the operation raises
        """
        if isinstance(request, SendMessageRequest):
            return await self.on_message_send(request.params, context)
        if isinstance(request, SendStreamingMessageRequest):
            return await self.on_message_send_stream(request.params, context)
        if isinstance(request, GetTaskRequest):
            return await self.on_get_task(request.params, context)
        if isinstance(request, CancelTaskRequest):
            return await self.on_cancel_task(request.params, context)
        if isinstance(request, TaskResubscriptionRequest):
            return await self.on_resubscribe(request.params, context)
        if isinstance(request, SetTaskPushNotificationConfigRequest):
            return await self.on_set_push_notification_config(request.params, context)
        if isinstance(request, GetTaskPushNotificationConfigRequest):
            return await self.on_get_push_notification_config(request.params, context)
        if isinstance(request, ListTaskPushNotificationConfigRequest):
            return await self.on_list_push_notification_configs(request.params, context)
        if isinstance(request, DeleteTaskPushNotificationConfigRequest):
            return await self.on_delete_push_notification_config(request.params, context)
        raise UnsupportedOperationError(f"Unsupported request: {type(request).__name__}")

    async def on_message_send(
        self, params: MessageSendParams, context: Optional[ServerCallContext] = None
    ) -> Task:
        """Create or continue a task with a message and run the executor.

        Non-blocking calls return as soon as the message is recorded. Blocking
        calls wait for the execution to finish or the timeout to elapse; the
        execution keeps running after a timeout.

        Args:
            params: Message and send configuration
            context: Context of the inbound call

        Returns:
            The task snapshot when the call returns

        Raises:
            UnauthorizedError: If the caller may not send messages
            TaskNotFoundError: If the message references an unknown task
            InvalidTransitionError: If the referenced task is terminal
            TaskBusyError: If the referenced task is still executing
        """
        await self._authorize(context, params.message.task_id, Operation.SEND_MESSAGE)
        configuration = params.configuration or MessageSendConfiguration()

        execution = await self._prepare_execution(params)
        await self._launch(execution, params, context)

        if configuration.blocking and execution.runner is not None:
            timeout = configuration.timeout or self._config.blocking_timeout_seconds
            await asyncio.wait({execution.runner}, timeout=timeout)
            if not execution.runner.done():
                logger.info("blocking_send_timed_out", task_id=execution.task_id, timeout=timeout)

        return await self.task_manager.get_task(execution.task_id, configuration.history_length)

    async def on_message_send_stream(
        self, params: MessageSendParams, context: Optional[ServerCallContext] = None
    ) -> AsyncIterator[Event]:
        """Create or continue a task and stream its events.

        The tap is opened before the first event of the task is produced, so
        the stream starts with the events recording the message.

        Returns:
            Async iterator of events, ending after a final event or queue close
        """
        await self._authorize(context, params.message.task_id, Operation.STREAM_MESSAGE)

        execution = await self._prepare_execution(params)
        tap = self.queue_manager.create_or_tap(execution.task_id)
        try:
            await self._launch(execution, params, context)
        except BaseException:
            tap.release()
            raise
        return self._stream(tap)

    async def on_get_task(
        self, params: TaskQueryParams, context: Optional[ServerCallContext] = None
    ) -> Task:
        """Return a task snapshot, optionally truncating its history."""
        await self._authorize(context, params.id, Operation.GET_TASK)
        return await self.task_manager.get_task(params.id, params.history_length)

    async def on_cancel_task(
        self, params: TaskIdParams, context: Optional[ServerCallContext] = None
    ) -> Task:
        """Cancel a task.

        Canceling a terminal task returns it unchanged without emitting an
        event. Otherwise the executor's cancel hook runs, the execution is
        stopped, a final canceled status is recorded and the queue is closed.

        Returns:
            The task after cancellation (or unchanged if already terminal)

        Raises:
            TaskNotFoundError: If the task does not exist
        """
        await self._authorize(context, params.id, Operation.CANCEL_TASK)
        task = await self.task_manager.get_task(params.id)
        if task.state.is_terminal():
            return task

        execution = self._executions.get(params.id)
        if execution is not None:
            await self._stop_execution(execution)

        try:
            task = await self.task_manager.save_task_event(
                TaskStatusUpdateEvent(
                    task_id=task.id,
                    context_id=task.context_id,
                    status=TaskStatus(state=TaskState.CANCELED),
                    final=True,
                )
            )
        except InvalidTransitionError:
            # The task reached a terminal state on its own first
            task = await self.task_manager.get_task(params.id)

        self.queue_manager.close(params.id)
        logger.info("task_canceled", task_id=task.id, state=task.state.value)
        return task

    async def on_resubscribe(
        self, params: TaskIdParams, context: Optional[ServerCallContext] = None
    ) -> AsyncIterator[Event]:
        """Attach a new stream to a live task.

        Raises:
            TaskNotFoundError: If the task does not exist
            UnsupportedOperationError: If the task is terminal
        """
        await self._authorize(context, params.id, Operation.RESUBSCRIBE)
        task = await self.task_manager.get_task(params.id)
        if task.state.is_terminal():
            raise UnsupportedOperationError(
                f"Task '{task.id}' is in terminal state '{task.state.value}'"
            )
        return self._stream(self.queue_manager.create_or_tap(task.id))

    async def on_set_push_notification_config(
        self, params: TaskPushNotificationConfig, context: Optional[ServerCallContext] = None
    ) -> TaskPushNotificationConfig:
        """Register a webhook for a task."""
        await self._authorize(context, params.task_id, Operation.SET_PUSH_CONFIG)
        sender = self._require_push_sender()
        await self.task_manager.get_task(params.task_id)
        stored = await sender.set_config(params.task_id, params.push_notification_config)
        return TaskPushNotificationConfig(task_id=params.task_id, push_notification_config=stored)

    async def on_get_push_notification_config(
        self,
        params: GetTaskPushNotificationConfigParams,
        context: Optional[ServerCallContext] = None,
    ) -> TaskPushNotificationConfig:
        """Return one webhook config of a task.

        Raises:
            PushNotificationConfigNotFoundError: If no matching config exists
        """
        await self._authorize(context, params.id, Operation.GET_PUSH_CONFIG)
        sender = self._require_push_sender()
        config = await sender.get_config(params.id, params.push_notification_config_id)
        if config is None:
            raise PushNotificationConfigNotFoundError(params.id, params.push_notification_config_id)
        return TaskPushNotificationConfig(task_id=params.id, push_notification_config=config)

    async def on_list_push_notification_configs(
        self, params: TaskIdParams, context: Optional[ServerCallContext] = None
    ) -> list[TaskPushNotificationConfig]:
        """List every webhook config of a task."""
        await self._authorize(context, params.id, Operation.LIST_PUSH_CONFIGS)
        sender = self._require_push_sender()
        await self.task_manager.get_task(params.id)
        configs = await sender.list_configs(params.id)
        return [
            TaskPushNotificationConfig(task_id=params.id, push_notification_config=config)
            for config in configs
        ]

    async def on_delete_push_notification_config(
        self,
        params: DeleteTaskPushNotificationConfigParams,
        context: Optional[ServerCallContext] = None,
    ) -> None:
        """Delete one webhook config, or all of them when no config id is given.

        Raises:
            PushNotificationConfigNotFoundError: If the named config does not exist
        """
        await self._authorize(context, params.id, Operation.DELETE_PUSH_CONFIG)
        sender = self._require_push_sender()
        config_id = params.push_notification_config_id
        if config_id is not None and await sender.get_config(params.id, config_id) is None:
            raise PushNotificationConfigNotFoundError(params.id, config_id)
        await sender.delete_config(params.id, config_id)

    def active_task_ids(self) -> list[str]:
        """List tasks with a running execution."""
        return list(self._executions)

    async def wait_for_execution(self, task_id: str, timeout: Optional[float] = None) -> bool:
        """Wait for a task's running execution to finish.

        Returns:
            True if no execution is running when the call returns
        """
        execution = self._executions.get(task_id)
        if execution is None or execution.runner is None:
            return True
        await asyncio.wait({execution.runner}, timeout=timeout)
        return execution.runner.done()

    async def close(self) -> None:
        """Cancel running executions, close every queue and stop push delivery."""
        runners = [e.runner for e in self._executions.values() if e.runner is not None]
        for runner in runners:
            runner.cancel()
        await asyncio.gather(*runners, return_exceptions=True)
        self._executions.clear()
        self.queue_manager.close_all()
        if self.push_sender is not None:
            await self.push_sender.close()

    async def _authorize(
        self, context: Optional[ServerCallContext], task_id: Optional[str], operation: Operation
    ) -> None:
        identity = (context or ServerCallContext()).identity
        if not await self._authorizer.authorize(identity, task_id, operation):
            raise UnauthorizedError(f"Operation '{operation.value}' not permitted")

    def _require_push_sender(self) -> PushNotificationSender:
        if self.push_sender is None:
            raise PushNotificationNotSupportedError()
        return self.push_sender

    async def _prepare_execution(self, params: MessageSendParams) -> _Execution:
        """Resolve the target task and reserve its execution slot."""
        configuration = params.configuration or MessageSendConfiguration()
        if configuration.push_notification_config is not None:
            self._require_push_sender()

        message = params.message
        if message.task_id:
            task = await self.task_manager.find_task(message.task_id)
            if task is None:
                raise TaskNotFoundError(message.task_id)
            if task.state.is_terminal():
                raise InvalidTransitionError(
                    task.id, task.state.value, TaskState.WORKING.value
                )
            if message.context_id and message.context_id != task.context_id:
                raise InvalidParamsError(
                    f"Message context '{message.context_id}' does not match "
                    f"task context '{task.context_id}'"
                )
            task_id, context_id = task.id, task.context_id
        else:
            task_id = str(uuid4())
            context_id = message.context_id or str(uuid4())

        if task_id in self._executions:
            raise TaskBusyError(task_id)
        execution = _Execution(task_id, context_id)
        self._executions[task_id] = execution
        return execution

    async def _launch(
        self,
        execution: _Execution,
        params: MessageSendParams,
        context: Optional[ServerCallContext],
    ) -> None:
        """Record the message and start the executor in the background."""
        task_id, context_id = execution.task_id, execution.context_id
        configuration = params.configuration or MessageSendConfiguration()
        message = params.message.model_copy(update={"task_id": task_id, "context_id": context_id})

        try:
            if configuration.push_notification_config is not None:
                await self._require_push_sender().set_config(
                    task_id, configuration.push_notification_config
                )

            if await self.task_manager.find_task(task_id) is None:
                await self.task_manager.save_task_event(
                    TaskStatusUpdateEvent(
                        task_id=task_id,
                        context_id=context_id,
                        status=TaskStatus(state=TaskState.SUBMITTED),
                        metadata=params.metadata,
                    )
                )
            task = await self.task_manager.save_task_event(
                TaskMessageEvent(task_id=task_id, context_id=context_id, message=message)
            )
        except BaseException:
            self._release(execution)
            raise

        # A cancel may have landed while the task was being set up
        if (
            execution.canceled
            or self._executions.get(task_id) is not execution
            or task.state.is_terminal()
        ):
            self._release(execution)
            if task.state.is_terminal():
                self.queue_manager.close(task_id)
            logger.info("task_execution_skipped", task_id=task_id, state=task.state.value)
            return

        execution.request_context = RequestContext(
            task_id=task_id,
            context_id=context_id,
            message=message,
            task=task,
            call_context=context,
        )
        execution.runner = asyncio.create_task(self._run(execution))
        logger.info("task_execution_started", task_id=task_id, context_id=context_id)

    async def _run(self, execution: _Execution) -> None:
        """Fold every executor event into the task; never raises to callers."""
        request_context = execution.request_context
        assert request_context is not None
        task_id = execution.task_id

        try:
            async for event in self._executor.execute(request_context):
                if event.task_id != task_id:
                    logger.warning(
                        "executor_event_ignored",
                        task_id=task_id,
                        event_task_id=event.task_id,
                        reason="task mismatch",
                    )
                    continue
                try:
                    await self.task_manager.save_task_event(event)
                except InvalidTransitionError:
                    logger.warning("executor_event_rejected", task_id=task_id, kind=event.kind)
        except asyncio.CancelledError:
            self._release(execution)
            raise
        except Exception as e:
            logger.exception("task_execution_failed", task_id=task_id)
            await self._fail_task(execution, e)

        self._release(execution)
        await self._close_if_terminal(task_id)

    async def _stop_execution(self, execution: _Execution) -> None:
        execution.canceled = True
        if execution.request_context is not None:
            try:
                await self._executor.cancel(execution.request_context)
            except Exception:
                logger.exception("executor_cancel_failed", task_id=execution.task_id)
        if execution.runner is not None and not execution.runner.done():
            execution.runner.cancel()
            await asyncio.gather(execution.runner, return_exceptions=True)
        self._release(execution)

    def _release(self, execution: _Execution) -> None:
        if self._executions.get(execution.task_id) is execution:
            del self._executions[execution.task_id]

    async def _fail_task(self, execution: _Execution, error: Exception) -> None:
        message = Message(
            message_id=str(uuid4()),
            role=Role.AGENT,
            parts=[TextPart(text=f"Task failed: {error}")],
            task_id=execution.task_id,
            context_id=execution.context_id,
        )
        try:
            await self.task_manager.save_task_event(
                TaskStatusUpdateEvent(
                    task_id=execution.task_id,
                    context_id=execution.context_id,
                    status=TaskStatus(state=TaskState.FAILED, message=message),
                    final=True,
                )
            )
        except InvalidTransitionError:
            logger.debug("task_already_terminal", task_id=execution.task_id)
        except A2AError:
            logger.exception("task_fail_not_recorded", task_id=execution.task_id)

    async def _close_if_terminal(self, task_id: str) -> None:
        try:
            task = await self.task_manager.find_task(task_id)
        except A2AError:
            logger.exception("task_reload_failed", task_id=task_id)
            return
        if task is not None and task.state.is_terminal():
            self.queue_manager.close(task_id)

    async def _stream(self, tap: EventTap) -> AsyncIterator[Event]:
        try:
            async for event in tap:
                yield event
                if is_final(event):
                    break
        finally:
            tap.release()
