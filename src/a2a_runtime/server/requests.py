"""Request parameter models and request envelopes.

Each transport maps its wire format onto these canonical shapes. The
envelope's ``method`` names the operation; ``A2ARequest`` is the
discriminated union the request handler dispatches on.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from a2a_runtime.push.models import PushNotificationConfig, TaskPushNotificationConfig
from a2a_runtime.tasks.models import A2ABaseModel, Message


class MessageSendConfiguration(A2ABaseModel):
    """Options controlling how a sent message is awaited.

    Attributes:
        blocking: Wait for the execution to finish (or time out) before returning
        history_length: Truncate the returned task history to the last N entries
        timeout: Seconds to wait when blocking (server default when None)
        push_notification_config: Webhook to register before the task starts
    """

    blocking: bool = True
    history_length: Optional[int] = Field(None, ge=0, alias="historyLength")
    timeout: Optional[float] = Field(None, gt=0)
    push_notification_config: Optional[PushNotificationConfig] = Field(
        None, alias="pushNotificationConfig"
    )


class MessageSendParams(A2ABaseModel):
    """Parameters of message/send and message/stream."""

    message: Message
    configuration: Optional[MessageSendConfiguration] = None
    metadata: Optional[dict[str, Any]] = None


class TaskIdParams(A2ABaseModel):
    """Parameters addressing a task by id."""

    id: str = Field(..., min_length=1, max_length=255)
    metadata: Optional[dict[str, Any]] = None


class TaskQueryParams(TaskIdParams):
    """Parameters of tasks/get."""

    history_length: Optional[int] = Field(None, ge=0, alias="historyLength")


class GetTaskPushNotificationConfigParams(TaskIdParams):
    """Parameters of tasks/pushNotificationConfig/get."""

    push_notification_config_id: Optional[str] = Field(None, alias="pushNotificationConfigId")


class DeleteTaskPushNotificationConfigParams(TaskIdParams):
    """Parameters of tasks/pushNotificationConfig/delete.

    A missing config id deletes every config of the task.
    """

    push_notification_config_id: Optional[str] = Field(None, alias="pushNotificationConfigId")


class BaseRequest(A2ABaseModel):
    """Common envelope fields; ``id`` correlates JSON-RPC responses."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[Union[str, int]] = None


class SendMessageRequest(BaseRequest):
    method: Literal["message/send"] = "message/send"
    params: MessageSendParams


class SendStreamingMessageRequest(BaseRequest):
    method: Literal["message/stream"] = "message/stream"
    params: MessageSendParams


class GetTaskRequest(BaseRequest):
    method: Literal["tasks/get"] = "tasks/get"
    params: TaskQueryParams


class CancelTaskRequest(BaseRequest):
    method: Literal["tasks/cancel"] = "tasks/cancel"
    params: TaskIdParams


class TaskResubscriptionRequest(BaseRequest):
    method: Literal["tasks/resubscribe"] = "tasks/resubscribe"
    params: TaskIdParams


class SetTaskPushNotificationConfigRequest(BaseRequest):
    method: Literal["tasks/pushNotificationConfig/set"] = "tasks/pushNotificationConfig/set"
    params: TaskPushNotificationConfig


class GetTaskPushNotificationConfigRequest(BaseRequest):
    method: Literal["tasks/pushNotificationConfig/get"] = "tasks/pushNotificationConfig/get"
    params: GetTaskPushNotificationConfigParams


class ListTaskPushNotificationConfigRequest(BaseRequest):
    method: Literal["tasks/pushNotificationConfig/list"] = "tasks/pushNotificationConfig/list"
    params: TaskIdParams


class DeleteTaskPushNotificationConfigRequest(BaseRequest):
    method: Literal["tasks/pushNotificationConfig/delete"] = (
        "tasks/pushNotificationConfig/delete"
    )
    params: DeleteTaskPushNotificationConfigParams


A2ARequest = Annotated[
    Union[
        SendMessageRequest,
        SendStreamingMessageRequest,
        GetTaskRequest,
        CancelTaskRequest,
        TaskResubscriptionRequest,
        SetTaskPushNotificationConfigRequest,
        GetTaskPushNotificationConfigRequest,
        ListTaskPushNotificationConfigRequest,
        DeleteTaskPushNotificationConfigRequest,
    ],
    Field(discriminator="method"),
]

A2ARequestAdapter = TypeAdapter(A2ARequest)

METHODS: frozenset[str] = frozenset(
    {
        "message/send",
        "message/stream",
        "tasks/get",
        "tasks/cancel",
        "tasks/resubscribe",
        "tasks/pushNotificationConfig/set",
        "tasks/pushNotificationConfig/get",
        "tasks/pushNotificationConfig/list",
        "tasks/pushNotificationConfig/delete",
    }
)

STREAMING_METHODS: frozenset[str] = frozenset({"message/stream", "tasks/resubscribe"})
