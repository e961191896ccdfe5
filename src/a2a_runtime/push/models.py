"""Push notification configuration models."""

from typing import Optional

from pydantic import Field

from a2a_runtime.tasks.models import A2ABaseModel


class PushNotificationAuthentication(A2ABaseModel):
    """Authentication the webhook receiver expects.

    Attributes:
        schemes: Accepted authorization schemes; the first one is used
        credentials: Credentials sent as ``Authorization: <scheme> <credentials>``
    """

    schemes: list[str] = Field(default_factory=lambda: ["Bearer"])
    credentials: Optional[str] = None


class PushNotificationConfig(A2ABaseModel):
    """A webhook subscription for task updates.

    Attributes:
        id: Identifies the subscription within its task (defaults to the task id)
        url: Target URL receiving POSTed task snapshots
        token: Opaque token echoed in ``X-A2A-Notification-Token``
        authentication: Optional authorization header settings
    """

    id: Optional[str] = Field(None, max_length=255)
    url: str = Field(..., min_length=1)
    token: Optional[str] = None
    authentication: Optional[PushNotificationAuthentication] = None


class TaskPushNotificationConfig(A2ABaseModel):
    """A push notification config bound to a task."""

    task_id: str = Field(..., min_length=1, max_length=255, alias="taskId")
    push_notification_config: PushNotificationConfig = Field(..., alias="pushNotificationConfig")
