"""Authorization capability consumed by the request handler.

Every handler operation asks an Authorizer whether the caller may perform
the operation on the task before anything is mutated. The decision is
opaque to the core.
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional, Protocol

from a2a_runtime.observability.logging import get_logger
from a2a_runtime.security.rbac import Permission, check_permission

if TYPE_CHECKING:
    from a2a_runtime.server.context import CallerIdentity

logger = get_logger(__name__)


class Operation(str, Enum):
    """Operations subject to authorization, one per request kind."""

    SEND_MESSAGE = "message/send"
    STREAM_MESSAGE = "message/stream"
    GET_TASK = "tasks/get"
    CANCEL_TASK = "tasks/cancel"
    RESUBSCRIBE = "tasks/resubscribe"
    SET_PUSH_CONFIG = "tasks/pushNotificationConfig/set"
    GET_PUSH_CONFIG = "tasks/pushNotificationConfig/get"
    LIST_PUSH_CONFIGS = "tasks/pushNotificationConfig/list"
    DELETE_PUSH_CONFIG = "tasks/pushNotificationConfig/delete"


OPERATION_PERMISSIONS: dict[Operation, Permission] = {
    Operation.SEND_MESSAGE: Permission.TASK_CREATE,
    Operation.STREAM_MESSAGE: Permission.TASK_CREATE,
    Operation.GET_TASK: Permission.TASK_READ,
    Operation.CANCEL_TASK: Permission.TASK_CANCEL,
    Operation.RESUBSCRIBE: Permission.TASK_READ,
    Operation.SET_PUSH_CONFIG: Permission.PUSH_CONFIG_WRITE,
    Operation.GET_PUSH_CONFIG: Permission.PUSH_CONFIG_READ,
    Operation.LIST_PUSH_CONFIGS: Permission.PUSH_CONFIG_READ,
    Operation.DELETE_PUSH_CONFIG: Permission.PUSH_CONFIG_WRITE,
}


class Authorizer(Protocol):
    """Protocol for the authorization capability check."""

    async def authorize(
        self, identity: "CallerIdentity", task_id: Optional[str], operation: Operation
    ) -> bool:
        """Decide whether the caller may perform the operation.

        Args:
            identity: Who is calling
            task_id: Task the operation addresses (None for a new task)
            operation: Requested operation

        Returns:
            True to allow, False to deny
        """
        ...


class AllowAllAuthorizer:
    """Authorizer that allows every operation."""

    async def authorize(
        self, identity: "CallerIdentity", task_id: Optional[str], operation: Operation
    ) -> bool:
        return True


class RoleBasedAuthorizer:
    """Authorizer that maps operations to RBAC permissions.

    Attributes:
        allow_anonymous: Whether callers without a role are allowed
    """

    def __init__(self, allow_anonymous: bool = False) -> None:
        self.allow_anonymous = allow_anonymous

    async def authorize(
        self, identity: "CallerIdentity", task_id: Optional[str], operation: Operation
    ) -> bool:
        """Allow the operation if the caller's role grants its permission."""
        if identity.role is None:
            return self.allow_anonymous

        allowed = check_permission(identity.role, OPERATION_PERMISSIONS[operation])
        if not allowed:
            logger.info(
                "authorization_denied",
                user_id=identity.user_id,
                tenant_id=identity.tenant_id,
                role=identity.role.value,
                task_id=task_id,
                operation=operation.value,
            )
        return allowed
