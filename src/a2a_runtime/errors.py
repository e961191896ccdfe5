"""Exception hierarchy for the A2A runtime.

Every error carries a machine-readable code, an HTTP status code and a
JSON-RPC error code so transport adapters can translate it without
knowing the concrete class.
"""

from typing import Optional


class A2AError(Exception):
    """Base exception for all runtime errors.

    Attributes:
        code: Machine-readable error code
        message: Human-readable error message
        status_code: HTTP status code for REST responses
        jsonrpc_code: Error code for JSON-RPC responses
    """

    def __init__(self, message: str, code: str, status_code: int, jsonrpc_code: int) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error description
            code: Machine-readable error code
            status_code: HTTP status code (400, 404, 500, etc.)
            jsonrpc_code: JSON-RPC error code
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.jsonrpc_code = jsonrpc_code


class TaskNotFoundError(A2AError):
    """Raised when a task cannot be found."""

    def __init__(self, task_id: str) -> None:
        super().__init__(
            message=f"Task '{task_id}' not found",
            code="task_not_found",
            status_code=404,
            jsonrpc_code=-32001,
        )
        self.task_id = task_id


class PushNotificationConfigNotFoundError(A2AError):
    """Raised when a push notification config cannot be found for a task."""

    def __init__(self, task_id: str, config_id: Optional[str] = None) -> None:
        if config_id:
            message = f"Push notification config '{config_id}' not found for task '{task_id}'"
        else:
            message = f"No push notification config found for task '{task_id}'"
        super().__init__(
            message=message,
            code="push_config_not_found",
            status_code=404,
            jsonrpc_code=-32001,
        )
        self.task_id = task_id
        self.config_id = config_id


class InvalidTransitionError(A2AError):
    """Raised when a status update would move a task through an illegal transition.

    The update is rejected without mutating or persisting the task.
    """

    def __init__(self, task_id: str, current_state: str, target_state: str) -> None:
        """Initialize invalid transition error.

        Args:
            task_id: The ID of the task
            current_state: The state the task is currently in
            target_state: The state the update attempted to move to
        """
        super().__init__(
            message=f"Task '{task_id}' cannot transition from '{current_state}' "
            f"to '{target_state}'",
            code="invalid_transition",
            status_code=409,
            jsonrpc_code=-32002,
        )
        self.task_id = task_id
        self.current_state = current_state
        self.target_state = target_state


class TaskBusyError(A2AError):
    """Raised when a message targets a task whose execution is still running."""

    def __init__(self, task_id: str) -> None:
        super().__init__(
            message=f"Task '{task_id}' already has an active execution",
            code="task_busy",
            status_code=409,
            jsonrpc_code=-32002,
        )
        self.task_id = task_id


class UnauthorizedError(A2AError):
    """Raised when the authorization capability check denies an operation."""

    def __init__(self, message: str = "Operation not permitted") -> None:
        super().__init__(
            message=message,
            code="unauthorized",
            status_code=403,
            jsonrpc_code=-32007,
        )


class QueueClosedError(A2AError):
    """Raised when an operation is attempted on a closed event stream."""

    def __init__(self, task_id: str) -> None:
        super().__init__(
            message=f"Event queue for task '{task_id}' is closed",
            code="queue_closed",
            status_code=410,
            jsonrpc_code=-32603,
        )
        self.task_id = task_id


class StoreUnavailableError(A2AError):
    """Raised when the persistence layer fails.

    Surfaced to the caller as-is; retry policy belongs to the store.
    """

    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(
            message=f"Store unavailable during '{operation}': {detail}",
            code="store_unavailable",
            status_code=503,
            jsonrpc_code=-32603,
        )
        self.operation = operation
        self.detail = detail


class DeliveryFailedError(A2AError):
    """Raised inside the push subsystem when a webhook delivery attempt fails.

    Never propagated to the request path.
    """

    def __init__(self, url: str, detail: str) -> None:
        super().__init__(
            message=f"Push notification delivery to '{url}' failed: {detail}",
            code="delivery_failed",
            status_code=502,
            jsonrpc_code=-32603,
        )
        self.url = url
        self.detail = detail


class UnsupportedOperationError(A2AError):
    """Raised when the requested operation is not supported."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            code="unsupported_operation",
            status_code=400,
            jsonrpc_code=-32004,
        )


class PushNotificationNotSupportedError(A2AError):
    """Raised when push notification operations are used without a push sender."""

    def __init__(self) -> None:
        super().__init__(
            message="Push notifications are not supported by this server",
            code="push_not_supported",
            status_code=400,
            jsonrpc_code=-32003,
        )


class InvalidParamsError(A2AError):
    """Raised when request parameters are inconsistent."""

    def __init__(self, message: str) -> None:
        super().__init__(
            message=message,
            code="invalid_params",
            status_code=400,
            jsonrpc_code=-32602,
        )
