"""Role-Based Access Control (RBAC) for the A2A runtime.

This module defines permissions, roles, and permission checking logic
used by the role-based authorizer.
"""

from enum import Enum
from typing import Optional


class Permission(str, Enum):
    """Permissions for task and push notification operations."""

    # Task permissions
    TASK_CREATE = "task:create"
    TASK_READ = "task:read"
    TASK_CANCEL = "task:cancel"

    # Push notification config permissions
    PUSH_CONFIG_READ = "push_config:read"
    PUSH_CONFIG_WRITE = "push_config:write"


class Role(str, Enum):
    """Caller roles with different permission levels.

    - End User: Can send messages and follow their tasks
    - Viewer: Read-only access
    - Operator: Can run and cancel tasks and manage webhooks
    - Admin: Full access
    """

    END_USER = "end_user"
    VIEWER = "viewer"
    OPERATOR = "operator"
    ADMIN = "admin"


# Mapping of roles to their permitted actions
ROLE_PERMISSIONS: dict[Role, set[Permission]] = {
    Role.END_USER: {
        Permission.TASK_CREATE,
        Permission.TASK_READ,
    },
    Role.VIEWER: {
        Permission.TASK_READ,
        Permission.PUSH_CONFIG_READ,
    },
    Role.OPERATOR: {
        Permission.TASK_CREATE,
        Permission.TASK_READ,
        Permission.TASK_CANCEL,
        Permission.PUSH_CONFIG_READ,
        Permission.PUSH_CONFIG_WRITE,
    },
    Role.ADMIN: set(Permission),
}


def check_permission(role: Optional[Role], permission: Permission) -> bool:
    """Check if a role has a specific permission.

    Args:
        role: The caller's role (None for unauthenticated callers)
        permission: The permission to check

    Returns:
        True if the role has the permission, False otherwise

    Examples:
        >>> check_permission(Role.VIEWER, Permission.TASK_READ)
        True
        >>> check_permission(Role.VIEWER, Permission.TASK_CANCEL)
        False
        >>> check_permission(None, Permission.TASK_READ)
        False
    """
    if role is None:
        return False

    return permission in ROLE_PERMISSIONS.get(role, set())
