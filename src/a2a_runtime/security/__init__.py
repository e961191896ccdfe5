"""Security for the A2A runtime.

This module provides:
- Role-Based Access Control (RBAC)
- API key validation
- The authorization capability consumed by the request handler
"""

from a2a_runtime.security.auth import validate_api_key
from a2a_runtime.security.authorization import (
    OPERATION_PERMISSIONS,
    AllowAllAuthorizer,
    Authorizer,
    Operation,
    RoleBasedAuthorizer,
)
from a2a_runtime.security.rbac import ROLE_PERMISSIONS, Permission, Role, check_permission

__all__ = [
    # RBAC
    "Permission",
    "Role",
    "ROLE_PERMISSIONS",
    "check_permission",
    # Authentication
    "validate_api_key",
    # Authorization
    "Authorizer",
    "AllowAllAuthorizer",
    "RoleBasedAuthorizer",
    "Operation",
    "OPERATION_PERMISSIONS",
]
