"""API key validation.

Credential validation is a transport concern; the core only consumes the
resulting caller identity through the authorization check.
"""

from typing import Optional

from a2a_runtime.security.rbac import Role

MIN_SECRET_LENGTH = 10


def validate_api_key(api_key: str) -> tuple[bool, Optional[str], Optional[Role]]:
    """Validate an API key and extract tenant ID and role.

    This validates the key format only. Deployments that need real secrets
    plug their own validation into the transport.

    API key format: "tenant_id:role:secret"
    Example: "tenant-123:operator:secret-key-abc"

    Args:
        api_key: The API key to validate

    Returns:
        Tuple of (is_valid, tenant_id, role)

    Examples:
        >>> validate_api_key("tenant-123:operator:secret-abc")
        (True, 'tenant-123', <Role.OPERATOR: 'operator'>)
        >>> validate_api_key("invalid-key")
        (False, None, None)
    """
    parts = api_key.split(":")
    if len(parts) != 3:
        return False, None, None

    tenant_id, role_str, secret = parts
    if not tenant_id or not role_str or not secret:
        return False, None, None

    try:
        role = Role(role_str)
    except ValueError:
        return False, None, None

    if len(secret) < MIN_SECRET_LENGTH:
        return False, None, None

    return True, tenant_id, role
