"""FastAPI dependencies for the request handler and caller identity."""

from typing import Optional

from fastapi import Header, Request

from a2a_runtime.errors import UnauthorizedError
from a2a_runtime.security.auth import validate_api_key
from a2a_runtime.server.context import CallerIdentity, ServerCallContext
from a2a_runtime.server.request_handler import RequestHandler


def get_request_handler(request: Request) -> RequestHandler:
    """Return the request handler attached to the application."""
    return request.app.state.request_handler


def build_call_context(
    api_key: Optional[str] = None, user_id: Optional[str] = None
) -> ServerCallContext:
    """Build the call context from transport credentials.

    Args:
        api_key: Value of the X-API-Key header, if any
        user_id: Value of the X-User-ID header, if any

    Returns:
        Call context carrying the caller identity (anonymous without a key)

    Raises:
        UnauthorizedError: If an API key is provided but invalid
    """
    if not api_key:
        return ServerCallContext(identity=CallerIdentity(user_id=user_id))

    is_valid, tenant_id, role = validate_api_key(api_key)
    if not is_valid:
        raise UnauthorizedError("Invalid API key")

    return ServerCallContext(
        identity=CallerIdentity(user_id=user_id, tenant_id=tenant_id, role=role),
        state={"auth": "api_key"},
    )


def get_call_context(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> ServerCallContext:
    """Extract the caller identity from request headers.

    Raises:
        UnauthorizedError: If the API key is invalid
    """
    return build_call_context(x_api_key, x_user_id)
