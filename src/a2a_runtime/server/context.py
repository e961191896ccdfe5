"""Caller identity and per-call context passed through the request handler."""

from dataclasses import dataclass, field
from typing import Any, Optional

from a2a_runtime.security.rbac import Role


@dataclass(frozen=True)
class CallerIdentity:
    """Who is making a request.

    Attributes:
        user_id: Caller identifier, if known
        tenant_id: Tenant the caller belongs to, if any
        role: RBAC role, None for unauthenticated callers
    """

    user_id: Optional[str] = None
    tenant_id: Optional[str] = None
    role: Optional[Role] = None

    @classmethod
    def anonymous(cls) -> "CallerIdentity":
        return cls()

    @property
    def is_anonymous(self) -> bool:
        return self.role is None


@dataclass
class ServerCallContext:
    """Context of one inbound call, independent of the transport.

    Attributes:
        identity: The authenticated caller
        state: Transport-specific extras (headers, remote address, ...)
    """

    identity: CallerIdentity = field(default_factory=CallerIdentity.anonymous)
    state: dict[str, Any] = field(default_factory=dict)
