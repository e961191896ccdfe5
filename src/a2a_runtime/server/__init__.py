"""Transport-independent request handling.

This module provides the request handler every transport drives, the
canonical request envelopes and the per-call context.
"""

from a2a_runtime.server.context import CallerIdentity, ServerCallContext
from a2a_runtime.server.request_handler import DefaultRequestHandler, RequestHandler
from a2a_runtime.server.requests import (
    STREAMING_METHODS,
    A2ARequest,
    A2ARequestAdapter,
    MessageSendConfiguration,
    MessageSendParams,
    TaskIdParams,
    TaskQueryParams,
)

__all__ = [
    "A2ARequest",
    "A2ARequestAdapter",
    "CallerIdentity",
    "DefaultRequestHandler",
    "MessageSendConfiguration",
    "MessageSendParams",
    "RequestHandler",
    "STREAMING_METHODS",
    "ServerCallContext",
    "TaskIdParams",
    "TaskQueryParams",
]
