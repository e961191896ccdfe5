"""Agent executor interface.

This module provides the AgentExecutor base class agents implement and the
RequestContext they receive.
"""

from a2a_runtime.agents.base import AgentExecutor, RequestContext

__all__ = [
    "AgentExecutor",
    "RequestContext",
]
