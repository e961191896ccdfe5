"""API route modules."""

from a2a_runtime.api.routes import jsonrpc, rest

__all__ = ["jsonrpc", "rest"]
