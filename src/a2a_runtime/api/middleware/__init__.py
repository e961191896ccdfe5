"""HTTP middleware for the A2A runtime API."""

from a2a_runtime.api.middleware.correlation import CorrelationIdMiddleware
from a2a_runtime.api.middleware.error_handler import setup_error_handlers

__all__ = [
    "CorrelationIdMiddleware",
    "setup_error_handlers",
]
