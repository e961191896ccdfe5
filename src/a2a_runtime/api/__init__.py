"""HTTP transport adapters (FastAPI) for the A2A runtime."""

from a2a_runtime.api.app import create_app

__all__ = ["create_app"]
