"""FastAPI application factory for the A2A runtime.

This module provides the application factory pattern for exposing a
request handler over JSON-RPC and REST, together with the health and
metrics endpoints.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from a2a_runtime.api.middleware.correlation import CorrelationIdMiddleware
from a2a_runtime.api.middleware.error_handler import setup_error_handlers
from a2a_runtime.api.routes.jsonrpc import router as jsonrpc_router
from a2a_runtime.api.routes.rest import router as rest_router
from a2a_runtime.config import RuntimeConfig
from a2a_runtime.observability.logging import get_logger, setup_logging
from a2a_runtime.observability.metrics import get_metrics_collector
from a2a_runtime.server.request_handler import RequestHandler

logger = get_logger(__name__)

ShutdownHook = Callable[[], Awaitable[None]]


def create_app(
    request_handler: RequestHandler,
    config: Optional[RuntimeConfig] = None,
    shutdown_hooks: Sequence[ShutdownHook] = (),
) -> FastAPI:
    """Create and configure a FastAPI application serving a request handler.

    The application has:
    - CORS and correlation ID middleware
    - Error handlers translating runtime errors into JSON responses
    - The JSON-RPC endpoint at ``POST /`` and REST routes under ``/v1``
    - ``GET /health`` and the Prometheus ``GET /metrics`` endpoint

    Args:
        request_handler: Handler all routes delegate to
        config: Runtime configuration (logging settings are applied at startup)
        shutdown_hooks: Extra coroutines awaited after the handler is closed,
            such as closing a database

    Returns:
        Configured FastAPI application instance

    Examples:
        >>> handler = build_request_handler(EchoAgentExecutor())
        >>> app = create_app(handler)
        >>> # uvicorn.run(app)
    """
    runtime_config = config or RuntimeConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(log_level=runtime_config.log_level, json_logs=runtime_config.json_logs)
        logger.info("application_startup")
        try:
            yield
        finally:
            logger.info("application_shutdown")
            await request_handler.close()
            for hook in shutdown_hooks:
                await hook()
            logger.info("application_shutdown_complete")

    app = FastAPI(
        title="A2A Runtime",
        version="0.1.0",
        description="Agent-to-agent task orchestration over JSON-RPC and REST",
        lifespan=lifespan,
    )
    app.state.request_handler = request_handler

    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)  # type: ignore[arg-type]

    setup_error_handlers(app)

    app.include_router(rest_router)
    app.include_router(jsonrpc_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/metrics")
    async def metrics() -> Response:
        """Prometheus metrics endpoint.

        Returns:
            Metrics in Prometheus exposition format
        """
        metrics_data = get_metrics_collector().generate_metrics()
        return Response(
            content=metrics_data,
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )

    return app
