"""Error handling for the FastAPI application.

Converts runtime errors and validation errors into JSON responses with
the status code each error declares.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from a2a_runtime.errors import A2AError
from a2a_runtime.observability.logging import get_logger

logger = get_logger(__name__)


def format_validation_errors(errors: list[Any]) -> list[dict[str, Any]]:
    """Flatten pydantic error entries into field/message pairs."""
    return [
        {"field": ".".join(str(loc) for loc in error["loc"]), "message": error["msg"]}
        for error in errors
    ]


def setup_error_handlers(app: FastAPI) -> None:
    """Configure exception handlers for the FastAPI application.

    Args:
        app: The FastAPI application instance to configure
    """

    @app.exception_handler(A2AError)
    async def handle_a2a_error(request: Request, exc: A2AError) -> JSONResponse:
        """Handle A2AError exceptions and subclasses.

        Returns:
            JSONResponse with the error's status code, code and message
        """
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request body, path and query validation failures."""
        return JSONResponse(
            status_code=400,
            content={
                "code": "validation_error",
                "message": "Request validation failed",
                "errors": format_validation_errors(list(exc.errors())),
            },
        )

    @app.exception_handler(PydanticValidationError)
    async def handle_validation_error(
        request: Request, exc: PydanticValidationError
    ) -> JSONResponse:
        """Handle Pydantic validation errors raised while building models."""
        return JSONResponse(
            status_code=400,
            content={
                "code": "validation_error",
                "message": "Request validation failed",
                "errors": format_validation_errors(list(exc.errors())),
            },
        )

    @app.exception_handler(Exception)
    async def handle_generic_error(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions with a generic error response.

        Logs the exception details and returns a generic 500 error to avoid
        exposing internal implementation details to clients.
        """
        logger.exception("unexpected_error", path=request.url.path)

        return JSONResponse(
            status_code=500,
            content={"code": "internal_error", "message": "An internal server error occurred"},
        )
