"""JSON-RPC 2.0 endpoint.

A single POST endpoint accepts every A2A method. Unary methods answer with
one JSON-RPC response; streaming methods answer with an SSE stream where
each ``data:`` line is a JSON-RPC response wrapping one event.
"""

from collections.abc import AsyncIterator
from typing import Any, Optional, Union

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from a2a_runtime.api.dependencies import build_call_context, get_request_handler
from a2a_runtime.api.middleware.error_handler import format_validation_errors
from a2a_runtime.api.streaming import SSE_HEADERS, format_sse_event, serialize_result
from a2a_runtime.errors import A2AError
from a2a_runtime.observability.logging import get_logger
from a2a_runtime.server.request_handler import RequestHandler
from a2a_runtime.server.requests import METHODS, STREAMING_METHODS, A2ARequestAdapter
from a2a_runtime.tasks.events import Event

logger = get_logger(__name__)

JSONRPC_PARSE_ERROR = -32700
JSONRPC_INVALID_REQUEST = -32600
JSONRPC_METHOD_NOT_FOUND = -32601
JSONRPC_INVALID_PARAMS = -32602
JSONRPC_INTERNAL_ERROR = -32603

RequestId = Optional[Union[str, int]]

router = APIRouter(tags=["jsonrpc"])


def jsonrpc_result(request_id: RequestId, result: Any) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": serialize_result(result)}


def jsonrpc_error(
    request_id: RequestId, code: int, message: str, data: Optional[Any] = None
) -> dict[str, Any]:
    """Build a JSON-RPC error response body."""
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


def a2a_error_body(request_id: RequestId, error: A2AError) -> dict[str, Any]:
    return jsonrpc_error(request_id, error.jsonrpc_code, error.message, {"code": error.code})


async def _event_stream(request_id: RequestId, events: AsyncIterator[Event]) -> AsyncIterator[str]:
    """Wrap each event into a JSON-RPC response SSE frame."""
    try:
        async for event in events:
            yield format_sse_event(event.kind, jsonrpc_result(request_id, event))
    except A2AError as e:
        yield format_sse_event("error", a2a_error_body(request_id, e))
    except Exception:
        logger.exception("jsonrpc_stream_failed", request_id=request_id)
        yield format_sse_event(
            "error", jsonrpc_error(request_id, JSONRPC_INTERNAL_ERROR, "Internal error")
        )


@router.post("/")
async def handle_jsonrpc(
    request: Request,
    handler: RequestHandler = Depends(get_request_handler),
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> Any:
    """Handle one JSON-RPC request.

    Protocol failures are reported as JSON-RPC errors with HTTP status 200.
    """
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(jsonrpc_error(None, JSONRPC_PARSE_ERROR, "Parse error"))

    if not isinstance(body, dict):
        return JSONResponse(jsonrpc_error(None, JSONRPC_INVALID_REQUEST, "Invalid Request"))

    request_id = body.get("id")
    method = body.get("method")
    if method not in METHODS:
        return JSONResponse(
            jsonrpc_error(request_id, JSONRPC_METHOD_NOT_FOUND, f"Method not found: {method}")
        )

    try:
        a2a_request = A2ARequestAdapter.validate_python(body)
    except ValidationError as e:
        return JSONResponse(
            jsonrpc_error(
                request_id,
                JSONRPC_INVALID_PARAMS,
                "Invalid params",
                {"errors": format_validation_errors(list(e.errors()))},
            )
        )

    try:
        context = build_call_context(x_api_key, x_user_id)
        result = await handler.handle(a2a_request, context)
    except A2AError as e:
        logger.info("jsonrpc_request_failed", method=method, code=e.code)
        return JSONResponse(a2a_error_body(request_id, e))
    except Exception:
        logger.exception("jsonrpc_request_error", method=method)
        return JSONResponse(jsonrpc_error(request_id, JSONRPC_INTERNAL_ERROR, "Internal error"))

    if method in STREAMING_METHODS:
        return StreamingResponse(
            _event_stream(request_id, result),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )
    return JSONResponse(jsonrpc_result(request_id, result))
