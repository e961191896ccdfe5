"""REST endpoints mapping resource-style URLs onto the request handler."""

from collections.abc import AsyncIterator
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse, StreamingResponse

from a2a_runtime.api.dependencies import get_call_context, get_request_handler
from a2a_runtime.api.streaming import SSE_HEADERS, format_sse_event, serialize_result
from a2a_runtime.errors import A2AError
from a2a_runtime.observability.logging import get_logger
from a2a_runtime.push.models import PushNotificationConfig, TaskPushNotificationConfig
from a2a_runtime.server.context import ServerCallContext
from a2a_runtime.server.request_handler import RequestHandler
from a2a_runtime.server.requests import (
    DeleteTaskPushNotificationConfigParams,
    GetTaskPushNotificationConfigParams,
    MessageSendParams,
    TaskIdParams,
    TaskQueryParams,
)
from a2a_runtime.tasks.events import Event

logger = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["rest"])


async def _event_stream(events: AsyncIterator[Event]) -> AsyncIterator[str]:
    """Format events as SSE frames named after their kind."""
    try:
        async for event in events:
            yield format_sse_event(event.kind, serialize_result(event))
    except A2AError as e:
        yield format_sse_event("error", {"code": e.code, "message": e.message})
    except Exception:
        logger.exception("rest_stream_failed")
        yield format_sse_event(
            "error", {"code": "internal_error", "message": "An internal server error occurred"}
        )


def _sse_response(events: AsyncIterator[Event]) -> StreamingResponse:
    return StreamingResponse(
        _event_stream(events), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.post("/message:send")
async def send_message(
    params: MessageSendParams,
    handler: RequestHandler = Depends(get_request_handler),
    context: ServerCallContext = Depends(get_call_context),
) -> JSONResponse:
    """Send a message, creating or continuing a task."""
    task = await handler.on_message_send(params, context)
    return JSONResponse(serialize_result(task))


@router.post("/message:stream")
async def stream_message(
    params: MessageSendParams,
    handler: RequestHandler = Depends(get_request_handler),
    context: ServerCallContext = Depends(get_call_context),
) -> StreamingResponse:
    """Send a message and stream the task's events."""
    events = await handler.on_message_send_stream(params, context)
    return _sse_response(events)


@router.post("/tasks/{task_id}:cancel")
async def cancel_task(
    task_id: str,
    handler: RequestHandler = Depends(get_request_handler),
    context: ServerCallContext = Depends(get_call_context),
) -> JSONResponse:
    task = await handler.on_cancel_task(TaskIdParams(id=task_id), context)
    return JSONResponse(serialize_result(task))


@router.get("/tasks/{task_id}:subscribe")
async def subscribe_task(
    task_id: str,
    handler: RequestHandler = Depends(get_request_handler),
    context: ServerCallContext = Depends(get_call_context),
) -> StreamingResponse:
    """Re-attach an event stream to a live task."""
    events = await handler.on_resubscribe(TaskIdParams(id=task_id), context)
    return _sse_response(events)


@router.get("/tasks/{task_id}")
async def get_task(
    task_id: str,
    history_length: Optional[int] = Query(None, ge=0, alias="historyLength"),
    handler: RequestHandler = Depends(get_request_handler),
    context: ServerCallContext = Depends(get_call_context),
) -> JSONResponse:
    task = await handler.on_get_task(
        TaskQueryParams(id=task_id, history_length=history_length), context
    )
    return JSONResponse(serialize_result(task))


@router.post("/tasks/{task_id}/pushNotificationConfigs")
async def set_push_notification_config(
    task_id: str,
    config: PushNotificationConfig,
    handler: RequestHandler = Depends(get_request_handler),
    context: ServerCallContext = Depends(get_call_context),
) -> JSONResponse:
    """Register a webhook for a task."""
    stored = await handler.on_set_push_notification_config(
        TaskPushNotificationConfig(task_id=task_id, push_notification_config=config), context
    )
    return JSONResponse(serialize_result(stored), status_code=201)


@router.get("/tasks/{task_id}/pushNotificationConfigs")
async def list_push_notification_configs(
    task_id: str,
    handler: RequestHandler = Depends(get_request_handler),
    context: ServerCallContext = Depends(get_call_context),
) -> JSONResponse:
    configs: list[Any] = await handler.on_list_push_notification_configs(
        TaskIdParams(id=task_id), context
    )
    return JSONResponse(serialize_result(configs))


@router.get("/tasks/{task_id}/pushNotificationConfigs/{config_id}")
async def get_push_notification_config(
    task_id: str,
    config_id: str,
    handler: RequestHandler = Depends(get_request_handler),
    context: ServerCallContext = Depends(get_call_context),
) -> JSONResponse:
    config = await handler.on_get_push_notification_config(
        GetTaskPushNotificationConfigParams(id=task_id, push_notification_config_id=config_id),
        context,
    )
    return JSONResponse(serialize_result(config))


@router.delete("/tasks/{task_id}/pushNotificationConfigs/{config_id}", status_code=204)
async def delete_push_notification_config(
    task_id: str,
    config_id: str,
    handler: RequestHandler = Depends(get_request_handler),
    context: ServerCallContext = Depends(get_call_context),
) -> Response:
    await handler.on_delete_push_notification_config(
        DeleteTaskPushNotificationConfigParams(id=task_id, push_notification_config_id=config_id),
        context,
    )
    return Response(status_code=204)
