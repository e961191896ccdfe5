"""Server-Sent Events formatting and response serialization helpers."""

import json
from typing import Any

from pydantic import BaseModel

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse_event(event_type: str, data: Any) -> str:
    """Format a Server-Sent Event (SSE) with the given type and data.

    Args:
        event_type: The SSE event type (e.g., "status-update", "error")
        data: The event data, always JSON-serialized

    Returns:
        Formatted SSE string in the format: "event: {type}\\ndata: {json}\\n\\n"

    Examples:
        >>> format_sse_event("status-update", {"taskId": "t1"})
        'event: status-update\\ndata: {"taskId": "t1"}\\n\\n'
    """
    data_json = json.dumps(data)
    return f"event: {event_type}\ndata: {data_json}\n\n"


def serialize_result(result: Any) -> Any:
    """Convert handler results into JSON-compatible wire data.

    Models are dumped with camelCase aliases and without unset optionals.
    """
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(result, list):
        return [serialize_result(item) for item in result]
    return result
