"""Server-Sent Events framing for pipeline progress.

Each :class:`ProgressEvent` becomes one frame::

    event: progress
    data: {"message": "...", "progress": 50, "result": {...}}

:func:`stream_progress` turns an event iterator into the response body.  A
frame that cannot be encoded is logged and skipped; an exception escaping
the iterator ends the stream with a single 0% error frame.
"""

import json
import logging
import math
from typing import AsyncGenerator, AsyncIterator

from metagen.models.result import ProgressEvent

logger = logging.getLogger(__name__)

EVENT_NAME = "progress"
MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    # Stop nginx-style proxies from buffering the stream
    "X-Accel-Buffering": "no",
}


def percent(done: int, total: int) -> int:
    """Whole-number percentage of *done* out of *total*, halves rounded up."""
    if total <= 0:
        return 100
    return min(100, math.floor(done / total * 100 + 0.5))


def format_sse(event: ProgressEvent, event_name: str = EVENT_NAME) -> str:
    data = json.dumps(event.to_payload(), ensure_ascii=False)
    return f"event: {event_name}\ndata: {data}\n\n"


async def stream_progress(events: AsyncGenerator[ProgressEvent, None]) -> AsyncIterator[str]:
    try:
        async for event in events:
            try:
                frame = format_sse(event)
            except (TypeError, ValueError):
                logger.exception("Could not encode progress frame: %s", event.message)
                continue
            yield frame
    except Exception as exc:
        logger.exception("Metadata pipeline failed")
        yield format_sse(ProgressEvent(message=f"Error: {exc}", progress=0))
    finally:
        await events.aclose()
