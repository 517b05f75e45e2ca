"""Live push channel over Server-Sent Events.

SSE Event Types:
- reading: {deviceId, data, timestamp}
- notification: {category, message, severity, ..., deviceId, notificationId}
- status: {deviceId, status, timestamp}
- ping: keepalive while idle
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from airsense.dependencies import get_broadcaster
from airsense.live import LiveBroadcaster, sse_event

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15

router = APIRouter(prefix="/api", tags=["live"])


@router.get("/live")
async def live(request: Request, broadcaster: LiveBroadcaster = Depends(get_broadcaster)):
    """Stream readings and notifications as they are ingested."""
    queue = broadcaster.subscribe()

    async def event_stream():
        try:
            yield sse_event("connected", {"subscribers": broadcaster.subscriber_count})
            while not await request.is_disconnected():
                try:
                    event, data = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield sse_event("ping", {})
                    continue
                yield sse_event(event, data)
        finally:
            broadcaster.unsubscribe(queue)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
