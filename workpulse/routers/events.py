"""
Server-sent events router — per-user live notification stream.

Endpoints:
    GET /api/events?userId=<id>   → text/event-stream of ``data: <json>\\n\\n`` frames
"""

import json
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sse_starlette.sse import EventSourceResponse, ServerSentEvent
from starlette.background import BackgroundTask

from workpulse.config import settings
from workpulse.dependencies import get_registry
from workpulse.services.registry import SseChannel, SubscriptionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["events"])

FRAME_SEP = "\n"


def frame(data: dict) -> ServerSentEvent:
    return ServerSentEvent(data=json.dumps(data, separators=(",", ":")), sep=FRAME_SEP)


def ping_event() -> ServerSentEvent:
    """Keep-alive frame so proxies and clients do not time the stream out."""
    return frame({"type": "ping"})


def release_channel(registry: SubscriptionRegistry, channel: SseChannel) -> None:
    channel.close()
    registry.unregister(channel.user_id, channel)


async def _release_on_finish(registry: SubscriptionRegistry, channel: SseChannel) -> None:
    # async so Starlette runs it on the event loop, not in a worker thread
    release_channel(registry, channel)


async def channel_stream(
    registry: SubscriptionRegistry, channel: SseChannel
) -> AsyncIterator[ServerSentEvent]:
    """Yield one frame per queued event; unregister when the client goes away."""
    try:
        async for event in channel.events():
            yield frame(event)
    finally:
        release_channel(registry, channel)


@router.get("/events")
async def stream_events(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    registry: SubscriptionRegistry = Depends(get_registry),
) -> EventSourceResponse:
    """Open a live notification stream for ``userId``.

    The keep-alive ping runs inside the response and is cancelled with it;
    the channel is unregistered both when the generator closes and, as a
    fallback, in the response's background task.
    """
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing userId")

    user_id = user_id.strip()
    logger.debug(f"Opening event stream for user {user_id}")
    channel = SseChannel(user_id, maxsize=settings.SSE_QUEUE_SIZE)
    registry.register(user_id, channel)

    return EventSourceResponse(
        channel_stream(registry, channel),
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
        ping=settings.SSE_PING_INTERVAL,
        ping_message_factory=ping_event,
        sep=FRAME_SEP,
        background=BackgroundTask(_release_on_finish, registry, channel),
    )
