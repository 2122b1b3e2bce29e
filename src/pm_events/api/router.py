"""Server-sent events stream of market/ledger change notifications.

GET /events — text/event-stream; a `: heartbeat` comment is sent on connect
and whenever no event arrives within the heartbeat interval.
"""

from collections.abc import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from src.pm_events.broadcaster import EventBroadcaster, broadcaster

router = APIRouter(tags=["events"])

HEARTBEAT_SECONDS = 15.0


async def event_stream(
    request: Request,
    source: EventBroadcaster,
    heartbeat_seconds: float = HEARTBEAT_SECONDS,
) -> AsyncIterator[str]:
    async with source.subscription() as sub:
        yield ": heartbeat\n\n"
        while not await request.is_disconnected():
            event = await sub.next_event(timeout=heartbeat_seconds)
            yield event.to_sse() if event is not None else ": heartbeat\n\n"


@router.get("/events")
async def stream_events(request: Request) -> StreamingResponse:
    return StreamingResponse(
        event_stream(request, broadcaster),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
