"""
Events API

Server-Sent Events endpoint for following a project's runs live.
"""
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from ..events import EventPublisher
from .deps import get_publisher, valid_project_id

router = APIRouter(prefix="/projects/{project_id}", tags=["events"])

KEEPALIVE_SECONDS = 15.0


@router.get("/events")
async def stream_events(
    request: Request,
    replay: bool = Query(True),
    project_id: str = Depends(valid_project_id),
    publisher: EventPublisher = Depends(get_publisher),
):
    """
    Stream pipeline events for a project using Server-Sent Events.

    Connect to this endpoint to receive updates about:
    - Platform clarification and build info
    - Intent classification
    - File generation and writes
    - Mockup images

    With `replay` (the default) a run already in flight is replayed from
    its first event.
    """
    async def event_generator():
        async for event in publisher.subscribe(project_id, replay=replay, keepalive=KEEPALIVE_SECONDS):
            if await request.is_disconnected():
                break
            yield event

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        }
    )
