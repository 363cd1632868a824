"""
Pipeline Event Publisher

Server-Sent Events (SSE) for live visibility into a project's run pipeline:
intent routing, generation, file commits, memory refresh and images.

A workspace usually opens its stream after posting a message, so the
events of the latest run are kept per project and can be replayed to a
late subscriber.
"""
import asyncio
import json
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional, AsyncGenerator
from dataclasses import dataclass, asdict, field
from enum import Enum

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 256
RECENT_EVENTS = 64
KEEPALIVE = ": keepalive\n\n"


class EventType(str, Enum):
    """Pipeline event types, in the order a run emits them."""
    RUN_STARTED = "run_started"
    CLARIFYING = "clarifying"
    BUILD_INFO_SET = "build_info_set"
    INTENT_CLASSIFIED = "intent_classified"
    MEMORY_UPDATED = "memory_updated"
    GENERATING = "generating"
    FILES_WRITTEN = "files_written"
    IMAGE_GENERATED = "image_generated"
    COMPLETE = "complete"
    ERROR = "error"


TERMINAL_EVENTS = {EventType.COMPLETE.value, EventType.ERROR.value}


@dataclass
class PipelineEvent:
    project_id: str
    event_type: str
    message: str
    turn_id: str  # One id per run
    data: Optional[Dict] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_sse(self) -> str:
        return f"data: {json.dumps(asdict(self))}\n\n"

    @property
    def terminal(self) -> bool:
        return self.event_type in TERMINAL_EVENTS


class EventPublisher:
    """
    Fan-out of pipeline events to SSE subscribers, per project.

    Publishing never waits on a subscriber: each one has a bounded queue and
    events are dropped for a subscriber that has stopped reading. Publishing
    with no subscribers only records the event for replay.
    """

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE, recent: int = RECENT_EVENTS):
        self.queue_size = queue_size
        self._subscribers: Dict[str, List[asyncio.Queue]] = {}
        self._recent: Dict[str, Deque[PipelineEvent]] = {}
        self._recent_size = recent
        self._lock = asyncio.Lock()

    def latest_run(self, project_id: str) -> List[PipelineEvent]:
        """Events of the most recent run for a project (may still be in flight)."""
        recent = self._recent.get(project_id)
        if not recent:
            return []
        turn_id = recent[-1].turn_id
        return [e for e in recent if e.turn_id == turn_id]

    async def subscribe(
        self,
        project_id: str,
        replay: bool = False,
        keepalive: Optional[float] = None,
    ) -> AsyncGenerator[str, None]:
        """
        Subscribe to events for a project. Yields SSE-formatted strings.

        Args:
            project_id: Project to follow
            replay: Send the latest run's events first, unless it already finished
            keepalive: Seconds of silence before an SSE comment line is sent
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)

        async with self._lock:
            self._subscribers.setdefault(project_id, []).append(queue)
            backlog = self.latest_run(project_id) if replay else []

        if backlog and backlog[-1].terminal:
            backlog = []

        try:
            yield f"data: {json.dumps({'event_type': 'connected', 'message': 'Connected to event stream'})}\n\n"

            for event in backlog:
                yield event.to_sse()

            while True:
                if keepalive:
                    try:
                        event = await asyncio.wait_for(queue.get(), timeout=keepalive)
                    except asyncio.TimeoutError:
                        yield KEEPALIVE
                        continue
                else:
                    event = await queue.get()

                if event is None:  # Shutdown signal
                    break
                yield event.to_sse()
        finally:
            async with self._lock:
                queues = self._subscribers.get(project_id)
                if queues and queue in queues:
                    queues.remove(queue)
                    if not queues:
                        del self._subscribers[project_id]

    async def publish(
        self,
        project_id: str,
        event_type: EventType,
        message: str,
        turn_id: str,
        data: Optional[Dict] = None,
    ) -> PipelineEvent:
        """Publish an event to all subscribers of a project."""
        event = PipelineEvent(
            project_id=project_id,
            event_type=event_type.value,
            message=message,
            turn_id=turn_id,
            data=data,
        )

        async with self._lock:
            self._recent.setdefault(project_id, deque(maxlen=self._recent_size)).append(event)
            subscribers = list(self._subscribers.get(project_id, []))

        for queue in subscribers:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Dropping {event_type.value} for a slow subscriber of project {project_id}")

        logger.debug(f"Published {event_type.value} to {len(subscribers)} subscribers: {message}")
        return event

    def subscriber_count(self, project_id: str) -> int:
        return len(self._subscribers.get(project_id, []))

    async def close_all(self, project_id: str):
        """Close all subscriber connections for a project."""
        async with self._lock:
            subscribers = list(self._subscribers.get(project_id, []))
        for queue in subscribers:
            # The shutdown signal must get through even to a full queue
            while True:
                try:
                    queue.put_nowait(None)
                    break
                except asyncio.QueueFull:
                    queue.get_nowait()

    async def forget(self, project_id: str):
        """Close subscribers and drop replay state for a deleted project."""
        await self.close_all(project_id)
        async with self._lock:
            self._recent.pop(project_id, None)


# Global publisher instance
_publisher: Optional[EventPublisher] = None


def get_event_publisher() -> EventPublisher:
    """Get or create the global event publisher."""
    global _publisher
    if _publisher is None:
        _publisher = EventPublisher()
    return _publisher
