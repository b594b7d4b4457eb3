"""Server-sent event sessions bound to registry topics."""

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Callable, Dict, Optional, Set

from fastapi import Request
from fastapi.responses import StreamingResponse

from tableside.config import settings
from tableside.core.registry import Subscription, TopicRegistry
from tableside.utils.sse import format_frame, heartbeat_frame

logger = logging.getLogger(__name__)

_CLOSED = object()


def payload_body(payload: Any) -> str:
    """Text body of a data frame; empty payloads become a server timestamp"""
    if not payload:
        return str(int(time.time() * 1000))
    if isinstance(payload, (bytes, bytearray)):
        return payload.decode()
    if isinstance(payload, str):
        return payload
    return json.dumps(payload)


class EventStreamSession:
    """One subscriber on one topic, feeding one outbound connection.

    Frames are queued on the session's event loop; publishers on any thread
    hand them over with call_soon_threadsafe, which keeps FIFO order per
    subscriber.
    """

    def __init__(self, registry: TopicRegistry, topic: str,
                 heartbeat_interval: Optional[float] = None,
                 on_close: Optional[Callable[["EventStreamSession"], None]] = None):
        self.registry = registry
        self.topic = topic
        self.heartbeat_interval = (
            heartbeat_interval if heartbeat_interval is not None
            else settings.heartbeat_interval_seconds
        )
        self._on_close = on_close
        self._queue: asyncio.Queue = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._subscription: Optional[Subscription] = None
        self._heartbeat: Optional[asyncio.Task] = None
        self.opened = False
        self.closed = False

    def open(self) -> "EventStreamSession":
        """Subscribe and start the heartbeat. Must run on the event loop."""
        if self.opened:
            return self
        self._loop = asyncio.get_running_loop()
        self._subscription = self.registry.subscribe(self.topic, self._handle)
        self._heartbeat = self._loop.create_task(self._beat())
        self.opened = True
        logger.info(f"Stream opened on {self.topic}")
        return self

    def _handle(self, payload: Any) -> None:
        frame = format_frame(payload_body(payload))
        self._loop.call_soon_threadsafe(self._enqueue, frame)

    def _enqueue(self, frame: Any) -> None:
        if not self.closed or frame is _CLOSED:
            self._queue.put_nowait(frame)

    async def _beat(self) -> None:
        while True:
            await asyncio.sleep(self.heartbeat_interval)
            self._enqueue(heartbeat_frame())

    async def frames(self) -> AsyncIterator[str]:
        """Yield frames until the session is closed"""
        if not self.opened:
            self.open()
        try:
            while True:
                frame = await self._queue.get()
                if frame is _CLOSED:
                    break
                yield frame
        finally:
            self.close()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._heartbeat is not None:
            self._heartbeat.cancel()
        if self._subscription is not None:
            self._subscription.unsubscribe()
        if self._loop is not None:
            self._queue.put_nowait(_CLOSED)
        if self._on_close is not None:
            self._on_close(self)
        logger.info(f"Stream closed on {self.topic}")


class StreamManager:
    """Keeps track of open sessions so shutdown can close them"""

    def __init__(self, registry: TopicRegistry, heartbeat_interval: Optional[float] = None):
        self.registry = registry
        self.heartbeat_interval = heartbeat_interval
        self.sessions: Set[EventStreamSession] = set()

    def open(self, topic: str) -> EventStreamSession:
        session = EventStreamSession(
            self.registry,
            topic,
            heartbeat_interval=self.heartbeat_interval,
            on_close=self.sessions.discard,
        )
        self.sessions.add(session)
        return session.open()

    def close_all(self) -> int:
        sessions = list(self.sessions)
        for session in sessions:
            session.close()
        return len(sessions)

    def get_connection_stats(self) -> Dict[str, Any]:
        by_topic: Dict[str, int] = {}
        for session in self.sessions:
            by_topic[session.topic] = by_topic.get(session.topic, 0) + 1
        return {
            "total_connections": len(self.sessions),
            "topics": by_topic,
        }


def get_stream_manager(request: Request) -> StreamManager:
    return request.app.state.streams


def event_stream_response(streams: StreamManager, topic: str) -> StreamingResponse:
    session = streams.open(topic)
    return StreamingResponse(
        session.frames(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
