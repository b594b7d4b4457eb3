"""Reconnecting event-stream client.

Keeps one live connection to a topic stream and dispatches application
events by type. On a transport failure the connection is dropped and
retried after min(base * 2**attempt, max) milliseconds. The attempt counter
is only reset by stop() unless reset_backoff_on_success is set, in which
case it also resets whenever a connection opens.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import httpx

from tableside.client.basket import Basket, parse_basket_updates
from tableside.config import settings
from tableside.models.schemas import BasketLine
from tableside.utils.sse import ServerSentEvent, aiter_events

logger = logging.getLogger(__name__)


class StreamClosed(Exception):
    """The server ended the stream or answered with an error status"""


def backoff_delay(attempt: int, base_ms: Optional[int] = None, max_ms: Optional[int] = None) -> int:
    base_ms = settings.reconnect_base_delay_ms if base_ms is None else base_ms
    max_ms = settings.reconnect_max_delay_ms if max_ms is None else max_ms
    return min(base_ms * 2 ** attempt, max_ms)


def _warn(message: Optional[str]) -> None:
    logger.warning(f"Notification: {message}")


def _ignore(*args) -> None:
    pass


@dataclass
class StreamHandlers:
    on_warning: Callable[[Optional[str]], None] = _warn
    on_basket_update: Callable[[List[BasketLine]], None] = _ignore
    on_refresh: Callable[[Any], None] = _ignore
    on_error: Callable[[Exception], None] = _ignore


@dataclass
class StreamState:
    data: Any = None
    error: Optional[Exception] = None
    delays: List[int] = field(default_factory=list)


class ReconnectingEventStream:
    def __init__(self, url: str, handlers: Optional[StreamHandlers] = None,
                 basket: Optional[Basket] = None, client: Optional[httpx.AsyncClient] = None,
                 base_delay_ms: Optional[int] = None, max_delay_ms: Optional[int] = None,
                 reset_backoff_on_success: Optional[bool] = None):
        self.url = url
        self.handlers = handlers or StreamHandlers()
        self.basket = basket if basket is not None else Basket()
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms
        self.reset_backoff_on_success = (
            settings.reconnect_reset_on_success if reset_backoff_on_success is None
            else reset_backoff_on_success
        )
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(10.0, read=60.0))
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task] = None
        self._retry: Optional[asyncio.TimerHandle] = None
        self.attempts = 0
        self.state = StreamState()

    @property
    def connected(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def reconnect_pending(self) -> bool:
        return self._retry is not None

    def start(self) -> None:
        """Open the connection. Must be called from a running event loop."""
        self._loop = asyncio.get_running_loop()
        if self._task is None and self._retry is None:
            self._connect()

    def stop(self) -> None:
        """Cancel any pending reconnect and drop the connection.

        The connection task is cancelled here but the HTTP response is only
        released once the loop runs it; await aclose() to wait for that.
        """
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.attempts = 0

    def set_url(self, url: str) -> None:
        """Switch to another topic stream"""
        self.stop()
        self.url = url
        self.start()

    async def aclose(self) -> None:
        """Stop, wait for the connection to be released and close the client"""
        task = self._task
        self.stop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        if self._owns_client:
            await self._client.aclose()

    def _connect(self) -> None:
        self._task = self._loop.create_task(self._run(self.url))

    async def _run(self, url: str) -> None:
        try:
            async with self._client.stream(
                "GET", url, headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"}
            ) as response:
                if response.status_code != 200:
                    raise StreamClosed(f"Stream answered {response.status_code}")
                logger.info(f"Connected to {url}")
                if self.reset_backoff_on_success:
                    self.attempts = 0
                async for sse in aiter_events(response.aiter_lines()):
                    self.dispatch(sse)
            raise StreamClosed("Stream ended")
        except Exception as e:
            if not isinstance(e, (httpx.HTTPError, StreamClosed)):
                logger.exception(f"Event stream on {url} failed")
            if asyncio.current_task() is self._task:
                self._task = None
                self.handle_error(e)

    def handle_error(self, error: Exception) -> None:
        logger.error(f"Event stream error on {self.url}: {error}")
        self.state.error = error
        try:
            self.handlers.on_error(error)
        except Exception:
            logger.exception("Error handler failed")
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._retry is not None:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        delay = backoff_delay(self.attempts, self.base_delay_ms, self.max_delay_ms)
        self.state.delays.append(delay)
        self._retry = self._loop.call_later(delay / 1000, self._reconnect)

    def _reconnect(self) -> None:
        self.attempts += 1
        self._retry = None
        logger.info(f"Reconnecting... Attempt #{self.attempts}")
        self._connect()

    def dispatch(self, sse: ServerSentEvent) -> None:
        """Route one received event to the handlers.

        Bad payloads and failing handlers are logged and stored on
        state.error; they never end the stream.
        """
        if sse.event != "message":
            return

        try:
            parsed = json.loads(sse.data)
        except ValueError as e:
            logger.error(f"Failed to parse event data: {e}")
            self.state.error = e
            return
        self.state.data = parsed

        try:
            self._route(parsed)
        except Exception as e:
            logger.exception(f"Failed to handle event {sse.data!r}")
            self.state.error = e

    def _route(self, parsed: Any) -> None:
        if not isinstance(parsed, dict):
            # bare refresh signal, e.g. the timestamp sent for empty events
            self.handlers.on_refresh(parsed)
            return

        kind = parsed.get("type")
        if kind == "message":
            self.handlers.on_warning(parsed.get("message"))
        elif kind == "update-basket":
            updates = parse_basket_updates(parsed.get("basketUpdates"))
            self.basket.merge(updates)
            self.handlers.on_basket_update(updates)
        elif kind == "update-order":
            self.handlers.on_refresh(parsed)
        else:
            self.handlers.on_warning(parsed.get("message"))
