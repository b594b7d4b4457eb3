"""text/event-stream framing, both directions."""

from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, List, Optional

HEARTBEAT_EVENT = "heartbeat"
HEARTBEAT_DATA = "ping"


def format_frame(data: str, event: Optional[str] = None) -> str:
    lines = []
    if event:
        lines.append(f"event: {event}")
    for line in str(data).splitlines() or [""]:
        lines.append(f"data: {line}")
    return "\n".join(lines) + "\n\n"


def heartbeat_frame() -> str:
    return format_frame(HEARTBEAT_DATA, event=HEARTBEAT_EVENT)


@dataclass
class ServerSentEvent:
    data: str
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None


class EventStreamDecoder:
    """Incremental decoder fed one line at a time (line endings stripped).

    Follows the WHATWG parsing rules: a blank line dispatches the pending
    event, lines starting with ':' are comments, and an event without any
    data line is discarded.
    """

    def __init__(self):
        self._event = ""
        self._data: List[str] = []
        self._id: Optional[str] = None
        self._retry: Optional[int] = None

    def feed(self, line: str) -> Optional[ServerSentEvent]:
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            if "\0" not in value:
                self._id = value
        elif field == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def _dispatch(self) -> Optional[ServerSentEvent]:
        if not self._data:
            self._event = ""
            return None
        sse = ServerSentEvent(
            data="\n".join(self._data),
            event=self._event or "message",
            id=self._id,
            retry=self._retry,
        )
        self._event = ""
        self._data = []
        return sse


async def aiter_events(lines: AsyncIterable[str]) -> AsyncIterator[ServerSentEvent]:
    """Decode a stream of lines into events"""
    decoder = EventStreamDecoder()
    async for line in lines:
        sse = decoder.feed(line)
        if sse is not None:
            yield sse
