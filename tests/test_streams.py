"""Tests for event stream sessions and frame formatting."""

import asyncio
import json

import pytest

from tableside.core.streams import EventStreamSession, StreamManager, event_stream_response, payload_body
from tableside.utils.sse import format_frame, heartbeat_frame

TOPIC = "orders:customer:42"


async def next_frame(frames, timeout=1.0):
    return await asyncio.wait_for(frames.__anext__(), timeout)


class TestFraming:
    def test_data_frame(self):
        assert format_frame("hello") == "data: hello\n\n"

    def test_heartbeat_frame(self):
        assert heartbeat_frame() == "event: heartbeat\ndata: ping\n\n"

    def test_multiline_data(self):
        assert format_frame("a\nb") == "data: a\ndata: b\n\n"

    def test_empty_payload_becomes_timestamp(self, monkeypatch):
        monkeypatch.setattr("tableside.core.streams.time.time", lambda: 1700000000.5)
        assert payload_body(None) == "1700000000500"
        assert payload_body("") == "1700000000500"

    def test_mapping_payload_is_json(self):
        assert json.loads(payload_body({"type": "message", "message": "hi"})) == {
            "type": "message",
            "message": "hi",
        }


class TestEventStreamSession:
    @pytest.mark.asyncio
    async def test_forwards_published_payload(self, registry):
        session = EventStreamSession(registry, TOPIC, heartbeat_interval=60).open()
        frames = session.frames()

        registry.publish(TOPIC, '{"type":"update-order"}')

        assert await next_frame(frames) == 'data: {"type":"update-order"}\n\n'
        await frames.aclose()

    @pytest.mark.asyncio
    async def test_keeps_publish_order(self, registry):
        session = EventStreamSession(registry, TOPIC, heartbeat_interval=60).open()
        frames = session.frames()

        for i in range(5):
            registry.publish(TOPIC, str(i))

        received = [await next_frame(frames) for _ in range(5)]
        assert received == [f"data: {i}\n\n" for i in range(5)]
        await frames.aclose()

    @pytest.mark.asyncio
    async def test_ignores_other_topics(self, registry):
        session = EventStreamSession(registry, TOPIC, heartbeat_interval=60).open()
        frames = session.frames()

        registry.publish("orders:customer:43", "not for us")
        registry.publish(TOPIC, "for us")

        assert await next_frame(frames) == "data: for us\n\n"
        await frames.aclose()

    @pytest.mark.asyncio
    async def test_accepts_publish_from_worker_thread(self, registry):
        session = EventStreamSession(registry, TOPIC, heartbeat_interval=60).open()
        frames = session.frames()

        await asyncio.to_thread(registry.publish, TOPIC, "from thread")

        assert await next_frame(frames) == "data: from thread\n\n"
        await frames.aclose()

    @pytest.mark.asyncio
    async def test_sends_heartbeats_at_fixed_interval(self, registry):
        loop = asyncio.get_running_loop()
        session = EventStreamSession(registry, TOPIC, heartbeat_interval=0.05).open()
        frames = session.frames()

        started = loop.time()
        beats = [await next_frame(frames) for _ in range(3)]
        elapsed = loop.time() - started

        assert beats == [heartbeat_frame()] * 3
        assert elapsed >= 0.14
        await frames.aclose()

    @pytest.mark.asyncio
    async def test_heartbeats_continue_between_events(self, registry):
        session = EventStreamSession(registry, TOPIC, heartbeat_interval=0.05).open()
        frames = session.frames()

        registry.publish(TOPIC, "event")
        first = await next_frame(frames)
        second = await next_frame(frames)

        assert first == "data: event\n\n"
        assert second == heartbeat_frame()
        await frames.aclose()

    @pytest.mark.asyncio
    async def test_close_unsubscribes_and_stops_heartbeat(self, registry):
        session = EventStreamSession(registry, TOPIC, heartbeat_interval=0.01).open()
        assert registry.listener_count(TOPIC) == 1

        session.close()
        await asyncio.sleep(0.03)

        assert registry.listener_count(TOPIC) == 0
        assert session._heartbeat.cancelled()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, registry):
        closed = []
        session = EventStreamSession(registry, TOPIC, heartbeat_interval=60, on_close=closed.append).open()

        session.close()
        session.close()

        assert closed == [session]
        assert registry.listener_count(TOPIC) == 0

    @pytest.mark.asyncio
    async def test_frames_end_after_close(self, registry):
        session = EventStreamSession(registry, TOPIC, heartbeat_interval=60).open()
        frames = session.frames()
        registry.publish(TOPIC, "last")

        assert await next_frame(frames) == "data: last\n\n"
        session.close()

        with pytest.raises(StopAsyncIteration):
            await next_frame(frames)

    @pytest.mark.asyncio
    async def test_cancelled_consumer_cleans_up(self, registry):
        session = EventStreamSession(registry, TOPIC, heartbeat_interval=60).open()

        async def consume():
            async for _ in session.frames():
                pass

        task = asyncio.create_task(consume())
        await asyncio.sleep(0)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert session.closed
        assert registry.listener_count(TOPIC) == 0


class TestStreamManager:
    @pytest.mark.asyncio
    async def test_tracks_and_closes_sessions(self, registry):
        streams = StreamManager(registry, heartbeat_interval=60)
        streams.open("dashboard:orders")
        streams.open("dashboard:orders")
        streams.open("notifications:waiter")

        stats = streams.get_connection_stats()
        assert stats["total_connections"] == 3
        assert stats["topics"] == {"dashboard:orders": 2, "notifications:waiter": 1}

        assert streams.close_all() == 3
        assert streams.get_connection_stats()["total_connections"] == 0
        assert registry.topics() == []

    @pytest.mark.asyncio
    async def test_closed_session_leaves_manager(self, registry):
        streams = StreamManager(registry, heartbeat_interval=60)
        session = streams.open("dashboard:orders")

        session.close()

        assert session not in streams.sessions

    @pytest.mark.asyncio
    async def test_event_stream_response(self, registry):
        streams = StreamManager(registry, heartbeat_interval=60)

        response = event_stream_response(streams, "dashboard:orders")

        assert response.media_type == "text/event-stream"
        assert response.headers["cache-control"] == "no-cache"
        assert registry.listener_count("dashboard:orders") == 1
        streams.close_all()
