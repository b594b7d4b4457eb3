import asyncio
import json
import logging
from typing import Any, Optional

import redis
import redis.asyncio as aioredis

from tableside.config import settings
from tableside.core.registry import TopicRegistry

logger = logging.getLogger(__name__)


def encode_payload(payload: Any) -> str:
    """Redis channels carry text; None travels as an empty string"""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload)


class RedisTopicRegistry(TopicRegistry):
    """Topic registry that fans out through Redis pub/sub.

    publish() goes to Redis only. Local listeners are fed by relay(), which
    pattern-subscribes to every prefixed channel, so a process sees its own
    events and those of its peers alike. Still at-most-once: messages sent
    while no relay is connected are lost.
    """

    def __init__(self, url: Optional[str] = None, prefix: Optional[str] = None,
                 client: Optional[redis.Redis] = None):
        super().__init__()
        self.url = url or settings.redis_url
        self.prefix = prefix if prefix is not None else settings.redis_channel_prefix
        self.client = client or redis.Redis.from_url(self.url, decode_responses=True)

    def publish(self, topic: str, payload: Any = None) -> int:
        try:
            receivers = self.client.publish(self.prefix + topic, encode_payload(payload))
        except redis.RedisError:
            # at-most-once: a failed publish drops the event
            logger.exception(f"Failed to publish {topic} to redis")
            return 0
        logger.debug(f"Published {topic} to redis ({receivers} relays)")
        return receivers

    def handle_message(self, message: dict) -> int:
        """Deliver one pub/sub message to local listeners"""
        if message.get("type") != "pmessage":
            return 0
        channel = message["channel"]
        if isinstance(channel, bytes):
            channel = channel.decode()
        topic = channel[len(self.prefix):]
        data = message.get("data") or None
        if isinstance(data, bytes):
            data = data.decode()
        return self._deliver(topic, data)

    async def relay(self) -> None:
        """Run until cancelled, forwarding Redis messages to local listeners"""
        subscriber = aioredis.from_url(self.url, decode_responses=True)
        pubsub = subscriber.pubsub()
        await pubsub.psubscribe(self.prefix + "*")
        logger.info(f"Redis relay listening on {self.prefix}*")
        try:
            async for message in pubsub.listen():
                self.handle_message(message)
        except asyncio.CancelledError:
            logger.info("Redis relay stopped")
            raise
        finally:
            await pubsub.aclose()
            await subscriber.aclose()


def ping_redis(client: Optional[redis.Redis] = None) -> bool:
    client = client or redis.Redis.from_url(settings.redis_url, decode_responses=True)
    try:
        return client.ping()
    except redis.RedisError:
        return False
