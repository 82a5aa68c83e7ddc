"""
Durable work queue on Redis lists.

A delivery is moved atomically from the ready list to a per-consumer
processing list, so competing consumers never receive the same message.
It stays there until acknowledged (removed) or negatively acknowledged
(moved to the dead-letter list, or back to ready when requeued).
"""

import json
import socket
from dataclasses import dataclass
from typing import Optional

from redis.asyncio import Redis

from bedtime.config import config
from bedtime.utils.logging import queue_logger as logger


@dataclass(frozen=True)
class Delivery:
    body: bytes
    queue: str


def default_consumer_name() -> str:
    """Name that survives a restart, so recover_unacked finds the previous run's list."""
    return config.WORKER_CONSUMER_NAME or socket.gethostname()


class StoryBroker:
    """
    Usage:
        broker = StoryBroker(redis, "story-generation")
        await broker.publish_story(story_id)

        delivery = await broker.reserve(timeout=5)
        await broker.ack(delivery)
    """

    def __init__(self, redis: Redis, queue_name: str, consumer_name: Optional[str] = None):
        self.redis = redis
        self.queue_name = queue_name
        self.consumer_name = consumer_name or default_consumer_name()

    @property
    def ready_key(self) -> str:
        return f"queue:{self.queue_name}"

    @property
    def processing_key(self) -> str:
        return f"queue:{self.queue_name}:processing:{self.consumer_name}"

    @property
    def dead_key(self) -> str:
        return f"queue:{self.queue_name}:dead"

    async def publish(self, body: bytes | str):
        if isinstance(body, str):
            body = body.encode("utf-8")
        await self.redis.lpush(self.ready_key, body)

    async def publish_story(self, story_id: str):
        """Queue a story for generation."""
        await self.publish(json.dumps({"storyId": story_id}))
        logger.info("Story queued", story_id=story_id, queue=self.queue_name)

    async def reserve(self, timeout: float) -> Optional[Delivery]:
        """Wait up to timeout seconds for the oldest ready message."""
        body = await self.redis.blmove(
            self.ready_key,
            self.processing_key,
            timeout,
            "RIGHT",
            "LEFT",
        )
        if body is None:
            return None
        return Delivery(body=body, queue=self.queue_name)

    async def ack(self, delivery: Delivery):
        await self.redis.lrem(self.processing_key, 1, delivery.body)

    async def nack(self, delivery: Delivery, requeue: bool = False):
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.lrem(self.processing_key, 1, delivery.body)
            if requeue:
                pipe.rpush(self.ready_key, delivery.body)
            else:
                pipe.lpush(self.dead_key, delivery.body)
            await pipe.execute()

    async def recover_unacked(self) -> int:
        """Return deliveries left unacknowledged by a previous run of this consumer."""
        recovered = 0
        while await self.redis.lmove(self.processing_key, self.ready_key, "RIGHT", "RIGHT"):
            recovered += 1
        if recovered:
            logger.warning(
                "Requeued unacknowledged deliveries",
                count=recovered,
                consumer=self.consumer_name,
            )
        return recovered

    async def pending_count(self) -> int:
        return await self.redis.llen(self.ready_key)

    async def dead_count(self) -> int:
        return await self.redis.llen(self.dead_key)
