"""
Story queue consumer.

Pulls story references from the broker, runs up to `prefetch` jobs
concurrently, and turns each outcome into an acknowledgement: success is
acked, any failure (including a malformed envelope) is nacked without
requeue. Failed stories are compensated by the processor, not replayed.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Set

from pydantic import ValidationError

from bedtime.jobs.errors import MalformedMessageError
from bedtime.jobs.models import StoryJobMessage
from bedtime.queue.broker import Delivery, StoryBroker
from bedtime.utils.logging import queue_logger as logger


StoryHandler = Callable[[str], Awaitable[Any]]


def parse_story_message(body: bytes) -> StoryJobMessage:
    try:
        return StoryJobMessage.model_validate_json(body)
    except ValidationError as e:
        raise MalformedMessageError("Missing storyId") from e


class StoryQueueConsumer:
    """
    Usage:
        consumer = StoryQueueConsumer(broker, handler, prefetch=2)
        await consumer.run()      # until stop() is called
    """

    def __init__(
        self,
        broker: StoryBroker,
        handler: StoryHandler,
        prefetch: int = 2,
        poll_timeout: float = 5,
    ):
        if prefetch < 1:
            raise ValueError("prefetch must be at least 1")
        self.broker = broker
        self.handler = handler
        self.prefetch = prefetch
        self.poll_timeout = poll_timeout

        self._slots = asyncio.Semaphore(prefetch)
        self._tasks: Set[asyncio.Task] = set()
        self._stopping = asyncio.Event()
        self._fatal_error: Optional[BaseException] = None

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def stop(self):
        """Stop receiving; jobs already in flight are allowed to finish."""
        self._stopping.set()

    async def handle_delivery(self, delivery: Delivery) -> bool:
        """Process one delivery and ack or nack it. Returns True on success."""
        story_id = None
        try:
            message = parse_story_message(delivery.body)
            story_id = message.story_id
            logger.info("Processing story", story_id=story_id)
            await self.handler(story_id)
        except Exception as e:
            logger.error(
                "Story failed",
                story_id=story_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self.broker.nack(delivery, requeue=False)
            return False

        await self.broker.ack(delivery)
        logger.info("Completed story", story_id=story_id)
        return True

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        self._slots.release()
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            # ack/nack could not reach the broker
            logger.critical("Broker failure while settling delivery", error=str(error))
            self._fatal_error = error
            self.stop()

    def _spawn(self, delivery: Delivery):
        task = asyncio.create_task(self.handle_delivery(delivery))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    async def _next_delivery(self) -> Optional[Delivery]:
        try:
            return await self.broker.reserve(self.poll_timeout)
        except BaseException:
            self._slots.release()
            raise

    async def run(self):
        """Receive loop. Returns after stop() once in-flight jobs have settled."""
        await self.broker.recover_unacked()
        logger.info(
            "Waiting for messages",
            queue=self.broker.queue_name,
            prefetch=self.prefetch,
        )

        try:
            while not self._stopping.is_set():
                await self._slots.acquire()
                if self._stopping.is_set():
                    self._slots.release()
                    break

                delivery = await self._next_delivery()
                if delivery is None:
                    self._slots.release()
                    continue
                self._spawn(delivery)
        finally:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._fatal_error is not None:
            raise self._fatal_error
