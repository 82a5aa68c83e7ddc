#!/usr/bin/env python3
"""
Story worker process.

Consumes the story generation queue and runs each story through the
pipeline. Several worker processes can share one queue; processes on the
same host need distinct --consumer-name values, and a restarted process
must reuse its name to recover deliveries it left unacknowledged.

Usage:
    python -m bedtime.queue.run_worker
    python -m bedtime.queue.run_worker --prefetch 4
    python -m bedtime.queue.run_worker --queue story-generation --verbose
    python -m bedtime.queue.run_worker --consumer-name worker-2
"""

import argparse
import asyncio
import functools
import signal
import sys

from bedtime.config import config
from bedtime.database import StoryRepository
from bedtime.jobs.contracts import StoryProcessorDeps
from bedtime.jobs.processor import process_story_job
from bedtime.queue.broker import StoryBroker
from bedtime.queue.connection import (
    QUEUE_STORIES,
    close_redis_connection,
    get_redis_connection,
)
from bedtime.queue.consumer import StoryQueueConsumer
from bedtime.storage import S3BlobStore
from bedtime.storyteller.cover import PillowCoverBuilder
from bedtime.storyteller.openai_provider import OpenAIStoryProvider
from bedtime.utils.logging import configure_logging, queue_logger as logger


def build_deps() -> StoryProcessorDeps:
    return StoryProcessorDeps(
        repo=StoryRepository(),
        provider=OpenAIStoryProvider(),
        cover=PillowCoverBuilder(),
        storage=S3BlobStore(),
        fingerprint_window=config.FINGERPRINT_WINDOW,
    )


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the story generation worker")
    parser.add_argument(
        "--queue",
        "-q",
        default=QUEUE_STORIES,
        help=f"Queue to consume (default: {QUEUE_STORIES})"
    )
    parser.add_argument(
        "--prefetch",
        "-p",
        type=int,
        default=config.WORKER_PREFETCH,
        help=f"Max concurrent jobs (default: {config.WORKER_PREFETCH})"
    )
    parser.add_argument(
        "--consumer-name",
        "-c",
        default=config.WORKER_CONSUMER_NAME,
        help="Consumer name owning the processing list (default: hostname)"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    try:
        redis = await get_redis_connection()
    except ConnectionError as e:
        logger.critical("Cannot connect to broker", error=str(e))
        return 1

    broker = StoryBroker(redis, args.queue, consumer_name=args.consumer_name)
    consumer = StoryQueueConsumer(
        broker,
        functools.partial(process_story_job, deps=build_deps()),
        prefetch=args.prefetch,
        poll_timeout=config.WORKER_POLL_TIMEOUT,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, consumer.stop)

    logger.info(
        "Worker started",
        queue=args.queue,
        consumer=broker.consumer_name,
        prefetch=args.prefetch,
        environment=config.ENVIRONMENT,
    )

    try:
        await consumer.run()
    except Exception as e:
        logger.critical("Worker stopped on fatal error", error=str(e))
        return 1
    finally:
        await close_redis_connection()

    logger.info("Worker stopped")
    return 0


def main(argv=None):
    args = parse_args(argv)
    configure_logging("DEBUG" if args.verbose else config.LOG_LEVEL)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
