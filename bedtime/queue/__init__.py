"""
Redis-backed story queue.

This module provides the durable work queue and its consumer.
"""

from .broker import Delivery, StoryBroker
from .connection import get_redis_connection, close_redis_connection, QUEUE_STORIES
from .consumer import StoryQueueConsumer, parse_story_message

__all__ = [
    "Delivery",
    "StoryBroker",
    "get_redis_connection",
    "close_redis_connection",
    "QUEUE_STORIES",
    "StoryQueueConsumer",
    "parse_story_message",
]
