"""Best-effort mutation events.

Events go out at most once over Redis PUBLISH. A missing or broken bus
never fails the request that produced the event.
"""
import json
from abc import ABC, abstractmethod
from typing import Literal, Optional

import redis

from app.config import Settings
from app.errors import NotificationError
from app.logging_config import get_logger
from app.models import TodoResponse

logger = get_logger(__name__)

EventType = Literal["created", "updated"]


def event_payload(event_type: EventType, todo: TodoResponse) -> str:
    return json.dumps({"eventType": event_type, "todo": todo.model_dump()})


class Publisher(ABC):
    @abstractmethod
    def publish(self, event_type: EventType, todo: TodoResponse) -> None:
        ...

    def close(self) -> None:
        pass


class NullPublisher(Publisher):
    """Used when no bus is configured or reachable."""

    def publish(self, event_type: EventType, todo: TodoResponse) -> None:
        logger.debug("No event bus connection; skipping '%s' event for todo %s", event_type, todo.id)


class RedisPublisher(Publisher):
    def __init__(self, client: redis.Redis, channel: str = "todos.events"):
        self.client = client
        self.channel = channel

    def send(self, event_type: EventType, todo: TodoResponse):
        try:
            self.client.publish(self.channel, event_payload(event_type, todo))
        except redis.RedisError as e:
            raise NotificationError(f"Failed to publish '{event_type}' event", original_error=e)

    def publish(self, event_type: EventType, todo: TodoResponse) -> None:
        try:
            self.send(event_type, todo)
        except NotificationError as e:
            logger.warning("%s", e)
            return
        logger.info("Published '%s' event for todo %s to %s", event_type, todo.id, self.channel)

    def close(self) -> None:
        _close_quietly(self.client)


def _close_quietly(client: Optional[redis.Redis]):
    if client is None:
        return
    try:
        client.close()
    except redis.RedisError as e:
        logger.warning("Error closing event bus connection: %s", e)


def connect_publisher(settings: Settings, client: Optional[redis.Redis] = None) -> Publisher:
    """Connect to the bus once. Failure is logged and yields a NullPublisher."""
    try:
        if client is None:
            client = redis.Redis.from_url(
                settings.redis_url,
                socket_timeout=settings.redis_socket_timeout,
                socket_connect_timeout=settings.redis_socket_timeout,
            )
        client.ping()
    except (redis.RedisError, ValueError) as e:
        # from_url raises ValueError for a malformed or non-redis URL
        logger.error("Error connecting to event bus at %s: %s", settings.redis_url, e)
        _close_quietly(client)
        return NullPublisher()
    logger.info("Connected to event bus at %s", settings.redis_url)
    return RedisPublisher(client, settings.events_channel)
