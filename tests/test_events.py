import json

import pytest
import redis

from app.config import Settings
from app.events import (
    NullPublisher,
    Publisher,
    RedisPublisher,
    connect_publisher,
    event_payload,
)
from app.models import TodoResponse

TODO = TodoResponse(id=4, task="Buy milk", done=False)


class StubRedis:
    def __init__(self, fail=False):
        self.fail = fail
        self.published = []
        self.closed = False

    def ping(self):
        if self.fail:
            raise redis.ConnectionError("connection refused")
        return True

    def publish(self, channel, message):
        if self.fail:
            raise redis.ConnectionError("connection refused")
        self.published.append((channel, message))
        return 1

    def close(self):
        self.closed = True


def test_event_payload_shape():
    assert json.loads(event_payload("created", TODO)) == {
        "eventType": "created",
        "todo": {"id": 4, "task": "Buy milk", "done": False},
    }


def test_redis_publisher_sends_to_channel():
    client = StubRedis()
    RedisPublisher(client).publish("updated", TODO)

    [(channel, message)] = client.published
    assert channel == "todos.events"
    assert json.loads(message)["eventType"] == "updated"


def test_publish_failure_is_swallowed():
    client = StubRedis(fail=True)
    RedisPublisher(client).publish("created", TODO)
    assert client.published == []


def test_connect_publisher():
    client = StubRedis()
    publisher = connect_publisher(Settings(events_channel="custom.events"), client=client)

    assert isinstance(publisher, RedisPublisher)
    assert publisher.channel == "custom.events"
    publisher.close()
    assert client.closed


def test_unreachable_bus_falls_back_to_null_publisher():
    publisher = connect_publisher(Settings(), client=StubRedis(fail=True))

    assert isinstance(publisher, NullPublisher)
    publisher.publish("created", TODO)


def test_unreachable_bus_client_is_closed():
    client = StubRedis(fail=True)
    connect_publisher(Settings(), client=client)
    assert client.closed


def test_non_redis_url_falls_back_to_null_publisher():
    publisher = connect_publisher(Settings(redis_url="nats://nats-server:4222"))
    assert isinstance(publisher, NullPublisher)


def test_publisher_requires_publish():
    with pytest.raises(TypeError):
        Publisher()
