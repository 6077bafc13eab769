import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.db import ensure_schema
from app.events import Publisher
from app.main import create_app
from app.repository import TodoRepository


class RecordingPublisher(Publisher):
    def __init__(self):
        self.events = []

    def publish(self, event_type, todo):
        self.events.append((event_type, todo))


def memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def engine():
    engine = memory_engine()
    ensure_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def unreachable_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'todos.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def repository(engine):
    return TodoRepository(engine)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def client(repository, publisher):
    with TestClient(create_app(repository=repository, publisher=publisher)) as c:
        yield c
