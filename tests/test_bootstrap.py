import pytest
from sqlalchemy import inspect, text

from app.db import DEFAULT_TODOS, ensure_schema
from app.errors import StartupFatalError
from app.repository import TodoRepository

from conftest import memory_engine


def test_fresh_store_is_seeded():
    engine = memory_engine()
    ensure_schema(engine)

    todos = TodoRepository(engine).list()
    assert [t.task for t in todos] == list(DEFAULT_TODOS)
    assert [t.id for t in todos] == [1, 2, 3]
    assert not any(t.done for t in todos)


def test_bootstrap_is_idempotent(engine):
    TodoRepository(engine).set_done(1, True)
    ensure_schema(engine)

    todos = TodoRepository(engine).list()
    assert len(todos) == 3
    assert todos[0].done is True


def test_existing_rows_are_not_reseeded():
    engine = memory_engine()
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE todos (id INTEGER PRIMARY KEY AUTOINCREMENT, task TEXT NOT NULL, done BOOLEAN DEFAULT false)"))
        conn.execute(text("INSERT INTO todos (task) VALUES ('Water plants')"))
    ensure_schema(engine)

    assert [t.task for t in TodoRepository(engine).list()] == ["Water plants"]


def test_missing_done_column_is_added():
    engine = memory_engine()
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE todos (id INTEGER PRIMARY KEY AUTOINCREMENT, task TEXT NOT NULL)"))
        conn.execute(text("INSERT INTO todos (task) VALUES ('Legacy row')"))
    ensure_schema(engine)

    columns = {c["name"] for c in inspect(engine).get_columns("todos")}
    assert "done" in columns
    todos = TodoRepository(engine).list()
    assert [(t.task, t.done) for t in todos] == [("Legacy row", False)]


def test_unreachable_store_is_fatal(unreachable_engine):
    with pytest.raises(StartupFatalError):
        ensure_schema(unreachable_engine)
