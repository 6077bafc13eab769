from typing import List, NamedTuple, Optional

from sqlalchemy import insert, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.db import todos
from app.errors import PersistenceError, TodoNotFoundError
from app.logging_config import get_logger
from app.models import TodoResponse

logger = get_logger(__name__)


class CreatedTodo(NamedTuple):
    todo: TodoResponse
    todos: List[TodoResponse]


def _to_todo(row) -> TodoResponse:
    return TodoResponse(id=row.id, task=row.task, done=bool(row.done))


class TodoRepository:
    """SQL access to the todos table.

    Every method runs a single statement (create runs an insert followed by
    a read) and wraps driver errors in PersistenceError. Nothing is retried.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def ping(self):
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise PersistenceError("Store probe failed", original_error=e)

    def list(self) -> List[TodoResponse]:
        query = select(todos.c.id, todos.c.task, todos.c.done).order_by(todos.c.id.asc())
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to list todos", original_error=e)
        return [_to_todo(row) for row in rows]

    def get(self, todo_id: int) -> Optional[TodoResponse]:
        query = select(todos.c.id, todos.c.task, todos.c.done).where(todos.c.id == todo_id)
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read todo {todo_id}", original_error=e)
        return _to_todo(row) if row is not None else None

    def create(self, task: str) -> CreatedTodo:
        """Insert a todo with done=false and return it with the refreshed list."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(insert(todos).values(task=task, done=False))
                new_id = result.inserted_primary_key[0]
        except SQLAlchemyError as e:
            raise PersistenceError("Failed to insert todo", original_error=e)

        # a concurrent writer may land between the insert and this read;
        # only the returned snapshot is affected
        current = self.list()
        created = next(
            (todo for todo in current if todo.id == new_id),
            TodoResponse(id=new_id, task=task, done=False),
        )
        return CreatedTodo(todo=created, todos=current)

    def set_done(self, todo_id: int, done: bool) -> TodoResponse:
        statement = (
            update(todos)
            .where(todos.c.id == todo_id)
            .values(done=done)
            .returning(todos.c.id, todos.c.task, todos.c.done)
        )
        try:
            with self.engine.begin() as conn:
                row = conn.execute(statement).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update todo {todo_id}", original_error=e)
        if row is None:
            raise TodoNotFoundError(todo_id)
        return _to_todo(row)
