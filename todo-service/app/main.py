import sys
from contextlib import asynccontextmanager
from typing import Any, List, Optional

import uvicorn
from fastapi import BackgroundTasks, Body, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import Settings, load_settings
from app.db import build_engine, ensure_schema
from app.errors import (
    PersistenceError,
    StartupFatalError,
    TodoNotFoundError,
    TodoValidationError,
)
from app.events import NullPublisher, Publisher, connect_publisher
from app.logging_config import configure_logging, get_logger, log_requests
from app.models import TodoCreate, TodoResponse, TodoUpdate
from app.repository import TodoRepository

logger = get_logger(__name__)

MAX_TODO_ID = 2**31 - 1


class TodoListResponse(BaseModel):
    todos: List[TodoResponse]


class TodoCreatedResponse(BaseModel):
    message: str
    todos: List[TodoResponse]


class TodoUpdatedResponse(BaseModel):
    message: str
    todo: TodoResponse


def get_repository(request: Request) -> TodoRepository:
    return request.app.state.repository


def get_publisher(request: Request) -> Publisher:
    return request.app.state.publisher


def parse_todo_id(raw: str) -> Optional[int]:
    """Return the integer id, or None when raw cannot name a stored row."""
    if not (raw.isascii() and raw.isdigit()):
        return None
    todo_id = int(raw)
    if todo_id < 1 or todo_id > MAX_TODO_ID:
        return None
    return todo_id


def parse_body(model, body: Any):
    """Validate a JSON body against model, raising TodoValidationError."""
    try:
        return model.model_validate(body if isinstance(body, dict) else {})
    except ValidationError as e:
        raise TodoValidationError(e.errors()[0]["msg"])


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("Malformed request to %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Malformed request body"})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(
    repository: Optional[TodoRepository] = None,
    publisher: Optional[Publisher] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Build the application.

    An injected repository is used as-is. Otherwise startup loads settings,
    bootstraps the schema on a fresh pooled engine and connects the event
    bus; any bootstrap failure aborts startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        if app.state.repository is None:
            try:
                current = settings or load_settings()
                configure_logging(current.log_level)
                logger.info("Initializing app...")
                engine = build_engine(current)
                ensure_schema(engine)
            except StartupFatalError as e:
                logger.error("Failed to initialize the app: %s", e)
                if engine is not None:
                    engine.dispose()
                raise
            app.state.repository = TodoRepository(engine)
            if app.state.publisher is None:
                app.state.publisher = connect_publisher(current)
        if app.state.publisher is None:
            app.state.publisher = NullPublisher()
        yield
        app.state.publisher.close()
        if engine is not None:
            engine.dispose()

    app = FastAPI(title="Todo Service", version="1.0.0", lifespan=lifespan)
    app.state.repository = repository
    app.state.publisher = publisher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(log_requests)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/", response_class=PlainTextResponse)
    def health():
        return "OK"

    @app.get("/healthz", response_class=PlainTextResponse)
    def readiness(repository: TodoRepository = Depends(get_repository)):
        try:
            repository.ping()
        except PersistenceError as e:
            logger.error("DB not reachable: %s", e)
            return PlainTextResponse("DB Error", status_code=500)
        return "DB Connected"

    @app.get("/todos", response_model=TodoListResponse)
    def list_todos(repository: TodoRepository = Depends(get_repository)):
        try:
            todos = repository.list()
        except PersistenceError as e:
            logger.error("Error fetching todos: %s", e)
            raise HTTPException(status_code=500, detail="Failed to fetch todos")
        logger.info("Fetched %d todos", len(todos))
        return TodoListResponse(todos=todos)

    @app.post("/todos", status_code=201, response_model=TodoCreatedResponse)
    def create_todo(
        background_tasks: BackgroundTasks,
        body: Any = Body(default=None),
        repository: TodoRepository = Depends(get_repository),
        publisher: Publisher = Depends(get_publisher),
    ):
        try:
            new_todo = parse_body(TodoCreate, body)
        except TodoValidationError as e:
            logger.warning("Invalid todo attempt: %s", e)
            raise HTTPException(status_code=e.status_code, detail=e.message)

        try:
            created = repository.create(new_todo.todo)
        except PersistenceError as e:
            logger.error("Error adding todo: %s", e)
            raise HTTPException(status_code=500, detail="Failed to add todo")

        logger.info('Todo created: "%s"', new_todo.todo)
        background_tasks.add_task(publisher.publish, "created", created.todo)
        return TodoCreatedResponse(message="Todo created", todos=created.todos)

    @app.put("/todos/{todo_id}", response_model=TodoUpdatedResponse)
    def update_todo(
        todo_id: str,
        background_tasks: BackgroundTasks,
        body: Any = Body(default=None),
        repository: TodoRepository = Depends(get_repository),
        publisher: Publisher = Depends(get_publisher),
    ):
        row_id = parse_todo_id(todo_id)
        try:
            try:
                updates = parse_body(TodoUpdate, body)
            except TodoValidationError as e:
                # read-only probe: unknown ids answer 404 whatever the payload
                if row_id is None or repository.get(row_id) is None:
                    raise TodoNotFoundError(todo_id)
                logger.warning("Invalid update for todo %s: %s", todo_id, e)
                raise HTTPException(status_code=e.status_code, detail=e.message)

            if row_id is None:
                raise TodoNotFoundError(todo_id)
            todo = repository.set_done(row_id, updates.done)
        except TodoNotFoundError as e:
            raise HTTPException(status_code=e.status_code, detail="Todo not found")
        except PersistenceError as e:
            logger.error("Error updating todo %s: %s", todo_id, e)
            raise HTTPException(status_code=500, detail="Failed to update todo")

        logger.info("Todo %s marked as %s", todo.id, "done" if todo.done else "not done")
        background_tasks.add_task(publisher.publish, "updated", todo)
        return TodoUpdatedResponse(message="Todo updated", todo=todo)

    return app


app = create_app()


def run():
    try:
        settings = load_settings()
    except StartupFatalError as e:
        configure_logging()
        logger.error("%s", e)
        sys.exit(1)
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
