from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    MetaData,
    Table,
    Text,
    create_engine,
    func,
    inspect,
    insert,
    select,
    text,
)
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from app.config import Settings
from app.errors import StartupFatalError
from app.logging_config import get_logger

logger = get_logger(__name__)

metadata = MetaData()

todos = Table(
    "todos",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("task", Text, nullable=False),
    Column("done", Boolean, server_default=text("false")),
)

DEFAULT_TODOS = ("Buy groceries", "Read a book", "Exercise for 30 minutes")


def database_url(settings: Settings) -> URL:
    if settings.database_url:
        return make_url(settings.database_url)
    return URL.create(
        "postgresql+psycopg2",
        username=settings.postgres_user,
        password=settings.postgres_password,
        host=settings.postgres_host,
        port=settings.postgres_port,
        database=settings.postgres_db,
    )


def build_engine(settings: Settings) -> Engine:
    """Create the pooled engine shared by every request."""
    url = database_url(settings)
    kwargs = {"pool_pre_ping": True}
    if url.get_backend_name() == "postgresql":
        kwargs.update(
            pool_size=settings.db_pool_size,
            pool_timeout=settings.db_pool_timeout,
            connect_args={
                "connect_timeout": settings.db_connect_timeout,
                "options": f"-c statement_timeout={settings.db_statement_timeout_ms}",
            },
        )
    return create_engine(url, **kwargs)


def ensure_schema(engine: Engine):
    """Create or migrate the todos table and seed it when empty.

    Any failure is fatal: serving with an unknown schema is not allowed.
    """
    try:
        metadata.create_all(engine, tables=[todos], checkfirst=True)

        columns = {column["name"] for column in inspect(engine).get_columns("todos")}
        with engine.begin() as conn:
            if "done" not in columns:
                logger.info('Migrating table: adding "done" column to todos.')
                conn.execute(text("ALTER TABLE todos ADD COLUMN done BOOLEAN DEFAULT false"))

            count = conn.execute(select(func.count()).select_from(todos)).scalar_one()
            if count == 0:
                logger.info("No todos found. Initializing with default values...")
                conn.execute(insert(todos), [{"task": task} for task in DEFAULT_TODOS])
            else:
                logger.info("Todos table already initialized.")
    except SQLAlchemyError as e:
        logger.error("Error initializing the todos table: %s", e)
        raise StartupFatalError("Error initializing the todos table", original_error=e)
