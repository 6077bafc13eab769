import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict

from app.errors import StartupFatalError

REQUIRED_POSTGRES_VARS = ("POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_HOST", "POSTGRES_DB")


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    postgres_user: Optional[str] = None
    postgres_password: Optional[str] = None
    postgres_host: Optional[str] = None
    postgres_db: Optional[str] = None
    postgres_port: int = 5432
    database_url: Optional[str] = None

    redis_url: str = "redis://redis:6379/0"
    events_channel: str = "todos.events"

    db_connect_timeout: int = 5
    db_statement_timeout_ms: int = 5000
    db_pool_size: int = 5
    db_pool_timeout: int = 5
    redis_socket_timeout: float = 2.0

    host: str = "0.0.0.0"
    port: int = 3001
    log_level: str = "INFO"


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise StartupFatalError(f"{name} must be an integer, got {raw!r}")


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise StartupFatalError(f"{name} must be a number, got {raw!r}")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from the environment.

    Persistence configuration is mandatory: either DATABASE_URL or all of
    POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_HOST and POSTGRES_DB.
    The bus is optional; REDIS_URL falls back to REDIS_HOST/REDIS_PORT.
    """
    if environ is None:
        environ = os.environ

    database_url = environ.get("DATABASE_URL") or None
    if database_url is None:
        missing = [name for name in REQUIRED_POSTGRES_VARS if not environ.get(name)]
        if missing:
            raise StartupFatalError(
                "Missing required environment variables for PostgreSQL connection: "
                + ", ".join(missing)
            )

    redis_host = environ.get("REDIS_HOST", "redis")
    redis_port = _int(environ, "REDIS_PORT", 6379)
    redis_url = environ.get("REDIS_URL") or f"redis://{redis_host}:{redis_port}/0"

    return Settings(
        postgres_user=environ.get("POSTGRES_USER"),
        postgres_password=environ.get("POSTGRES_PASSWORD"),
        postgres_host=environ.get("POSTGRES_HOST"),
        postgres_db=environ.get("POSTGRES_DB"),
        postgres_port=_int(environ, "POSTGRES_PORT", 5432),
        database_url=database_url,
        redis_url=redis_url,
        events_channel=environ.get("EVENTS_CHANNEL", "todos.events"),
        db_connect_timeout=_int(environ, "DB_CONNECT_TIMEOUT", 5),
        db_statement_timeout_ms=_int(environ, "DB_STATEMENT_TIMEOUT_MS", 5000),
        db_pool_size=_int(environ, "DB_POOL_SIZE", 5),
        db_pool_timeout=_int(environ, "DB_POOL_TIMEOUT", 5),
        redis_socket_timeout=_float(environ, "REDIS_SOCKET_TIMEOUT", 2.0),
        host=environ.get("HOST", "0.0.0.0"),
        port=_int(environ, "PORT", 3001),
        log_level=environ.get("LOG_LEVEL", "INFO"),
    )
