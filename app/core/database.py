"""Database engine and session management (PostgreSQL in deployment, SQLite for local runs)."""

from collections.abc import Generator
from functools import lru_cache

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings


def _engine_options(database_url: str, statement_timeout_ms: int = 0) -> dict:
    if database_url.startswith("sqlite://"):
        # Sessions are handed between the event loop and the threadpool.
        options: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            options["poolclass"] = StaticPool
        return options
    options = {"pool_pre_ping": True}
    if statement_timeout_ms > 0:
        # Request handlers wait for their queries; the server bounds how long one may run.
        options["connect_args"] = {"options": f"-c statement_timeout={statement_timeout_ms}"}
    return options


def _build_engine(database_url: str, echo: bool = False, statement_timeout_ms: int = 0) -> Engine:
    return create_engine(database_url, echo=echo, **_engine_options(database_url, statement_timeout_ms))


@lru_cache
def get_engine() -> Engine:
    settings = get_settings()
    return _build_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        statement_timeout_ms=settings.DB_STATEMENT_TIMEOUT_MS,
    )


@lru_cache
def get_session_factory() -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def SessionLocal() -> Session:
    """Open a new session bound to the configured engine."""
    return get_session_factory()()


def get_db() -> Generator[Session, None, None]:
    """Dependency that yields a DB session and closes it when done."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_connected(db: Session) -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
