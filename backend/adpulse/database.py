"""Database engine and session factories.

WHAT:
    Builds the sync SQLAlchemy engine and session factory from a URL and exposes
    the FastAPI `get_db` dependency.

WHY:
    Engines are not module-level singletons: the application context owns one
    session factory (see adpulse/context.py), so tests can hand in an in-memory
    SQLite factory and the arq worker builds its own.

USAGE:
    engine = create_db_engine(settings.DATABASE_URL)
    SessionLocal = make_session_factory(engine)

    @router.get("/items")
    def get_items(db: Session = Depends(get_db)):
        ...

REFERENCES:
    - adpulse/context.py (owner of the session factory)
    - https://docs.sqlalchemy.org/en/20/orm/session_basics.html
"""

from contextlib import contextmanager
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .errors import ConfigurationError
from .models import Base  # noqa: F401  (single metadata registry)


def create_db_engine(database_url: str) -> Engine:
    """Create the sync engine.

    NOTE: SQLite engines (tests/dev) do not support pool_size/max_overflow.
    """
    if not database_url:
        raise ConfigurationError("DATABASE_URL is not set")

    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_recycle=3600,
        pool_pre_ping=True,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a session from the application context's factory, closing it afterwards."""
    db = request.app.state.context.session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Context manager for sessions outside FastAPI (scheduler, scripts)."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
