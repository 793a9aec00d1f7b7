"""Database engine, session factory and request-scoped session dependency."""
from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings


def build_engine(url: str, *, echo: bool = False):
    """Create an engine; SQLite gets a shared in-process pool, PostgreSQL a sized pool."""
    if url.lower().startswith("sqlite"):
        sqlite_engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        @event.listens_for(sqlite_engine, "connect")
        def _register_sqlite_functions(dbapi_connection, _connection_record):
            dbapi_connection.create_function("now", 0, lambda: datetime.utcnow().isoformat(" "))

        return sqlite_engine

    return create_engine(
        url,
        echo=echo,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


engine = build_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
Base = declarative_base()


def get_db() -> Iterator[Session]:
    """Yield a session per request. Uncommitted work is rolled back on close."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
