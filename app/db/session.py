"""
Database session management using SQLModel.
Provides the engine, table creation and the session dependency for FastAPI routes.
"""

from pathlib import Path
from typing import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from app.core.config import settings

if settings.is_sqlite:
    db_path = settings.SQLALCHEMY_DATABASE_URI.removeprefix("sqlite:///")
    if db_path and db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        settings.SQLALCHEMY_DATABASE_URI,
        echo=settings.DEBUG,
        connect_args={"check_same_thread": False},  # Allow multi-threading for SQLite
    )
else:
    # pool_pre_ping ensures connections are alive before using them
    engine = create_engine(
        settings.SQLALCHEMY_DATABASE_URI,
        echo=settings.DEBUG,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def init_db(bind: Engine | None = None) -> None:
    """Create all tables registered on the SQLModel metadata."""
    # Import models so their tables are registered
    from app.models import book, user  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_session() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session for FastAPI routes.

    Yields:
        Database session instance
    """
    with Session(engine) as session:
        yield session
