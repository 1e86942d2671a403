"""
Database engine and session management.
Engines are built explicitly by AppContext at startup; nothing connects at import time.
"""

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Base class for declarative models
Base = declarative_base()


def make_engine(database_url: str) -> Engine:
    """Create an engine. SQLite (tests, local runs) gets a thread-shareable pool."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db(request: Request):
    """
    Database session dependency for FastAPI
    Yields a database session and ensures it's closed after use
    """
    db = request.app.state.context.session_factory()
    try:
        yield db
    finally:
        db.close()
