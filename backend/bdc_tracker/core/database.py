"""
database.py — Database Session & Connection Management

Purpose:
- Create and provide access to the Postgres (Supabase) database.
- Manage SQLAlchemy Engine + Session lifecycle.
- Expose a FastAPI dependency `get_db()` that yields a session per-request.
- Create the schema for local / test databases (`init_db`).

This module does NOT:
- Define ORM models (see bdc_tracker/models/*).
- Perform any queries or business logic.
"""

from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from bdc_tracker.core.config import settings


def normalize_db_url(db_url: str) -> str:
    """Use the psycopg (v3) driver for bare postgresql:// URLs."""
    if db_url.startswith("postgresql://") and "+" not in db_url.split("://")[0]:
        return db_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return db_url


def build_engine(db_url: str) -> Engine:
    return create_engine(
        normalize_db_url(db_url),
        pool_pre_ping=True  # Ensures connections are valid before use
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine
    )


# -----------------------------------------------------------------------------
# SQLAlchemy Engine
# -----------------------------------------------------------------------------

# Only create engine if SUPABASE_DB_URL is provided
db_url = settings.SUPABASE_DB_URL

if not db_url or not db_url.strip():
    engine = None
    SessionLocal = None
else:
    engine = build_engine(db_url)
    SessionLocal = build_session_factory(engine)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create all pipeline tables on the given engine (or the configured one)."""
    from bdc_tracker.models import Base

    target = bind or engine
    if target is None:
        raise RuntimeError("Database is not configured. Please set SUPABASE_DB_URL.")
    Base.metadata.create_all(bind=target)


# -----------------------------------------------------------------------------
# FastAPI Dependency
# -----------------------------------------------------------------------------

def get_db() -> Iterator[Session]:
    """
    FastAPI dependency: yields a database session for the duration of the request.

    Raises:
        RuntimeError: If database is not configured (SUPABASE_DB_URL is empty)
    """
    if SessionLocal is None:
        raise RuntimeError(
            "Database is not configured. Please set SUPABASE_DB_URL environment variable."
        )

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
