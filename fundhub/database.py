"""
FundHub Database Configuration

Engine, session factory and declarative base. Local runs use a SQLite
file (fundhub.db) beside the package; set DATABASE_URL to a PostgreSQL
URL for a managed deployment.

The session is passed explicitly to every crud function; routers obtain
one per request through the get_db() dependency.

Environment:
    DATABASE_URL     any SQLAlchemy URL (default: sqlite file next to this module)
    SQLALCHEMY_ECHO  "true" to log emitted SQL
"""

import os
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase

DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    f"sqlite:///{Path(__file__).parent / 'fundhub.db'}"
)
IS_SQLITE = DATABASE_URL.startswith("sqlite")

engine = create_engine(
    DATABASE_URL,
    # Sync endpoints run in FastAPI's threadpool
    connect_args={"check_same_thread": False} if IS_SQLITE else {},
    pool_pre_ping=True,
    echo=os.environ.get("SQLALCHEMY_ECHO", "false").lower() == "true",
)


if IS_SQLITE:
    @event.listens_for(engine, "connect")
    def _enforce_foreign_keys(dbapi_connection, connection_record):
        """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Base class of the structures, tiers, investors and distributions tables."""


def get_db():
    """Request-scoped session for FastAPI routes; always closed afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create any missing tables. Runs in the application lifespan hook."""
    from . import models  # noqa: F401  registers the mapped classes on Base
    Base.metadata.create_all(bind=engine)
