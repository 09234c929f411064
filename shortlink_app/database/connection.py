"""
Database engine, session factory and declarative base.

The engine (and its connection pool) is created once when this module is
imported and disposed by the application lifespan on shutdown. Every request
gets its own Session from ``get_db``.
"""

import logging
import sqlite3

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from shortlink_app.config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str) -> Engine:
    """Create an engine with pool settings suitable for the given backend"""
    if database_url.startswith("sqlite"):
        # SQLite connections are shared across the threadpool FastAPI uses
        # for sync work and the activity recorder threads
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": settings.database_pool_timeout},
        )

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_timeout=settings.database_pool_timeout,
    )


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores foreign keys unless asked per connection"""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: one session per request, always closed"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = engine):
    """Create tables for all registered models"""
    # Import models so they're registered with Base
    from shortlink_app import models  # noqa: F401

    Base.metadata.create_all(bind=bind)


def dispose_engine(bind: Engine = engine):
    """Close every pooled connection (process shutdown)"""
    bind.dispose()
    logger.info("Database connection pool closed")


def ping(db) -> bool:
    """One trivial round trip; True when the datastore answered"""
    try:
        return db.execute(text("SELECT 1")).scalar() == 1
    except Exception:
        logger.exception("Database health check failed")
        return False
