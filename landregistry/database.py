"""
Land Registry API - Database Connection
SQLAlchemy setup (PostgreSQL in production, SQLite for local runs and tests)
"""

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from landregistry.config import settings

logger = logging.getLogger(__name__)

# SQLite sessions are handed between the threadpool and the event loop
connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(
    settings.database_url,
    poolclass=NullPool,
    connect_args=connect_args,
    echo=False,
)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Base for ORM models
Base = declarative_base()


def get_db():
    """
    Dependency yielding a database session.
    Usage: db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Creates every table.
    Development only - production schemas are managed by migrations.
    """
    # Registers the models on Base.metadata
    import landregistry.models  # noqa: F401

    if settings.uses_postgis:
        with engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
    Base.metadata.create_all(bind=engine)


def check_db_connection() -> bool:
    """
    Checks that the database answers.
    Used by health checks.
    """
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error("Database connection error: %s", e)
        return False
