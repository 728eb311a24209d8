"""
Database Configuration and Session Management
"""

from typing import Optional

from sqlalchemy import create_engine, JSON
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from app.config import settings
import logging

logger = logging.getLogger(__name__)

# Set by init_db(); None while the database is unconfigured
engine = None
SessionLocal = None

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONVariant = JSON().with_variant(JSONB(), "postgresql")


def normalize_database_url(url: Optional[str]) -> Optional[str]:
    """Point bare postgresql:// URLs at the psycopg 3 driver."""
    if url and url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def init_db():
    """Create the engine and session factory from DATABASE_URL (no-op when unset)"""
    global engine, SessionLocal

    db_url = normalize_database_url(settings.database_url)
    if not db_url:
        logger.warning("DATABASE_URL not configured - matching endpoints disabled")
        return

    engine = create_engine(
        db_url,
        pool_pre_ping=True,  # Matching runs can sit idle between bursts
        pool_size=5,
        max_overflow=10
    )
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    logger.info("Database engine created for %s", engine.url.render_as_string(hide_password=True))


def get_db():
    """
    Dependency for getting database session
    Usage: db: Session = Depends(get_db)

    Yields None if the database is not configured; routers answer 503.
    """
    if SessionLocal is None:
        yield None
        return

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def insert_for(db: Session, model):
    """
    Dialect-native INSERT that supports ON CONFLICT upserts.

    PostgreSQL in production, SQLite in tests. Both expose
    on_conflict_do_update / on_conflict_do_nothing with the same signature.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Atomic upsert not supported for dialect '{dialect}'")


# Base class for all models
Base = declarative_base()
