"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support
- Credit ledger table definitions
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, Boolean, Index, ForeignKey, CheckConstraint, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func
import logging
import os

from marinova.core.config import settings


logger = logging.getLogger("marinova")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return os.getenv("DATABASE_URL") or settings.DATABASE_URL


def build_engine(url: str):
    """Create an engine with pooling suited to the backend."""
    if url.startswith("sqlite"):
        # Connections are shared between request threads
        return create_engine(url, connect_args={"check_same_thread": False}, echo=False)
    return create_engine(
        url,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=True,
        echo=False,  # Set to True for SQL query logging
    )


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    _engine = build_engine(url)
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session(session_factory=None):
    """
    Context manager for database sessions.

    Commits on success, rolls back on any exception.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = session_factory or get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables(engine=None):
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    metadata.create_all(bind=engine or get_engine())


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    if not get_database_url():
        return False
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return False


# Credit ledgers: one row per user. Monthly pools store -1 for unlimited.
credit_ledgers = Table(
    'credit_ledgers',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('subscription_status', String(50), nullable=False, server_default='free'),
    Column('usage_credits', Integer, nullable=False, server_default='0'),
    Column('weather_brief_credits', Integer, nullable=False, server_default='0'),
    Column('research_lab_credits', Integer, nullable=False, server_default='0'),
    Column('chat_credits', Integer, nullable=False, server_default='0'),
    Column('insights_credits', Integer, nullable=False, server_default='0'),
    Column('credit_reset_date', DateTime(timezone=True), nullable=False),
    Column('is_email_verified', Boolean, nullable=False, server_default='false'),
    # Optimistic concurrency token, bumped on every write
    Column('version', Integer, nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    CheckConstraint('usage_credits >= 0', name='ck_credit_ledgers_usage_credits'),
    CheckConstraint(
        'weather_brief_credits >= -1 AND research_lab_credits >= -1 '
        'AND chat_credits >= -1 AND insights_credits >= -1',
        name='ck_credit_ledgers_monthly_credits',
    ),
    Index('idx_credit_ledgers_status', 'subscription_status'),
)

# Usage history: append-only audit log, ordered by id within a user
usage_history = Table(
    'usage_history',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), ForeignKey('credit_ledgers.user_id'), nullable=False),
    Column('feature', String(50), nullable=False),
    Column('used_at', DateTime(timezone=True), nullable=False),
    Index('idx_usage_history_user_id', 'user_id', 'id'),
    Index('idx_usage_history_used_at', 'used_at'),
)
