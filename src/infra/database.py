"""
Database engine management - SQLAlchemy.
"""

from typing import Optional

from loguru import logger
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from src.config.settings import settings


def create_database_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an SQLAlchemy engine for the refinement executor.

    In-memory SQLite gets a StaticPool so every connection sees the same
    database; server databases get a pre-pinged connection pool.

    Args:
        database_url: SQLAlchemy URL
        echo: Set to True for SQL query logging

    Returns:
        SQLAlchemy Engine
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        engine = create_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
    elif database_url.startswith("sqlite"):
        engine = create_engine(database_url, connect_args={"check_same_thread": False}, echo=echo)
    else:
        engine = create_engine(
            database_url,
            pool_pre_ping=True,      # Verify connections before using
            pool_recycle=3600,       # Recycle connections after 1 hour
            pool_size=5,             # Connection pool size
            max_overflow=10,         # Max overflow connections
            echo=echo,
        )

    logger.info(f"Created engine: {engine.url.render_as_string(hide_password=True)}")
    return engine


def check_connection(engine: Engine) -> bool:
    """Test database connection"""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.success(f"✅ Connected to {engine.dialect.name}")
        return True
    except SQLAlchemyError as e:
        logger.error(f"❌ Failed to connect: {e}")
        return False


# Global engine instance (lazy initialization)
_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """Get or create global engine from settings.database_url"""
    global _engine
    if _engine is None:
        _engine = create_database_engine(settings.database_url)
    return _engine


def reset_engine() -> None:
    """Dispose the global engine (tests, reconfiguration)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None
