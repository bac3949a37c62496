"""
Infrastructure layer - Database engine
"""

from src.infra.database import check_connection, create_database_engine, get_engine, reset_engine

__all__ = [
    "check_connection",
    "create_database_engine",
    "get_engine",
    "reset_engine",
]
