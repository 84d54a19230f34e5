"""
Database Connection and Utilities

Manages the PostgreSQL connection used by the enrollment service.
"""

from shared.database.postgres import (
    Base,
    close_db,
    get_engine,
    get_session_factory,
    init_db,
)

__all__ = [
    "init_db",
    "close_db",
    "get_engine",
    "get_session_factory",
    "Base",
]
