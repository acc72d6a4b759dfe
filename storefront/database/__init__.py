"""
Database session management
"""

from storefront.database.async_db import (
    AsyncSessionLocal,
    async_engine,
    check_database_health,
    close_db_connections,
    get_async_db,
    get_async_db_context,
)

__all__ = [
    "AsyncSessionLocal",
    "async_engine",
    "check_database_health",
    "close_db_connections",
    "get_async_db",
    "get_async_db_context",
]
