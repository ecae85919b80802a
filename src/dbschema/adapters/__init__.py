"""Migration execution adapters.

Provides the ``MigrationClient`` Protocol and the SQLAlchemy-based
``AsyncMigrationAdapter`` (PostgreSQL via asyncpg, MySQL via aiomysql).

Usage:
    from dbschema.adapters import MigrationClient, AsyncMigrationAdapter
"""

from dbschema.adapters.base import MigrationClient
from dbschema.adapters.engine import (
    AsyncMigrationAdapter,
    create_migration_engine,
    normalize_url,
)

__all__ = [
    "MigrationClient",
    "AsyncMigrationAdapter",
    "create_migration_engine",
    "normalize_url",
]
