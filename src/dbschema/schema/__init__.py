"""Live-database side: catalog snapshot models, introspection, migration.

Usage:
    from dbschema.schema import SchemaIntrospector, build_schema
    from dbschema.schema.migrator import migrate
"""

from dbschema.schema.catalog import build_schema, parse_mysql_default, parse_pg_default
from dbschema.schema.introspector import MySQLIntrospector, SchemaIntrospector
from dbschema.schema.models import (
    ColumnSchema,
    ConstraintSchema,
    DatabaseSchema,
    MigrationResult,
    TableSchema,
)

__all__ = [
    "build_schema",
    "parse_pg_default",
    "parse_mysql_default",
    "SchemaIntrospector",
    "MySQLIntrospector",
    "ColumnSchema",
    "ConstraintSchema",
    "TableSchema",
    "DatabaseSchema",
    "MigrationResult",
]
