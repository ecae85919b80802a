"""Dialect tables and migration SQL generation."""

from dbschema.sql.dialects import Dialect, quote_identifier, strip_identity
from dbschema.sql.generator import (
    NO_CHANGES,
    JoinTable,
    MigrationGenerator,
    MigrationScript,
    generate_migration,
)

__all__ = [
    "Dialect",
    "quote_identifier",
    "strip_identity",
    "NO_CHANGES",
    "JoinTable",
    "MigrationGenerator",
    "MigrationScript",
    "generate_migration",
]
