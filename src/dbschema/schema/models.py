"""Pydantic models for catalog snapshots and migration results.

This module contains:
- Catalog models: ColumnSchema, ConstraintSchema, TableSchema, DatabaseSchema
  (raw rows read from a live database, before conversion to the schema AST)
- Result model: MigrationResult

The AST itself lives in dbschema.dsl.nodes.
"""

from pydantic import BaseModel, Field

from dbschema.sql.generator import NO_CHANGES


# ============================================================================
# Catalog Snapshot Models
# ============================================================================


class ColumnSchema(BaseModel):
    """Schema for a database column as reported by the catalog.

    Example:
        >>> col = ColumnSchema(name="id", data_type="integer")
        >>> col.is_nullable
        True
    """

    name: str
    data_type: str
    udt_name: str = ""  # postgres element type for ARRAY columns ("_int4")
    column_type: str = ""  # mysql full type ("tinyint(1)")
    is_nullable: bool = True
    default: str | None = None
    extra: str = ""  # mysql EXTRA ("auto_increment")


class ConstraintSchema(BaseModel):
    """Schema for a database constraint."""

    name: str
    constraint_type: str  # PRIMARY KEY, FOREIGN KEY, UNIQUE
    columns: list[str] = Field(default_factory=list)
    references_table: str | None = None
    references_columns: list[str] | None = None


class TableSchema(BaseModel):
    """Schema for a database table (columns in physical order)."""

    name: str
    columns: dict[str, ColumnSchema] = Field(default_factory=dict)
    constraints: dict[str, ConstraintSchema] = Field(default_factory=dict)


class DatabaseSchema(BaseModel):
    """Complete catalog snapshot (tables ordered by name)."""

    tables: dict[str, TableSchema] = Field(default_factory=dict)


# ============================================================================
# Migration Result
# ============================================================================


class MigrationResult(BaseModel):
    """Result of a migration run.

    Attributes:
        success: True if the script was applied (or nothing needed applying).
        dry_run: True if the script was only rendered.
        script: Full rendered script, or the no-changes sentinel.
        statements_executed: Number of statements sent to the database.
        fresh_database: True if introspection found no models.
        error: Driver error message if applying failed.

    Example:
        >>> result = MigrationResult(success=True, script="-- No changes detected.")
        >>> result.has_changes
        False
    """

    success: bool = False
    dry_run: bool = False
    script: str = ""
    statements_executed: int = 0
    fresh_database: bool = False
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def has_changes(self) -> bool:
        return bool(self.script) and self.script != NO_CHANGES
