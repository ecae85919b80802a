"""dbschema: Schema DSL compiler and migration engine.

Compiles a declarative schema source file into a validated AST, renders
dialect-specific SQL, and migrates a live PostgreSQL or MySQL database by
diffing the AST against the introspected catalog.

Usage:
    from dbschema import compile_file, MigrationGenerator, Dialect
    from dbschema import resolve_connection, migrate
    from dbschema import generate_type_module, load_config
"""

__version__ = "0.1.0"

# Front end
from dbschema.compiler import CompileResult, compile_file, compile_source
from dbschema.dsl.nodes import FieldNode, ModelNode, SchemaNode

# Errors
from dbschema.errors import (
    CompileError,
    ConfigurationError,
    DatabaseConnectionError,
    DbSchemaError,
    GenerationError,
    LexError,
    MigrationError,
    SchemaSyntaxError,
    SemanticError,
)

# SQL generation
from dbschema.sql.dialects import Dialect
from dbschema.sql.generator import MigrationGenerator, MigrationScript, generate_migration

# Config
from dbschema.config.loader import load_config
from dbschema.config.models import ProjectConfig

# Factory
from dbschema.factory import ConnectionTarget, get_adapter, get_introspector, resolve_connection

# Live database
from dbschema.schema.introspector import MySQLIntrospector, SchemaIntrospector
from dbschema.schema.migrator import migrate
from dbschema.schema.models import MigrationResult

# Types
from dbschema.typegen import generate_type_module, write_type_module

__all__ = [
    # Front end
    "compile_source",
    "compile_file",
    "CompileResult",
    "SchemaNode",
    "ModelNode",
    "FieldNode",
    # Errors
    "DbSchemaError",
    "DatabaseConnectionError",
    "ConfigurationError",
    "LexError",
    "SchemaSyntaxError",
    "SemanticError",
    "CompileError",
    "GenerationError",
    "MigrationError",
    # SQL generation
    "Dialect",
    "MigrationGenerator",
    "MigrationScript",
    "generate_migration",
    # Config
    "load_config",
    "ProjectConfig",
    # Factory
    "ConnectionTarget",
    "resolve_connection",
    "get_introspector",
    "get_adapter",
    # Live database
    "SchemaIntrospector",
    "MySQLIntrospector",
    "migrate",
    "MigrationResult",
    # Types
    "generate_type_module",
    "write_type_module",
]
