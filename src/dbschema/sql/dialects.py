"""Per-dialect lookup tables for SQL generation.

Two tables drive everything dialect-specific:

- ``TYPE_MAPPINGS[ScalarType][Dialect]`` -- native column type
- ``FUNCTION_DEFAULTS[DefaultFunction][Dialect]`` -- ``DEFAULT`` expression
  (``None`` for ``autoincrement``, which is rendered as identity syntax)

Both are indexed by enums and checked for completeness at import time, so
adding a dialect or scalar type without filling in every cell fails
immediately instead of at generation time.
"""

import re
from enum import Enum

from dbschema.dsl.nodes import DefaultFunction, ScalarType


class Dialect(str, Enum):
    """Target SQL engine family."""

    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"
    GENERIC = "generic"


TYPE_MAPPINGS: dict[ScalarType, dict[Dialect, str]] = {
    ScalarType.INT: {
        Dialect.POSTGRES: "INTEGER",
        Dialect.MYSQL: "INT",
        Dialect.SQLITE: "INTEGER",
        Dialect.GENERIC: "INTEGER",
    },
    ScalarType.STRING: {
        Dialect.POSTGRES: "VARCHAR(255)",
        Dialect.MYSQL: "VARCHAR(255)",
        Dialect.SQLITE: "TEXT",
        Dialect.GENERIC: "VARCHAR(255)",
    },
    ScalarType.FLOAT: {
        Dialect.POSTGRES: "REAL",
        Dialect.MYSQL: "FLOAT",
        Dialect.SQLITE: "REAL",
        Dialect.GENERIC: "FLOAT",
    },
    ScalarType.BOOLEAN: {
        Dialect.POSTGRES: "BOOLEAN",
        Dialect.MYSQL: "TINYINT(1)",
        Dialect.SQLITE: "BOOLEAN",
        Dialect.GENERIC: "BOOLEAN",
    },
    ScalarType.JSON: {
        Dialect.POSTGRES: "JSONB",
        Dialect.MYSQL: "JSON",
        Dialect.SQLITE: "TEXT",
        Dialect.GENERIC: "TEXT",
    },
    ScalarType.DATE: {
        Dialect.POSTGRES: "DATE",
        Dialect.MYSQL: "DATE",
        Dialect.SQLITE: "DATE",
        Dialect.GENERIC: "DATE",
    },
    ScalarType.DATETIME: {
        Dialect.POSTGRES: "TIMESTAMP",
        Dialect.MYSQL: "DATETIME",
        Dialect.SQLITE: "DATETIME",
        Dialect.GENERIC: "DATETIME",
    },
}

FUNCTION_DEFAULTS: dict[DefaultFunction, dict[Dialect, str | None]] = {
    DefaultFunction.NOW: {
        Dialect.POSTGRES: "CURRENT_TIMESTAMP",
        Dialect.MYSQL: "NOW()",
        Dialect.SQLITE: "(DATETIME('now'))",
        Dialect.GENERIC: "CURRENT_TIMESTAMP",
    },
    DefaultFunction.UUID: {
        Dialect.POSTGRES: "gen_random_uuid()",
        Dialect.MYSQL: "(UUID())",
        Dialect.SQLITE: "(HEX(RANDOMBLOB(16)))",
        Dialect.GENERIC: "'uuid_placeholder'",
    },
    DefaultFunction.AUTOINCREMENT: {
        Dialect.POSTGRES: None,
        Dialect.MYSQL: None,
        Dialect.SQLITE: None,
        Dialect.GENERIC: None,
    },
}

# Suffix appended after "PRIMARY KEY" for an autoincrement primary key.
# Postgres is absent: it replaces the whole column with "<name> SERIAL PRIMARY KEY".
IDENTITY_SUFFIXES: dict[Dialect, str] = {
    Dialect.MYSQL: " AUTO_INCREMENT",
    Dialect.SQLITE: " AUTOINCREMENT",
    Dialect.GENERIC: "",
}

# Array column types per dialect; "{}" is replaced by the element type.
ARRAY_TYPES: dict[Dialect, str] = {
    Dialect.POSTGRES: "{}[]",
    Dialect.MYSQL: "JSON",
    Dialect.SQLITE: "TEXT",
    Dialect.GENERIC: "TEXT",
}


def _check_complete() -> None:
    for scalar in ScalarType:
        row = TYPE_MAPPINGS.get(scalar)
        missing = [d.value for d in Dialect if row is None or d not in row]
        if missing:
            raise RuntimeError(f"TYPE_MAPPINGS[{scalar.value}] missing dialects: {missing}")
    for func in DefaultFunction:
        row = FUNCTION_DEFAULTS.get(func)
        missing = [d.value for d in Dialect if row is None or d not in row]
        if missing:
            raise RuntimeError(f"FUNCTION_DEFAULTS[{func.value}] missing dialects: {missing}")
    missing = [d.value for d in Dialect if d not in ARRAY_TYPES]
    if missing:
        raise RuntimeError(f"ARRAY_TYPES missing dialects: {missing}")


_check_complete()


def map_scalar(scalar: ScalarType, dialect: Dialect) -> str:
    """Return the native column type for *scalar* under *dialect*."""
    return TYPE_MAPPINGS[scalar][dialect]


_SERIAL_TYPES = {
    "SMALLSERIAL": "SMALLINT",
    "SERIAL": "INTEGER",
    "BIGSERIAL": "BIGINT",
}
_IDENTITY_MARKERS = ("PRIMARY KEY", "AUTO_INCREMENT", "AUTOINCREMENT")


def strip_identity(sql_type: str) -> str:
    """Reduce an identity column type to its plain storage type.

    ``SERIAL`` -> ``INTEGER``, ``INT PRIMARY KEY AUTO_INCREMENT`` -> ``INT``.
    Used for join-table columns that reference an autoincrement key.
    """
    cleaned = sql_type
    for marker in _IDENTITY_MARKERS:
        cleaned = re.sub(marker, "", cleaned, flags=re.IGNORECASE)
    cleaned = " ".join(cleaned.split())
    return _SERIAL_TYPES.get(cleaned.upper(), cleaned)


def quote_identifier(name: str, dialect: Dialect) -> str:
    """Quote *name* for *dialect* (backticks for MySQL, double quotes otherwise)."""
    if dialect is Dialect.MYSQL:
        return "`" + name.replace("`", "``") + "`"
    return '"' + name.replace('"', '""') + '"'
