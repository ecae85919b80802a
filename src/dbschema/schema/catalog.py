"""Conversion of a catalog snapshot into the schema AST.

Pure logic -- no database I/O.  The introspectors collect a
``DatabaseSchema`` and hand it to ``build_schema``, which produces a
``SchemaNode`` shaped exactly like parser output so the generator can diff
the two:

- Native column types map to DSL scalars (unknown types become ``string``)
- Native defaults map to ``LiteralDefault`` / ``FunctionDefault``
- Foreign-key columns keep their scalar type and gain ``many_to_one``
  metadata; a virtual relation field named after the referenced table is
  added unless a field of that name already exists
- Join tables (exactly two foreign keys, no data columns) are folded back
  into ``many_to_many`` fields on both participants

Usage:
    from dbschema.schema.catalog import build_schema
    from dbschema.sql.dialects import Dialect

    schema = build_schema(database_schema, Dialect.POSTGRES)
"""

import logging
import re

from dbschema.dsl.nodes import (
    DefaultFunction,
    DefaultValue,
    FieldNode,
    FunctionDefault,
    LiteralDefault,
    ModelNode,
    Relation,
    RelationType,
    ScalarType,
    SchemaNode,
)
from dbschema.schema.models import DatabaseSchema, TableSchema
from dbschema.sql.dialects import Dialect

logger = logging.getLogger(__name__)

# Columns a join table may carry besides its two foreign keys
JOIN_TABLE_BOOKKEEPING = {"created_at", "updated_at"}


# ============================================================================
# Type mapping
# ============================================================================


PG_TYPE_MAP: dict[str, str] = {
    "int2": "int",
    "int4": "int",
    "int8": "int",
    "smallint": "int",
    "integer": "int",
    "bigint": "int",
    "varchar": "string",
    "character varying": "string",
    "bpchar": "string",
    "character": "string",
    "text": "string",
    "uuid": "string",
    "bool": "boolean",
    "boolean": "boolean",
    "real": "float",
    "float4": "float",
    "float8": "float",
    "double precision": "float",
    "numeric": "float",
    "json": "json",
    "jsonb": "json",
    "timestamp": "datetime",
    "timestamptz": "datetime",
    "timestamp without time zone": "datetime",
    "timestamp with time zone": "datetime",
    "date": "date",
}

MYSQL_TYPE_MAP: dict[str, str] = {
    "tinyint": "int",
    "smallint": "int",
    "mediumint": "int",
    "int": "int",
    "integer": "int",
    "bigint": "int",
    "varchar": "string",
    "char": "string",
    "text": "string",
    "tinytext": "string",
    "mediumtext": "string",
    "longtext": "string",
    "enum": "string",
    "float": "float",
    "double": "float",
    "decimal": "float",
    "json": "json",
    "datetime": "datetime",
    "timestamp": "datetime",
    "date": "date",
}


def map_pg_type(data_type: str, udt_name: str = "") -> tuple[str, bool]:
    """Map a postgres ``information_schema`` type to ``(scalar, is_array)``."""
    if data_type.upper() == "ARRAY" and udt_name.startswith("_"):
        return PG_TYPE_MAP.get(udt_name[1:].lower(), "string"), True
    return PG_TYPE_MAP.get(data_type.lower(), "string"), False


def map_mysql_type(data_type: str, column_type: str = "") -> tuple[str, bool]:
    """Map a MySQL ``information_schema`` type to ``(scalar, is_array)``.

    ``tinyint(1)`` is MySQL's boolean.  MySQL has no array columns.
    """
    if column_type.lower().startswith("tinyint(1)"):
        return "boolean", False
    return MYSQL_TYPE_MAP.get(data_type.lower(), "string"), False


# ============================================================================
# Default parsing
# ============================================================================


_PG_NUMBER_RE = re.compile(r"^\(?(-?\d+(?:\.\d+)?)\)?(?:::[\w ]+)?$")
_PG_CAST_STRING_RE = re.compile(r"^'(.*)'::", re.DOTALL)
_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")
_NOW_PREFIXES = ("now()", "current_timestamp", "localtimestamp")
_UUID_FUNCTIONS = ("gen_random_uuid()", "uuid_generate_v4()", "uuid()")


def _number(text: str) -> int | float:
    return float(text) if "." in text else int(text)


def _typed_literal(text: str, field_type: str) -> LiteralDefault:
    """Literal default, converted to a number for numeric columns."""
    if field_type in (ScalarType.INT, ScalarType.FLOAT) and _NUMBER_RE.match(text):
        return LiteralDefault(value=_number(text))
    return LiteralDefault(value=text)


def parse_pg_default(raw: str | None, field_type: str = "") -> DefaultValue | None:
    """Translate a postgres ``column_default`` expression.

    Example:
        >>> parse_pg_default("nextval('user_id_seq'::regclass)")
        FunctionDefault(kind='function', name=<DefaultFunction.AUTOINCREMENT: 'autoincrement'>)
        >>> parse_pg_default("'draft'::character varying").value
        'draft'
    """
    if not raw:
        return None
    expression = raw.strip()
    lowered = expression.lower()

    if lowered.startswith("nextval("):
        return FunctionDefault(name=DefaultFunction.AUTOINCREMENT)
    if lowered in ("true", "false"):
        return LiteralDefault(value=lowered == "true")

    number = _PG_NUMBER_RE.match(expression)
    if number:
        return LiteralDefault(value=_number(number.group(1)))

    cast = _PG_CAST_STRING_RE.match(expression)
    if cast:
        return _typed_literal(cast.group(1).replace("''", "'"), field_type)

    if lowered.startswith(_NOW_PREFIXES):
        return FunctionDefault(name=DefaultFunction.NOW)
    if lowered in _UUID_FUNCTIONS:
        return FunctionDefault(name=DefaultFunction.UUID)

    return LiteralDefault(value=expression)


def parse_mysql_default(
    raw: str | None, extra: str = "", field_type: str = ""
) -> DefaultValue | None:
    """Translate a MySQL ``COLUMN_DEFAULT`` / ``EXTRA`` pair.

    MySQL reports auto-increment in ``EXTRA`` rather than as a default.
    """
    if "auto_increment" in extra.lower():
        return FunctionDefault(name=DefaultFunction.AUTOINCREMENT)
    if raw is None:
        return None

    expression = raw.strip()
    lowered = expression.lower()

    if lowered.startswith(_NOW_PREFIXES):
        return FunctionDefault(name=DefaultFunction.NOW)
    if lowered in _UUID_FUNCTIONS or lowered == "(uuid())":
        return FunctionDefault(name=DefaultFunction.UUID)
    if field_type == ScalarType.BOOLEAN and lowered in ("0", "1", "true", "false"):
        return LiteralDefault(value=lowered in ("1", "true"))

    if len(expression) >= 2 and expression[0] == expression[-1] == "'":
        expression = expression[1:-1].replace("''", "'")
    return _typed_literal(expression, field_type)


# ============================================================================
# Schema construction
# ============================================================================


def pluralize(word: str) -> str:
    """Naive English plural used to name folded many-to-many fields."""
    if word.endswith("y"):
        return word[:-1] + "ies"
    if word.endswith("s"):
        return word
    return word + "s"


def _foreign_keys(table: TableSchema) -> dict[str, str]:
    """Single-column foreign keys of *table*: column -> referenced table."""
    result: dict[str, str] = {}
    for constraint in table.constraints.values():
        if constraint.constraint_type != "FOREIGN KEY" or not constraint.references_table:
            continue
        if len(constraint.columns) == 1:
            result[constraint.columns[0]] = constraint.references_table
    return result


def _build_model(table: TableSchema, dialect: Dialect) -> ModelNode:
    primary: set[str] = set()
    unique: set[str] = set()
    combined_uniques: list[list[str]] = []

    for constraint in table.constraints.values():
        if constraint.constraint_type == "PRIMARY KEY":
            primary.update(constraint.columns)
        elif constraint.constraint_type == "UNIQUE":
            if len(constraint.columns) == 1:
                unique.add(constraint.columns[0])
            else:
                combined_uniques.append(list(constraint.columns))

    foreign_keys = _foreign_keys(table)
    fields: list[FieldNode] = []

    for column in table.columns.values():
        if dialect is Dialect.MYSQL:
            field_type, is_array = map_mysql_type(column.data_type, column.column_type)
            default = parse_mysql_default(column.default, column.extra, field_type)
        else:
            field_type, is_array = map_pg_type(column.data_type, column.udt_name)
            default = parse_pg_default(column.default, field_type)

        relation = None
        if column.name in foreign_keys:
            relation = Relation(type=RelationType.MANY_TO_ONE, foreign_key=column.name)

        is_primary_key = column.name in primary
        fields.append(
            FieldNode(
                name=column.name,
                field_type=field_type,
                is_array=is_array,
                is_primary_key=is_primary_key,
                is_required=not column.is_nullable and not is_primary_key,
                is_unique=column.name in unique and not is_primary_key,
                default=default,
                relation=relation,
            )
        )

    names = {f.name for f in fields}
    for column_name, target in foreign_keys.items():
        if target in names:
            continue
        names.add(target)
        fields.append(
            FieldNode(
                name=target,
                field_type=target,
                relation=Relation(type=RelationType.MANY_TO_ONE, foreign_key=column_name),
            )
        )

    return ModelNode(name=table.name, fields=fields, combined_uniques=combined_uniques)


def _join_participants(table: TableSchema, known: set[str]) -> tuple[str, str] | None:
    """Return the two referenced tables if *table* looks like a join table."""
    foreign_keys = _foreign_keys(table)
    if len(foreign_keys) != 2:
        return None

    primary: set[str] = set()
    for constraint in table.constraints.values():
        if constraint.constraint_type == "PRIMARY KEY":
            primary.update(constraint.columns)

    for name in table.columns:
        if name in foreign_keys or name in primary or name in JOIN_TABLE_BOOKKEEPING:
            continue
        return None

    left, right = foreign_keys.values()
    if left not in known or right not in known or table.name in (left, right):
        return None
    return left, right


def _many_to_many_field(model: ModelNode, target: str, join_table: str) -> FieldNode:
    existing = {f.name for f in model.fields}
    name = pluralize(target).lower()
    if name in existing:
        name = f"{name}_{join_table.strip('_')}"
    return FieldNode(
        name=name,
        field_type=target,
        is_array=True,
        relation=Relation(type=RelationType.MANY_TO_MANY, foreign_key=join_table),
    )


def build_schema(database: DatabaseSchema, dialect: Dialect = Dialect.POSTGRES) -> SchemaNode:
    """Convert a catalog snapshot into a ``SchemaNode``.

    Args:
        database: Tables read by an introspector, in name order.
        dialect: Dialect the snapshot came from (selects type and default
            parsing rules).

    Returns:
        SchemaNode with join tables folded into many-to-many fields.
    """
    models = {name: _build_model(table, dialect) for name, table in database.tables.items()}
    known = set(models)

    join_tables: dict[str, tuple[str, str]] = {}
    for name, table in database.tables.items():
        participants = _join_participants(table, known)
        if participants is not None:
            join_tables[name] = participants

    for join_name, (left, right) in join_tables.items():
        if left in join_tables or right in join_tables:
            continue
        logger.debug("Folding join table %s into %s <-> %s", join_name, left, right)

        left_model = models[left]
        models[left] = left_model.model_copy(
            update={"fields": [*left_model.fields, _many_to_many_field(left_model, right, join_name)]}
        )
        if right != left:
            right_model = models[right]
            models[right] = right_model.model_copy(
                update={
                    "fields": [*right_model.fields, _many_to_many_field(right_model, left, join_name)]
                }
            )
        del models[join_name]

    return SchemaNode(models=list(models.values()))
