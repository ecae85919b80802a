"""Migration SQL generation.

Turns a desired ``SchemaNode`` (and optionally the currently deployed one)
into an ordered list of dialect-specific statements.

Without a previous schema the output creates everything from scratch:

1. Models sorted so every table referenced by a many-to-one / one-to-one
   foreign key is created before the table that references it
2. One ``CREATE TABLE`` per model
3. One ``CREATE TABLE`` per distinct many-to-many pair (join tables)

With a previous schema the two trees are diffed:

- Model only in current -> ``CREATE TABLE`` (FK-ordered)
- Model in both -> ``ADD COLUMN`` / ``DROP COLUMN`` and one ``ALTER`` per
  changed property (nullability, default, type, single-column uniqueness)
- Model only in previous -> ``DROP TABLE``

Join tables are never diffed; a join table the previous schema lacks is
logged as a warning and left alone.

Usage:
    from dbschema.sql.generator import MigrationGenerator
    from dbschema.sql.dialects import Dialect

    generator = MigrationGenerator(schema, Dialect.POSTGRES)
    script = generator.plan(previous_schema)
    print(script.to_sql())
"""

import logging
from dataclasses import dataclass, field

from dbschema.dsl.nodes import (
    FieldNode,
    FunctionDefault,
    LiteralDefault,
    ModelNode,
    RelationType,
    ScalarType,
    SchemaNode,
)
from dbschema.errors import GenerationError
from dbschema.sql.dialects import (
    ARRAY_TYPES,
    FUNCTION_DEFAULTS,
    IDENTITY_SUFFIXES,
    Dialect,
    map_scalar,
    quote_identifier,
    strip_identity,
)

logger = logging.getLogger(__name__)

NO_CHANGES = "-- No changes detected."

_FK_RELATIONS = (RelationType.MANY_TO_ONE, RelationType.ONE_TO_ONE)


# ============================================================================
# Result
# ============================================================================


@dataclass
class MigrationScript:
    """Ordered migration statements for one run.

    Attributes:
        statements: SQL statements in execution order.  Warning comments
            (lines starting with ``--``) are kept in place so the rendered
            script documents what was skipped.
        dialect: Dialect the statements were rendered for.
    """

    statements: list[str] = field(default_factory=list)
    dialect: Dialect = Dialect.GENERIC

    @property
    def is_empty(self) -> bool:
        return not self.statements

    @property
    def executable_statements(self) -> list[str]:
        """Statements to send to the database (warning comments removed)."""
        return [s for s in self.statements if not s.lstrip().startswith("--")]

    @property
    def warnings(self) -> list[str]:
        return [s for s in self.statements if s.lstrip().startswith("--")]

    def to_sql(self) -> str:
        """Render as one ``BEGIN; ... COMMIT;`` script, or the no-changes sentinel."""
        if self.is_empty:
            return NO_CHANGES
        return "BEGIN;\n" + "\n".join(self.statements) + "\nCOMMIT;"


@dataclass
class JoinTable:
    """A many-to-many pair resolved to its implicit join table."""

    name: str
    left: str
    right: str


# ============================================================================
# Ordering
# ============================================================================


def _topological_sort(dependencies: dict[str, set[str]], tables: list[str]) -> list[str]:
    """Topological sort of tables based on FK dependencies.

    Returns tables in forward order: parent tables first, child tables last.
    Ties are broken by the order of *tables*.  Tables caught in a cycle are
    appended in their original order after a warning.

    Args:
        dependencies: FK dependency graph (table -> set of referenced tables).
        tables: List of table names to sort, in declaration order.

    Returns:
        Tables sorted so that parent tables come before child tables.
    """
    # Self references and tables outside the list never block creation
    relevant = {
        t: (dependencies.get(t, set()) & set(tables)) - {t} for t in tables
    }

    sorted_tables: list[str] = []
    placed: set[str] = set()
    remaining = list(tables)

    while remaining:
        ready = [t for t in remaining if relevant[t] <= placed]
        if not ready:
            logger.warning(
                "Foreign-key cycle between tables %s; creating them in declaration order",
                ", ".join(remaining),
            )
            sorted_tables.extend(remaining)
            break
        # Take only the first ready table so ties keep declaration order
        table = ready[0]
        sorted_tables.append(table)
        placed.add(table)
        remaining.remove(table)

    return sorted_tables


def fk_dependencies(schema: SchemaNode) -> dict[str, set[str]]:
    """Build the FK dependency graph: model -> models it references.

    Only relation fields that produce a ``FOREIGN KEY`` constraint count,
    i.e. many-to-one / one-to-one fields with an explicit foreign key whose
    type names a model.  Many-to-many relations are ignored.
    """
    names = set(schema.model_names)
    graph: dict[str, set[str]] = {}
    for model in schema.models:
        deps = graph.setdefault(model.name, set())
        for f in model.fields:
            if _foreign_key_target(f) in names:
                deps.add(f.field_type)
    return graph


def _foreign_key_target(f: FieldNode) -> str | None:
    if (
        f.relation is not None
        and f.relation.type in _FK_RELATIONS
        and f.relation.foreign_key
        and not f.is_column
    ):
        return f.field_type
    return None


def many_to_many_pairs(schema: SchemaNode) -> list[JoinTable]:
    """Collect one ``JoinTable`` per distinct many-to-many model pair.

    The pair key is the two model names sorted, so a relation declared on
    both sides yields a single entry.  The first explicit foreign key found
    on either side names the table; otherwise it is ``_<a>_<b>``.
    """
    tables: dict[tuple[str, str], JoinTable] = {}
    explicit: set[tuple[str, str]] = set()

    for model in schema.models:
        for f in model.fields:
            if f.relation is None or f.relation.type is not RelationType.MANY_TO_MANY:
                continue
            if f.is_column:
                continue
            left, right = sorted((model.name, f.field_type))
            key = (left, right)
            if key not in tables:
                tables[key] = JoinTable(name=f"_{left}_{right}", left=left, right=right)
            if f.relation.foreign_key and key not in explicit:
                tables[key].name = f.relation.foreign_key
                explicit.add(key)

    return list(tables.values())


# ============================================================================
# Generator
# ============================================================================


class MigrationGenerator:
    """Renders CREATE / ALTER / DROP statements for one dialect.

    Args:
        schema: Desired schema (usually parser output).
        dialect: Target dialect.
        quote_identifiers: Quote table and column names.  Off by default so
            the output stays readable; turn it on when models use reserved
            words such as ``user`` or ``order``.
    """

    def __init__(
        self,
        schema: SchemaNode,
        dialect: Dialect = Dialect.GENERIC,
        quote_identifiers: bool = False,
    ) -> None:
        self.schema = schema
        self.dialect = Dialect(dialect)
        self.quote_identifiers = quote_identifiers

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def plan(self, previous: SchemaNode | None = None) -> MigrationScript:
        """Compute the statements that turn *previous* into the desired schema.

        Args:
            previous: Currently deployed schema, or None for a fresh database.

        Returns:
            MigrationScript; empty when nothing differs.

        Raises:
            GenerationError: If a field has an unknown type or a default that
                does not match its type.
        """
        if previous is None:
            statements = self._create_all()
        else:
            statements = self._diff(previous)
        return MigrationScript(statements=statements, dialect=self.dialect)

    def generate_migration(self, previous: SchemaNode | None = None) -> str:
        """Render the full migration script (see ``MigrationScript.to_sql``)."""
        return self.plan(previous).to_sql()

    # ------------------------------------------------------------------
    # Whole-schema creation
    # ------------------------------------------------------------------

    def _create_all(self) -> list[str]:
        statements = [
            self.create_table(self._model(name))
            for name in _topological_sort(
                fk_dependencies(self.schema), self.schema.model_names
            )
        ]
        for join in many_to_many_pairs(self.schema):
            statements.append(self.create_join_table(join))
        return statements

    def _model(self, name: str) -> ModelNode:
        model = self.schema.model(name)
        assert model is not None
        return model

    def create_table(self, model: ModelNode) -> str:
        """Render ``CREATE TABLE`` for one model."""
        parts = [self.column_definition(model, f) for f in model.columns]

        for columns in model.combined_uniques:
            parts.append(f"UNIQUE ({', '.join(self._q(c) for c in columns)})")

        for f in model.fields:
            target = _foreign_key_target(f)
            if target is not None:
                parts.append(
                    f"FOREIGN KEY ({self._q(f.relation.foreign_key)}) "
                    f"REFERENCES {self._q(target)}({self._q('id')})"
                )

        body = ",\n  ".join(parts)
        return f"CREATE TABLE {self._q(model.name)} (\n  {body}\n);"

    def create_join_table(self, join: JoinTable) -> str:
        """Render ``CREATE TABLE`` for a many-to-many join table."""
        left_pk, left_type = self._join_key(join.left)
        right_pk, right_type = self._join_key(join.right)
        a_col = self._q(f"A_{left_pk}")
        b_col = self._q(f"B_{right_pk}")

        parts = [
            f"{a_col} {left_type} NOT NULL",
            f"{b_col} {right_type} NOT NULL",
            f"FOREIGN KEY ({a_col}) REFERENCES {self._q(join.left)}({self._q(left_pk)}) "
            "ON DELETE CASCADE",
            f"FOREIGN KEY ({b_col}) REFERENCES {self._q(join.right)}({self._q(right_pk)}) "
            "ON DELETE CASCADE",
            f"UNIQUE ({a_col}, {b_col})",
        ]
        body = ",\n  ".join(parts)
        return f"CREATE TABLE {self._q(join.name)} (\n  {body}\n);"

    def _join_key(self, model_name: str) -> tuple[str, str]:
        """Primary-key column name and plain storage type for a join participant."""
        model = self.schema.model(model_name)
        pk = model.primary_key if model is not None else None
        if pk is None or not pk.is_column:
            logger.warning(
                "Model '%s' has no scalar primary key; join table assumes 'id int'",
                model_name,
            )
            return "id", map_scalar(ScalarType.INT, self.dialect)
        return pk.name, strip_identity(self.column_type(pk))

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def column_type(self, f: FieldNode) -> str:
        """Native type for a column field.

        ``json[]`` stays a single JSON column; other arrays use the dialect's
        array type.

        Raises:
            GenerationError: If the field type is not a scalar type.
        """
        try:
            scalar = ScalarType(f.field_type)
        except ValueError:
            raise GenerationError(
                f"No SQL type for '{f.field_type}' (field '{f.name}')"
            ) from None

        sql_type = map_scalar(scalar, self.dialect)
        if f.is_array and scalar is not ScalarType.JSON:
            sql_type = ARRAY_TYPES[self.dialect].format(sql_type)
        return sql_type

    def column_definition(self, model: ModelNode, f: FieldNode) -> str:
        """Render one column as it appears inside ``CREATE TABLE``."""
        name = self._q(f.name)
        col = f"{name} {self.column_type(f)}"

        if f.is_primary_key:
            if f.is_autoincrement:
                if self.dialect is Dialect.POSTGRES:
                    return f"{name} SERIAL PRIMARY KEY"
                col += " PRIMARY KEY" + IDENTITY_SUFFIXES[self.dialect]
            else:
                col += " PRIMARY KEY"

        if f.is_unique:
            col += " UNIQUE"

        default = self.default_sql(model, f)
        if default is not None:
            col += f" DEFAULT {default}"

        if f.is_not_null:
            col += " NOT NULL"

        return col

    def default_sql(self, model: ModelNode, f: FieldNode) -> str | None:
        """Render the ``DEFAULT`` expression of a field, or None.

        Raises:
            GenerationError: If a literal default does not match the field's
                scalar type.
        """
        default = f.default
        if default is None:
            return None

        if isinstance(default, FunctionDefault):
            expression = FUNCTION_DEFAULTS[default.name][self.dialect]
            if expression is None and not f.is_primary_key:
                logger.warning(
                    "autoincrement() on non-primary-key column %s.%s ignored",
                    model.name,
                    f.name,
                )
            return expression

        return self._literal_sql(model, f, default)

    def _literal_sql(self, model: ModelNode, f: FieldNode, default: LiteralDefault) -> str:
        value = default.value
        scalar = f.field_type

        if scalar == ScalarType.BOOLEAN and isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, bool):
            pass
        elif scalar == ScalarType.INT and isinstance(value, int):
            return str(value)
        elif scalar == ScalarType.FLOAT and isinstance(value, (int, float)):
            return str(value)
        elif scalar in (
            ScalarType.STRING,
            ScalarType.DATE,
            ScalarType.DATETIME,
            ScalarType.JSON,
        ) and isinstance(value, str):
            escaped = value.replace("'", "''")
            return f"'{escaped}'"

        raise GenerationError(
            f"Default {value!r} does not match type '{scalar}' of "
            f"field '{model.name}.{f.name}'"
        )

    # ------------------------------------------------------------------
    # Diff
    # ------------------------------------------------------------------

    def _diff(self, previous: SchemaNode) -> list[str]:
        statements: list[str] = []
        previous_names = set(previous.model_names)
        current_names = set(self.schema.model_names)

        added = [name for name in self.schema.model_names if name not in previous_names]
        for name in _topological_sort(fk_dependencies(self.schema), added):
            statements.append(self.create_table(self._model(name)))

        for model in self.schema.models:
            before = previous.model(model.name)
            if before is not None:
                statements.extend(self.alter_table(before, model))

        removed = [name for name in previous.model_names if name not in current_names]
        drop_order = reversed(_topological_sort(fk_dependencies(previous), removed))
        for name in drop_order:
            statements.append(f"DROP TABLE {self._q(name)};")

        self._warn_missing_join_tables(previous)
        return statements

    def _warn_missing_join_tables(self, previous: SchemaNode) -> None:
        deployed = {(j.left, j.right) for j in many_to_many_pairs(previous)}
        deployed_names = set(previous.model_names)
        for join in many_to_many_pairs(self.schema):
            if (join.left, join.right) in deployed or join.name in deployed_names:
                continue
            logger.warning(
                "Join table '%s' for %s <-> %s is not deployed; "
                "many-to-many changes are not migrated automatically",
                join.name,
                join.left,
                join.right,
            )

    def alter_table(self, before: ModelNode, after: ModelNode) -> list[str]:
        """Column-level statements turning *before* into *after*."""
        statements: list[str] = []
        table = self._q(after.name)

        for f in after.columns:
            old = before.field(f.name)
            if old is None or not old.is_column:
                statements.append(
                    f"ALTER TABLE {table} ADD COLUMN {self.column_definition(after, f)};"
                )
            else:
                statements.extend(self.alter_column(after, old, f))

        for old in before.columns:
            current = after.field(old.name)
            if current is None or not current.is_column:
                statements.append(f"ALTER TABLE {table} DROP COLUMN {self._q(old.name)};")

        return statements

    def alter_column(self, model: ModelNode, old: FieldNode, new: FieldNode) -> list[str]:
        """One statement (or warning comment) per changed column property."""
        if self.dialect is Dialect.SQLITE:
            return self._alter_column_sqlite(model, old, new)

        statements: list[str] = []
        table = self._q(model.name)
        column = self._q(new.name)

        nullability_changed = old.is_not_null != new.is_not_null
        weakens_pk = nullability_changed and not new.is_not_null and old.is_primary_key
        type_changed = self.column_type(old) != self.column_type(new)

        if weakens_pk:
            statements.append(
                f"-- WARNING: Attempt to DROP NOT NULL on primary key column {new.name} skipped."
            )

        if self.dialect is Dialect.MYSQL:
            # MODIFY COLUMN restates nullability and type together
            if (nullability_changed and not weakens_pk) or type_changed:
                statements.append(
                    f"ALTER TABLE {table} MODIFY COLUMN {self._modify_definition(model, new)};"
                )
        else:
            if nullability_changed and not weakens_pk:
                action = "SET NOT NULL" if new.is_not_null else "DROP NOT NULL"
                statements.append(f"ALTER TABLE {table} ALTER COLUMN {column} {action};")

        if old.default != new.default:
            if old.is_autoincrement or new.is_autoincrement:
                statements.append(
                    f"-- WARNING: autoincrement change on column {new.name} not automated."
                )
            else:
                expression = self.default_sql(model, new)
                if expression is None:
                    statements.append(
                        f"ALTER TABLE {table} ALTER COLUMN {column} DROP DEFAULT;"
                    )
                else:
                    statements.append(
                        f"ALTER TABLE {table} ALTER COLUMN {column} SET DEFAULT {expression};"
                    )

        if type_changed and self.dialect is not Dialect.MYSQL:
            sql_type = self.column_type(new)
            alter = f"ALTER TABLE {table} ALTER COLUMN {column} TYPE {sql_type}"
            if self.dialect is Dialect.POSTGRES and new.field_type == ScalarType.JSON:
                alter += f" USING {column}::{sql_type}"
            statements.append(alter + ";")

        if old.has_unique_constraint != new.has_unique_constraint:
            if new.has_unique_constraint:
                statements.append(f"ALTER TABLE {table} ADD UNIQUE ({column});")
            else:
                statements.append(
                    f"-- WARNING: UNIQUE constraint removal for {new.name} not automated. "
                    "Please drop constraint manually if needed."
                )

        return statements

    def _modify_definition(self, model: ModelNode, f: FieldNode) -> str:
        """Column definition for MySQL ``MODIFY COLUMN`` (no key clauses)."""
        col = f"{self._q(f.name)} {self.column_type(f)}"
        if f.is_primary_key and f.is_autoincrement:
            col += IDENTITY_SUFFIXES[self.dialect]
        default = self.default_sql(model, f)
        if default is not None:
            col += f" DEFAULT {default}"
        if f.is_not_null:
            col += " NOT NULL"
        return col

    def _alter_column_sqlite(self, model: ModelNode, old: FieldNode, new: FieldNode) -> list[str]:
        statements: list[str] = []
        changed: list[str] = []

        if old.is_not_null != new.is_not_null:
            if not new.is_not_null and old.is_primary_key:
                statements.append(
                    f"-- WARNING: Attempt to DROP NOT NULL on primary key column {new.name} skipped."
                )
            else:
                changed.append("nullability")
        if old.default != new.default:
            self.default_sql(model, new)
            changed.append("default")
        if self.column_type(old) != self.column_type(new):
            changed.append("type")

        if changed:
            statements.append(
                f"-- WARNING: SQLite cannot alter {' and '.join(changed)} of column "
                f"{model.name}.{new.name} in place. Rebuild the table manually."
            )

        if old.has_unique_constraint != new.has_unique_constraint:
            if new.has_unique_constraint:
                index = self._q(f"{model.name}_{new.name}_key")
                statements.append(
                    f"CREATE UNIQUE INDEX {index} ON {self._q(model.name)} ({self._q(new.name)});"
                )
            else:
                statements.append(
                    f"-- WARNING: UNIQUE constraint removal for {new.name} not automated. "
                    "Please drop constraint manually if needed."
                )

        return statements

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _q(self, name: str) -> str:
        if self.quote_identifiers:
            return quote_identifier(name, self.dialect)
        return name


def generate_migration(
    schema: SchemaNode,
    previous: SchemaNode | None = None,
    dialect: Dialect = Dialect.GENERIC,
    quote_identifiers: bool = False,
) -> str:
    """Render a migration script in one call."""
    return MigrationGenerator(schema, dialect, quote_identifiers).generate_migration(previous)
