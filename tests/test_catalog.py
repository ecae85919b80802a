"""Tests for catalog-to-AST conversion.

Verifies that:
- Native postgres and MySQL types map to DSL scalars
- Native default expressions map back to literal / function defaults
- Foreign keys become many_to_one metadata plus a virtual relation field
- Join tables fold into many_to_many fields on both participants
- An introspected schema diffs cleanly against the schema that created it
"""

import pytest

from dbschema.dsl.lexer import tokenize
from dbschema.dsl.nodes import DefaultFunction, FunctionDefault, LiteralDefault, RelationType
from dbschema.dsl.parser import parse
from dbschema.schema.catalog import (
    build_schema,
    map_mysql_type,
    map_pg_type,
    parse_mysql_default,
    parse_pg_default,
    pluralize,
)
from dbschema.schema.models import (
    ColumnSchema,
    ConstraintSchema,
    DatabaseSchema,
    MigrationResult,
    TableSchema,
)
from dbschema.sql.dialects import Dialect
from dbschema.sql.generator import NO_CHANGES, MigrationGenerator

AUTOINCREMENT = FunctionDefault(name=DefaultFunction.AUTOINCREMENT)
NOW = FunctionDefault(name=DefaultFunction.NOW)
UUID = FunctionDefault(name=DefaultFunction.UUID)


def _table(name: str, columns: list[ColumnSchema], constraints: list[ConstraintSchema]) -> TableSchema:
    return TableSchema(
        name=name,
        columns={c.name: c for c in columns},
        constraints={c.name: c for c in constraints},
    )


def _pk(table: str, column: str = "id") -> ConstraintSchema:
    return ConstraintSchema(name=f"{table}_pkey", constraint_type="PRIMARY KEY", columns=[column])


def _fk(table: str, column: str, target: str) -> ConstraintSchema:
    return ConstraintSchema(
        name=f"{table}_{column}_fkey",
        constraint_type="FOREIGN KEY",
        columns=[column],
        references_table=target,
        references_columns=["id"],
    )


def _serial(name: str = "id") -> ColumnSchema:
    return ColumnSchema(
        name=name,
        data_type="integer",
        udt_name="int4",
        is_nullable=False,
        default=f"nextval('{name}_seq'::regclass)",
    )


# ============================================================
# Test: Type mapping
# ============================================================


class TestTypeMapping:
    """Verify native type mapping."""

    @pytest.mark.parametrize(
        "data_type,udt_name,expected",
        [
            ("integer", "int4", ("int", False)),
            ("character varying", "varchar", ("string", False)),
            ("text", "text", ("string", False)),
            ("boolean", "bool", ("boolean", False)),
            ("real", "float4", ("float", False)),
            ("jsonb", "jsonb", ("json", False)),
            ("timestamp without time zone", "timestamp", ("datetime", False)),
            ("date", "date", ("date", False)),
            ("ARRAY", "_int4", ("int", True)),
            ("ARRAY", "_varchar", ("string", True)),
            ("tsvector", "tsvector", ("string", False)),
        ],
    )
    def test_postgres(self, data_type: str, udt_name: str, expected: tuple) -> None:
        assert map_pg_type(data_type, udt_name) == expected

    @pytest.mark.parametrize(
        "data_type,column_type,expected",
        [
            ("int", "int(11)", ("int", False)),
            ("tinyint", "tinyint(1)", ("boolean", False)),
            ("tinyint", "tinyint(4)", ("int", False)),
            ("varchar", "varchar(255)", ("string", False)),
            ("json", "json", ("json", False)),
            ("datetime", "datetime", ("datetime", False)),
        ],
    )
    def test_mysql(self, data_type: str, column_type: str, expected: tuple) -> None:
        assert map_mysql_type(data_type, column_type) == expected


# ============================================================
# Test: Default parsing
# ============================================================


class TestPostgresDefaults:
    """Verify parse_pg_default."""

    @pytest.mark.parametrize(
        "raw,field_type,expected",
        [
            (None, "int", None),
            ("nextval('user_id_seq'::regclass)", "int", AUTOINCREMENT),
            ("true", "boolean", LiteralDefault(value=True)),
            ("false", "boolean", LiteralDefault(value=False)),
            ("0", "int", LiteralDefault(value=0)),
            ("(-1)", "int", LiteralDefault(value=-1)),
            ("1.5", "float", LiteralDefault(value=1.5)),
            ("'draft'::character varying", "string", LiteralDefault(value="draft")),
            ("'it''s'::text", "string", LiteralDefault(value="it's")),
            ("'5'::integer", "int", LiteralDefault(value=5)),
            ("now()", "datetime", NOW),
            ("CURRENT_TIMESTAMP", "datetime", NOW),
            ("gen_random_uuid()", "string", UUID),
            ("uuid_generate_v4()", "string", UUID),
            ("lower('X'::text)", "string", LiteralDefault(value="lower('X'::text)")),
        ],
    )
    def test_parse(self, raw, field_type: str, expected) -> None:
        assert parse_pg_default(raw, field_type) == expected


class TestMySQLDefaults:
    """Verify parse_mysql_default."""

    def test_auto_increment_from_extra(self) -> None:
        assert parse_mysql_default(None, "auto_increment", "int") == AUTOINCREMENT

    def test_none(self) -> None:
        assert parse_mysql_default(None, "", "string") is None

    def test_current_timestamp(self) -> None:
        assert parse_mysql_default("CURRENT_TIMESTAMP", "DEFAULT_GENERATED", "datetime") == NOW

    def test_uuid(self) -> None:
        assert parse_mysql_default("uuid()", "DEFAULT_GENERATED", "string") == UUID

    def test_boolean(self) -> None:
        assert parse_mysql_default("1", "", "boolean") == LiteralDefault(value=True)
        assert parse_mysql_default("0", "", "boolean") == LiteralDefault(value=False)

    def test_quoted_string(self) -> None:
        assert parse_mysql_default("'draft'", "", "string") == LiteralDefault(value="draft")

    def test_number(self) -> None:
        assert parse_mysql_default("5", "", "int") == LiteralDefault(value=5)


# ============================================================
# Test: Schema construction
# ============================================================


class TestBuildSchema:
    """Verify conversion of a catalog snapshot."""

    def test_pluralize(self) -> None:
        assert pluralize("tag") == "tags"
        assert pluralize("category") == "categories"
        assert pluralize("status") == "status"

    def test_columns_and_constraints(self) -> None:
        db = DatabaseSchema(
            tables={
                "user": _table(
                    "user",
                    [
                        _serial(),
                        ColumnSchema(name="email", data_type="text", is_nullable=False),
                        ColumnSchema(name="bio", data_type="text"),
                    ],
                    [
                        _pk("user"),
                        ConstraintSchema(
                            name="user_email_key", constraint_type="UNIQUE", columns=["email"]
                        ),
                    ],
                )
            }
        )
        user = build_schema(db).model("user")
        assert [f.name for f in user.fields] == ["id", "email", "bio"]
        assert user.field("id").is_primary_key is True
        assert user.field("id").is_required is False
        assert user.field("id").default == AUTOINCREMENT
        assert user.field("email").is_required is True
        assert user.field("email").is_unique is True
        assert user.field("bio").is_required is False

    def test_composite_unique(self) -> None:
        db = DatabaseSchema(
            tables={
                "member": _table(
                    "member",
                    [
                        ColumnSchema(name="team_id", data_type="integer"),
                        ColumnSchema(name="user_id", data_type="integer"),
                    ],
                    [
                        ConstraintSchema(
                            name="member_team_user_key",
                            constraint_type="UNIQUE",
                            columns=["team_id", "user_id"],
                        )
                    ],
                )
            }
        )
        member = build_schema(db).model("member")
        assert member.combined_uniques == [["team_id", "user_id"]]
        assert member.field("team_id").is_unique is False

    def test_foreign_key_adds_virtual_field(self) -> None:
        db = DatabaseSchema(
            tables={
                "post": _table(
                    "post",
                    [_serial(), ColumnSchema(name="author_id", data_type="integer")],
                    [_pk("post"), _fk("post", "author_id", "user")],
                ),
                "user": _table("user", [_serial()], [_pk("user")]),
            }
        )
        post = build_schema(db).model("post")

        author_id = post.field("author_id")
        assert author_id.field_type == "int"
        assert author_id.is_column is True
        assert author_id.relation.type is RelationType.MANY_TO_ONE

        virtual = post.field("user")
        assert virtual.field_type == "user"
        assert virtual.is_column is False
        assert virtual.relation.foreign_key == "author_id"

    def test_join_table_folded(self) -> None:
        db = DatabaseSchema(
            tables={
                "_post_tag": _table(
                    "_post_tag",
                    [
                        ColumnSchema(name="A_id", data_type="integer", is_nullable=False),
                        ColumnSchema(name="B_id", data_type="integer", is_nullable=False),
                    ],
                    [_fk("_post_tag", "A_id", "post"), _fk("_post_tag", "B_id", "tag")],
                ),
                "post": _table("post", [_serial()], [_pk("post")]),
                "tag": _table("tag", [_serial()], [_pk("tag")]),
            }
        )
        schema = build_schema(db)
        assert schema.model_names == ["post", "tag"]

        tags = schema.model("post").field("tags")
        assert tags.field_type == "tag"
        assert tags.is_array is True
        assert tags.relation.type is RelationType.MANY_TO_MANY
        assert tags.relation.foreign_key == "_post_tag"
        assert schema.model("tag").field("posts").field_type == "post"

    def test_table_with_data_columns_is_not_a_join_table(self) -> None:
        db = DatabaseSchema(
            tables={
                "enrollment": _table(
                    "enrollment",
                    [
                        ColumnSchema(name="student_id", data_type="integer"),
                        ColumnSchema(name="course_id", data_type="integer"),
                        ColumnSchema(name="grade", data_type="text"),
                    ],
                    [
                        _fk("enrollment", "student_id", "student"),
                        _fk("enrollment", "course_id", "course"),
                    ],
                ),
                "student": _table("student", [_serial()], [_pk("student")]),
                "course": _table("course", [_serial()], [_pk("course")]),
            }
        )
        assert "enrollment" in build_schema(db).model_names

    def test_mysql_dialect(self) -> None:
        db = DatabaseSchema(
            tables={
                "user": _table(
                    "user",
                    [
                        ColumnSchema(
                            name="id",
                            data_type="int",
                            column_type="int",
                            is_nullable=False,
                            extra="auto_increment",
                        ),
                        ColumnSchema(
                            name="active",
                            data_type="tinyint",
                            column_type="tinyint(1)",
                            default="1",
                        ),
                    ],
                    [ConstraintSchema(name="PRIMARY", constraint_type="PRIMARY KEY", columns=["id"])],
                )
            }
        )
        user = build_schema(db, Dialect.MYSQL).model("user")
        assert user.field("id").default == AUTOINCREMENT
        assert user.field("active").field_type == "boolean"
        assert user.field("active").default == LiteralDefault(value=True)


# ============================================================
# Test: Diff against introspected schema
# ============================================================


class TestRoundTrip:
    """An introspected schema matches the schema that created it."""

    SOURCE = """
model user {
  id int @primary_key @default(autoincrement())
  email string @unique @required
  created_at datetime @default(now())
}

model post {
  id int @primary_key @default(autoincrement())
  title string @required
  status string @default("draft")
  author_id int @required
  author user @many_to_one(author_id)
}
"""

    def _deployed(self) -> DatabaseSchema:
        return DatabaseSchema(
            tables={
                "post": _table(
                    "post",
                    [
                        _serial(),
                        ColumnSchema(name="title", data_type="character varying", is_nullable=False),
                        ColumnSchema(
                            name="status",
                            data_type="character varying",
                            default="'draft'::character varying",
                        ),
                        ColumnSchema(name="author_id", data_type="integer", is_nullable=False),
                    ],
                    [_pk("post"), _fk("post", "author_id", "user")],
                ),
                "user": _table(
                    "user",
                    [
                        _serial(),
                        ColumnSchema(name="email", data_type="character varying", is_nullable=False),
                        ColumnSchema(
                            name="created_at",
                            data_type="timestamp without time zone",
                            default="CURRENT_TIMESTAMP",
                        ),
                    ],
                    [
                        _pk("user"),
                        ConstraintSchema(
                            name="user_email_key", constraint_type="UNIQUE", columns=["email"]
                        ),
                    ],
                ),
            }
        )

    def test_no_changes(self) -> None:
        desired = parse(tokenize(self.SOURCE)).raise_for_errors()
        current = build_schema(self._deployed())
        sql = MigrationGenerator(desired, Dialect.POSTGRES).generate_migration(current)
        assert sql == NO_CHANGES

    def test_unique_primary_key_converges(self) -> None:
        """'@primary_key @unique' matches a catalog that only has the primary key."""
        desired = parse(
            tokenize("model tag { id int @primary_key @unique @default(autoincrement()) }")
        ).raise_for_errors()
        current = build_schema(
            DatabaseSchema(tables={"tag": _table("tag", [_serial()], [_pk("tag")])})
        )
        assert current.model("tag").field("id").is_unique is False
        for dialect in (Dialect.POSTGRES, Dialect.MYSQL, Dialect.SQLITE):
            sql = MigrationGenerator(desired, dialect).generate_migration(current)
            assert sql == NO_CHANGES

    def test_detects_drift(self) -> None:
        desired = parse(
            tokenize(self.SOURCE.replace('@default("draft")', '@default("live")'))
        ).raise_for_errors()
        current = build_schema(self._deployed())
        statements = MigrationGenerator(desired, Dialect.POSTGRES).plan(current).statements
        assert statements == ["ALTER TABLE post ALTER COLUMN status SET DEFAULT 'live';"]


class TestMigrationResult:
    """Verify MigrationResult.has_changes."""

    def test_sentinel_has_no_changes(self) -> None:
        assert MigrationResult(script=NO_CHANGES).has_changes is False

    def test_empty_has_no_changes(self) -> None:
        assert MigrationResult().has_changes is False

    def test_script_has_changes(self) -> None:
        assert MigrationResult(script="BEGIN;\nDROP TABLE t;\nCOMMIT;").has_changes is True
