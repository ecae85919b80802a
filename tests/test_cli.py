"""Tests for the dbschema CLI.

Verifies that the CLI:
- Uses ``dbschema`` as program name and dispatches every subcommand
- Exits 0 for a valid schema and 1 (with every diagnostic) otherwise
- Prints or writes the CREATE script for the requested dialect
- Writes the types module
- Fails fast when DATABASE_URL is missing or the database is unreachable
- Honors ``--env-prefix`` and ``--dry-run`` / ``--no-types`` on migrate
- Wraps async commands via ``asyncio.run()``
"""

import ast
from pathlib import Path
from unittest.mock import AsyncMock, patch

import psycopg
import pytest

from dbschema.cli import main
from dbschema.dsl.lexer import tokenize
from dbschema.dsl.parser import parse
from dbschema.errors import MigrationError
from dbschema.schema.models import MigrationResult
from dbschema.sql.generator import NO_CHANGES

CLI_INIT_PY = Path(__file__).parent.parent / "src" / "dbschema" / "cli" / "__init__.py"

VALID_SCHEMA = """
model user {
  id int @primary_key @default(autoincrement())
  email string @unique @required
}
"""


@pytest.fixture(autouse=True)
def _quiet_logging():
    """Keep the CLI from reconfiguring root logging during tests."""
    with patch("dbschema.cli._setup_logging"):
        yield


@pytest.fixture
def project(tmp_path, monkeypatch) -> Path:
    """Temporary project directory with a valid schema.dbs."""
    (tmp_path / "schema.dbs").write_text(VALID_SCHEMA, encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    return tmp_path


def _run(*argv: str) -> int:
    with patch("sys.argv", ["dbschema", *argv]):
        return main()


# ------------------------------------------------------------------
# Dispatch
# ------------------------------------------------------------------


class TestDispatch:
    """Verify argument parsing routes to the right command."""

    @pytest.mark.parametrize(
        "command", ["check", "generate", "types", "introspect", "migrate"]
    )
    def test_subcommand_dispatch(self, command: str) -> None:
        with patch(f"dbschema.cli.cmd_{command}", return_value=0) as mock_cmd:
            assert _run(command) == 0
        mock_cmd.assert_called_once()

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            _run()

    def test_global_options_parsed(self) -> None:
        with patch("dbschema.cli.cmd_migrate", return_value=0) as mock_cmd:
            _run("--env-prefix", "APP_", "--config", "x.toml", "migrate", "--dry-run")
        args = mock_cmd.call_args.args[0]
        assert args.env_prefix == "APP_"
        assert args.config == "x.toml"
        assert args.dry_run is True

    def test_prog_name(self) -> None:
        assert 'prog="dbschema"' in CLI_INIT_PY.read_text()

    def test_async_commands_use_asyncio_run(self) -> None:
        tree = ast.parse(CLI_INIT_PY.read_text())
        for node in ast.walk(tree):
            if isinstance(node, ast.FunctionDef) and node.name in ("cmd_introspect", "cmd_migrate"):
                source = ast.unparse(node)
                assert "asyncio.run(" in source


# ------------------------------------------------------------------
# check
# ------------------------------------------------------------------


class TestCheck:
    """Verify the check command."""

    def test_valid(self, project, capsys) -> None:
        assert _run("check") == 0
        assert "Schema is valid" in capsys.readouterr().out

    def test_show_prints_models(self, project, capsys) -> None:
        assert _run("check", "--show") == 0
        out = capsys.readouterr().out
        assert "email" in out
        assert "unique" in out

    def test_invalid_reports_every_error(self, project, capsys) -> None:
        (project / "bad.dbs").write_text(
            "model Bad { id int }\nmodel Bad { id int }", encoding="utf-8"
        )
        assert _run("check", "--schema", "bad.dbs") == 1
        out = capsys.readouterr().out
        assert "Schema compilation failed" in out
        assert "Model name 'Bad' must be in snake_case" in out
        assert "Duplicate model name 'Bad'" in out

    def test_missing_file(self, project, capsys) -> None:
        assert _run("check", "--schema", "missing.dbs") == 1
        assert "No tokens generated" in capsys.readouterr().out

    def test_strict_from_config(self, project) -> None:
        (project / "dbschema.toml").write_text("[migrate]\nstrict = true\n", encoding="utf-8")
        (project / "schema.dbs").write_text(
            "model post { author ghost @many_to_one }", encoding="utf-8"
        )
        assert _run("check") == 1

    def test_bad_config_path(self, project, capsys) -> None:
        assert _run("--config", "nope.toml", "check") == 1
        assert "Config file not found" in capsys.readouterr().out


# ------------------------------------------------------------------
# generate / types
# ------------------------------------------------------------------


class TestGenerate:
    """Verify the generate command."""

    def test_prints_postgres_by_default(self, project, capsys) -> None:
        assert _run("generate") == 0
        out = capsys.readouterr().out
        assert "id SERIAL PRIMARY KEY" in out

    def test_mysql(self, project, capsys) -> None:
        assert _run("generate", "--dialect", "mysql") == 0
        assert "AUTO_INCREMENT" in capsys.readouterr().out

    def test_output_file(self, project) -> None:
        assert _run("generate", "--dialect", "sqlite", "-o", "create.sql") == 0
        sql = (project / "create.sql").read_text(encoding="utf-8")
        assert sql.startswith("BEGIN;\nCREATE TABLE user (")
        assert "AUTOINCREMENT" in sql

    def test_quote(self, project, capsys) -> None:
        assert _run("generate", "--quote") == 0
        assert 'CREATE TABLE "user"' in capsys.readouterr().out

    def test_invalid_dialect(self, project) -> None:
        with pytest.raises(SystemExit):
            _run("generate", "--dialect", "oracle")


class TestTypes:
    """Verify the types command."""

    def test_writes_default_output(self, project) -> None:
        assert _run("types") == 0
        assert "class User(TypedDict)" in (project / "schema_types.py").read_text()

    def test_output_option(self, project) -> None:
        assert _run("types", "--output", "gen/types.py") == 0
        assert (project / "gen" / "types.py").exists()


# ------------------------------------------------------------------
# introspect / migrate
# ------------------------------------------------------------------


class TestIntrospect:
    """Verify the introspect command."""

    def test_missing_database_url(self, project, capsys) -> None:
        assert _run("introspect") == 1
        assert "DATABASE_URL is not set" in capsys.readouterr().out

    def test_shows_models(self, project, monkeypatch, capsys) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgres://u@h/db")
        deployed = parse(tokenize(VALID_SCHEMA)).raise_for_errors()
        with patch(
            "dbschema.cli.introspect_target", new_callable=AsyncMock, return_value=deployed
        ) as mock_introspect:
            assert _run("introspect") == 0
        target = mock_introspect.await_args.args[0]
        assert target.url == "postgres://u@h/db"
        assert "email" in capsys.readouterr().out

    def test_unreachable_database(self, project, monkeypatch, capsys) -> None:
        """A refused connection prints a message and exits 1 instead of a traceback."""
        monkeypatch.setenv("DATABASE_URL", "postgres://u@h/db")
        with patch(
            "dbschema.schema.introspector.psycopg.AsyncConnection.connect",
            new_callable=AsyncMock,
            side_effect=psycopg.OperationalError("connection refused"),
        ):
            assert _run("introspect") == 1
        out = capsys.readouterr().out
        assert "Could not connect to database" in out
        assert "connection refused" in out


class TestMigrate:
    """Verify the migrate command."""

    def test_missing_database_url(self, project, capsys) -> None:
        assert _run("migrate") == 1
        assert "DATABASE_URL is not set in environment variables." in capsys.readouterr().out

    def test_env_prefix(self, project, monkeypatch) -> None:
        monkeypatch.setenv("APP_DATABASE_URL", "mysql://u@h/db")
        result = MigrationResult(success=True, script=NO_CHANGES)
        with patch("dbschema.cli.migrate", new_callable=AsyncMock, return_value=result) as mock_migrate:
            assert _run("--env-prefix", "APP_", "migrate", "--no-types") == 0
        target = mock_migrate.await_args.args[1]
        assert target.url == "mysql://u@h/db"

    def test_no_changes(self, project, monkeypatch, capsys) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgres://u@h/db")
        result = MigrationResult(success=True, script=NO_CHANGES)
        with patch("dbschema.cli.migrate", new_callable=AsyncMock, return_value=result):
            assert _run("migrate") == 0
        assert "No migration needed" in capsys.readouterr().out
        assert (project / "schema_types.py").exists()

    def test_dry_run(self, project, monkeypatch, capsys) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgres://u@h/db")
        result = MigrationResult(
            success=True,
            dry_run=True,
            fresh_database=True,
            script="BEGIN;\nCREATE TABLE user (id SERIAL PRIMARY KEY);\nCOMMIT;",
        )
        with patch(
            "dbschema.cli.migrate", new_callable=AsyncMock, return_value=result
        ) as mock_migrate:
            assert _run("migrate", "--dry-run") == 0

        assert mock_migrate.await_args.kwargs["dry_run"] is True
        out = capsys.readouterr().out
        assert "Starting Fresh" in out
        assert "CREATE TABLE user" in out
        assert "Dry run" in out
        assert (project / "schema_types.py").exists()

    def test_applied(self, project, monkeypatch, capsys) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgres://u@h/db")
        result = MigrationResult(
            success=True,
            script="BEGIN;\nALTER TABLE user ADD COLUMN bio VARCHAR(255);\nCOMMIT;",
            statements_executed=1,
        )
        with patch("dbschema.cli.migrate", new_callable=AsyncMock, return_value=result):
            assert _run("migrate", "--no-types") == 0
        assert "Migration applied successfully" in capsys.readouterr().out
        assert not (project / "schema_types.py").exists()

    def test_failure(self, project, monkeypatch, capsys) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgres://u@h/db")
        error = MigrationError("BEGIN;\nDROP TABLE user;\nCOMMIT;", RuntimeError("locked"))
        with patch("dbschema.cli.migrate", new_callable=AsyncMock, side_effect=error):
            assert _run("migrate") == 1
        out = capsys.readouterr().out
        assert "Failed to apply migration" in out
        assert "DROP TABLE user;" in out
        assert "locked" in out
