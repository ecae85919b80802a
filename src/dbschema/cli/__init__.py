"""CLI module for the schema toolchain.

Provides commands to validate a schema source file, render SQL, generate
type declarations, inspect a live database and migrate it.

Usage:
    dbschema check --schema schema.dbs
    dbschema generate --dialect mysql --output create.sql
    dbschema types --output app/schema_types.py
    DATABASE_URL=postgres://localhost/app dbschema introspect
    DATABASE_URL=postgres://localhost/app dbschema migrate --dry-run
    APP_DATABASE_URL=mysql://root@localhost/app dbschema --env-prefix APP_ migrate

Commands:
    check       - Lex, parse and analyze the schema; report every error
    generate    - Print the full CREATE script (no database needed)
    types       - Write the TypedDict module for the schema
    introspect  - Show the schema deployed in the database
    migrate     - Diff the schema against the database and apply the changes
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from dbschema.compiler import compile_file
from dbschema.config import ProjectConfig, load_config
from dbschema.dsl.nodes import SchemaNode
from dbschema.errors import CompileError, DbSchemaError, MigrationError
from dbschema.factory import ConnectionTarget, resolve_connection
from dbschema.schema.migrator import introspect_target, migrate
from dbschema.sql.dialects import Dialect
from dbschema.sql.generator import MigrationGenerator
from dbschema.typegen import write_type_module

console = Console()
logger = logging.getLogger(__name__)


# ============================================================================
# Shared helpers
# ============================================================================


def _setup_logging(verbose: bool) -> None:
    """Route library logging through rich; ``--verbose`` enables DEBUG."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                rich_tracebacks=True,
                show_time=False,
                show_path=False,
            )
        ],
        force=True,
    )


def _load_config(args: argparse.Namespace) -> ProjectConfig:
    config_path = getattr(args, "config", None)
    return load_config(Path(config_path) if config_path else None)


def _schema_path(args: argparse.Namespace, config: ProjectConfig) -> Path:
    return Path(getattr(args, "schema", None) or config.source.file)


def _resolve_target(args: argparse.Namespace, config: ProjectConfig) -> ConnectionTarget:
    env_prefix = getattr(args, "env_prefix", None)
    if env_prefix is None:
        env_prefix = config.migrate.env_prefix
    return resolve_connection(env_prefix=env_prefix, env_var=config.migrate.env_var)


def _compile(path: Path, strict: bool) -> SchemaNode:
    """Compile *path*; raises ``CompileError`` with every diagnostic."""
    console.print(f"Compiling [cyan]{path}[/cyan]...", style="dim")
    return compile_file(path, strict=strict).raise_for_errors()


def _print_sql(sql: str) -> None:
    console.print(sql, markup=False, highlight=False, soft_wrap=True)


def _print_error(error: DbSchemaError) -> None:
    console.print()
    if isinstance(error, CompileError):
        console.print("[bold red]x[/bold red] Schema compilation failed")
        if not error.errors:
            console.print("  No tokens generated. Cannot parse or analyze.")
        for diagnostic in error.errors:
            console.print(f"  {diagnostic}", markup=False, soft_wrap=True)
    elif isinstance(error, MigrationError):
        console.print("[bold red]x[/bold red] Failed to apply migration")
        console.print("\n[bold]Script:[/bold]")
        _print_sql(error.script)
        console.print(f"\n[bold]Error:[/bold] {escape(str(error.cause))}", soft_wrap=True)
    else:
        console.print(f"[bold red]x[/bold red] {escape(str(error))}", soft_wrap=True)


def _schema_table(schema: SchemaNode, title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Model", style="cyan")
    table.add_column("Field")
    table.add_column("Type")
    table.add_column("Attributes", style="dim")

    for model in schema.models:
        for i, f in enumerate(model.fields):
            attrs: list[str] = []
            if f.is_primary_key:
                attrs.append("primary_key")
            if f.is_required:
                attrs.append("required")
            if f.is_unique:
                attrs.append("unique")
            if f.default is not None:
                value = getattr(f.default, "value", None)
                attrs.append(
                    f"default({value!r})" if value is not None else f"default({f.default.name.value}())"
                )
            if f.relation is not None:
                fk = f"({f.relation.foreign_key})" if f.relation.foreign_key else ""
                attrs.append(f"{f.relation.type.value}{fk}")
            type_display = f.field_type + ("[]" if f.is_array else "")
            table.add_row(model.name if i == 0 else "", f.name, type_display, " ".join(attrs))
    return table


# ============================================================================
# Sync command implementations
# ============================================================================


def cmd_check(args: argparse.Namespace) -> int:
    """Lex, parse and analyze the schema source.

    Returns:
        0 if the schema is valid, 1 otherwise.
    """
    config = _load_config(args)
    strict = args.strict or config.migrate.strict
    schema = _compile(_schema_path(args, config), strict)

    console.print()
    console.print(
        f"[bold green]v[/bold green] Schema is valid: "
        f"[bold]{len(schema.models)}[/bold] models"
    )
    if args.show:
        console.print(_schema_table(schema, "Schema"))
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Render the CREATE script for a fresh database.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load_config(args)
    schema = _compile(_schema_path(args, config), config.migrate.strict)

    generator = MigrationGenerator(
        schema,
        Dialect(args.dialect),
        quote_identifiers=args.quote or config.migrate.quote_identifiers,
    )
    sql = generator.generate_migration(None)

    if args.output:
        Path(args.output).write_text(sql + "\n", encoding="utf-8")
        console.print(
            f"[bold green]v[/bold green] Wrote {args.dialect} script to "
            f"[cyan]{args.output}[/cyan]"
        )
    else:
        _print_sql(sql)
    return 0


def cmd_types(args: argparse.Namespace) -> int:
    """Write the TypedDict module for the schema.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load_config(args)
    schema = _compile(_schema_path(args, config), config.migrate.strict)
    output = write_type_module(schema, args.output or config.source.types_output)
    console.print(f"[bold green]v[/bold green] Wrote types to [cyan]{output}[/cyan]")
    return 0


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_introspect(args: argparse.Namespace) -> int:
    """Async implementation for introspect command.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load_config(args)
    target = _resolve_target(args, config)

    console.print(f"Introspecting [bold cyan]{target.dialect.value}[/bold cyan] database...", style="dim")
    schema = await introspect_target(target, connect_timeout=config.migrate.connect_timeout)

    if not schema.models:
        console.print("[yellow]No tables found.[/yellow]")
        return 0

    console.print(_schema_table(schema, "Deployed Schema"))
    return 0


async def _async_migrate(args: argparse.Namespace) -> int:
    """Async implementation for migrate command.

    The connection string is resolved before the schema is compiled, so a
    missing ``DATABASE_URL`` fails fast.  The types module is rewritten as
    soon as the schema compiles, dry run included.

    Returns:
        0 on success or no-op, 1 on failure.
    """
    config = _load_config(args)
    target = _resolve_target(args, config)
    schema = _compile(_schema_path(args, config), config.migrate.strict)

    if not args.no_types:
        output = write_type_module(schema, config.source.types_output)
        console.print(f"Types written to [cyan]{output}[/cyan]", style="dim")

    result = await migrate(
        schema,
        target,
        dry_run=args.dry_run,
        quote_identifiers=config.migrate.quote_identifiers,
        connect_timeout=config.migrate.connect_timeout,
    )

    if result.fresh_database:
        console.print("\n--- No Previous Schema Found, Starting Fresh ---", style="dim")

    if not result.has_changes:
        console.print()
        console.print("[bold green]v[/bold green] No migration needed.")
    else:
        console.print("\n[bold]--- Generated Migration SQL ---[/bold]")
        _print_sql(result.script)
        console.print()
        if result.dry_run:
            console.print(
                "[dim]Dry run: nothing applied. Remove[/dim] [cyan]--dry-run[/cyan] "
                "[dim]to apply.[/dim]"
            )
        else:
            console.print(
                f"[bold green]v[/bold green] Migration applied successfully "
                f"({result.statements_executed} statements)"
            )

    return 0


# ============================================================================
# Command wrappers
# ============================================================================


def cmd_introspect(args: argparse.Namespace) -> int:
    """Show the deployed schema.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_introspect(args))


def cmd_migrate(args: argparse.Namespace) -> int:
    """Migrate the database to the schema.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_migrate(args))


# ============================================================================
# Entry point
# ============================================================================


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.
    ``DbSchemaError``s raised by a command are printed and turned into
    exit code 1.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="dbschema",
        description="Schema compiler and migration toolkit",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default=None,
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DATABASE_URL)"
        ),
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config file (default: ./dbschema.toml if present)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # check command
    p_check = subparsers.add_parser(
        "check",
        help="Validate the schema source file",
    )
    p_check.add_argument("--schema", help="Schema source file")
    p_check.add_argument(
        "--strict",
        action="store_true",
        help="Also check relation targets, foreign keys and @@unique columns",
    )
    p_check.add_argument(
        "--show",
        action="store_true",
        help="Print the parsed models",
    )
    p_check.set_defaults(func=cmd_check)

    # generate command
    p_generate = subparsers.add_parser(
        "generate",
        help="Print the CREATE script for a fresh database",
    )
    p_generate.add_argument("--schema", help="Schema source file")
    p_generate.add_argument(
        "--dialect",
        choices=[d.value for d in Dialect],
        default=Dialect.POSTGRES.value,
        help="Target SQL dialect (default: postgres)",
    )
    p_generate.add_argument("--output", "-o", help="Write the script to this file")
    p_generate.add_argument(
        "--quote",
        action="store_true",
        help="Quote table and column names",
    )
    p_generate.set_defaults(func=cmd_generate)

    # types command
    p_types = subparsers.add_parser(
        "types",
        help="Write TypedDict declarations for the schema",
    )
    p_types.add_argument("--schema", help="Schema source file")
    p_types.add_argument("--output", "-o", help="Output module path")
    p_types.set_defaults(func=cmd_types)

    # introspect command
    p_introspect = subparsers.add_parser(
        "introspect",
        help="Show the schema deployed in the database",
    )
    p_introspect.set_defaults(func=cmd_introspect)

    # migrate command
    p_migrate = subparsers.add_parser(
        "migrate",
        help="Diff the schema against the database and apply the changes",
    )
    p_migrate.add_argument("--schema", help="Schema source file")
    p_migrate.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the migration without applying it",
    )
    p_migrate.add_argument(
        "--no-types",
        action="store_true",
        help="Do not regenerate the types module",
    )
    p_migrate.set_defaults(func=cmd_migrate)

    args = parser.parse_args()
    _setup_logging(args.verbose)
    logger.debug("Running command: %s", args.command)

    try:
        return args.func(args)
    except DbSchemaError as e:
        _print_error(e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
