"""Migration pipeline: introspect, diff, render and apply.

``migrate()`` runs one forward migration against a live database:

1. Introspect the deployed schema (zero models means a fresh database)
2. Generate the migration from the deployed schema to the desired one
3. If nothing changed, stop (success, nothing executed)
4. Otherwise execute every statement on one dedicated connection inside one
   driver transaction; any failure aborts with ``MigrationError`` carrying
   the full script and the driver error.  No retry.

The introspector and adapter are injectable so callers (and tests) can
supply their own.

Usage:
    from dbschema.factory import resolve_connection
    from dbschema.schema.migrator import migrate

    target = resolve_connection()
    result = await migrate(schema, target, dry_run=True)
    print(result.script)
"""

import logging

from dbschema.adapters.base import MigrationClient
from dbschema.dsl.nodes import SchemaNode
from dbschema.errors import DbSchemaError, MigrationError
from dbschema.factory import ConnectionTarget, get_adapter, get_introspector
from dbschema.schema.introspector import MySQLIntrospector, SchemaIntrospector
from dbschema.schema.models import MigrationResult
from dbschema.sql.generator import MigrationGenerator, MigrationScript

logger = logging.getLogger(__name__)


async def introspect_target(
    target: ConnectionTarget,
    introspector: SchemaIntrospector | MySQLIntrospector | None = None,
    connect_timeout: int = 10,
) -> SchemaNode:
    """Read the deployed schema of *target* as a ``SchemaNode``."""
    if introspector is None:
        introspector = get_introspector(target, connect_timeout=connect_timeout)
    async with introspector:
        return await introspector.introspect_schema()


def plan_migration(
    schema: SchemaNode,
    current: SchemaNode,
    target: ConnectionTarget,
    quote_identifiers: bool = False,
) -> MigrationScript:
    """Plan the statements turning *current* into *schema*.

    An empty *current* is treated as a fresh database (CREATE-only script).
    """
    previous = current if current.models else None
    generator = MigrationGenerator(schema, target.dialect, quote_identifiers=quote_identifiers)
    return generator.plan(previous)


async def apply_script(client: MigrationClient, script: MigrationScript) -> int:
    """Execute *script* through *client* in one transaction.

    Returns:
        Number of statements executed.

    Raises:
        MigrationError: If the driver reports any error.  The transaction
            has been rolled back (where the engine supports it).
    """
    sql = script.to_sql()
    try:
        return await client.execute_in_transaction(script.executable_statements)
    except DbSchemaError:
        raise
    except Exception as e:
        logger.error("Migration failed: %s", e)
        raise MigrationError(sql, e) from e
    finally:
        await client.close()


async def migrate(
    schema: SchemaNode,
    target: ConnectionTarget,
    dry_run: bool = False,
    quote_identifiers: bool = False,
    connect_timeout: int = 10,
    introspector: SchemaIntrospector | MySQLIntrospector | None = None,
    client: MigrationClient | None = None,
) -> MigrationResult:
    """Bring the database at *target* in line with *schema*.

    Args:
        schema: Desired schema (validated parser output).
        target: Connection target from ``resolve_connection()``.
        dry_run: Render the script without executing it.
        quote_identifiers: Quote table and column names in generated SQL.
        connect_timeout: Seconds to wait for each connection.
        introspector: Optional introspector (default: by dialect).
        client: Optional migration client (default: SQLAlchemy adapter).

    Returns:
        ``MigrationResult`` with the rendered script and counts.

    Raises:
        MigrationError: If applying the script fails.
        GenerationError: If the schema cannot be rendered for the dialect.

    Example:
        result = await migrate(schema, target)
        if result.has_changes:
            print(f"Applied {result.statements_executed} statements")
    """
    current = await introspect_target(target, introspector, connect_timeout)
    fresh = not current.models
    if fresh:
        logger.info("No deployed schema found, starting fresh")
    else:
        logger.info("Deployed schema has %d models", len(current.models))

    script = plan_migration(schema, current, target, quote_identifiers)
    result = MigrationResult(
        script=script.to_sql(),
        fresh_database=fresh,
        dry_run=dry_run,
        warnings=script.warnings,
    )

    if script.is_empty:
        logger.info("No migration needed")
        result.success = True
        return result

    if dry_run:
        result.success = True
        return result

    if client is None:
        client = get_adapter(target, connect_timeout=connect_timeout)

    logger.info("Applying migration (%d statements)", len(script.executable_statements))
    result.statements_executed = await apply_script(client, script)
    result.success = True
    logger.info("Migration applied successfully")
    return result
