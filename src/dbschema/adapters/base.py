"""Migration client protocol definition.

Defines the ``MigrationClient`` Protocol that execution adapters implement.
All methods are ``async def``.

Usage:
    from dbschema.adapters.base import MigrationClient

    async def apply(client: MigrationClient, statements: list[str]) -> None:
        await client.execute_in_transaction(statements)
        await client.close()
"""

from typing import Protocol


class MigrationClient(Protocol):
    """Interface for applying migration scripts to a database.

    All methods are async -- callers must ``await`` every operation.
    """

    async def execute_in_transaction(self, statements: list[str]) -> int:
        """Execute *statements* in order inside one transaction.

        Either every statement is applied or (where the engine supports
        transactional DDL) none is.

        Args:
            statements: SQL statements, each a complete statement.

        Returns:
            Number of statements executed.

        Raises:
            Exception: The driver error of the first failing statement.  The
                transaction is rolled back before it propagates.
        """
        ...

    async def test_connection(self) -> bool:
        """Return True if ``SELECT 1`` succeeds."""
        ...

    async def close(self) -> None:
        """Close the connection and clean up resources."""
        ...
