"""Connection resolution and database client factories.

The target database is selected by one environment variable
(``DATABASE_URL`` by default, optionally prefixed, e.g. ``APP_DATABASE_URL``).
Its URL scheme picks the dialect:

- ``postgres://`` / ``postgresql://`` (optionally ``+driver``) -> postgres
- ``mysql://`` (optionally ``+driver``) -> mysql

Usage:
    from dbschema.factory import resolve_connection, get_introspector

    target = resolve_connection(env_prefix="APP_")
    async with get_introspector(target) as introspector:
        current = await introspector.introspect_schema()
"""

import os
from collections.abc import Mapping
from urllib.parse import urlsplit

from pydantic import BaseModel

from dbschema.adapters.engine import AsyncMigrationAdapter
from dbschema.errors import ConfigurationError
from dbschema.schema.introspector import MySQLIntrospector, SchemaIntrospector
from dbschema.sql.dialects import Dialect

_SCHEME_DIALECTS: dict[str, Dialect] = {
    "postgres": Dialect.POSTGRES,
    "postgresql": Dialect.POSTGRES,
    "mysql": Dialect.MYSQL,
}


class ConnectionTarget(BaseModel):
    """A resolved connection string and the dialect it implies.

    Example:
        >>> target = ConnectionTarget(url="postgres://localhost/app", dialect=Dialect.POSTGRES)
        >>> target.dialect.value
        'postgres'
    """

    url: str
    dialect: Dialect


def dialect_from_url(url: str) -> Dialect:
    """Return the dialect for *url* based on its scheme.

    Raises:
        ConfigurationError: If the scheme is not recognized.
    """
    scheme = urlsplit(url).scheme.split("+", 1)[0].lower()
    if scheme not in _SCHEME_DIALECTS:
        raise ConfigurationError(
            f"Unsupported database URL scheme '{scheme or url}'. "
            f"Expected one of: {', '.join(sorted(_SCHEME_DIALECTS))}"
        )
    return _SCHEME_DIALECTS[scheme]


def resolve_connection(
    env_prefix: str = "",
    env_var: str = "DATABASE_URL",
    environ: Mapping[str, str] | None = None,
) -> ConnectionTarget:
    """Read the connection string from the environment.

    Args:
        env_prefix: Prepended to *env_var* (``"APP_"`` -> ``APP_DATABASE_URL``).
        env_var: Variable name without prefix.
        environ: Mapping to read from (default: ``os.environ``).

    Returns:
        ConnectionTarget with the URL and its dialect.

    Raises:
        ConfigurationError: If the variable is unset/empty or its scheme is
            not recognized.
    """
    env = os.environ if environ is None else environ
    name = f"{env_prefix}{env_var}"
    url = env.get(name, "").strip()
    if not url:
        raise ConfigurationError(f"{name} is not set in environment variables.")
    return ConnectionTarget(url=url, dialect=dialect_from_url(url))


def _plain_url(url: str) -> str:
    """Drop a ``+driver`` suffix from the scheme (psycopg wants plain URLs)."""
    scheme, sep, rest = url.partition("://")
    return f"{scheme.split('+', 1)[0]}{sep}{rest}"


def get_introspector(
    target: ConnectionTarget,
    connect_timeout: int = 10,
) -> SchemaIntrospector | MySQLIntrospector:
    """Create the introspector for *target*'s dialect (not yet connected)."""
    url = _plain_url(target.url)
    if target.dialect is Dialect.MYSQL:
        return MySQLIntrospector(url, connect_timeout=connect_timeout)
    return SchemaIntrospector(url, connect_timeout=connect_timeout)


def get_adapter(target: ConnectionTarget, connect_timeout: int = 10) -> AsyncMigrationAdapter:
    """Create the migration adapter for *target*'s dialect."""
    return AsyncMigrationAdapter(
        _plain_url(target.url), target.dialect, connect_timeout=connect_timeout
    )
