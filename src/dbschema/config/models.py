"""Pydantic models for project configuration (``dbschema.toml``)."""

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Configuration Models
# ============================================================================


class SchemaSettings(BaseModel):
    """``[schema]`` section: where the schema source and generated types live."""

    model_config = ConfigDict(extra="forbid")

    file: str = "schema.dbs"
    types_output: str = "schema_types.py"


class MigrateSettings(BaseModel):
    """``[migrate]`` section: connection lookup and generation options."""

    model_config = ConfigDict(extra="forbid")

    env_var: str = "DATABASE_URL"
    env_prefix: str = ""
    quote_identifiers: bool = False
    strict: bool = False
    connect_timeout: int = Field(default=10, gt=0)


class ProjectConfig(BaseModel):
    """Complete configuration from ``dbschema.toml``.

    Example:
        >>> config = ProjectConfig()
        >>> config.source.file
        'schema.dbs'
        >>> config.migrate.env_var
        'DATABASE_URL'
    """

    source: SchemaSettings = Field(default_factory=SchemaSettings)
    migrate: MigrateSettings = Field(default_factory=MigrateSettings)
