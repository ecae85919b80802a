"""Configuration loading for dbschema."""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from dbschema.config.models import MigrateSettings, ProjectConfig, SchemaSettings
from dbschema.errors import ConfigurationError

DEFAULT_CONFIG_FILE = "dbschema.toml"


def load_config(config_path: Path | None = None) -> ProjectConfig:
    """Load project configuration from a TOML file.

    Args:
        config_path: Path to the config file.  When omitted,
            ``dbschema.toml`` in the current directory is used if present;
            otherwise defaults apply.

    Returns:
        ProjectConfig with the ``[schema]`` and ``[migrate]`` sections.

    Raises:
        ConfigurationError: If an explicitly given file does not exist, the
            TOML is malformed, or a value is invalid.
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_FILE

    if not config_path.exists():
        if explicit:
            raise ConfigurationError(f"Config file not found: {config_path}")
        return ProjectConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

    # Parse sections
    try:
        return ProjectConfig(
            source=SchemaSettings(**data.get("schema", {})),
            migrate=MigrateSettings(**data.get("migrate", {})),
        )
    except (ValidationError, TypeError) as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e
